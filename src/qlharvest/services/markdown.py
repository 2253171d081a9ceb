"""Markdown export of variant analysis results using Jinja2."""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path
from typing import Iterable, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError

from qlharvest.domain.models import (
    AnalysisAlert,
    AnalysisMessage,
    AnalysisRawResults,
    AnalysisResults,
    FileLink,
    HighlightedRegion,
    MarkdownFile,
)

logger = logging.getLogger(__name__)

SUMMARY_TEMPLATE = "summary.md.j2"
REPOSITORY_TEMPLATE = "repository.md.j2"


class MarkdownExportError(Exception):
    """Raised when markdown files cannot be rendered or written."""

    pass


def get_template_dir() -> Path:
    """Resolve the directory holding the bundled templates."""
    template_dir = Path(str(resources.files("qlharvest.data")))
    if not (template_dir / SUMMARY_TEMPLATE).exists():
        raise FileNotFoundError(f"Bundled template {SUMMARY_TEMPLATE} not found in {template_dir}")
    return template_dir


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(get_template_dir()),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def _render(template_name: str, variables: dict) -> list[str]:
    try:
        content = _environment().get_template(template_name).render(**variables)
    except TemplateError as exc:
        raise MarkdownExportError(f"Failed to render {template_name}: {exc}") from exc
    return content.rstrip("\n").split("\n")


def create_file_name(nwo: str) -> str:
    return nwo.replace("/", "-")


def create_relative_link(file_name: str, link_type: str) -> str:
    """Link to a repository file, either next to the summary or inside a gist."""
    if link_type == "gist":
        return f"#file-{file_name}-md"
    return f"{file_name}.md"


def create_remote_file_ref(
    file_link: FileLink, start_line: Optional[int] = None, end_line: Optional[int] = None
) -> str:
    url = f"{file_link.file_link_prefix}/{file_link.file_path}"
    if start_line is not None:
        url += f"#L{start_line}"
        if end_line is not None and end_line > start_line:
            url += f"-L{end_line}"
    return f"[{file_link.file_path}]({url})"


def _region_ref(file_link: FileLink, region: Optional[HighlightedRegion]) -> str:
    if region is None:
        return create_remote_file_ref(file_link)
    return create_remote_file_ref(file_link, region.start_line, region.end_line)


def _message_to_markdown(message: AnalysisMessage) -> str:
    parts = []
    for token in message.tokens:
        if token.t == "location" and token.location is not None:
            location = token.location
            region = location.highlighted_region
            url = f"{location.file_link.file_link_prefix}/{location.file_link.file_path}#L{region.start_line}"
            parts.append(f"[{token.text}]({url})")
        else:
            parts.append(token.text)
    return "".join(parts)


def _alert_variables(alert: AnalysisAlert) -> dict:
    paths = []
    for code_flow in alert.code_flows:
        steps = []
        for thread_flow in code_flow.thread_flows:
            step = _region_ref(thread_flow.file_link, thread_flow.highlighted_region)
            if thread_flow.message is not None:
                step += f": {_message_to_markdown(thread_flow.message)}"
            steps.append(step)
        paths.append(steps)

    return {
        "file_ref": _region_ref(alert.file_link, alert.highlighted_region),
        "snippet": alert.code_snippet.text.rstrip("\n") if alert.code_snippet else None,
        "message": _message_to_markdown(alert.message),
        "paths": paths,
    }


def _format_cell(cell) -> str:
    if isinstance(cell, dict):
        text = str(cell.get("label") or cell.get("id") or "")
    else:
        text = str(cell)
    return text.replace("|", "\\|").replace("\n", " ")


def _raw_variables(raw_results: AnalysisRawResults) -> dict:
    header = [column.name or f"[{index}]" for index, column in enumerate(raw_results.schema.columns)]
    return {
        "header": header,
        "rows": [[_format_cell(cell) for cell in row] for row in raw_results.result_set.rows],
        "capped": raw_results.capped,
    }


def generate_markdown(
    query_name: str,
    query_text: str,
    analyses_results: Iterable[AnalysisResults],
    link_type: str = "local",
    language: str = "",
) -> list[MarkdownFile]:
    """
    Generate a summary file plus one file per repository with results.

    Args:
        query_name: Name of the query shown in the summary title
        query_text: Query source, shown in a collapsible block
        analyses_results: Results of the run's repositories
        link_type: "local" for sibling files, "gist" for gist anchors
        language: Language tag for code snippet blocks

    Returns:
        The summary file (named ``_summary``) followed by the repository files
    """
    summary_rows = []
    results_files = []

    for analysis_results in analyses_results:
        results_count = analysis_results.displayed_result_count
        if results_count == 0:
            continue

        file_name = create_file_name(analysis_results.nwo)
        summary_rows.append(
            {
                "nwo": analysis_results.nwo,
                "count": results_count,
                "link": create_relative_link(file_name, link_type),
            }
        )

        content = _render(
            REPOSITORY_TEMPLATE,
            {
                "nwo": analysis_results.nwo,
                "language": language,
                "alerts": [_alert_variables(a) for a in analysis_results.interpreted_results],
                "raw": _raw_variables(analysis_results.raw_results) if analysis_results.raw_results else None,
            },
        )
        results_files.append(MarkdownFile(file_name=file_name, content=content))

    summary = MarkdownFile(
        file_name="_summary",
        content=_render(
            SUMMARY_TEMPLATE,
            {"query_name": query_name, "query_text": query_text.rstrip("\n"), "rows": summary_rows},
        ),
    )
    return [summary, *results_files]


def write_markdown_files(directory: Path, files: list[MarkdownFile]) -> list[Path]:
    """Write each markdown file as ``<file_name>.md`` inside ``directory``."""
    directory = Path(directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        written = []
        for markdown_file in files:
            path = directory / f"{markdown_file.file_name}.md"
            path.write_text("\n".join(markdown_file.content) + "\n", encoding="utf-8")
            written.append(path)
    except OSError as exc:
        raise MarkdownExportError(f"Failed to write markdown files to {directory}: {exc}") from exc

    logger.info("Wrote %d markdown file(s) to %s", len(written), directory)
    return written
