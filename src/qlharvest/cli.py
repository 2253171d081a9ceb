"""CLI entry point."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from qlharvest.adapters.codeql_client import CodeQLCliClient, CodeQLError
from qlharvest.adapters.github_client import GitHubArtifactClient
from qlharvest.config import Settings
from qlharvest.domain.exceptions import CompareError, ResultsError
from qlharvest.domain.models import AnalysisResults, AnalysisSummary, RawResultSet
from qlharvest.logging_config import setup_logging
from qlharvest.services.markdown import MarkdownExportError, generate_markdown, write_markdown_files
from qlharvest.services.results_diff import results_diff
from qlharvest.services.results_manager import AnalysesResultsManager

logger = logging.getLogger(__name__)


def read_summaries(path: Path) -> list[AnalysisSummary]:
    """Read analysis summaries from a JSON list (or an object with ``analysisSummaries``)."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("analysisSummaries", [])
    return [AnalysisSummary.from_dict(item) for item in data]


def build_results_table(results: list[AnalysisResults]) -> Table:
    table = Table(title="Analysis results")
    table.add_column("Repository")
    table.add_column("Status")
    table.add_column("Results", justify="right")
    for entry in results:
        count = str(entry.displayed_result_count)
        if entry.raw_results is not None and entry.raw_results.capped:
            count += "+"
        table.add_row(entry.nwo, entry.status.value, count)
    return table


async def _load(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    summaries = read_summaries(args.summaries)
    if not summaries:
        console.print("No analysis summaries found.")
        return 0

    storage_dir = Path(args.storage_dir).expanduser() if args.storage_dir else settings.get_storage_dir()
    manager = AnalysesResultsManager(
        storage_dir,
        GitHubArtifactClient(settings.github_token, settings.github_api_url, settings.http_timeout),
        CodeQLCliClient(settings.codeql_path, settings.decode_timeout),
    )

    exit_code = 0
    try:
        if args.offline:
            await manager.load_downloaded_analyses(summaries)
        else:
            await manager.load_analyses_results(summaries)
    except ResultsError as e:
        logger.error("Some analyses could not be loaded:\n%s", e.message)
        exit_code = 1

    run_scope_ids = list(dict.fromkeys(s.download_link.run_scope_id for s in summaries))
    results = [entry for run_id in run_scope_ids for entry in manager.get_analyses_results(run_id)]
    console.print(build_results_table(results))

    if args.markdown:
        query_text = Path(args.query_file).read_text(encoding="utf-8") if args.query_file else ""
        files = generate_markdown(args.query_name, query_text, results, language=args.language)
        write_markdown_files(Path(args.markdown), files)

    return exit_code


def _decode_result_set(client: CodeQLCliClient, bqrs_path: Path, result_set: Optional[str]) -> RawResultSet:
    info = client.bqrs_info(bqrs_path)
    schemas = info.result_sets
    if result_set:
        schemas = [s for s in schemas if s.name == result_set]
    if not schemas:
        raise CodeQLError(f"Result set {result_set or '#select'} not found in {bqrs_path}")
    schema = schemas[0]
    chunk = client.bqrs_decode(bqrs_path, schema.name)
    return RawResultSet(schema=schema, rows=chunk.tuples)


def _compare(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    client = CodeQLCliClient(settings.codeql_path, settings.decode_timeout)
    try:
        from_set = _decode_result_set(client, Path(args.from_bqrs), args.result_set)
        to_set = _decode_result_set(client, Path(args.to_bqrs), args.result_set)
        comparison = results_diff(from_set, to_set)
    except (CodeQLError, CompareError) as e:
        logger.error("Cannot compare results: %s", e)
        return 1

    console.print(f"Only in {args.from_bqrs}: {len(comparison.from_rows)} row(s)")
    console.print(f"Only in {args.to_bqrs}: {len(comparison.to_rows)} row(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="qlharvest - download and inspect variant analysis results"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log errors")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load = subparsers.add_parser("load", help="Load the results of a run")
    load.add_argument("summaries", help="JSON file with the analysis summaries of the run")
    load.add_argument("--storage-dir", help="Directory where artifacts are stored")
    load.add_argument(
        "--offline", action="store_true", help="Only load artifacts that are already downloaded"
    )
    load.add_argument("--markdown", help="Directory to export markdown results to")
    load.add_argument("--query-name", default="query", help="Query name for the markdown summary")
    load.add_argument("--query-file", help="Query source to include in the markdown summary")
    load.add_argument("--language", default="", help="Language of code snippets in markdown")

    compare = subparsers.add_parser("compare", help="Compare two BQRS result files")
    compare.add_argument("from_bqrs", help="Results before")
    compare.add_argument("to_bqrs", help="Results after")
    compare.add_argument("--result-set", help="Result set to compare (default: the first one)")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    settings = Settings.from_env()
    console = Console()

    try:
        if args.command == "load":
            exit_code = asyncio.run(_load(args, settings, console))
        else:
            exit_code = _compare(args, settings, console)
    except (OSError, KeyError, ValueError, MarkdownExportError) as e:
        logger.error("%s", e)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
