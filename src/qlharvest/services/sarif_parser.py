"""Streaming extraction of the results array from large SARIF logs."""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional

import ijson
from ijson.common import ObjectBuilder

logger = logging.getLogger(__name__)

RUN_PREFIX = "runs.item"
RESULTS_PREFIX = "runs.item.results"
TOOL_PREFIX = "runs.item.tool"


class SarifParseError(Exception):
    """Raised when a SARIF log cannot be streamed."""

    pass


class _State(Enum):
    SEEKING = "seeking"
    COLLECTING = "collecting"
    DONE = "done"


class _SubtreeCollector:
    """Assembles the JSON subtree found at one ijson prefix."""

    def __init__(self, prefix: str, container: str):
        self.prefix = prefix
        self.start_event = f"start_{container}"
        self.end_event = f"end_{container}"
        self.state = _State.SEEKING
        self.value: Any = None
        self._builder: Optional[ObjectBuilder] = None

    def feed(self, prefix: str, event: str, value: Any) -> None:
        if self.state is _State.DONE:
            return
        if self.state is _State.SEEKING:
            if prefix != self.prefix or event != self.start_event:
                return
            self.state = _State.COLLECTING
            self._builder = ObjectBuilder()

        self._builder.event(event, value)

        if prefix == self.prefix and event == self.end_event:
            self.value = self._builder.value
            self._builder = None
            self.state = _State.DONE


def _collect_first_run(
    events: Iterable[tuple[str, str, Any]], keep_tool: bool
) -> tuple[list, Optional[dict]]:
    results = _SubtreeCollector(RESULTS_PREFIX, "array")
    tool = _SubtreeCollector(TOOL_PREFIX, "map") if keep_tool else None
    collectors = [c for c in (results, tool) if c is not None]

    seen_run = False
    for prefix, event, value in events:
        if prefix == RUN_PREFIX:
            if event == "start_map":
                if seen_run:
                    break
                seen_run = True
            elif event == "end_map":
                break
            continue

        for collector in collectors:
            collector.feed(prefix, event, value)

        if all(c.state is _State.DONE for c in collectors):
            # Everything after the wanted subtrees is left unread
            break

    return (results.value or []), (tool.value if tool else None)


def extract_sarif_log(sarif_path: Path, keep_tool: bool = False) -> dict:
    """
    Read the results of the first run of a SARIF log without loading the whole file.

    Only the ``runs[0].results`` subtree is assembled; tool metadata, rules and
    anything else are skipped unless ``keep_tool`` is set, in which case
    ``runs[0].tool`` is assembled as well.

    Args:
        sarif_path: Path to the SARIF file
        keep_tool: Also keep the run's tool (driver rules and extensions)

    Returns:
        A minimal SARIF log with a single run holding the results

    Raises:
        SarifParseError: If the file cannot be read or is not valid JSON
    """
    try:
        with open(sarif_path, "rb") as f:
            results, tool = _collect_first_run(ijson.parse(f, use_float=True), keep_tool)
    except OSError as e:
        raise SarifParseError(f"Could not read SARIF file {sarif_path}: {e}") from e
    except (ijson.JSONError, ValueError) as e:
        raise SarifParseError(f"Parsing SARIF file {sarif_path} failed: {e}") from e

    logger.debug("Extracted %d SARIF result(s) from %s", len(results), sarif_path)

    return {
        "version": "2.1.0",
        "runs": [
            {
                "tool": tool if tool is not None else {"driver": {"name": ""}},
                "results": results,
            }
        ],
    }
