"""In-memory store of analysis results, one ordered list per run."""

from typing import Optional

from qlharvest.domain.models import AnalysisResults, AnalysisResultStatus


class ResultsCache:
    """
    Holds the results of each run in insertion order.

    Lists returned by ``create`` are live and owned by the results manager;
    everything else gets shallow copies.
    """

    def __init__(self):
        self._runs: dict[str, list[AnalysisResults]] = {}

    def create(self, run_scope_id: str) -> list[AnalysisResults]:
        """Return the live list for a run, creating it on first use."""
        return self._runs.setdefault(run_scope_id, [])

    def snapshot(self, run_scope_id: str) -> list[AnalysisResults]:
        """Return a shallow copy of a run's results."""
        return list(self._runs.get(run_scope_id, []))

    def dispose(self, run_scope_id: str) -> None:
        """Drop every result of a run."""
        self._runs.pop(run_scope_id, None)

    def clear(self) -> None:
        self._runs.clear()

    def index_of(self, run_scope_id: str, nwo: str) -> Optional[int]:
        for index, entry in enumerate(self._runs.get(run_scope_id, [])):
            if entry.nwo == nwo:
                return index
        return None

    def has_live_entry(self, run_scope_id: str, nwo: str) -> bool:
        """True when the repository is in progress or completed for the run."""
        index = self.index_of(run_scope_id, nwo)
        if index is None:
            return False
        return self._runs[run_scope_id][index].status is not AnalysisResultStatus.FAILED

    def __contains__(self, run_scope_id: str) -> bool:
        return run_scope_id in self._runs
