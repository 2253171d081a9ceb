"""Protocols (interfaces) for the collaborators of the results manager."""

from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol

from qlharvest.domain.models import AnalysisResults, BqrsInfo, DecodedChunk, DownloadLink

# Receives a full snapshot of a run's results after every state transition.
PublishResults = Callable[[list[AnalysisResults]], Awaitable[None]]


class ArtifactDownloader(Protocol):
    """Protocol for fetching and unpacking result artifacts."""

    async def download_artifact(self, storage_path: Path, download_link: DownloadLink) -> Path:
        """Make the artifact available on disk and return the path of its result file."""
        ...


class ResultDecoder(Protocol):
    """Protocol for decoding BQRS result files."""

    def bqrs_info(self, bqrs_path: Path, page_size: Optional[int] = None) -> BqrsInfo:
        """Return the result sets (and optionally page offsets) of a BQRS file."""
        ...

    def bqrs_decode(
        self,
        bqrs_path: Path,
        result_set: str,
        page_size: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> DecodedChunk:
        """Decode one page of tuples from a result set."""
        ...
