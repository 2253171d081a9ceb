"""Download, decode and cache the results of a variant analysis run."""

import asyncio
import dataclasses
import logging
import math
from pathlib import Path
from typing import Iterable, Optional

from qlharvest.domain.exceptions import (
    AggregateResultsError,
    ArtifactDownloadError,
    ResultsDecodeError,
    ResultsError,
    UserCancellationError,
)
from qlharvest.domain.models import (
    AnalysisAlert,
    AnalysisResults,
    AnalysisResultStatus,
    AnalysisSummary,
)
from qlharvest.domain.protocols import ArtifactDownloader, PublishResults, ResultDecoder
from qlharvest.services.artifacts import is_artifact_downloaded
from qlharvest.services.bqrs_processing import extract_raw_results
from qlharvest.services.results_cache import ResultsCache
from qlharvest.services.sarif_parser import extract_sarif_log
from qlharvest.services.sarif_processing import extract_analysis_alerts

logger = logging.getLogger(__name__)


async def _ignore_results(analyses_results: list[AnalysisResults]) -> None:
    return None


class AnalysesResultsManager:
    """
    Materializes per-repository results for query runs.

    Every run has one list of results in the cache, in the order downloads
    started. A repository is downloaded at most once per run unless its
    previous attempt failed.
    """

    BATCH_SIZE = 3

    def __init__(
        self,
        storage_path: Path,
        downloader: ArtifactDownloader,
        decoder: ResultDecoder,
        cache: Optional[ResultsCache] = None,
    ):
        self.storage_path = Path(storage_path)
        self._downloader = downloader
        self._decoder = decoder
        self._cache = cache if cache is not None else ResultsCache()

    async def download_analysis_results(
        self, analysis_summary: AnalysisSummary, publish_results: PublishResults
    ) -> None:
        """
        Download and process the results of a single repository.

        Does nothing when the results are already in memory, that is when the
        repository has an ``InProgress`` or ``Completed`` entry for the run. A
        ``Failed`` entry does not count: calling again retries the download
        and processing, reusing the entry's position in the run.

        Errors raised by ``publish_results`` are logged and never interrupt
        the download.

        Raises:
            ArtifactDownloadError: If the artifact could not be downloaded
        """
        if self.is_analysis_in_memory(analysis_summary):
            return

        logger.info("Downloading and processing results for %s", analysis_summary.nwo)
        await self._download_single_analysis_results(analysis_summary, publish_results)

    async def load_analyses_results(
        self,
        analyses_to_load: Iterable[AnalysisSummary],
        cancellation: Optional[asyncio.Event] = None,
        publish_results: Optional[PublishResults] = None,
    ) -> None:
        """
        Download and process the results of many repositories in batches.

        Batches run one after another; the repositories of a batch run
        concurrently. Cancellation is only checked between batches.

        Args:
            analyses_to_load: Summaries of the repositories to load
            cancellation: Event (asyncio or threading) that requests cancellation when set
            publish_results: Called with a snapshot of the run after every change

        Raises:
            UserCancellationError: If cancellation was requested before a batch
            AggregateResultsError: If any repository failed, after all batches ran
        """
        publish = publish_results or _ignore_results
        analyses = [a for a in analyses_to_load if not self.is_analysis_in_memory(a)]
        if not analyses:
            return

        logger.info("Downloading and processing analyses results")

        batch_size = self.BATCH_SIZE
        num_of_batches = math.ceil(len(analyses) / batch_size)
        all_failures: list[ResultsError] = []

        for i in range(0, len(analyses), batch_size):
            if cancellation is not None and cancellation.is_set():
                raise UserCancellationError("Downloading of analyses results has been cancelled")

            batch = analyses[i : i + batch_size]
            nwos = ", ".join(a.nwo for a in batch)
            logger.info("Downloading batch %d of %d (%s)", i // batch_size + 1, num_of_batches, nwos)

            outcomes = await asyncio.gather(
                *(self._download_single_analysis_results(a, publish) for a in batch),
                return_exceptions=True,
            )
            for analysis, outcome in zip(batch, outcomes):
                if outcome is None:
                    continue
                if not isinstance(outcome, Exception):
                    raise outcome
                failure = (
                    outcome
                    if isinstance(outcome, ResultsError)
                    else ResultsError(f"{analysis.nwo}: {outcome}", source=analysis.nwo)
                )
                logger.error(failure.message)
                all_failures.append(failure)

        if all_failures:
            raise AggregateResultsError(all_failures)

    async def load_downloaded_analyses(self, analyses_to_check: Iterable[AnalysisSummary]) -> None:
        """Load the results of repositories whose artifacts are already on disk."""
        analyses_to_load = [
            a for a in analyses_to_check if is_artifact_downloaded(self.storage_path, a.download_link)
        ]
        await self.load_analyses_results(analyses_to_load)

    def get_analyses_results(self, run_scope_id: str) -> list[AnalysisResults]:
        return self._cache.snapshot(run_scope_id)

    def remove_analyses_results(self, run_scope_id: str) -> None:
        self._cache.dispose(run_scope_id)

    def is_analysis_in_memory(self, analysis: AnalysisSummary) -> bool:
        return self._cache.has_live_entry(analysis.download_link.run_scope_id, analysis.nwo)

    async def _publish(self, publish_results: PublishResults, results_for_run: list[AnalysisResults]) -> None:
        # A failing subscriber must not keep an entry from reaching a terminal state
        try:
            await publish_results(list(results_for_run))
        except Exception:
            logger.exception("Publishing analyses results failed")

    async def _download_single_analysis_results(
        self, analysis: AnalysisSummary, publish_results: PublishResults
    ) -> None:
        run_scope_id = analysis.download_link.run_scope_id

        # Everything up to the first await runs without interruption, so two
        # tasks for the same repository can never both insert a placeholder.
        if self.is_analysis_in_memory(analysis):
            return

        results_for_run = self._cache.create(run_scope_id)
        placeholder = AnalysisResults(
            nwo=analysis.nwo,
            status=AnalysisResultStatus.IN_PROGRESS,
            result_count=analysis.result_count,
            star_count=analysis.star_count,
            last_updated=analysis.last_updated,
        )
        pos = self._cache.index_of(run_scope_id, analysis.nwo)
        if pos is None:
            results_for_run.append(placeholder)
            pos = len(results_for_run) - 1
        else:
            # Retrying a failed repository reuses its slot
            results_for_run[pos] = placeholder
        await self._publish(publish_results, results_for_run)

        try:
            artifact_path = await self._downloader.download_artifact(self.storage_path, analysis.download_link)
        except Exception as e:
            results_for_run[pos] = dataclasses.replace(placeholder, status=AnalysisResultStatus.FAILED)
            await self._publish(publish_results, results_for_run)
            raise ArtifactDownloadError(
                f"Could not download the analysis results for {analysis.nwo}: {e}",
                source=analysis.nwo,
            ) from e

        try:
            new_analysis_results = await self._read_results(analysis, placeholder, Path(artifact_path))
        except Exception as e:
            error = ResultsDecodeError(
                f"Could not process the analysis results for {analysis.nwo}: {e}", source=analysis.nwo
            )
            logger.error(error.message)
            new_analysis_results = dataclasses.replace(placeholder, status=AnalysisResultStatus.FAILED)

        results_for_run[pos] = new_analysis_results
        await self._publish(publish_results, results_for_run)

    async def _read_results(
        self, analysis: AnalysisSummary, placeholder: AnalysisResults, artifact_path: Path
    ) -> AnalysisResults:
        extension = artifact_path.suffix

        if extension == ".sarif":
            alerts = await self._read_sarif_results(artifact_path, analysis.file_link_prefix)
            return dataclasses.replace(
                placeholder,
                status=AnalysisResultStatus.COMPLETED,
                interpreted_results=alerts,
            )

        if extension == ".bqrs":
            raw_results = await extract_raw_results(
                self._decoder,
                artifact_path,
                analysis.file_link_prefix,
                analysis.source_location_prefix or "",
            )
            return dataclasses.replace(
                placeholder,
                status=AnalysisResultStatus.COMPLETED,
                raw_results=raw_results,
            )

        logger.warning(
            "Cannot process results for %s: unsupported result file %s", analysis.nwo, artifact_path.name
        )
        return dataclasses.replace(placeholder, status=AnalysisResultStatus.FAILED)

    async def _read_sarif_results(self, sarif_path: Path, file_link_prefix: str) -> list[AnalysisAlert]:
        def _parse() -> tuple[list[AnalysisAlert], list[str]]:
            sarif_log = extract_sarif_log(sarif_path, keep_tool=True)
            return extract_analysis_alerts(sarif_log, file_link_prefix)

        loop = asyncio.get_running_loop()
        alerts, errors = await loop.run_in_executor(None, _parse)
        if errors:
            logger.warning("Error processing SARIF file %s:\n%s", sarif_path, "\n".join(errors))
        return alerts
