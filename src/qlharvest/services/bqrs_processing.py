"""Extraction of raw (tabular) results from BQRS files."""

import asyncio
import logging
from pathlib import Path

from qlharvest.domain.exceptions import ResultsErrorKind
from qlharvest.domain.models import AnalysisRawResults, RawResultSet, ResultSetSchema
from qlharvest.domain.protocols import ResultDecoder

logger = logging.getLogger(__name__)

# Only the first page of rows is kept for each repository.
MAX_RAW_RESULTS = 5000


async def extract_raw_results(
    decoder: ResultDecoder,
    bqrs_path: Path,
    file_link_prefix: str,
    source_location_prefix: str,
) -> AnalysisRawResults:
    """
    Decode the first page of the single result set of a BQRS file.

    Analysis artifacts are expected to hold exactly one result set. Anything
    else is logged; with several, the first one is used and with none an
    empty result is returned.

    Args:
        decoder: Adapter for the BQRS decoder
        bqrs_path: Path to the BQRS file
        file_link_prefix: Prefix for turning file paths into links
        source_location_prefix: Source root of the analyzed database

    Returns:
        The decoded rows, marked ``capped`` when more than MAX_RAW_RESULTS exist
    """
    loop = asyncio.get_running_loop()
    info = await loop.run_in_executor(None, decoder.bqrs_info, bqrs_path, MAX_RAW_RESULTS)

    result_sets = info.result_sets
    if len(result_sets) != 1:
        logger.warning(
            "%s: expected one result set in %s, found %d%s",
            ResultsErrorKind.SHAPE_MISMATCH.value,
            bqrs_path,
            len(result_sets),
            "; using the first one" if result_sets else "",
        )
    if not result_sets:
        schema = ResultSetSchema(name="", rows=0)
        return AnalysisRawResults(
            schema=schema,
            result_set=RawResultSet(schema=schema),
            file_link_prefix=file_link_prefix,
            source_location_prefix=source_location_prefix,
            capped=False,
        )

    schema = result_sets[0]
    offset = schema.pagination.offsets[0] if schema.pagination and schema.pagination.offsets else None
    chunk = await loop.run_in_executor(
        None, decoder.bqrs_decode, bqrs_path, schema.name, MAX_RAW_RESULTS, offset
    )

    return AnalysisRawResults(
        schema=schema,
        result_set=RawResultSet(schema=schema, rows=chunk.tuples),
        file_link_prefix=file_link_prefix,
        source_location_prefix=source_location_prefix,
        capped=chunk.next is not None,
    )
