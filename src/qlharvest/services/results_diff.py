"""Row-level comparison of two raw result sets."""

import json

from qlharvest.domain.exceptions import CompareError, CompareErrorKind
from qlharvest.domain.models import CompareResult, RawResultSet, Row


def _row_key(row: Row) -> str:
    # Rows are plain values with no identity; compare their serialized form
    return json.dumps(row, sort_keys=True)


def _array_diff(source: list[Row], to_remove: list[Row]) -> list[Row]:
    rest = {_row_key(row) for row in to_remove}
    return [row for row in source if _row_key(row) not in rest]


def results_diff(from_results: RawResultSet, to_results: RawResultSet) -> CompareResult:
    """
    Compute the rows unique to each of two result sets.

    Both sets are expected to come from queries with the same columns.

    Raises:
        CompareError: If the column counts differ, either side is empty, or
            the two sets have no row in common
    """
    if len(from_results.schema.columns) != len(to_results.schema.columns):
        raise CompareError(CompareErrorKind.COLUMN_MISMATCH, "Columns do not match.")

    if not from_results.rows:
        raise CompareError(CompareErrorKind.EMPTY_SOURCE, "Source query has no results.")

    if not to_results.rows:
        raise CompareError(CompareErrorKind.EMPTY_SOURCE, "Target query has no results.")

    result = CompareResult(
        columns=from_results.schema.columns,
        from_rows=_array_diff(from_results.rows, to_results.rows),
        to_rows=_array_diff(to_results.rows, from_results.rows),
    )

    if len(from_results.rows) == len(result.from_rows) and len(to_results.rows) == len(result.to_rows):
        raise CompareError(CompareErrorKind.DISJOINT, "No overlap between the selected queries.")

    return result
