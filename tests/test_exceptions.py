"""Tests for result error kinds."""

from qlharvest.domain.exceptions import (
    AggregateResultsError,
    ArtifactDownloadError,
    ResultsDecodeError,
    ResultsError,
    ResultsErrorKind,
)


def test_aggregate_takes_shared_kind():
    error = AggregateResultsError(
        [ResultsDecodeError("octo/one: bad sarif"), ResultsDecodeError("octo/two: bad bqrs")]
    )

    assert error.kind == ResultsErrorKind.DECODE_FAILURE
    assert error.message == "octo/one: bad sarif\nocto/two: bad bqrs"


def test_aggregate_of_different_kinds_is_mixed():
    error = AggregateResultsError(
        [ArtifactDownloadError("octo/one: 502"), ResultsError("octo/two: callback failed")]
    )

    assert error.kind == ResultsErrorKind.MIXED
    assert len(error.failures) == 2


def test_aggregate_kind_does_not_leak_to_class():
    AggregateResultsError([ArtifactDownloadError("octo/one: 502")])

    assert ResultsError.kind == ResultsErrorKind.DECODE_FAILURE
    assert ArtifactDownloadError.kind == ResultsErrorKind.TRANSPORT_FAILURE
