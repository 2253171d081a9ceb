"""Domain exceptions for result retrieval and comparison."""

from enum import Enum
from typing import Optional


class ResultsErrorKind(str, Enum):
    TRANSPORT_FAILURE = "TransportFailure"
    DECODE_FAILURE = "DecodeFailure"
    SHAPE_MISMATCH = "ShapeMismatch"
    CANCELLED = "Cancelled"
    MIXED = "Mixed"


class ResultsError(Exception):
    """Base exception for failures while materializing analysis results."""

    kind = ResultsErrorKind.DECODE_FAILURE

    def __init__(self, message: str, source: Optional[str] = None):
        """
        Initialize the error.

        Args:
            message: Error message describing the failure
            source: Optional repository (nwo) the failure belongs to
        """
        self.message = message
        self.source = source
        super().__init__(self.message)


class ArtifactDownloadError(ResultsError):
    """Raised when an artifact could not be fetched for a repository."""

    kind = ResultsErrorKind.TRANSPORT_FAILURE


class ResultsDecodeError(ResultsError):
    """Raised when a downloaded artifact could not be decoded."""

    kind = ResultsErrorKind.DECODE_FAILURE


class UserCancellationError(ResultsError):
    """Raised when the caller cancelled a batched load."""

    kind = ResultsErrorKind.CANCELLED


class AggregateResultsError(ResultsError):
    """
    Raised after a batched load when one or more repositories failed.

    ``kind`` is the kind shared by every failure, or ``MIXED`` when they differ.
    """

    def __init__(self, failures: list[ResultsError]):
        self.failures = failures
        kinds = {f.kind for f in failures}
        self.kind = kinds.pop() if len(kinds) == 1 else ResultsErrorKind.MIXED
        super().__init__("\n".join(f.message for f in failures))


class CompareErrorKind(str, Enum):
    COLUMN_MISMATCH = "ColumnMismatch"
    EMPTY_SOURCE = "EmptySource"
    DISJOINT = "Disjoint"


class CompareError(Exception):
    """Raised when two result sets cannot be compared."""

    def __init__(self, kind: CompareErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(self.message)
