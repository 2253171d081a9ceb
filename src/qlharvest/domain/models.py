"""Domain models for variant analysis results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


@dataclass(frozen=True)
class DownloadLink:
    """Location of one repository's result artifact."""

    id: str
    url_path: str
    run_scope_id: str  # groups every artifact of one query run
    inner_file_path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "DownloadLink":
        """Build a link from its JSON form (``queryId`` is the run scope)."""
        return cls(
            id=str(data["id"]),
            url_path=data["urlPath"],
            run_scope_id=str(data.get("runScopeId") or data["queryId"]),
            inner_file_path=data.get("innerFilePath"),
        )


@dataclass(frozen=True)
class AnalysisSummary:
    """Summary of one repository participating in a run."""

    nwo: str
    result_count: int
    download_link: DownloadLink
    file_size_in_bytes: int
    star_count: Optional[int] = None
    last_updated: Optional[int] = None
    database_sha: Optional[str] = None
    source_location_prefix: Optional[str] = None

    @property
    def file_link_prefix(self) -> str:
        """Prefix used to turn relative file paths into links on GitHub."""
        return f"https://github.com/{self.nwo}/blob/{self.database_sha or 'HEAD'}"

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisSummary":
        """Build a summary from its camelCase JSON form."""
        return cls(
            nwo=data["nwo"],
            result_count=int(data.get("resultCount", 0)),
            download_link=DownloadLink.from_dict(data["downloadLink"]),
            file_size_in_bytes=int(data.get("fileSizeInBytes", 0)),
            star_count=data.get("starCount"),
            last_updated=data.get("lastUpdated"),
            database_sha=data.get("databaseSha"),
            source_location_prefix=data.get("sourceLocationPrefix"),
        )


class AnalysisResultStatus(str, Enum):
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"


class ResultSeverity(str, Enum):
    RECOMMENDATION = "Recommendation"
    WARNING = "Warning"
    ERROR = "Error"


@dataclass
class FileLink:
    file_link_prefix: str
    file_path: str


@dataclass
class HighlightedRegion:
    """1-based region; ``end_column`` is exclusive."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int


@dataclass
class CodeSnippet:
    start_line: int
    end_line: int
    text: str


@dataclass
class AnalysisMessageLocation:
    file_link: FileLink
    highlighted_region: HighlightedRegion


@dataclass
class AnalysisMessageToken:
    """Part of an alert message: plain text or a link to a location."""

    t: str  # "text" | "location"
    text: str
    location: Optional[AnalysisMessageLocation] = None


@dataclass
class AnalysisMessage:
    tokens: list[AnalysisMessageToken] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(token.text for token in self.tokens)


@dataclass
class ThreadFlow:
    """One step of a code flow."""

    file_link: FileLink
    code_snippet: Optional[CodeSnippet] = None
    highlighted_region: Optional[HighlightedRegion] = None
    message: Optional[AnalysisMessage] = None


@dataclass
class CodeFlow:
    thread_flows: list[ThreadFlow] = field(default_factory=list)


@dataclass
class AnalysisAlert:
    """A normalized diagnostic produced from a SARIF result location."""

    message: AnalysisMessage
    short_description: str
    severity: ResultSeverity
    file_link: FileLink
    code_snippet: Optional[CodeSnippet] = None
    highlighted_region: Optional[HighlightedRegion] = None
    code_flows: list[CodeFlow] = field(default_factory=list)


class ColumnKind(str, Enum):
    """Column kinds as reported by ``codeql bqrs info``."""

    STRING = "s"
    FLOAT = "f"
    INTEGER = "i"
    BOOLEAN = "b"
    DATE = "d"
    ENTITY = "e"
    BIGINT = "z"


@dataclass
class Column:
    kind: ColumnKind
    name: Optional[str] = None


@dataclass
class Pagination:
    step_size: int
    offsets: list[int] = field(default_factory=list)


@dataclass
class ResultSetSchema:
    name: str
    rows: int
    columns: list[Column] = field(default_factory=list)
    pagination: Optional[Pagination] = None


@dataclass
class BqrsInfo:
    result_sets: list[ResultSetSchema] = field(default_factory=list)


# Decoded cells are plain JSON values; entities arrive as dicts.
CellValue = Union[str, int, float, bool, dict[str, Any]]
Row = list[CellValue]


@dataclass
class DecodedChunk:
    """One page of decoded tuples."""

    tuples: list[Row] = field(default_factory=list)
    next: Optional[int] = None  # offset of the next page, if any


@dataclass
class RawResultSet:
    schema: ResultSetSchema
    rows: list[Row] = field(default_factory=list)


@dataclass
class AnalysisRawResults:
    schema: ResultSetSchema
    result_set: RawResultSet
    file_link_prefix: str
    source_location_prefix: str
    capped: bool = False


@dataclass
class AnalysisResults:
    """Cache entry for one repository's results within a run."""

    nwo: str
    status: AnalysisResultStatus
    interpreted_results: list[AnalysisAlert] = field(default_factory=list)
    raw_results: Optional[AnalysisRawResults] = None
    result_count: int = 0
    star_count: Optional[int] = None
    last_updated: Optional[int] = None

    @property
    def displayed_result_count(self) -> int:
        """Number of results actually materialized for this repository."""
        if self.raw_results is not None:
            return len(self.raw_results.result_set.rows)
        return len(self.interpreted_results)


@dataclass
class CompareResult:
    columns: list[Column]
    from_rows: list[Row] = field(default_factory=list)
    to_rows: list[Row] = field(default_factory=list)


@dataclass
class MarkdownFile:
    file_name: str
    content: list[str] = field(default_factory=list)
