"""Shared fixtures and builders for qlharvest tests."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import pytest

from qlharvest.domain.models import (
    AnalysisSummary,
    BqrsInfo,
    Column,
    ColumnKind,
    DecodedChunk,
    DownloadLink,
    ResultSetSchema,
)
from qlharvest.services.artifacts import create_download_path

RUN_ID = "run-42"


def make_summary(
    nwo: str,
    artifact_id: Optional[str] = None,
    run_scope_id: str = RUN_ID,
    inner_file_path: str = "results.sarif",
    result_count: int = 1,
) -> AnalysisSummary:
    return AnalysisSummary(
        nwo=nwo,
        result_count=result_count,
        download_link=DownloadLink(
            id=artifact_id or nwo.replace("/", "-"),
            url_path=f"/repos/octo/controller/actions/artifacts/{artifact_id or 1}",
            run_scope_id=run_scope_id,
            inner_file_path=inner_file_path,
        ),
        file_size_in_bytes=1024,
        star_count=7,
        last_updated=1653447088649,
        database_sha="abc123",
        source_location_prefix="/home/runner/work/src",
    )


def make_result(
    message: str = "This uses [user input](1).",
    uri: str = "src/app.py",
    region: Optional[dict] = None,
    rule_id: str = "py/sql-injection",
    **extra,
) -> dict:
    result = {
        "ruleId": rule_id,
        "rule": {"id": rule_id},
        "message": {"text": message},
        "locations": [
            {
                "physicalLocation": {
                    "artifactLocation": {"uri": uri},
                    "region": region or {"startLine": 10, "startColumn": 5, "endColumn": 12},
                    "contextRegion": {
                        "startLine": 8,
                        "endLine": 12,
                        "snippet": {"text": "a\nb\ncursor.execute(query)\nd\ne\n"},
                    },
                }
            }
        ],
        "relatedLocations": [
            {
                "id": 1,
                "physicalLocation": {
                    "artifactLocation": {"uri": "src/views.py"},
                    "region": {"startLine": 3, "startColumn": 1, "endColumn": 8},
                },
            }
        ],
    }
    result.update(extra)
    return result


def make_sarif_log(results: list, rules: Optional[list] = None, extensions: Optional[list] = None) -> dict:
    tool = {"driver": {"name": "CodeQL", "rules": rules if rules is not None else []}}
    if extensions is not None:
        tool["extensions"] = extensions
    return {"version": "2.1.0", "runs": [{"tool": tool, "results": results}]}


class FakeDownloader:
    """Writes a SARIF (or any) file where a real download would put it."""

    def __init__(self, payload: Optional[str] = None, failures: Optional[dict] = None, delay: float = 0.01):
        self.payload = payload if payload is not None else json.dumps(
            make_sarif_log([make_result()], rules=[{"id": "py/sql-injection"}])
        )
        self.failures = failures or {}
        self.delay = delay
        self.calls: list[str] = []
        self.events: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def download_artifact(self, storage_path: Path, download_link: DownloadLink) -> Path:
        self.calls.append(download_link.id)
        self.events.append(("start", download_link.id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if download_link.id in self.failures:
                raise self.failures[download_link.id]
            extracted = create_download_path(storage_path, download_link)
            extracted.mkdir(parents=True, exist_ok=True)
            target = extracted / (download_link.inner_file_path or "results.sarif")
            if not target.exists():
                target.write_text(self.payload, encoding="utf-8")
            return target
        finally:
            self.in_flight -= 1
            self.events.append(("end", download_link.id))


class FakeDecoder:
    """In-memory stand-in for the CodeQL CLI."""

    def __init__(self, info: Optional[BqrsInfo] = None, chunk: Optional[DecodedChunk] = None):
        self.info = info or BqrsInfo(
            result_sets=[
                ResultSetSchema(
                    name="#select",
                    rows=2,
                    columns=[Column(kind=ColumnKind.STRING, name="name"), Column(kind=ColumnKind.INTEGER)],
                )
            ]
        )
        self.chunk = chunk or DecodedChunk(tuples=[["a", 1], ["b", 2]])
        self.info_calls: list[tuple] = []
        self.decode_calls: list[tuple] = []

    def bqrs_info(self, bqrs_path, page_size=None):
        self.info_calls.append((bqrs_path, page_size))
        return self.info

    def bqrs_decode(self, bqrs_path, result_set, page_size=None, offset=None):
        self.decode_calls.append((bqrs_path, result_set, page_size, offset))
        return self.chunk


class Publisher:
    """Async publish callback that records every snapshot it receives."""

    def __init__(self):
        self.calls: list[list] = []

    async def __call__(self, analyses_results):
        self.calls.append(analyses_results)


@pytest.fixture
def storage_dir(tmp_path):
    path = tmp_path / "storage"
    path.mkdir()
    return path


@pytest.fixture
def publisher():
    return Publisher()
