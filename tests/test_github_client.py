"""Tests for the GitHub artifact download adapter."""

import io
import zipfile

import pytest
import requests

from qlharvest.adapters.github_client import (
    ArtifactNotFoundError,
    GitHubApiError,
    GitHubArtifactClient,
    NetworkError,
)
from qlharvest.domain.models import DownloadLink
from qlharvest.services.artifacts import create_download_path

LINK = DownloadLink(
    id="5678",
    url_path="/repos/octo/controller/actions/artifacts/5678",
    run_scope_id="run-1",
    inner_file_path="results.sarif",
)


def _zip_bytes(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, status_code=200, body=b""):
        self.status_code = status_code
        self.body = body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Server Error")

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start : start + chunk_size]


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def _client(session):
    return GitHubArtifactClient("secret-token", "https://api.example.com/", timeout=7, session=session)


def test_sets_headers():
    session = FakeSession()

    _client(session)

    assert session.headers["Authorization"] == "Bearer secret-token"
    assert session.headers["Accept"] == "application/vnd.github+json"


def test_no_authorization_without_token():
    session = FakeSession()

    GitHubArtifactClient(None, session=session)

    assert "Authorization" not in session.headers


@pytest.mark.asyncio
async def test_downloads_and_extracts(tmp_path):
    session = FakeSession(FakeResponse(body=_zip_bytes({"results.sarif": '{"runs": []}'})))

    path = await _client(session).download_artifact(tmp_path, LINK)

    assert path == tmp_path / "run-1" / "5678" / "results.sarif"
    assert path.read_text() == '{"runs": []}'
    [(url, kwargs)] = session.requests
    assert url == "https://api.example.com/repos/octo/controller/actions/artifacts/5678/zip"
    assert kwargs["stream"] is True
    assert kwargs["timeout"] == 7


@pytest.mark.asyncio
async def test_skips_download_when_already_extracted(tmp_path):
    session = FakeSession()
    create_download_path(tmp_path, LINK).mkdir(parents=True)

    path = await _client(session).download_artifact(tmp_path, LINK)

    assert session.requests == []
    assert path == tmp_path / "run-1" / "5678" / "results.sarif"


@pytest.mark.asyncio
async def test_missing_artifact(tmp_path):
    session = FakeSession(FakeResponse(status_code=404))

    with pytest.raises(ArtifactNotFoundError):
        await _client(session).download_artifact(tmp_path, LINK)

    assert not create_download_path(tmp_path, LINK).exists()


@pytest.mark.asyncio
async def test_server_error(tmp_path):
    session = FakeSession(FakeResponse(status_code=502))

    with pytest.raises(GitHubApiError, match="502"):
        await _client(session).download_artifact(tmp_path, LINK)


@pytest.mark.asyncio
async def test_timeout(tmp_path):
    session = FakeSession(error=requests.exceptions.Timeout())

    with pytest.raises(NetworkError, match="timed out"):
        await _client(session).download_artifact(tmp_path, LINK)


@pytest.mark.asyncio
async def test_corrupt_archive_leaves_nothing_behind(tmp_path):
    session = FakeSession(FakeResponse(body=b"this is not a zip file"))

    with pytest.raises(GitHubApiError, match="Failed to extract"):
        await _client(session).download_artifact(tmp_path, LINK)

    assert not create_download_path(tmp_path, LINK).exists()
