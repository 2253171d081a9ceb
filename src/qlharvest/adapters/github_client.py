"""GitHub Actions artifact adapter - real HTTP implementation."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional

import requests

from qlharvest.config import DEFAULT_GITHUB_API_URL, DEFAULT_HTTP_TIMEOUT
from qlharvest.domain.models import DownloadLink
from qlharvest.services.artifacts import create_download_path, unzip_archive

logger = logging.getLogger(__name__)


class GitHubApiError(Exception):
    """Base exception for GitHub API related errors."""

    pass


class ArtifactNotFoundError(GitHubApiError):
    """Raised when an artifact does not exist or has expired."""

    pass


class NetworkError(GitHubApiError):
    """Raised when network-related errors occur."""

    pass


class GitHubArtifactClient:
    """Downloads workflow artifacts through the GitHub REST API."""

    def __init__(
        self,
        token: Optional[str],
        api_url: str = DEFAULT_GITHUB_API_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/vnd.github+json"})
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    async def download_artifact(self, storage_path: Path, download_link: DownloadLink) -> Path:
        """
        Download and extract an artifact unless it is already on disk.

        Args:
            storage_path: Root directory for all runs
            download_link: Link of the artifact to fetch

        Returns:
            Path of the result file inside the extracted artifact

        Raises:
            ArtifactNotFoundError: If the artifact is gone (404)
            NetworkError: If the connection fails or times out
            GitHubApiError: For other API errors or a corrupt archive
        """
        extracted_path = create_download_path(storage_path, download_link)

        if not extracted_path.exists():
            zip_path = create_download_path(storage_path, download_link, "zip")
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._fetch_zip, download_link, zip_path)
            try:
                await loop.run_in_executor(None, unzip_archive, zip_path, extracted_path)
            except Exception as e:
                # Leave nothing behind that would look like a finished download
                shutil.rmtree(extracted_path, ignore_errors=True)
                raise GitHubApiError(f"Failed to extract artifact {download_link.id}: {e}") from e
        else:
            logger.debug("Artifact %s already present at %s", download_link.id, extracted_path)

        return extracted_path / (download_link.inner_file_path or "")

    def _fetch_zip(self, download_link: DownloadLink, zip_path: Path) -> Path:
        url = f"{self.api_url}{download_link.url_path}/zip"
        zip_path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Downloading artifact to %s", zip_path)

        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                if response.status_code == 404:
                    raise ArtifactNotFoundError(
                        f"Artifact '{download_link.id}' not found (it may have expired)"
                    )
                response.raise_for_status()
                with open(zip_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=65536):
                        if chunk:
                            f.write(chunk)
        except requests.exceptions.Timeout:
            raise NetworkError("Connection to the GitHub API timed out")
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(f"Unable to connect to the GitHub API: {e}")
        except requests.exceptions.HTTPError as e:
            raise GitHubApiError(f"GitHub API returned an error: {e}")
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Network error while downloading artifact: {e}")

        return zip_path
