"""Environment-driven configuration."""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_STORAGE_DIR = "~/.qlharvest/variant-analyses"
DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_DECODE_TIMEOUT = 300.0

STORAGE_DIR_ENV = "QLHARVEST_STORAGE_DIR"
GITHUB_API_URL_ENV = "GITHUB_API_URL"
GITHUB_TOKEN_ENV = "GITHUB_TOKEN"
CODEQL_PATH_ENV = "CODEQL_PATH"
HTTP_TIMEOUT_ENV = "QLHARVEST_HTTP_TIMEOUT"
DECODE_TIMEOUT_ENV = "QLHARVEST_DECODE_TIMEOUT"


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {value!r}")


@dataclass
class Settings:
    """Runtime settings for downloading and decoding results."""

    storage_dir: Path
    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_token: Optional[str] = None
    codeql_path: Optional[str] = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    decode_timeout: float = DEFAULT_DECODE_TIMEOUT

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        CODEQL_PATH falls back to the ``codeql`` executable on PATH.
        """
        return cls(
            storage_dir=Path(os.getenv(STORAGE_DIR_ENV, DEFAULT_STORAGE_DIR)).expanduser(),
            github_api_url=os.getenv(GITHUB_API_URL_ENV, DEFAULT_GITHUB_API_URL).rstrip("/"),
            github_token=os.getenv(GITHUB_TOKEN_ENV) or None,
            codeql_path=os.getenv(CODEQL_PATH_ENV) or shutil.which("codeql"),
            http_timeout=_float_env(HTTP_TIMEOUT_ENV, DEFAULT_HTTP_TIMEOUT),
            decode_timeout=_float_env(DECODE_TIMEOUT_ENV, DEFAULT_DECODE_TIMEOUT),
        )

    def get_storage_dir(self) -> Path:
        """Resolve the storage directory, ensuring it exists."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        return self.storage_dir.resolve()
