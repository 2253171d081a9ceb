"""CodeQL CLI adapter for decoding BQRS result files."""

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from qlharvest.config import DEFAULT_DECODE_TIMEOUT
from qlharvest.domain.models import (
    BqrsInfo,
    Column,
    ColumnKind,
    DecodedChunk,
    Pagination,
    ResultSetSchema,
)

logger = logging.getLogger(__name__)


class CodeQLError(Exception):
    """Base exception for CodeQL CLI related errors."""

    pass


class CodeQLNotFoundError(CodeQLError):
    """Raised when the CodeQL CLI is not found."""

    pass


def parse_bqrs_info(data: dict) -> BqrsInfo:
    """
    Parse the JSON output of ``codeql bqrs info``.

    Raises:
        CodeQLError: If the output does not describe result sets
    """
    try:
        result_sets = []
        for entry in data["result-sets"]:
            columns = [
                Column(kind=ColumnKind(col["kind"]), name=col.get("name"))
                for col in entry.get("columns", [])
            ]
            pagination = None
            if entry.get("pagination"):
                pagination = Pagination(
                    step_size=entry["pagination"]["step-size"],
                    offsets=list(entry["pagination"].get("offsets", [])),
                )
            result_sets.append(
                ResultSetSchema(
                    name=entry["name"],
                    rows=entry.get("rows", 0),
                    columns=columns,
                    pagination=pagination,
                )
            )
    except (KeyError, TypeError, ValueError) as e:
        raise CodeQLError(f"Unexpected bqrs info output: {e}")
    return BqrsInfo(result_sets=result_sets)


def parse_decoded_chunk(data: dict) -> DecodedChunk:
    """
    Parse the JSON output of ``codeql bqrs decode``.

    Raises:
        CodeQLError: If the output has no tuples
    """
    if not isinstance(data, dict) or not isinstance(data.get("tuples"), list):
        raise CodeQLError("Unexpected bqrs decode output: missing tuples")
    return DecodedChunk(tuples=data["tuples"], next=data.get("next"))


class CodeQLCliClient:
    """Runs ``codeql bqrs`` subcommands and parses their JSON output."""

    def __init__(self, codeql_path: Optional[str] = None, timeout: float = DEFAULT_DECODE_TIMEOUT):
        self.codeql_path = codeql_path
        self.timeout = timeout

    def _resolve_executable(self) -> str:
        path = self.codeql_path or shutil.which("codeql")
        if not path:
            raise CodeQLNotFoundError(
                "CodeQL CLI not found. Install from https://github.com/github/codeql-cli-binaries"
            )
        return path

    def _run_json_command(self, command: Sequence[str], args: Sequence[str], description: str) -> dict:
        executable = self._resolve_executable()
        cmd = [executable, *command, "--format=json", *args]
        logger.debug("%s: %s", description, " ".join(cmd))

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except subprocess.TimeoutExpired:
            raise CodeQLError(f"{description} timed out after {self.timeout:.0f} seconds")
        except subprocess.CalledProcessError as e:
            error_msg = e.stderr or e.stdout or "Unknown error"
            raise CodeQLError(f"{description} failed: {error_msg}")
        except FileNotFoundError:
            raise CodeQLNotFoundError(f"CodeQL CLI not found at {executable}")

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise CodeQLError(f"Failed to parse CodeQL JSON output: {e}")

    def bqrs_info(self, bqrs_path: Path, page_size: Optional[int] = None) -> BqrsInfo:
        """
        Get the result set schemas of a BQRS file.

        Args:
            bqrs_path: Path to the BQRS file
            page_size: Page size to precompute row offsets for

        Returns:
            Parsed BqrsInfo

        Raises:
            CodeQLNotFoundError: If the CodeQL CLI is not available
            CodeQLError: For other CLI errors
        """
        args = ["--paginate-rows", str(page_size)] if page_size else []
        data = self._run_json_command(
            ["bqrs", "info"], [*args, str(bqrs_path)], "Reading bqrs header"
        )
        return parse_bqrs_info(data)

    def bqrs_decode(
        self,
        bqrs_path: Path,
        result_set: str,
        page_size: Optional[int] = None,
        offset: Optional[int] = None,
        entities: Sequence[str] = ("url", "string"),
    ) -> DecodedChunk:
        """
        Decode one page of a result set.

        Args:
            bqrs_path: Path to the BQRS file
            result_set: Name of the result set to decode
            page_size: Maximum number of rows to return
            offset: Byte offset to start decoding at (from bqrs info pagination)
            entities: Entity columns to include

        Returns:
            The decoded page and the offset of the next one, if any

        Raises:
            CodeQLNotFoundError: If the CodeQL CLI is not available
            CodeQLError: For other CLI errors
        """
        args = [f"--entities={','.join(entities)}", "--result-set", result_set]
        if page_size:
            args += ["--rows", str(page_size)]
        if offset:
            args += ["--start-at", str(offset)]
        args.append(str(bqrs_path))
        data = self._run_json_command(["bqrs", "decode"], args, "Reading bqrs data")
        return parse_decoded_chunk(data)
