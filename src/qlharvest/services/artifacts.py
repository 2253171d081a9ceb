"""On-disk layout of downloaded result artifacts."""

import zipfile
from pathlib import Path

from qlharvest.domain.models import DownloadLink


def create_download_path(storage_path: Path, download_link: DownloadLink, extension: str = "") -> Path:
    """
    Resolve where an artifact is stored.

    The layout is ``storage_path/run_scope_id/id[.extension]`` and depends only
    on identifiers, so existence can be checked without an index.

    Args:
        storage_path: Root directory for all runs
        download_link: Link of the artifact
        extension: Optional file extension, without the dot

    Returns:
        Path of the artifact (directory when no extension is given)
    """
    name = f"{download_link.id}.{extension}" if extension else download_link.id
    return Path(storage_path) / download_link.run_scope_id / name


def is_artifact_downloaded(storage_path: Path, download_link: DownloadLink) -> bool:
    """Check whether the artifact has already been extracted."""
    return create_download_path(storage_path, download_link).exists()


def unzip_archive(zip_path: Path, destination: Path) -> Path:
    """
    Extract a zip archive, refusing members that would land outside ``destination``.

    Raises:
        zipfile.BadZipFile: If the archive is corrupt
        ValueError: If a member path escapes the destination
    """
    destination.mkdir(parents=True, exist_ok=True)
    root = destination.resolve()
    with zipfile.ZipFile(zip_path, "r") as zf:
        for member in zf.namelist():
            target = (root / member).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"Archive member escapes extraction directory: {member}")
        zf.extractall(root)
    return destination
