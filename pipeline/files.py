"""
pipeline/files.py
-----------------
Best-effort relocation of binary resources (avatars, attachments, smilies).

Exporters point at a file through the ``fileLocation`` AdditionalData
entry. Once the owning record has its destination key, the file is copied
to ``<target_dir>/<data_type>/<destination_key>-<basename>``. A missing or
unreadable file is logged and reported; it never undoes the record.
"""
from __future__ import annotations

import os
import shutil
from pathlib import Path
from urllib.parse import urlparse

from entities.keys import DestinationKey
from logger import get_logger

log = get_logger(__name__)


class FileRelocationError(Exception):
    """Raised when a referenced file cannot be copied."""


def is_url(location: str) -> bool:
    return urlparse(location).scheme in {"http", "https", "ftp"}


class FileRelocator:
    """
    Copies exported files below a target directory.

    Args:
        target_dir:   Destination root for relocated files.
        source_root:  Optional base for relative ``fileLocation`` values
                      (the legacy installation's file system path).
    """

    def __init__(self, target_dir: Path | str, source_root: Path | str | None = None) -> None:
        self._target_dir = Path(target_dir)
        self._source_root = Path(source_root) if source_root else None

    def resolve(self, location: str | os.PathLike) -> Path:
        path = Path(location)
        if not path.is_absolute() and self._source_root is not None:
            path = self._source_root / path
        return path

    def target_path(self, data_type: str, destination_key: DestinationKey, source: Path) -> Path:
        return self._target_dir / data_type / f"{destination_key}-{source.name}"

    def relocate(
        self,
        data_type: str,
        destination_key: DestinationKey,
        location: str | os.PathLike,
    ) -> Path:
        """
        Copy the file at *location* next to its imported record.

        Returns:
            Path of the copy.

        Raises:
            FileRelocationError: If the file is a URL, missing or unreadable,
                                 or the copy fails.
        """
        if isinstance(location, str) and is_url(location):
            raise FileRelocationError(f"Remote file '{location}' is not copied.")

        source = self.resolve(location)
        if not source.is_file():
            raise FileRelocationError(f"File '{source}' does not exist.")
        if not os.access(source, os.R_OK):
            raise FileRelocationError(f"File '{source}' is not readable.")

        target = self.target_path(data_type, destination_key, source)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as exc:
            raise FileRelocationError(f"Copying '{source}' failed: {exc}") from exc

        log.debug("Copied '%s' -> '%s'.", source, target)
        return target
