from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .utils import ensure_directory, safe_filename


class FileDownloader(Protocol):
    def save(self, filename: str, content: bytes) -> Path: ...


class DirectoryDownloader:
    """Stores downloads in a folder, like a browser's download directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def save(self, filename: str, content: bytes) -> Path:
        target = ensure_directory(self.directory) / safe_filename(filename)
        target.write_bytes(content)
        return target
