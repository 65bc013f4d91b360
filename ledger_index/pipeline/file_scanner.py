"""
Workspace discovery of journal files.

Walks a directory tree and returns every file with a journal extension,
skipping dot-directories and common build / dependency directories.  The
result is sorted, and that order is the merge order of a workspace scan.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from ..config import ParserConfig

logger = logging.getLogger(__name__)


class FileScanner:
    def __init__(self, config: Optional[ParserConfig] = None) -> None:
        self.config = config or ParserConfig()
        self._extensions = {ext.lower() for ext in self.config.file_extensions}

    def is_journal(self, path: Path) -> bool:
        return path.suffix.lower() in self._extensions

    def is_skipped_dir(self, name: str) -> bool:
        return name.startswith(".") or name in self.config.skip_dirs

    def scan(self, root: Union[str, os.PathLike]) -> List[Path]:
        """Return the journal files under *root*, sorted by path."""
        root_path = Path(root).expanduser().resolve()
        if root_path.is_file():
            return [root_path] if self.is_journal(root_path) else []
        if not root_path.is_dir():
            logger.warning("Workspace root %s is not a directory", root_path)
            return []

        found: List[Path] = []
        for dirpath, dirnames, filenames in os.walk(root_path, onerror=self._on_error):
            dirnames[:] = sorted(d for d in dirnames if not self.is_skipped_dir(d))
            for name in filenames:
                candidate = Path(dirpath) / name
                if self.is_journal(candidate):
                    found.append(candidate)
        found.sort()
        logger.debug("Found %d journal files under %s", len(found), root_path)
        return found

    @staticmethod
    def _on_error(exc: OSError) -> None:
        logger.warning("Cannot scan %s: %s", exc.filename, exc.strerror)
