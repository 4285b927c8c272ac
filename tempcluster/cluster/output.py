"""
Output sinks for captured client command output.

A cluster either redirects command output into files under its base
folder or streams it to the log.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import structlog

from tempcluster.cluster.errors import FilesystemError

logger = structlog.get_logger(__name__)


class OutputSink(ABC):
    """Destination for the output of one administrative command."""

    @abstractmethod
    def write(self, name: str, text: str) -> Optional[Path]:
        """
        Record command output.

        Args:
            name: Logical output name (e.g. "setup-output.txt")
            text: Captured stdout/stderr

        Returns:
            File path the output was written to, if any

        Raises:
            FilesystemError: If the output cannot be stored
        """
        pass


class FileSink(OutputSink):
    """Appends output to files under the cluster's base folder."""

    def __init__(self, folder: Path):
        self.folder = Path(folder)

    def write(self, name: str, text: str) -> Optional[Path]:
        path = self.folder / name
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            raise FilesystemError(f"Cannot write {path}: {e}", path, cause=e)
        logger.debug("Command output saved", path=str(path), size=len(text))
        return path


class ConsoleSink(OutputSink):
    """Streams output to the log, one entry per line."""

    def write(self, name: str, text: str) -> Optional[Path]:
        for line in text.splitlines():
            if line.strip():
                logger.info("Command output", source=name, output=line)
        return None
