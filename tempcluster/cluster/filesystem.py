"""
Per-cluster on-disk layout: node data directories under a base folder.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Union

import structlog

from tempcluster.cluster.errors import FilesystemError

logger = structlog.get_logger(__name__)


class FilesystemProvisioner:
    """Creates node data directories and purges a cluster's base folder."""

    def ensure_dir(self, path: Union[str, Path]) -> Path:
        """Create a directory and any missing parents."""
        path = Path(path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Cannot create directory {path}: {e}", path, cause=e)

        logger.debug("Created data folder", path=str(path))
        return path

    def purge(self, base_folder: Union[str, Path]) -> bool:
        """
        Recursively delete the base folder.

        Must only be called once every node process has exited, so no
        live process holds files open underneath it.

        Returns:
            True if something was removed, False if the path was absent
        """
        base_folder = Path(base_folder)
        if not base_folder.exists():
            return False

        try:
            shutil.rmtree(base_folder)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FilesystemError(f"Cannot remove {base_folder}: {e}", base_folder, cause=e)

        logger.debug("Removed base folder", path=str(base_folder))
        return True
