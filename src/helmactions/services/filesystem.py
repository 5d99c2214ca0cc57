"""Filesystem helpers for helmactions."""

import logging
import os
import shutil
import sys
import tempfile
from contextlib import contextmanager
from typing import Iterator, Optional

from rich.console import Console

from helmactions.constants import DIR_MODE, WORKSPACE_PREFIX
from helmactions.errors import ProvisioningError


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console, temp_root: Optional[str] = None):
        self.logger = logger
        self.console = console
        self.temp_root = temp_root

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except Exception as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def cleanup_dir(self, path: str):
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
                self.logger.debug("Removed directory: %s", path)
            except Exception as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)

    @contextmanager
    def scoped_workspace(self, prefix: str = WORKSPACE_PREFIX) -> Iterator[str]:
        """Yield a private temporary directory that is removed on exit."""
        try:
            root = tempfile.mkdtemp(prefix=prefix, dir=self.temp_root)
        except OSError as exc:
            raise ProvisioningError(f"Could not create workspace directory: {exc}") from exc

        self.set_permissions(root, DIR_MODE)
        self.logger.debug("Created workspace: %s", root)
        try:
            yield root
        finally:
            self.cleanup_dir(root)
