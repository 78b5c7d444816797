"""Filesystem helpers for coldstandby."""

import logging
import os
import shutil

from rich.console import Console


class FileSystemService:
    """Encapsulates local file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def chown_tree(self, root: str, uid: int, gid: int):
        """Recursively hand `root` and everything below it to uid:gid, symlinks included."""
        os.chown(root, uid, gid, follow_symlinks=False)
        for current_root, dirs, files in os.walk(root):
            for name in dirs + files:
                os.chown(os.path.join(current_root, name), uid, gid, follow_symlinks=False)

    def cleanup_dir(self, path: str):
        if os.path.exists(path):
            try:
                shutil.rmtree(path)
                self.logger.debug("Removed directory: %s", path)
            except OSError as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)

    def remove_file(self, path: str):
        if os.path.exists(path):
            try:
                os.remove(path)
                self.logger.debug("Removed file: %s", path)
            except OSError as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)
