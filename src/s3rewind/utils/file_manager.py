"""
File Management Utilities

Maps object keys onto paths under the restore destination and creates the
directories they need.
"""

import os
from pathlib import Path
from typing import Any, Dict, Union
import logging

from .validators import UnsafeKeyError


class FileManager:
    """
    Manages the layout of restored objects under a destination directory.

    A key "docs/readme.txt" is written to "<destination>/docs/readme.txt";
    directory markers such as "docs/" become directories.
    """

    def __init__(self, destination: Union[str, Path]):
        """
        Initialize the file manager.

        Args:
            destination: Root directory for restored files
        """
        self.destination = Path(destination)
        self.logger = logging.getLogger(__name__)

    def path_for(self, key: str) -> Path:
        """
        Get the local path for an object key.

        Args:
            key: Object key

        Returns:
            Path under the destination

        Raises:
            UnsafeKeyError: If the key would resolve outside the destination
        """
        root = os.path.abspath(self.destination)
        target = os.path.normpath(os.path.join(root, key.lstrip("/")))
        if os.path.commonpath([root, target]) != root:
            raise UnsafeKeyError(f"Key escapes the destination directory: {key}")
        return Path(target)

    def create_directory(self, key: str) -> Path:
        """Create the directory for a directory-marker key, parents included."""
        path = self.path_for(key)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def prepare_file(self, key: str) -> Path:
        """
        Create the parent directory of a file key.

        Returns:
            Path the file content should be written to
        """
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def get_output_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the destination directory.

        Returns:
            Dictionary with file and directory counts and total size
        """
        stats = {
            'files': 0,
            'directories': 0,
            'total_size': 0,
            'destination': str(self.destination),
        }

        if not self.destination.exists():
            return stats

        for path in self.destination.rglob('*'):
            if path.is_dir():
                stats['directories'] += 1
            elif path.is_file():
                stats['files'] += 1
                stats['total_size'] += path.stat().st_size

        return stats
