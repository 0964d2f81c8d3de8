"""Read-only access to a Slite export directory tree."""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from models import NodeKind, SourceNode


class ExportReader:
    """
    Lists and reads the files of a local export.

    Directory listings are sorted by name so that every traversal of the same
    tree visits entries in the same order.
    """

    def __init__(self, root: Union[str, Path], logger: Optional[logging.Logger] = None):
        """
        Initialize the export reader.

        Args:
            root: Export root (the directory holding one folder per collection)
            logger: Logger instance
        """
        self.root = Path(os.path.abspath(os.fspath(root)))
        self.logger = logger or logging.getLogger('slite_outline_migrator.fetchers.export_reader')

        if not self.root.is_dir():
            raise ValueError(f"Export path is not a directory: {self.root}")

    def list_entries(self, directory: Union[str, Path]) -> List[SourceNode]:
        """Classified entries of a directory, sorted by name."""
        directory = Path(directory)
        return [
            SourceNode.from_path(entry)
            for entry in sorted(directory.iterdir(), key=lambda p: p.name)
        ]

    def list_directory(self, directory: Union[str, Path]) -> Tuple[List[SourceNode], List[SourceNode]]:
        """
        Split a directory listing into markdown files and subdirectories.

        Args:
            directory: Directory to list

        Returns:
            Tuple of (markdown_files, subdirectories); other files are dropped
        """
        entries = self.list_entries(directory)
        markdown_files = [node for node in entries if node.kind is NodeKind.MARKDOWN]
        subdirectories = [node for node in entries if node.kind is NodeKind.DIRECTORY]
        return markdown_files, subdirectories

    def list_collections(self) -> List[SourceNode]:
        """Top-level directories of the export, one per collection."""
        return [node for node in self.list_entries(self.root) if node.is_directory]

    def iter_markdown_files(self, start: Optional[Union[str, Path]] = None) -> Iterator[Path]:
        """
        Yield every markdown file below ``start`` (default: the export root).

        Every directory is entered, media folders included. The walk is
        depth-first in listing order and uses an explicit stack.
        """
        stack = [iter(self.list_entries(start or self.root))]
        while stack:
            node = next(stack[-1], None)
            if node is None:
                stack.pop()
                continue
            if node.is_markdown:
                yield node.path
            elif node.is_directory:
                stack.append(iter(self.list_entries(node.path)))

    def relative_key(self, path: Union[str, Path]) -> str:
        """POSIX path of ``path`` relative to the export root."""
        relative = os.path.relpath(os.path.abspath(os.fspath(path)), self.root)
        return Path(relative).as_posix()

    def absolute_path(self, relative_key: str) -> Path:
        """Inverse of relative_key()."""
        return self.root / Path(relative_key)

    def read_text(self, path: Union[str, Path]) -> str:
        return Path(path).read_text(encoding='utf-8')

    def read_bytes(self, path: Union[str, Path]) -> bytes:
        return Path(path).read_bytes()


__all__ = ['ExportReader']
