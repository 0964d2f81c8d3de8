"""
Structure builder for the Slite to Outline migration.

Creates one Outline document per markdown file and one container document per
non-media subdirectory, nesting them the way the export tree is nested, and
records every created document in the ID mapping tracker.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from converters.content_parser import METADATA_PREAMBLE_LINES, parse_document
from fetchers.export_reader import ExportReader
from fetchers.path_resolver import classify_directory
from models import SourceNode

from .id_mapping_tracker import IdMappingTracker

logger = logging.getLogger('slite_outline_migrator.importers.structure_builder')

DEFAULT_MAX_DEPTH = 64


@dataclass
class _DirectoryFrame:
    """A directory whose subdirectories are still being visited."""

    directory: Path
    parent_document_id: Optional[str]
    depth: int
    subdirectories: Iterator[SourceNode]


class StructureBuilder:
    """
    Builds the Outline document hierarchy for one collection directory.

    For every directory level, markdown files are created first (in listing
    order), then each subdirectory becomes a container document whose whole
    subtree is created before the next sibling is visited.
    """

    def __init__(
        self,
        client,
        registry: IdMappingTracker,
        reader: ExportReader,
        preamble_lines: int = METADATA_PREAMBLE_LINES,
        max_depth: int = DEFAULT_MAX_DEPTH,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the structure builder.

        Args:
            client: OutlineClient (or compatible) used to create documents
            registry: ID mapping tracker receiving path -> document mappings
            reader: ExportReader for the export root
            preamble_lines: Metadata lines stripped from each source file
            max_depth: Deepest subdirectory level below a collection to descend into
            logger: Logger instance
        """
        self.client = client
        self.registry = registry
        self.reader = reader
        self.preamble_lines = preamble_lines
        self.max_depth = max_depth
        self.logger = logger or logging.getLogger('slite_outline_migrator.importers.structure_builder')

        self.stats = self._reset_stats()

    def _reset_stats(self) -> Dict[str, Any]:
        return {
            'documents_created': 0,
            'containers_created': 0,
            'media_folders_skipped': 0,
            'unreadable_files': 0,
            'too_deep_directories': 0,
            'errors': []
        }

    def build_structure(
        self,
        directory: Union[str, Path],
        collection_id: str,
        parent_document_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create documents for everything below ``directory``.

        Args:
            directory: Directory to migrate (usually a collection directory)
            collection_id: Outline collection receiving the documents
            parent_document_id: Document to nest the top level under, if any

        Returns:
            Copy of the cumulative statistics

        Raises:
            OutlineApiError: When a document cannot be created; the run cannot
                continue with a partial hierarchy
        """
        directory = Path(directory)
        self.logger.info(f"Building structure for {directory.name}")

        stack: List[_DirectoryFrame] = [
            self._enter_directory(directory, collection_id, parent_document_id, depth=0)
        ]

        while stack:
            frame = stack[-1]
            subdirectory = next(frame.subdirectories, None)
            if subdirectory is None:
                stack.pop()
                continue

            classification = classify_directory(subdirectory.path)
            if classification.is_media_folder:
                self.stats['media_folders_skipped'] += 1
                self.logger.debug(f"Skipping media folder {subdirectory.name}: {classification.reason}")
                continue

            depth = frame.depth + 1
            if depth > self.max_depth:
                self.stats['too_deep_directories'] += 1
                self.logger.error(
                    f"Not descending into {self.reader.relative_key(subdirectory.path)}: "
                    f"nesting exceeds max depth {self.max_depth}"
                )
                self.stats['errors'].append({
                    'type': 'directory',
                    'path': self.reader.relative_key(subdirectory.path),
                    'error': f"nesting exceeds max depth {self.max_depth}"
                })
                continue

            container_id = self._create_container(subdirectory.path, collection_id, frame.parent_document_id)
            stack.append(self._enter_directory(subdirectory.path, collection_id, container_id, depth))

        return dict(self.stats)

    def _enter_directory(
        self,
        directory: Path,
        collection_id: str,
        parent_document_id: Optional[str],
        depth: int
    ) -> _DirectoryFrame:
        """Create the directory's documents and return a frame for its subdirectories."""
        markdown_files, subdirectories = self.reader.list_directory(directory)

        for node in markdown_files:
            self._create_document(node.path, collection_id, parent_document_id)

        return _DirectoryFrame(
            directory=directory,
            parent_document_id=parent_document_id,
            depth=depth,
            subdirectories=iter(subdirectories)
        )

    def _create_document(
        self,
        file_path: Path,
        collection_id: str,
        parent_document_id: Optional[str]
    ) -> Optional[str]:
        relative_path = self.reader.relative_key(file_path)

        try:
            raw_content = self.reader.read_text(file_path)
        except (OSError, UnicodeDecodeError) as e:
            self.stats['unreadable_files'] += 1
            self.stats['errors'].append({'type': 'document', 'path': relative_path, 'error': str(e)})
            self.logger.error(f"Could not read {relative_path}, skipping: {e}")
            return None

        parsed = parse_document(raw_content, file_path.name, self.preamble_lines)

        document = self.client.create_document(
            title=parsed.title,
            text=parsed.body,
            collection_id=collection_id,
            parent_document_id=parent_document_id
        )
        document_id = document['id']

        self.registry.add_document_mapping(relative_path, document_id)
        self.stats['documents_created'] += 1
        self.logger.info(f"Created document: {parsed.title} ({relative_path})")
        return document_id

    def _create_container(
        self,
        directory: Path,
        collection_id: str,
        parent_document_id: Optional[str]
    ) -> str:
        relative_path = self.reader.relative_key(directory)

        document = self.client.create_document(
            title=directory.name,
            text='',
            collection_id=collection_id,
            parent_document_id=parent_document_id
        )
        document_id = document['id']

        self.registry.add_document_mapping(relative_path, document_id, is_container=True)
        self.stats['containers_created'] += 1
        self.logger.info(f"Created container document: {directory.name} ({relative_path})")
        return document_id

    def get_statistics(self) -> Dict[str, Any]:
        return dict(self.stats)


__all__ = ['StructureBuilder', 'DEFAULT_MAX_DEPTH']
