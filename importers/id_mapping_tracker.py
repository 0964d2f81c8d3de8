"""
ID mapping tracker for the Slite to Outline migration.

This module tracks the mapping between source paths in the export and the
Outline documents, collections and attachments created for them. Every entry
is written exactly once; later phases only read.
"""

import logging
from typing import Any, Dict, Optional, Tuple, Union

from models import AttachmentKeyMode, DocumentMapping

logger = logging.getLogger('slite_outline_migrator.importers.id_mapping_tracker')

DOCUMENT_URL_TEMPLATE = '/doc/{document_id}'


class IdMappingError(Exception):
    """Base exception for registry misuse."""
    pass


class DuplicateMappingError(IdMappingError):
    """Raised when a key that already has a mapping is written again."""

    def __init__(self, kind: str, key: Any):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} mapping already exists for {key!r}")


class RegistryLockedError(IdMappingError):
    """Raised when a mapping is written after its phase has ended."""
    pass


def document_url(document_id: str) -> str:
    """Outline URL path of a document, derived from its ID."""
    return DOCUMENT_URL_TEMPLATE.format(document_id=document_id)


class IdMappingTracker:
    """Tracks mappings between export paths and Outline IDs and URLs."""

    def __init__(
        self,
        key_mode: Union[AttachmentKeyMode, str] = AttachmentKeyMode.SCOPED,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize ID mapping tracker.

        Args:
            key_mode: How attachment URLs are keyed ('literal' or 'scoped')
            logger: Optional logger instance (defaults to module logger)
        """
        self.key_mode = AttachmentKeyMode(key_mode)
        self.logger = logger or logging.getLogger('slite_outline_migrator.importers.id_mapping_tracker')

        # Export-relative path -> Outline document
        self._documents: Dict[str, DocumentMapping] = {}

        # Literal link target -> attachment URL
        self._attachments_by_literal: Dict[str, str] = {}

        # (literal link target, export-relative source path) -> attachment URL
        self._attachments_by_scope: Dict[Tuple[str, str], str] = {}

        # Top-level directory name -> Outline collection ID
        self._collections: Dict[str, str] = {}

        self._documents_locked = False
        self._frozen = False

        self.logger.debug(f"Initialized IdMappingTracker (key_mode={self.key_mode.value})")

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def add_collection_mapping(self, name: str, collection_id: str) -> None:
        """
        Store mapping for a top-level export directory to an Outline collection.

        Args:
            name: Directory name
            collection_id: Outline collection ID
        """
        self._check_writable(documents=True)
        if name in self._collections:
            raise DuplicateMappingError('collection', name)

        self._collections[name] = collection_id
        self.logger.debug(f"Collection mapping added: {name} -> {collection_id}")

    def add_document_mapping(
        self,
        path: str,
        document_id: str,
        is_container: bool = False
    ) -> DocumentMapping:
        """
        Store mapping for a markdown file or directory to an Outline document.

        Args:
            path: Export-relative POSIX path
            document_id: Outline document ID
            is_container: True for documents standing in for directories

        Returns:
            The stored DocumentMapping
        """
        self._check_writable(documents=True)
        if path in self._documents:
            raise DuplicateMappingError('document', path)

        mapping = DocumentMapping(
            document_id=document_id,
            url=document_url(document_id),
            is_container=is_container
        )
        self._documents[path] = mapping

        self.logger.debug(f"Document mapping added: {path} -> {mapping.url}")
        return mapping

    def add_attachment_mapping(self, literal: str, url: str, source_path: Optional[str] = None) -> None:
        """
        Store the uploaded URL for an attachment link.

        In literal mode the link text alone is the key. In scoped mode the key
        is (link text, source path); the first URL seen for a link text is
        also kept for lookups that do not name a source.

        Args:
            literal: Link target exactly as written in the markdown
            url: URL of the uploaded attachment
            source_path: Export-relative path of the referencing document
        """
        self._check_writable(documents=False)

        if self.key_mode is AttachmentKeyMode.LITERAL:
            if literal in self._attachments_by_literal:
                raise DuplicateMappingError('attachment', literal)
            self._attachments_by_literal[literal] = url
        else:
            if source_path is None:
                raise IdMappingError("scoped attachment mappings require a source path")
            key = (literal, source_path)
            if key in self._attachments_by_scope:
                raise DuplicateMappingError('attachment', key)
            self._attachments_by_scope[key] = url
            self._attachments_by_literal.setdefault(literal, url)

        self.logger.debug(f"Attachment mapping added: {literal} ({source_path}) -> {url}")

    def lock_documents(self) -> None:
        """End the structure phase: no more document or collection writes."""
        self._documents_locked = True
        self.logger.debug("Document mappings locked")

    def freeze(self) -> None:
        """End all writes; the registry is read-only from now on."""
        self._documents_locked = True
        self._frozen = True
        self.logger.debug("ID mappings frozen")

    def _check_writable(self, documents: bool) -> None:
        if self._frozen:
            raise RegistryLockedError("ID mappings are frozen")
        if documents and self._documents_locked:
            raise RegistryLockedError("Document mappings are locked after the structure phase")

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def get_document_id(self, path: str) -> Optional[str]:
        """
        Get Outline document ID for an export-relative path.

        Args:
            path: Export-relative POSIX path

        Returns:
            Document ID or None if not found
        """
        mapping = self._documents.get(path)
        return mapping.document_id if mapping else None

    def get_document_url(self, path: str) -> Optional[str]:
        """Get Outline document URL for an export-relative path."""
        mapping = self._documents.get(path)
        return mapping.url if mapping else None

    def get_document_mapping(self, path: str) -> Optional[DocumentMapping]:
        return self._documents.get(path)

    def get_attachment_url(self, literal: str, source_path: Optional[str] = None) -> Optional[str]:
        """
        Get uploaded URL for an attachment link.

        Args:
            literal: Link target exactly as written in the markdown
            source_path: Export-relative path of the referencing document

        Returns:
            Attachment URL or None if not uploaded
        """
        if self.key_mode is AttachmentKeyMode.SCOPED and source_path is not None:
            return self._attachments_by_scope.get((literal, source_path))
        return self._attachments_by_literal.get(literal)

    def has_attachment(self, literal: str, source_path: Optional[str] = None) -> bool:
        if self.key_mode is AttachmentKeyMode.SCOPED and source_path is not None:
            return (literal, source_path) in self._attachments_by_scope
        return literal in self._attachments_by_literal

    def get_collection_id(self, name: str) -> Optional[str]:
        return self._collections.get(name)

    def iter_documents(self):
        """Yield (path, DocumentMapping) pairs in creation order."""
        return iter(list(self._documents.items()))

    def get_statistics(self) -> Dict[str, int]:
        """
        Get mapping statistics.

        Returns:
            Dict with counts of mapped items
        """
        containers = sum(1 for m in self._documents.values() if m.is_container)
        if self.key_mode is AttachmentKeyMode.SCOPED:
            attachment_count = len(self._attachments_by_scope)
        else:
            attachment_count = len(self._attachments_by_literal)

        return {
            'collections': len(self._collections),
            'documents': len(self._documents) - containers,
            'containers': containers,
            'attachments': attachment_count
        }


__all__ = [
    'IdMappingTracker',
    'IdMappingError',
    'DuplicateMappingError',
    'RegistryLockedError',
    'DOCUMENT_URL_TEMPLATE',
    'document_url'
]
