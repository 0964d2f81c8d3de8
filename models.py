"""Data models for the Slite export to Outline migration pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

MARKDOWN_EXTENSION = '.md'


class NodeKind(Enum):
    """Kinds of entries found under the export root."""
    MARKDOWN = "markdown"
    DIRECTORY = "directory"
    OPAQUE = "opaque"


class MigrationState(Enum):
    """States of the migration orchestrator."""
    PENDING = "pending"
    CREATING_STRUCTURE = "creating_structure"
    UPLOADING_ATTACHMENTS = "uploading_attachments"
    REWRITING_LINKS = "rewriting_links"
    DONE = "done"
    FAILED = "failed"


class AttachmentKeyMode(Enum):
    """How uploaded attachment URLs are keyed in the registry."""
    LITERAL = "literal"
    SCOPED = "scoped"


@dataclass(frozen=True)
class SourceNode:
    """A file or directory discovered under the export root."""

    path: Path
    kind: NodeKind

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_markdown(self) -> bool:
        return self.kind is NodeKind.MARKDOWN

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @classmethod
    def from_path(cls, path: Path) -> 'SourceNode':
        """Classify a filesystem path into a SourceNode."""
        if path.is_dir():
            return cls(path=path, kind=NodeKind.DIRECTORY)
        if path.name.endswith(MARKDOWN_EXTENSION):
            return cls(path=path, kind=NodeKind.MARKDOWN)
        return cls(path=path, kind=NodeKind.OPAQUE)


@dataclass(frozen=True)
class AttachmentReference:
    """A non-markdown link target together with the document it was found in."""

    literal: str
    source_path: str


@dataclass(frozen=True)
class DocumentReference:
    """A link target ending in .md together with the document it was found in."""

    literal: str
    source_path: str


@dataclass
class LinkScanResult:
    """
    Links discovered in one or more markdown documents.

    Every distinct (literal, source) occurrence is kept in discovery order.
    The literal-keyed views collapse occurrences so that the last-seen source
    wins for a literal used by several documents.
    """

    attachments: Dict[Tuple[str, str], AttachmentReference] = field(default_factory=dict)
    documents: Dict[Tuple[str, str], DocumentReference] = field(default_factory=dict)

    def add_attachment(self, literal: str, source_path: str) -> None:
        key = (literal, source_path)
        # Re-insert so that dict order reflects the most recent sighting
        self.attachments.pop(key, None)
        self.attachments[key] = AttachmentReference(literal, source_path)

    def add_document(self, literal: str, source_path: str) -> None:
        key = (literal, source_path)
        self.documents.pop(key, None)
        self.documents[key] = DocumentReference(literal, source_path)

    @property
    def attachment_links(self) -> Dict[str, str]:
        """Literal attachment target -> source document path (last seen wins)."""
        return {ref.literal: ref.source_path for ref in self.attachments.values()}

    @property
    def document_links(self) -> Dict[str, str]:
        """Literal document target -> source document path (last seen wins)."""
        return {ref.literal: ref.source_path for ref in self.documents.values()}

    def attachment_references(
        self,
        mode: AttachmentKeyMode = AttachmentKeyMode.SCOPED
    ) -> List[AttachmentReference]:
        """
        Attachment references to migrate for the given key mode.

        Args:
            mode: LITERAL yields one reference per literal string,
                SCOPED yields every (literal, source) pair

        Returns:
            List of AttachmentReference objects
        """
        if mode is AttachmentKeyMode.LITERAL:
            return [
                AttachmentReference(literal, source)
                for literal, source in self.attachment_links.items()
            ]
        return list(self.attachments.values())

    def merge(self, other: 'LinkScanResult') -> 'LinkScanResult':
        """Fold another scan result into this one, in order."""
        for ref in other.attachments.values():
            self.add_attachment(ref.literal, ref.source_path)
        for ref in other.documents.values():
            self.add_document(ref.literal, ref.source_path)
        return self


@dataclass(frozen=True)
class ParsedDocument:
    """Title and body extracted from a raw exported markdown file."""

    title: str
    body: str


@dataclass(frozen=True)
class DocumentMapping:
    """Remote identity of a migrated document or container."""

    document_id: str
    url: str
    is_container: bool = False


@dataclass
class UploadedAttachment:
    """Result of a successful attachment upload."""

    name: str
    url: str
    content_type: str
    size: int
    local_path: str
    document_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize attachment to dictionary."""
        return {
            'name': self.name,
            'url': self.url,
            'content_type': self.content_type,
            'size': self.size,
            'local_path': self.local_path,
            'document_id': self.document_id
        }
