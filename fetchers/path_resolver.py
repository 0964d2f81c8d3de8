"""
Path resolution for attachments referenced from exported markdown.

Slite exports place the binary attachments of ``Page.md`` in a sibling folder
named ``media_Page``. Links inside the page either already spell out that
folder (``media_Page/image.png``) or name the file alone (``image.png``).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union
from urllib.parse import unquote

from models import MARKDOWN_EXTENSION

logger = logging.getLogger('slite_outline_migrator.fetchers.path_resolver')

MEDIA_FOLDER_PREFIX = 'media_'
MEDIA_EXTENSIONS = frozenset({'.jpg', '.jpeg', '.png', '.gif', '.pdf'})


@dataclass(frozen=True)
class DirectoryClassification:
    """Outcome of inspecting a source directory."""

    is_media_folder: bool
    reason: str = ''


def _extension(file_name: str) -> str:
    # '.png' counts as an extension even without a stem
    dot = file_name.rfind('.')
    return file_name[dot:].lower() if dot >= 0 else ''


def media_folder_name(document_name: str) -> str:
    """Name of the media folder that belongs to a markdown file name."""
    stem = document_name
    if stem.endswith(MARKDOWN_EXTENSION):
        stem = stem[:-len(MARKDOWN_EXTENSION)]
    return f"{MEDIA_FOLDER_PREFIX}{stem}"


def resolve_attachment_path(reference: str, source_document_path: Union[str, Path]) -> str:
    """
    Resolve an attachment link to an absolute path on the local filesystem.

    Args:
        reference: Link target exactly as it appears in the markdown
        source_document_path: Path of the markdown file containing the link

    Returns:
        Absolute, normalized path of the referenced file
    """
    source_document_path = os.fspath(source_document_path)
    source_dir = os.path.dirname(source_document_path)
    decoded = unquote(reference)

    if MEDIA_FOLDER_PREFIX in decoded:
        return os.path.abspath(os.path.join(source_dir, decoded))

    media_dir = media_folder_name(os.path.basename(source_document_path))
    return os.path.abspath(os.path.join(source_dir, media_dir, decoded))


def classify_directory(directory: Union[str, Path]) -> DirectoryClassification:
    """
    Decide whether a directory only holds attachments for a document.

    Args:
        directory: Directory to inspect

    Returns:
        DirectoryClassification with the decision and the rule that made it
    """
    directory = Path(directory)

    if directory.name.startswith(MEDIA_FOLDER_PREFIX):
        return DirectoryClassification(True, f"name starts with '{MEDIA_FOLDER_PREFIX}'")

    files = [entry for entry in directory.iterdir() if entry.is_file()]
    if not files:
        return DirectoryClassification(False, 'contains no files')

    non_media = [f.name for f in files if _extension(f.name) not in MEDIA_EXTENSIONS]
    if non_media:
        return DirectoryClassification(False, f"contains non-media file '{non_media[0]}'")

    return DirectoryClassification(True, 'contains only media files')


def is_media_folder(directory: Union[str, Path]) -> bool:
    """Shortcut for ``classify_directory(directory).is_media_folder``."""
    return classify_directory(directory).is_media_folder


__all__ = [
    'MEDIA_FOLDER_PREFIX',
    'MEDIA_EXTENSIONS',
    'DirectoryClassification',
    'media_folder_name',
    'resolve_attachment_path',
    'classify_directory',
    'is_media_folder'
]
