"""Fetchers package for reading a local Slite export."""

from .export_reader import ExportReader
from .path_resolver import (
    DirectoryClassification,
    classify_directory,
    is_media_folder,
    resolve_attachment_path
)

__all__ = [
    'ExportReader',
    'DirectoryClassification',
    'classify_directory',
    'is_media_folder',
    'resolve_attachment_path'
]
