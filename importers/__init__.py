"""Import package for Slite export to Outline migration.

This package provides functionality to create migrated content in Outline
using its REST API.

Package Structure:
- outline_client: REST client for Outline API operations
- id_mapping_tracker: Tracks export path to Outline ID mappings
- structure_builder: Creates the nested document hierarchy
- attachment_uploader: Uploads media files as document attachments

Configuration Referenced:
- outline.*: Outline API settings and authentication
- source.*: Export location and parsing settings
- advanced.*: Timeouts, retries and rate limiting
"""

from .outline_client import OutlineClient, OutlineApiError, OutlineConnectionError
from .id_mapping_tracker import IdMappingTracker, IdMappingError, DuplicateMappingError, RegistryLockedError
from .structure_builder import StructureBuilder
from .attachment_uploader import AttachmentUploader

__all__ = [
    'OutlineClient',
    'OutlineApiError',
    'OutlineConnectionError',
    'IdMappingTracker',
    'IdMappingError',
    'DuplicateMappingError',
    'RegistryLockedError',
    'StructureBuilder',
    'AttachmentUploader'
]
