"""
Attachment uploader for Slite media files to Outline.

Resolves every attachment link found in the export to a file on disk,
uploads it to Outline against the document that references it, and records
the resulting URL in the ID mapping tracker for the link rewriting phase.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from fetchers.export_reader import ExportReader
from fetchers.path_resolver import _extension, resolve_attachment_path
from logger import ProgressTracker
from models import AttachmentKeyMode, AttachmentReference, LinkScanResult, UploadedAttachment

from .id_mapping_tracker import IdMappingTracker

logger = logging.getLogger('slite_outline_migrator.importers.attachment_uploader')

DEFAULT_CONTENT_TYPE = 'application/octet-stream'

CONTENT_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.pdf': 'application/pdf'
}


def content_type_for(file_name: str) -> str:
    """MIME type for a file name, from its extension."""
    return CONTENT_TYPES.get(_extension(file_name), DEFAULT_CONTENT_TYPE)


class AttachmentUploader:
    """
    Handles uploading exported attachments to Outline.

    This uploader:
    1. Finds the Outline document that owns each attachment link
    2. Resolves the link to a file in the export (media folder convention)
    3. Uploads the file once, reusing the URL for repeated references
    4. Registers the attachment URL under the link as written
    """

    def __init__(
        self,
        config: Dict[str, Any],
        client,
        registry: IdMappingTracker,
        reader: ExportReader,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the attachment uploader.

        Args:
            config: Configuration dictionary
            client: OutlineClient instance
            registry: ID mapping tracker (documents already registered)
            reader: ExportReader for the export root
            logger: Logger instance
        """
        self.config = config
        self.client = client
        self.registry = registry
        self.reader = reader
        self.logger = logger or logging.getLogger('slite_outline_migrator.importers.attachment_uploader')

        self.key_mode = registry.key_mode
        self.show_progress = self.config.get('export', {}).get('progress_bars', True)

        # Resolved absolute path -> upload result
        self._uploaded: Dict[str, UploadedAttachment] = {}

        self.stats = self._reset_stats()

    def _reset_stats(self) -> Dict[str, Any]:
        return {
            'total': 0,
            'uploaded': 0,
            'reused': 0,
            'missing_files': 0,
            'missing_documents': 0,
            'failed': 0,
            'errors': []
        }

    def upload_all(self, scan_result: LinkScanResult) -> Dict[str, Any]:
        """
        Upload every attachment referenced in the scan result.

        Failures of single attachments are logged and counted; they never
        stop the remaining uploads.

        Args:
            scan_result: Links discovered across the export

        Returns:
            Statistics dictionary with upload results
        """
        references = scan_result.attachment_references(self.key_mode)
        self.stats['total'] = len(references)

        self.logger.info(
            f"Uploading {len(references)} attachment references "
            f"(key mode: {self.key_mode.value})"
        )

        items = references
        if self.show_progress:
            items = tqdm(references, desc="Uploading attachments", unit="file")

        with ProgressTracker(len(references), "attachments", self.logger) as progress:
            for reference in items:
                try:
                    success = self.upload_reference(reference)
                except Exception as e:
                    success = False
                    self.stats['failed'] += 1
                    self.stats['errors'].append({
                        'type': 'attachment',
                        'reference': reference.literal,
                        'source': self._source_key(reference),
                        'error': str(e)
                    })
                    self.logger.error(f"Failed to upload attachment '{reference.literal}': {e}", exc_info=True)
                progress.increment(success)

        return self.get_statistics()

    def upload_reference(self, reference: AttachmentReference) -> bool:
        """
        Upload and register one attachment reference.

        Args:
            reference: Link target and the document it was found in

        Returns:
            True if the reference now has a registered URL
        """
        source_key = self._source_key(reference)

        document_id = self.registry.get_document_id(source_key)
        if not document_id:
            self.stats['missing_documents'] += 1
            self.logger.warning(f"No document ID found for {source_key}, skipping '{reference.literal}'")
            return False

        file_path = resolve_attachment_path(reference.literal, reference.source_path)
        if not os.path.isfile(file_path):
            self.stats['missing_files'] += 1
            self.logger.warning(f"Attachment file not found (missing file): {file_path}")
            return False

        uploaded = self._uploaded.get(file_path)
        if uploaded is not None:
            self.stats['reused'] += 1
            self.logger.debug(f"Reusing upload of {file_path} for '{reference.literal}' in {source_key}")
        else:
            uploaded = self.upload_file(Path(file_path), document_id)
            self._uploaded[file_path] = uploaded
            self.stats['uploaded'] += 1

        self.registry.add_attachment_mapping(reference.literal, uploaded.url, source_key)
        return True

    def upload_file(self, file_path: Path, document_id: str) -> UploadedAttachment:
        """
        Upload a single file to Outline.

        Args:
            file_path: Local file to upload
            document_id: Outline document the attachment belongs to

        Returns:
            UploadedAttachment with the absolute attachment URL
        """
        file_data = self.reader.read_bytes(file_path)
        content_type = content_type_for(file_path.name)

        response = self.client.create_attachment(
            name=file_path.name,
            content_type=content_type,
            size=len(file_data),
            document_id=document_id
        )

        self.client.upload_attachment_file(
            upload_url=response['uploadUrl'],
            form=response.get('form'),
            file_name=file_path.name,
            file_data=file_data,
            content_type=content_type
        )

        attachment_url = self.client.absolute_url(response['attachment']['url'])
        self.logger.info(f"Uploaded attachment: {file_path.name} -> {attachment_url}")

        return UploadedAttachment(
            name=file_path.name,
            url=attachment_url,
            content_type=content_type,
            size=len(file_data),
            local_path=str(file_path),
            document_id=document_id
        )

    def _source_key(self, reference: AttachmentReference) -> str:
        return self.reader.relative_key(reference.source_path)

    def get_uploaded(self) -> List[UploadedAttachment]:
        return list(self._uploaded.values())

    def get_statistics(self) -> Dict[str, Any]:
        stats = dict(self.stats)
        stats['attachments'] = [a.to_dict() for a in self._uploaded.values()]
        return stats


__all__ = ['AttachmentUploader', 'CONTENT_TYPES', 'content_type_for']
