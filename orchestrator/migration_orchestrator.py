"""
Migration orchestrator for coordinating the complete migration pipeline.

This module provides the central coordinator that sequences the migration
phases: Structure → Attachments → Link Rewriting → Report. Each phase runs to
completion before the next one starts, and the ID mapping tracker is locked
against further writes of a kind once the phase producing it has ended.
"""

import itertools
import logging
import os
import time
from typing import Any, Dict, Optional

from tqdm import tqdm

from converters.content_parser import METADATA_PREAMBLE_LINES
from converters.link_rewriter import LinkRewriter
from converters.link_scanner import scan_directory_tree
from fetchers.export_reader import ExportReader
from fetchers.path_resolver import resolve_attachment_path
from importers import AttachmentUploader, IdMappingTracker, OutlineClient, StructureBuilder
from importers.structure_builder import DEFAULT_MAX_DEPTH
from logger import ProgressTracker, log_section
from models import MARKDOWN_EXTENSION, AttachmentKeyMode, MigrationState
from orchestrator.migration_report import MigrationReport

logger = logging.getLogger('slite_outline_migrator.orchestrator.migration_orchestrator')


class DryRunClient:
    """Stands in for OutlineClient during previews; hands out placeholder IDs."""

    def __init__(self):
        self._ids = itertools.count(1)

    def create_collection(self, name: str) -> Dict[str, Any]:
        return {'id': f"dry-run-collection-{next(self._ids)}", 'name': name}

    def create_document(self, title: str, text: str, collection_id: str,
                        parent_document_id: Optional[str] = None) -> Dict[str, Any]:
        return {'id': f"dry-run-document-{next(self._ids)}", 'title': title}


class MigrationOrchestrator:
    """Central coordinator sequencing all migration phases: Structure → Attachments → Links → Report."""

    def __init__(
        self,
        config: Dict[str, Any],
        client=None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize migration orchestrator.

        Args:
            config: Configuration dictionary
            client: Optional OutlineClient (created from config when needed)
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger('slite_outline_migrator.orchestrator.migration_orchestrator')
        self._client = client

        source_config = config.get('source', {})
        self.source_path = source_config.get('export_path')
        self.preamble_lines = source_config.get('preamble_lines', METADATA_PREAMBLE_LINES)
        self.max_depth = source_config.get('max_depth', DEFAULT_MAX_DEPTH)
        self.key_mode = AttachmentKeyMode(
            config.get('migration', {}).get('attachment_key_mode', AttachmentKeyMode.SCOPED.value)
        )
        self.show_progress = config.get('export', {}).get('progress_bars', True)

        self.registry = IdMappingTracker(self.key_mode, self.logger)
        self.reader: Optional[ExportReader] = None
        self.state = MigrationState.PENDING
        self.failed_during: Optional[MigrationState] = None

        self.logger.info(
            f"MigrationOrchestrator initialized: source={self.source_path}, "
            f"key_mode={self.key_mode.value}"
        )

    @property
    def client(self):
        if self._client is None:
            self._client = OutlineClient.from_config(self.config)
        return self._client

    def _transition(self, new_state: MigrationState) -> None:
        self.logger.debug(f"State: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def orchestrate_migration(self) -> Dict[str, Any]:
        """
        Orchestrate the complete migration pipeline.

        Returns:
            Report dictionary; on failure its summary carries
            'orchestration_failed' and 'orchestration_error'
        """
        self.logger.info("Starting migration orchestration")
        start_time = time.time()
        phase_stats: Dict[str, Any] = {}

        try:
            self.reader = ExportReader(self.source_path, self.logger)

            self._transition(MigrationState.CREATING_STRUCTURE)
            phase_stats['structure'] = self._execute_structure_creation()
            self.registry.lock_documents()

            self._transition(MigrationState.UPLOADING_ATTACHMENTS)
            phase_stats['attachments'] = self._execute_attachment_upload()
            self.registry.freeze()

            self._transition(MigrationState.REWRITING_LINKS)
            phase_stats['link_rewrite'] = self._execute_link_rewrite()

            self._transition(MigrationState.DONE)

            migration_duration = time.time() - start_time
            self.logger.info(f"Migration orchestration complete in {migration_duration:.2f}s")
            return self._generate_report(phase_stats, migration_duration)

        except Exception as e:
            self.failed_during = self.state
            self._transition(MigrationState.FAILED)
            self.logger.error(
                f"Migration failed during {self.failed_during.value}: {str(e)}", exc_info=True
            )

            report = self._generate_report(phase_stats, time.time() - start_time)
            report['summary']['orchestration_failed'] = True
            report['summary']['orchestration_error'] = str(e)
            report['summary']['failed_during'] = self.failed_during.value
            return report

    def _execute_structure_creation(self) -> Dict[str, Any]:
        """
        Execute Phase 1: create one collection per top-level directory and
        the document hierarchy inside it.

        Returns:
            Structure statistics dictionary
        """
        log_section("Phase 1: Structure Creation")

        builder = StructureBuilder(
            self.client,
            self.registry,
            self.reader,
            preamble_lines=self.preamble_lines,
            max_depth=self.max_depth,
            logger=self.logger
        )

        collections = self.reader.list_collections()
        self.logger.info(f"Found {len(collections)} collections in {self.reader.root}")

        for node in collections:
            collection = self.client.create_collection(node.name)
            self.registry.add_collection_mapping(node.name, collection['id'])
            self.logger.info(f"Created collection: {node.name}")
            builder.build_structure(node.path, collection['id'])

        stats = builder.get_statistics()
        stats['collections_created'] = len(collections)

        self.logger.info(
            f"Phase 1 complete: {len(collections)} collections, "
            f"{stats['documents_created']} documents, {stats['containers_created']} containers"
        )
        return stats

    def _execute_attachment_upload(self) -> Dict[str, Any]:
        """
        Execute Phase 2: discover attachment links and upload their files.

        Returns:
            Upload statistics dictionary
        """
        log_section("Phase 2: Attachment Upload")

        scan_result = scan_directory_tree(self.reader.root, self.reader, self.logger)

        uploader = AttachmentUploader(self.config, self.client, self.registry, self.reader, self.logger)
        stats = uploader.upload_all(scan_result)

        self.logger.info(
            f"Phase 2 complete: {stats['uploaded']} uploaded, {stats['reused']} reused, "
            f"{stats['missing_files']} missing, {stats['failed']} failed"
        )
        return stats

    def _execute_link_rewrite(self) -> Dict[str, Any]:
        """
        Execute Phase 3: rewrite links of every migrated markdown document
        and push the final text.

        Returns:
            Rewrite statistics dictionary
        """
        log_section("Phase 3: Link Rewriting")

        rewriter = LinkRewriter(self.registry, self.preamble_lines, self.logger)
        documents = [
            (path, mapping) for path, mapping in self.registry.iter_documents()
            if path.endswith(MARKDOWN_EXTENSION) and not mapping.is_container
        ]

        stats: Dict[str, Any] = {'documents_updated': 0, 'skipped': 0, 'failed': 0, 'errors': []}

        items = documents
        if self.show_progress:
            items = tqdm(documents, desc="Rewriting links", unit="doc")

        with ProgressTracker(len(documents), "documents", self.logger) as progress:
            for path, mapping in items:
                file_path = self.reader.absolute_path(path)
                if not file_path.is_file():
                    stats['skipped'] += 1
                    self.logger.warning(f"Source file disappeared, skipping link rewrite: {path}")
                    progress.increment(False)
                    continue

                try:
                    text = rewriter.rewrite_links(self.reader.read_text(file_path), path)
                    self.client.update_document(mapping.document_id, text)
                    stats['documents_updated'] += 1
                    progress.increment(True)
                except Exception as e:
                    stats['failed'] += 1
                    stats['errors'].append({'type': 'document', 'path': path, 'error': str(e)})
                    self.logger.error(f"Failed to update links in {path}: {e}", exc_info=True)
                    progress.increment(False)

        rewrite_stats = rewriter.get_statistics()
        stats['document_links'] = rewrite_stats['document_links']
        stats['attachment_links'] = rewrite_stats['attachment_links']
        stats['unresolved_links'] = rewrite_stats['unresolved_links']
        stats['unresolved'] = rewrite_stats['unresolved']

        self.logger.info(
            f"Phase 3 complete: {stats['documents_updated']} documents updated, "
            f"{stats['unresolved_links']} unresolved links"
        )
        return stats

    def preview(self) -> Dict[str, Any]:
        """
        Dry run: walk the export exactly like a migration would, without any
        remote call.

        Returns:
            Report dictionary with a 'preview' phase
        """
        log_section("Dry Run Preview")
        start_time = time.time()

        self.reader = ExportReader(self.source_path, self.logger)
        dry_run_client = DryRunClient()

        builder = StructureBuilder(
            dry_run_client,
            self.registry,
            self.reader,
            preamble_lines=self.preamble_lines,
            max_depth=self.max_depth,
            logger=self.logger
        )

        collections = self.reader.list_collections()
        for node in collections:
            collection = dry_run_client.create_collection(node.name)
            self.registry.add_collection_mapping(node.name, collection['id'])
            builder.build_structure(node.path, collection['id'])
        self.registry.lock_documents()

        stats = builder.get_statistics()
        stats['collections'] = len(collections)

        scan_result = scan_directory_tree(self.reader.root, self.reader, self.logger)
        references = scan_result.attachment_references(self.key_mode)
        stats['attachment_references'] = len(references)
        stats['attachments_missing'] = 0

        for reference in references:
            file_path = resolve_attachment_path(reference.literal, reference.source_path)
            if not os.path.isfile(file_path):
                stats['attachments_missing'] += 1
                self.logger.warning(
                    f"Missing attachment file for '{reference.literal}' "
                    f"in {self.reader.relative_key(reference.source_path)}"
                )

        rewriter = LinkRewriter(self.registry, self.preamble_lines, self.logger)
        stats['document_links'] = len(scan_result.documents)
        stats['document_links_unresolved'] = sum(
            1 for ref in scan_result.documents.values()
            if rewriter.resolve_document_url(ref.literal, self.reader.relative_key(ref.source_path)) is None
        )

        self._transition(MigrationState.DONE)
        report = self._generate_report({'preview': stats}, time.time() - start_time, dry_run=True)
        self.logger.info(
            f"Dry run: {stats['collections']} collections, {stats['documents_created']} documents, "
            f"{stats['containers_created']} containers, {stats['attachment_references']} attachment references"
        )
        return report

    def _generate_report(
        self,
        phase_stats: Dict[str, Any],
        migration_duration: float,
        dry_run: bool = False
    ) -> Dict[str, Any]:
        report_generator = MigrationReport(self.logger)
        return report_generator.generate_report(
            phase_stats,
            migration_duration,
            final_state=self.state.value,
            registry_stats=self.registry.get_statistics(),
            source_path=str(self.reader.root) if self.reader else self.source_path,
            dry_run=dry_run
        )


__all__ = ['MigrationOrchestrator', 'DryRunClient']
