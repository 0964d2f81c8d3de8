"""End-to-end tests of the migration pipeline against an in-memory Outline."""

import pytest

from importers.id_mapping_tracker import RegistryLockedError
from models import MigrationState
from orchestrator import MigrationOrchestrator


def make_config(export_path, **migration):
    return {
        'source': {'export_path': str(export_path)},
        'migration': {'attachment_key_mode': 'scoped', **migration},
        'export': {'progress_bars': False}
    }


class TestOrchestrateMigration:

    def test_full_migration(self, fake_client, sample_export):
        orchestrator = MigrationOrchestrator(make_config(sample_export), client=fake_client)

        report = orchestrator.orchestrate_migration()

        assert orchestrator.state is MigrationState.DONE
        assert [c['name'] for c in fake_client.collections] == ['Team']
        assert [d['title'] for d in fake_client.documents] == ['Page A', 'b', 'Page C']

        page_a = fake_client.document_by_title('Page A')
        page_c = fake_client.document_by_title('Page C')
        attachment_url = f"https://outline.test/api/attachments.redirect?id={fake_client.attachments[0]['id']}"

        assert fake_client.updates[page_a['id']] == (
            f"![img]({attachment_url})\n"
            f"See [c](/doc/{page_c['id']}) and [home](https://example.com)"
        )
        assert fake_client.updates[page_c['id']] == f"Back to [a](/doc/{page_a['id']})"

        summary = report['summary']
        assert summary['final_state'] == 'done'
        assert summary['collections'] == 1
        assert summary['documents'] == 2
        assert summary['containers'] == 1
        assert summary['attachments_uploaded'] == 1
        assert summary['documents_updated'] == 2
        assert summary['links_rewritten'] == 3
        assert summary['unresolved_links'] == 0
        assert summary['orchestration_failed'] is False
        assert report['dry_run'] is False

    def test_phases_run_in_order(self, fake_client, sample_export):
        MigrationOrchestrator(make_config(sample_export), client=fake_client).orchestrate_migration()

        kinds = [call[0] for call in fake_client.calls]
        last_create = max(i for i, kind in enumerate(kinds) if kind == 'documents.create')
        first_attachment = kinds.index('attachments.create')
        first_update = kinds.index('documents.update')

        assert last_create < first_attachment < first_update

    def test_registry_is_frozen_afterwards(self, fake_client, sample_export):
        orchestrator = MigrationOrchestrator(make_config(sample_export), client=fake_client)
        orchestrator.orchestrate_migration()

        with pytest.raises(RegistryLockedError):
            orchestrator.registry.add_document_mapping('Team/late.md', 'doc-late')
        with pytest.raises(RegistryLockedError):
            orchestrator.registry.add_attachment_mapping('late.png', 'https://x', 'Team/a.md')

    def test_unresolved_links_are_reported(self, fake_client, export_root, write_file):
        write_file(export_root, 'Team/a.md', "# A\n[gone](nowhere.md) ![lost](lost.png)")
        orchestrator = MigrationOrchestrator(make_config(export_root), client=fake_client)

        report = orchestrator.orchestrate_migration()

        assert report['summary']['unresolved_links'] == 2
        assert report['summary']['attachments_missing'] == 1
        document_id = fake_client.document_by_title('A')['id']
        assert fake_client.updates[document_id] == "[gone](nowhere.md) ![lost](lost.png)"

    def test_uploaded_file_wins_over_same_named_folder(self, fake_client, export_root, write_file):
        write_file(export_root, 'Team/a.md', "# A\n[file](b)")
        write_file(export_root, 'Team/media_a/b', b'binary')
        write_file(export_root, 'Team/b/c.md', "# C\n")
        orchestrator = MigrationOrchestrator(make_config(export_root), client=fake_client)

        orchestrator.orchestrate_migration()

        attachment_id = fake_client.attachments[0]['id']
        document_id = fake_client.document_by_title('A')['id']
        assert fake_client.updates[document_id] == (
            f"[file](https://outline.test/api/attachments.redirect?id={attachment_id})"
        )

    def test_update_failure_is_not_fatal(self, fake_client, sample_export):
        original = fake_client.update_document
        failing = []

        def update(document_id, text):
            if not failing:
                failing.append(document_id)
                raise RuntimeError('conflict')
            return original(document_id, text)
        fake_client.update_document = update

        orchestrator = MigrationOrchestrator(make_config(sample_export), client=fake_client)
        report = orchestrator.orchestrate_migration()

        assert orchestrator.state is MigrationState.DONE
        assert report['phases']['link_rewrite']['failed'] == 1
        assert report['summary']['documents_updated'] == 1
        assert report['errors'][0]['phase'] == 'link_rewrite'
        assert report['summary']['total_errors'] == 1

    def test_structure_failure_stops_the_run(self, fake_client, sample_export):
        def broken(name):
            raise RuntimeError('permission denied')
        fake_client.create_collection = broken

        orchestrator = MigrationOrchestrator(make_config(sample_export), client=fake_client)
        report = orchestrator.orchestrate_migration()

        assert orchestrator.state is MigrationState.FAILED
        assert orchestrator.failed_during is MigrationState.CREATING_STRUCTURE
        assert report['summary']['orchestration_failed'] is True
        assert report['summary']['failed_during'] == 'creating_structure'
        assert 'permission denied' in report['summary']['orchestration_error']
        assert fake_client.attachments == []
        assert fake_client.updates == {}

    def test_missing_export_directory(self, fake_client, tmp_path):
        orchestrator = MigrationOrchestrator(make_config(tmp_path / 'nope'), client=fake_client)

        report = orchestrator.orchestrate_migration()

        assert report['summary']['orchestration_failed'] is True
        assert report['summary']['failed_during'] == 'pending'
        assert fake_client.calls == []


class TestPreview:

    def test_preview_makes_no_remote_calls(self, fake_client, sample_export):
        orchestrator = MigrationOrchestrator(make_config(sample_export), client=fake_client)

        report = orchestrator.preview()

        assert fake_client.calls == []
        assert report['dry_run'] is True
        preview = report['phases']['preview']
        assert preview['collections'] == 1
        assert preview['documents_created'] == 2
        assert preview['containers_created'] == 1
        assert preview['attachment_references'] == 1
        assert preview['attachments_missing'] == 0
        assert preview['document_links'] == 2
        assert preview['document_links_unresolved'] == 0

    def test_preview_reports_missing_attachments(self, fake_client, export_root, write_file):
        write_file(export_root, 'Team/a.md', "# A\n![lost](lost.png) [x](missing.md)")
        orchestrator = MigrationOrchestrator(make_config(export_root), client=fake_client)

        preview = orchestrator.preview()['phases']['preview']

        assert preview['attachments_missing'] == 1
        assert preview['document_links_unresolved'] == 1
