"""Shared fixtures: export trees on disk and an in-memory Outline client."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

PREAMBLE = "\n".join([
    "---",
    "title: exported",
    "author: someone",
    "created: 2023-01-01",
    "channel: test",
    "---"
])

BASE_URL = 'https://outline.test'


def markdown(body: str) -> str:
    """Full exported file content: metadata preamble followed by the page."""
    return PREAMBLE + "\n" + body


class FakeOutlineClient:
    """Records every call and hands out sequential IDs."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.collections: List[Dict[str, Any]] = []
        self.documents: List[Dict[str, Any]] = []
        self.updates: Dict[str, str] = {}
        self.attachments: List[Dict[str, Any]] = []
        self.uploads: List[Dict[str, Any]] = []
        self._counter = 0

    def _next(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    def auth_info(self) -> Dict[str, Any]:
        self.calls.append(('auth.info',))
        return {'user': {'name': 'Tester'}, 'team': {'name': 'Test Team'}}

    def create_collection(self, name: str) -> Dict[str, Any]:
        collection = {'id': self._next('col'), 'name': name}
        self.calls.append(('collections.create', name))
        self.collections.append(collection)
        return collection

    def create_document(self, title: str, text: str, collection_id: str,
                        parent_document_id: Optional[str] = None) -> Dict[str, Any]:
        document = {
            'id': self._next('doc'),
            'title': title,
            'text': text,
            'collectionId': collection_id,
            'parentDocumentId': parent_document_id
        }
        self.calls.append(('documents.create', title))
        self.documents.append(document)
        return document

    def update_document(self, document_id: str, text: str) -> Dict[str, Any]:
        self.calls.append(('documents.update', document_id))
        self.updates[document_id] = text
        return {'id': document_id, 'text': text}

    def create_attachment(self, name: str, content_type: str, size: int,
                          document_id: Optional[str] = None) -> Dict[str, Any]:
        attachment_id = self._next('att')
        record = {
            'id': attachment_id,
            'name': name,
            'contentType': content_type,
            'size': size,
            'documentId': document_id
        }
        self.calls.append(('attachments.create', name))
        self.attachments.append(record)
        return {
            'uploadUrl': '/api/files.create',
            'form': {'key': f"uploads/{attachment_id}/{name}"},
            'attachment': {'id': attachment_id, 'url': f"/api/attachments.redirect?id={attachment_id}"}
        }

    def upload_attachment_file(self, upload_url: str, form: Optional[Dict[str, Any]], file_name: str,
                               file_data: bytes, content_type: str) -> None:
        self.calls.append(('upload', file_name))
        self.uploads.append({
            'url': upload_url,
            'form': form,
            'file_name': file_name,
            'size': len(file_data),
            'content_type': content_type
        })

    def absolute_url(self, url: str) -> str:
        return f"{BASE_URL}{url}" if url.startswith('/') else url

    def document_by_title(self, title: str) -> Dict[str, Any]:
        matches = [d for d in self.documents if d['title'] == title]
        assert len(matches) == 1, f"expected one document titled {title!r}, got {len(matches)}"
        return matches[0]


@pytest.fixture
def fake_client() -> FakeOutlineClient:
    return FakeOutlineClient()


@pytest.fixture
def export_root(tmp_path) -> Path:
    root = tmp_path / 'channels'
    root.mkdir()
    return root


@pytest.fixture
def write_file():
    """Create a file (and its parents) below a root; str content is exported markdown."""
    def _write(root: Path, relative: str, content=None) -> Path:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(markdown(content or f"# {path.stem}\n"), encoding='utf-8')
        return path
    return _write


@pytest.fixture
def sample_export(export_root, write_file) -> Path:
    """One collection 'Team' with a.md (+ media_a/x.png) and b/c.md."""
    write_file(export_root, 'Team/a.md', "# Page A\n\n![img](x.png)\nSee [c](b/c.md) and [home](https://example.com)")
    write_file(export_root, 'Team/media_a/x.png', b'\x89PNG fake image')
    write_file(export_root, 'Team/b/c.md', "# Page C\n\nBack to [a](Team/a.md)")
    return export_root
