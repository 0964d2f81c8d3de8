"""Tests for the Outline REST client (HTTP layer mocked)."""

import json
import unittest
from unittest.mock import Mock, patch

import requests

from importers.outline_client import (
    OutlineApiError,
    OutlineClient,
    OutlineConnectionError,
    is_transient_error,
    retry_all
)

BASE_URL = 'https://outline.test'


def make_response(status_code=200, body=None):
    body = {'ok': True, 'data': {}} if body is None else body
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = json.dumps(body).encode('utf-8')
    response.text = json.dumps(body)
    response.json.return_value = body
    return response


class OutlineClientTestCase(unittest.TestCase):

    def setUp(self):
        self.sleep_patcher = patch('importers.outline_client.time.sleep')
        self.sleep = self.sleep_patcher.start()
        self.addCleanup(self.sleep_patcher.stop)

    def make_client(self, **kwargs):
        client = OutlineClient(BASE_URL + '/', 'secret-key', **kwargs)
        client.session = Mock()
        return client


class TestRequests(OutlineClientTestCase):

    def test_session_carries_bearer_token(self):
        client = OutlineClient(BASE_URL, 'secret-key')
        self.assertEqual(client.session.headers['Authorization'], 'Bearer secret-key')
        self.assertEqual(client.base_url, BASE_URL)

    def test_missing_credentials(self):
        with self.assertRaises(ValueError):
            OutlineClient('', 'key')
        with self.assertRaises(ValueError):
            OutlineClient(BASE_URL, '')

    def test_create_collection(self):
        client = self.make_client()
        client.session.post.return_value = make_response(body={'ok': True, 'data': {'id': 'c1'}})

        self.assertEqual(client.create_collection('Team')['id'], 'c1')
        client.session.post.assert_called_once_with(
            f'{BASE_URL}/api/collections.create',
            json={'name': 'Team', 'permission': 'read_write'},
            timeout=30
        )

    def test_create_document_with_parent(self):
        client = self.make_client()
        client.session.post.return_value = make_response(body={'data': {'id': 'd1'}})

        client.create_document('Title', 'Body', 'c1', parent_document_id='p1')

        payload = client.session.post.call_args.kwargs['json']
        self.assertEqual(payload, {
            'title': 'Title',
            'text': 'Body',
            'collectionId': 'c1',
            'publish': True,
            'parentDocumentId': 'p1'
        })

    def test_create_document_without_parent(self):
        client = self.make_client()
        client.session.post.return_value = make_response(body={'data': {'id': 'd1'}})

        client.create_document('Title', 'Body', 'c1')

        self.assertNotIn('parentDocumentId', client.session.post.call_args.kwargs['json'])

    def test_update_document(self):
        client = self.make_client()
        client.session.post.return_value = make_response()

        client.update_document('d1', 'new text')

        args, kwargs = client.session.post.call_args
        self.assertEqual(args[0], f'{BASE_URL}/api/documents.update')
        self.assertEqual(kwargs['json'], {'id': 'd1', 'text': 'new text'})

    def test_ok_false_is_an_error(self):
        client = self.make_client(max_retries=1)
        client.session.post.return_value = make_response(body={'ok': False, 'error': 'nope'})

        with self.assertRaises(OutlineApiError) as ctx:
            client.auth_info()
        self.assertIn('nope', ctx.exception.message)

    def test_create_attachment_requires_upload_url(self):
        client = self.make_client(max_retries=1)
        client.session.post.return_value = make_response(body={'data': {'attachment': {}}})

        with self.assertRaises(OutlineApiError):
            client.create_attachment('x.png', 'image/png', 10, document_id='d1')

    def test_create_attachment_payload(self):
        client = self.make_client()
        client.session.post.return_value = make_response(body={'data': {
            'uploadUrl': '/api/files.create',
            'form': {'key': 'k'},
            'attachment': {'url': '/api/attachments.redirect?id=a1'}
        }})

        result = client.create_attachment('x.png', 'image/png', 10, document_id='d1')

        self.assertEqual(result['uploadUrl'], '/api/files.create')
        self.assertEqual(client.session.post.call_args.kwargs['json'], {
            'name': 'x.png',
            'contentType': 'image/png',
            'size': 10,
            'preset': 'documentAttachment',
            'documentId': 'd1'
        })


class TestRetries(OutlineClientTestCase):

    def test_default_policy_retries_client_errors(self):
        client = self.make_client()
        client.session.post.return_value = make_response(400, {'ok': False, 'message': 'bad'})

        with self.assertRaises(OutlineApiError) as ctx:
            client.create_collection('Team')

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(client.session.post.call_count, 3)
        self.assertEqual([c.args[0] for c in self.sleep.call_args_list], [2.0, 4.0])

    def test_transient_policy_fails_fast_on_client_errors(self):
        client = self.make_client(retry_predicate=is_transient_error)
        client.session.post.return_value = make_response(400, {'ok': False, 'message': 'bad'})

        with self.assertRaises(OutlineApiError):
            client.create_collection('Team')

        self.assertEqual(client.session.post.call_count, 1)
        self.sleep.assert_not_called()

    def test_recovers_after_transient_failure(self):
        client = self.make_client(retry_predicate=is_transient_error)
        client.session.post.side_effect = [
            make_response(503, {'ok': False, 'message': 'unavailable'}),
            make_response(body={'ok': True, 'data': {'id': 'c1'}})
        ]

        self.assertEqual(client.create_collection('Team')['id'], 'c1')
        self.sleep.assert_called_once_with(2.0)

    def test_connection_errors_surface_as_connection_error(self):
        client = self.make_client(max_retries=2, retry_backoff_factor=1.0)
        client.session.post.side_effect = requests.exceptions.ConnectionError('refused')

        with self.assertRaises(OutlineConnectionError):
            client.auth_info()

        self.assertEqual(client.session.post.call_count, 2)
        self.sleep.assert_called_once_with(1.0)

    def test_transient_classification(self):
        self.assertTrue(is_transient_error(OutlineApiError('x', status_code=429)))
        self.assertTrue(is_transient_error(OutlineApiError('x', status_code=502)))
        self.assertFalse(is_transient_error(OutlineApiError('x', status_code=404)))
        self.assertTrue(is_transient_error(requests.exceptions.Timeout()))
        self.assertFalse(is_transient_error(ValueError('bad json')))
        self.assertTrue(retry_all(ValueError('anything')))


class TestUpload(OutlineClientTestCase):

    def test_relative_upload_url_goes_to_outline_with_token(self):
        client = self.make_client()
        client.session.post.return_value = make_response()

        client.upload_attachment_file('/api/files.create', {'key': 'k'}, 'x.png', b'data', 'image/png')

        args, kwargs = client.session.post.call_args
        self.assertEqual(args[0], f'{BASE_URL}/api/files.create')
        self.assertEqual(kwargs['data'], {'key': 'k'})
        self.assertEqual(kwargs['files'], {'file': ('x.png', b'data', 'image/png')})
        self.assertNotIn('Authorization', kwargs['headers'])

    def test_foreign_upload_url_drops_token(self):
        client = self.make_client()
        client.session.post.return_value = make_response(204, {})

        client.upload_attachment_file('https://bucket.s3.test/', {'policy': 'p'}, 'x.png', b'data', 'image/png')

        args, kwargs = client.session.post.call_args
        self.assertEqual(args[0], 'https://bucket.s3.test/')
        self.assertIsNone(kwargs['headers']['Authorization'])

    def test_failed_upload_is_retried_then_raised(self):
        client = self.make_client()
        client.session.post.return_value = make_response(500, {'error': 'boom'})

        with self.assertRaises(OutlineApiError):
            client.upload_attachment_file('/api/files.create', None, 'x.png', b'data', 'image/png')
        self.assertEqual(client.session.post.call_count, 3)

    def test_absolute_url(self):
        client = self.make_client()
        self.assertEqual(client.absolute_url('/api/a?id=1'), f'{BASE_URL}/api/a?id=1')
        self.assertEqual(client.absolute_url('https://cdn.test/a'), 'https://cdn.test/a')


class TestFromConfig(unittest.TestCase):

    def config(self, **advanced):
        return {
            'outline': {'base_url': BASE_URL, 'api_key': 'k'},
            'advanced': advanced
        }

    def test_reads_advanced_settings(self):
        client = OutlineClient.from_config(self.config(
            request_timeout=5, max_retries=4, retry_backoff_factor=0.5, retry_policy='transient'
        ))
        self.assertEqual(client.timeout, 5)
        self.assertEqual(client.max_retries, 4)
        self.assertEqual(client.retry_backoff_factor, 0.5)
        self.assertIs(client.retry_predicate, is_transient_error)

    def test_default_policy_retries_everything(self):
        client = OutlineClient.from_config(self.config())
        self.assertIs(client.retry_predicate, retry_all)
        self.assertEqual(client.max_retries, 3)

    def test_unknown_policy(self):
        with self.assertRaises(ValueError):
            OutlineClient.from_config(self.config(retry_policy='sometimes'))


if __name__ == '__main__':
    unittest.main()
