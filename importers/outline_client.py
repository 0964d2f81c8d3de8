"""
Outline REST API client for the Slite to Outline migrator.

This module provides a client wrapper for the Outline API, handling
authentication, retries with exponential backoff, rate limiting, and the
operations the migration needs: collections, documents and the two-step
attachment upload.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

import requests
import urllib3

logger = logging.getLogger('slite_outline_migrator.importers.outline_client')

TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class OutlineApiError(Exception):
    """Raised when Outline answers with an error status or ``ok: false``."""

    def __init__(self, message: str, endpoint: Optional[str] = None, status_code: Optional[int] = None):
        """
        Initialize API error.

        Args:
            message: Human-readable error message
            endpoint: API method or URL that failed
            status_code: HTTP status code, if a response was received
        """
        self.endpoint = endpoint
        self.status_code = status_code
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        """String representation of error."""
        return f"OutlineApiError(endpoint={self.endpoint}, status={self.status_code}, message={self.message})"


class OutlineConnectionError(Exception):
    """Exception for connection/transport failures."""
    pass


def retry_all(exception: Exception) -> bool:
    """Retry predicate that retries every failure, client errors included."""
    return True


def is_transient_error(exception: Exception) -> bool:
    """
    Determine if an error is transient (should retry) or permanent (fail fast).

    Args:
        exception: The exception to check

    Returns:
        True if error is transient, False if permanent
    """
    status_code = getattr(exception, 'status_code', None)
    if status_code is None:
        response = getattr(exception, 'response', None)
        if response is not None:
            status_code = response.status_code

    if status_code is not None:
        return status_code in TRANSIENT_STATUS_CODES

    if isinstance(exception, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
        return True

    logger.warning(f"Treating error as permanent (no retry): {type(exception).__name__}")
    return False


RETRY_POLICIES: Dict[str, Callable[[Exception], bool]] = {
    'all': retry_all,
    'transient': is_transient_error
}


class OutlineClient:
    """Outline REST API client with retry logic and rate limiting."""

    DEFAULT_TIMEOUT = 30
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_RETRY_BACKOFF = 2.0
    DEFAULT_RATE_LIMIT = 0.0
    DEFAULT_PERMISSION = 'read_write'
    ATTACHMENT_PRESET = 'documentAttachment'

    def __init__(
        self,
        base_url: str,
        api_key: str,
        verify_ssl: bool = True,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_factor: float = DEFAULT_RETRY_BACKOFF,
        rate_limit: float = DEFAULT_RATE_LIMIT,
        retry_predicate: Optional[Callable[[Exception], bool]] = None,
        collection_permission: str = DEFAULT_PERMISSION,
        publish: bool = True
    ):
        """
        Initialize Outline client.

        Args:
            base_url: Outline instance base URL (e.g., https://docs.example.com)
            api_key: Outline API key
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            max_retries: Maximum attempts per API call
            retry_backoff_factor: First retry delay in seconds, doubled on each attempt
            rate_limit: Minimum seconds between requests (0 = no limit)
            retry_predicate: Decides whether a failure is retried (default: always)
            collection_permission: Permission assigned to created collections
            publish: Publish documents on creation
        """
        if not base_url:
            raise ValueError("Outline base_url is required")
        if not api_key:
            raise ValueError("Outline api_key is required")

        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_backoff_factor = retry_backoff_factor
        self.rate_limit = rate_limit
        self.retry_predicate = retry_predicate or retry_all
        self.collection_permission = collection_permission
        self.publish = publish
        self._last_request_time = 0.0

        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key}',
            'Accept': 'application/json'
        })
        self.session.verify = verify_ssl
        if not verify_ssl:
            logger.warning("SSL verification disabled - this is insecure!")
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        logger.debug(
            f"Initialized Outline client for {self.base_url} "
            f"(retries={self.max_retries}, backoff={retry_backoff_factor}, rate_limit={rate_limit}s)"
        )

    def _handle_rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        if self.rate_limit <= 0:
            return

        current_time = time.time()
        time_since_last = current_time - self._last_request_time

        if time_since_last < self.rate_limit:
            sleep_time = self.rate_limit - time_since_last
            logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
            time.sleep(sleep_time)

        self._last_request_time = time.time()

    def _with_retry(self, description: str, operation: Callable[[], Any]) -> Any:
        """
        Run a remote operation with exponential backoff.

        Args:
            description: Name of the operation for logs and errors
            operation: Zero-argument callable performing one attempt

        Returns:
            Whatever the operation returns

        Raises:
            OutlineApiError: When the last attempt failed with an API error
            OutlineConnectionError: When the last attempt failed in transport
        """
        last_error: Optional[Exception] = None
        attempts = 0

        for attempt in range(self.max_retries):
            attempts = attempt + 1
            try:
                return operation()
            except Exception as e:
                last_error = e
                if attempts >= self.max_retries or not self.retry_predicate(e):
                    break

                wait_time = self.retry_backoff_factor * (2 ** attempt)
                logger.warning(
                    f"Retry {attempts}/{self.max_retries} for {description} "
                    f"after {wait_time:.1f}s: {e}"
                )
                time.sleep(wait_time)

        logger.error(f"{description} failed after {attempts} attempt(s): {last_error}")

        if isinstance(last_error, OutlineApiError):
            raise last_error
        if isinstance(last_error, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
            raise OutlineConnectionError(
                f"{description} failed after {attempts} attempt(s): {last_error}"
            ) from last_error
        raise OutlineApiError(
            f"{description} failed after {attempts} attempt(s): {last_error}",
            endpoint=description
        ) from last_error

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Make one POST request to an Outline API method.

        Args:
            endpoint: API method name (e.g., 'documents.create')
            payload: JSON payload

        Returns:
            The ``data`` member of the response

        Raises:
            OutlineApiError: For error statuses and ``ok: false`` responses
        """
        self._handle_rate_limit()

        url = f"{self.base_url}/api/{endpoint}"
        logger.debug(f"POST {url}")

        response = self.session.post(url, json=payload, timeout=self.timeout)
        logger.debug(f"Response status: {response.status_code}")

        if not response.ok:
            raise OutlineApiError(
                f"API error: {response.status_code} {self._error_details(response)}",
                endpoint=endpoint,
                status_code=response.status_code
            )

        body = response.json() if response.content else {}
        if body.get('ok') is False:
            raise OutlineApiError(
                f"API returned ok=false: {body.get('error') or body.get('message') or 'Unknown error'}",
                endpoint=endpoint,
                status_code=response.status_code
            )

        return body.get('data') or {}

    def _make_request(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._with_retry(endpoint, lambda: self._post(endpoint, payload))

    @staticmethod
    def _error_details(response) -> str:
        try:
            error_json = response.json()
        except ValueError:
            return response.text[:500]
        if isinstance(error_json, dict):
            return error_json.get('message') or error_json.get('error') or str(error_json)
        return str(error_json)

    def auth_info(self) -> Dict[str, Any]:
        """Return the authenticated user and team; used as a connectivity check."""
        return self._make_request('auth.info', {})

    def create_collection(self, name: str) -> Dict[str, Any]:
        """Create a new collection."""
        logger.info(f"Creating collection: {name}")
        data = {'name': name, 'permission': self.collection_permission}
        return self._make_request('collections.create', data)

    def create_document(
        self,
        title: str,
        text: str,
        collection_id: str,
        parent_document_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a document, nested under ``parent_document_id`` when given."""
        logger.info(f"Creating document: {title}")
        data = {
            'title': title,
            'text': text,
            'collectionId': collection_id,
            'publish': self.publish
        }
        if parent_document_id:
            data['parentDocumentId'] = parent_document_id

        return self._make_request('documents.create', data)

    def update_document(self, document_id: str, text: str) -> Dict[str, Any]:
        """Replace the text of a document."""
        return self._make_request('documents.update', {'id': document_id, 'text': text})

    def create_attachment(
        self,
        name: str,
        content_type: str,
        size: int,
        document_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Request an upload slot for an attachment.

        Args:
            name: File name
            content_type: MIME type
            size: Size in bytes
            document_id: Document that owns the attachment

        Returns:
            Dict with 'uploadUrl', 'form' and 'attachment' keys
        """
        data = {
            'name': name,
            'contentType': content_type,
            'size': size,
            'preset': self.ATTACHMENT_PRESET
        }
        if document_id:
            data['documentId'] = document_id

        response = self._make_request('attachments.create', data)
        if not response.get('uploadUrl'):
            raise OutlineApiError('No upload URL received from Outline', endpoint='attachments.create')
        return response

    def upload_attachment_file(
        self,
        upload_url: str,
        form: Optional[Dict[str, Any]],
        file_name: str,
        file_data: bytes,
        content_type: str
    ) -> None:
        """
        Send file bytes to the storage target returned by create_attachment().

        Form fields go first and the file last, as signed POST policies expect.
        The API key is only sent when the target is the Outline host itself.
        """
        url = self.absolute_url(upload_url)
        headers = {'Accept': None}
        if not self._is_outline_url(url):
            headers['Authorization'] = None

        def upload():
            self._handle_rate_limit()
            response = self.session.post(
                url,
                data=dict(form or {}),
                files={'file': (file_name, file_data, content_type)},
                headers=headers,
                timeout=self.timeout
            )
            if not response.ok:
                raise OutlineApiError(
                    f"Upload failed: {response.status_code} {response.text[:500]}",
                    endpoint=url,
                    status_code=response.status_code
                )

        self._with_retry(f"upload of {file_name}", upload)

    def absolute_url(self, url: str) -> str:
        """Prefix Outline-relative URLs with the base URL."""
        if url.startswith('/'):
            return f"{self.base_url}{url}"
        return url

    def _is_outline_url(self, url: str) -> bool:
        return urlparse(url).netloc == urlparse(self.base_url).netloc

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'OutlineClient':
        """
        Create client from configuration dictionary.

        Args:
            config: Configuration dict with 'outline' and 'advanced' sections

        Returns:
            Configured OutlineClient instance
        """
        outline_config = config.get('outline', {})
        advanced_config = config.get('advanced', {})

        policy = advanced_config.get('retry_policy', 'all')
        if policy not in RETRY_POLICIES:
            raise ValueError(f"Unknown retry policy: {policy}")

        return cls(
            base_url=outline_config.get('base_url'),
            api_key=outline_config.get('api_key'),
            verify_ssl=advanced_config.get('verify_ssl', True),
            timeout=advanced_config.get('request_timeout', cls.DEFAULT_TIMEOUT),
            max_retries=advanced_config.get('max_retries', cls.DEFAULT_MAX_RETRIES),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', cls.DEFAULT_RETRY_BACKOFF),
            rate_limit=advanced_config.get('rate_limit', cls.DEFAULT_RATE_LIMIT),
            retry_predicate=RETRY_POLICIES[policy],
            collection_permission=outline_config.get('collection_permission', cls.DEFAULT_PERMISSION),
            publish=outline_config.get('publish', True)
        )


__all__ = [
    'OutlineClient',
    'OutlineApiError',
    'OutlineConnectionError',
    'retry_all',
    'is_transient_error',
    'RETRY_POLICIES'
]
