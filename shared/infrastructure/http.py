"""
HTTP client for remote collaborators (catalog, availability, gateway).

Blocking `requests` calls run in a worker thread via `sync_to_async`
so the engine's async operations can await them with their own timeout.
Failures are split into two families:

- RemoteServiceUnavailable: timeout, connection error, 5xx. Retryable.
- RemoteServiceRejected: 4xx. The request itself was refused.
"""

import logging
from typing import Any, Dict, Optional

import requests
from asgiref.sync import sync_to_async
from django.conf import settings

logger = logging.getLogger(__name__)


class RemoteServiceError(Exception):
    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class RemoteServiceUnavailable(RemoteServiceError):
    """Timeout, connection failure or 5xx from a collaborator."""


class RemoteServiceRejected(RemoteServiceError):
    """4xx from a collaborator."""

    def __init__(self, service: str, status_code: int, body: Any = None):
        self.status_code = status_code
        self.body = body
        super().__init__(service, f"rejected with HTTP {status_code}")


class RemoteServiceClient:
    """
    Base class for JSON-over-HTTP collaborators.

    Subclasses set `service_name` and call `get`/`post` (async) or
    `_request` (sync, for Celery tasks and management commands).
    """

    service_name = 'remote'

    def __init__(self, base_url: str, auth_token: Optional[str] = None,
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.auth_token = auth_token if auth_token is not None else getattr(settings, 'SERVICE_AUTH_TOKEN', '')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get_headers(self, extra_headers: Optional[Dict] = None) -> Dict:
        headers = {
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        }
        if self.auth_token:
            headers['Authorization'] = f'Bearer {self.auth_token}'
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _request(self, method: str, path: str, params: Optional[Dict] = None,
                 data: Optional[Dict] = None, headers: Optional[Dict] = None) -> Dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=data,
                headers=self._get_headers(headers),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.warning(f"{self.service_name} timed out: {method} {path}")
            raise RemoteServiceUnavailable(self.service_name, "timeout") from e
        except requests.RequestException as e:
            logger.warning(f"{self.service_name} request failed: {method} {path}: {e}")
            raise RemoteServiceUnavailable(self.service_name, str(e)) from e

        if response.status_code >= 500:
            logger.warning(f"{self.service_name} returned {response.status_code}: {method} {path}")
            raise RemoteServiceUnavailable(self.service_name, f"HTTP {response.status_code}")

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            logger.info(f"{self.service_name} rejected {method} {path} with {response.status_code}")
            raise RemoteServiceRejected(self.service_name, response.status_code, body)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RemoteServiceUnavailable(self.service_name, "invalid JSON in response") from e

    async def get(self, path: str, params: Optional[Dict] = None, headers: Optional[Dict] = None) -> Dict:
        return await sync_to_async(self._request, thread_sensitive=False)(
            'GET', path, params=params, headers=headers
        )

    async def post(self, path: str, data: Optional[Dict] = None, headers: Optional[Dict] = None) -> Dict:
        return await sync_to_async(self._request, thread_sensitive=False)(
            'POST', path, data=data, headers=headers
        )
