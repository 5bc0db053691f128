from __future__ import annotations

import json
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from trade_portal.config import settings
from trade_portal.services.errors import StorageError


class HttpObjectStorage:
    """Client for a hosted object store speaking the storage/v1 REST API."""

    def __init__(self) -> None:
        if not settings.storage_api_base_url:
            raise ValueError('STORAGE_API_BASE_URL is required when STORAGE_PROVIDER=http')
        if not settings.storage_service_key:
            raise ValueError('STORAGE_SERVICE_KEY is required when STORAGE_PROVIDER=http')

        self.base_url = settings.storage_api_base_url.rstrip('/')
        self.headers = {
            'Authorization': f'Bearer {settings.storage_service_key}',
            'apikey': settings.storage_service_key,
        }

    def _request(self, method: str, path: str, *, body: bytes | None = None, content_type: str | None = None) -> object:
        headers = dict(self.headers)
        if content_type:
            headers['Content-Type'] = content_type
        req = Request(url=f'{self.base_url}{path}', data=body, headers=headers, method=method)
        try:
            with urlopen(req, timeout=settings.storage_timeout_seconds) as response:
                raw = response.read().decode('utf-8')
        except HTTPError as exc:
            detail = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            raise StorageError(f'Storage API error {exc.code} on {path}: {detail}') from exc
        except URLError as exc:
            raise StorageError(f'Storage API network error on {path}: {exc.reason}') from exc
        return json.loads(raw) if raw else {}

    def _json(self, method: str, path: str, payload: dict) -> object:
        return self._request(method, path, body=json.dumps(payload).encode('utf-8'), content_type='application/json')

    def upload(self, *, bucket: str, path: str, content: bytes, content_type: str) -> str:
        self._request(
            'POST',
            f'/storage/v1/object/{bucket}/{quote(path)}',
            body=content,
            content_type=content_type or 'application/octet-stream',
        )
        return path

    def public_url(self, *, bucket: str, path: str) -> str:
        return f'{self.base_url}/storage/v1/object/public/{bucket}/{quote(path)}'

    def remove(self, *, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        self._json('DELETE', f'/storage/v1/object/{bucket}', {'prefixes': paths})

    def list(self, *, bucket: str, prefix: str = '', limit: int = 100) -> list[str]:
        parsed = self._json('POST', f'/storage/v1/object/list/{bucket}', {'prefix': prefix, 'limit': limit})
        if not isinstance(parsed, list):
            raise StorageError(f'Unexpected storage list payload for {bucket}')
        return [entry.get('name', '') for entry in parsed if entry.get('name')]
