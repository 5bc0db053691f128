from __future__ import annotations

from pathlib import Path
from urllib.parse import quote

from trade_portal.config import settings
from trade_portal.services.errors import StorageError


class LocalObjectStorage:
    """Filesystem-backed buckets, one directory per bucket under the storage root."""

    def __init__(self, root: str | Path | None = None, public_base_url: str | None = None) -> None:
        self.root = Path(root or settings.storage_local_root).resolve()
        self.public_base_url = (public_base_url or settings.storage_public_base_url).rstrip('/')

    def _object_path(self, bucket: str, path: str) -> Path:
        bucket_root = (self.root / bucket).resolve()
        target = (bucket_root / path).resolve()
        if bucket_root not in target.parents:
            raise StorageError(f'Object path escapes bucket {bucket}: {path}')
        return target

    def upload(self, *, bucket: str, path: str, content: bytes, content_type: str) -> str:
        target = self._object_path(bucket, path)
        if target.exists():
            raise StorageError(f'Object already exists: {bucket}/{path}')
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as exc:
            raise StorageError(f'Failed to write {bucket}/{path}: {exc}') from exc
        return path

    def public_url(self, *, bucket: str, path: str) -> str:
        return f'{self.public_base_url}/{bucket}/{quote(path)}'

    def remove(self, *, bucket: str, paths: list[str]) -> None:
        for path in paths:
            target = self._object_path(bucket, path)
            try:
                target.unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f'Failed to delete {bucket}/{path}: {exc}') from exc

    def list(self, *, bucket: str, prefix: str = '', limit: int = 100) -> list[str]:
        bucket_root = (self.root / bucket).resolve()
        if not bucket_root.exists():
            return []
        names = sorted(
            str(item.relative_to(bucket_root))
            for item in bucket_root.rglob('*')
            if item.is_file() and str(item.relative_to(bucket_root)).startswith(prefix)
        )
        return names[:limit]
