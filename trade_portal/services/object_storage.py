from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import unquote, urlparse


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes
    content_type: str


class ObjectStorage(Protocol):
    def upload(self, *, bucket: str, path: str, content: bytes, content_type: str) -> str: ...

    def public_url(self, *, bucket: str, path: str) -> str: ...

    def remove(self, *, bucket: str, paths: list[str]) -> None: ...

    def list(self, *, bucket: str, prefix: str = '', limit: int = 100) -> list[str]: ...


def path_from_public_url(url: str, *, bucket: str) -> str | None:
    marker = f'/{bucket}/'
    path = urlparse(url).path
    if marker not in path:
        return None
    object_path = unquote(path.split(marker, 1)[1])
    return object_path or None
