from __future__ import annotations

from functools import lru_cache

from trade_portal.config import settings
from trade_portal.services.http_object_storage import HttpObjectStorage
from trade_portal.services.local_object_storage import LocalObjectStorage


@lru_cache(maxsize=1)
def get_object_storage():
    provider = settings.storage_provider.strip().lower()
    if provider == 'http':
        return HttpObjectStorage()
    return LocalObjectStorage()
