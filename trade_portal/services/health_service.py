from __future__ import annotations

import logging
import platform
import resource
import sys
import time
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from trade_portal.config import settings
from trade_portal.models import User
from trade_portal.services.object_storage import ObjectStorage

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _memory_mb() -> dict:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS and kilobytes elsewhere
    peak_bytes = peak if sys.platform == 'darwin' else peak * 1024
    used = round(peak_bytes / 1024 / 1024)
    return {'used': used, 'total': used}


def check_health(db: Session, storage: ObjectStorage) -> tuple[int, dict]:
    """Check the database and the shipment bucket; returns (http_status, payload)."""
    started = time.monotonic()
    try:
        db.execute(select(User.id).limit(1)).all()
        database_ms = round((time.monotonic() - started) * 1000)
        storage.list(bucket=settings.shipment_documents_bucket, limit=1)
    except Exception as exc:
        logger.exception('Health check failed')
        return 503, {
            'status': 'unhealthy',
            'timestamp': _now_iso(),
            'error': str(exc) or exc.__class__.__name__,
            'environment': settings.environment,
        }

    return 200, {
        'status': 'healthy',
        'timestamp': _now_iso(),
        'version': settings.app_version,
        'environment': settings.environment,
        'services': {
            'database': {'status': 'connected', 'responseTime': f'{database_ms}ms'},
            'storage': {
                'status': 'connected',
                'buckets': [settings.shipment_documents_bucket, settings.company_documents_bucket],
            },
            'auth': {'status': 'configured', 'provider': 'web-session'},
        },
        'system': {
            'uptime': round(time.monotonic() - STARTED_AT, 3),
            'memory': _memory_mb(),
            'pythonVersion': platform.python_version(),
        },
    }
