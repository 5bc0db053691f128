from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from trade_portal.db import get_db
from trade_portal.dependencies import get_storage
from trade_portal.services.health_service import check_health
from trade_portal.services.object_storage import ObjectStorage

router = APIRouter(prefix='/api', tags=['health'])


@router.get('/health')
def health(db: Session = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    status_code, payload = check_health(db, storage)
    return JSONResponse(payload, status_code=status_code, headers={'Cache-Control': 'no-store'})
