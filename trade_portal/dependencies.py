from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import TypeVar

from fastapi import HTTPException, Request, status
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from trade_portal.schemas import validation_messages
from trade_portal.services.errors import ConcurrencyConflict, NotFoundError, StorageError
from trade_portal.services.object_storage import ObjectStorage
from trade_portal.services.results import OperationResult
from trade_portal.services.storage_factory import get_object_storage

logger = logging.getLogger(__name__)

SchemaT = TypeVar('SchemaT', bound=BaseModel)


def get_templates(request: Request) -> Jinja2Templates:
    return request.app.state.templates


def get_client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    if request.client:
        return request.client.host
    return None


def get_storage() -> ObjectStorage:
    return get_object_storage()


@contextmanager
def service_errors(action: str):
    """Translate rule and store failures raised inside the block into HTTP errors."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ConcurrencyConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (SQLAlchemyError, StorageError) as exc:
        logger.exception('Failed to %s', action)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f'Failed to {action}') from exc


def form_values(form, fields: tuple[str, ...]) -> dict:
    """Stripped, non-blank values for the named form fields."""
    values = {}
    for name in fields:
        raw = form.get(name)
        if raw is None:
            continue
        text = str(raw).strip()
        if text:
            values[name] = text
    return values


def validate_form(schema: type[SchemaT], data: dict) -> SchemaT:
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={'message': 'Invalid form data', 'errors': validation_messages(exc)},
        ) from exc


def require_confirmation(form) -> None:
    if str(form.get('confirm', '')).strip().lower() != 'yes':
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Deletion must be confirmed')


def result_payload(key: str, value: dict, result: OperationResult) -> dict:
    return {key: value, 'warnings': list(result.warnings)}


def query_date(request: Request, name: str) -> date | None:
    raw = request.query_params.get(name, '').strip()
    try:
        return date.fromisoformat(raw) if raw else None
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f'Invalid {name} date') from exc
