from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from trade_portal.auth import Feature, Principal, require_feature
from trade_portal.db import get_db
from trade_portal.dependencies import (
    form_values,
    get_client_ip,
    require_confirmation,
    result_payload,
    service_errors,
    validate_form,
)
from trade_portal.models import StockCategory
from trade_portal.schemas import StockAdjustForm, StockForm, StockSetQuantityForm, StockUpdateForm
from trade_portal.security.csrf import verify_csrf
from trade_portal.services.audit_service import log_audit
from trade_portal.services.repositories import StockFilters
from trade_portal.services.sql_repositories import SqlStockRepository
from trade_portal.services.stock_service import (
    COMMON_LOCATIONS,
    COMMON_UNITS,
    StockDraft,
    adjust_quantity,
    create_stock_item,
    delete_stock_item,
    get_stock_item,
    list_locations,
    list_low_stock,
    list_stock_items,
    serialize_stock_item,
    set_quantity,
    stock_stats,
    update_stock_item,
)

router = APIRouter(prefix='/stock', tags=['stock'])
stock_access = require_feature(Feature.STOCK)

STOCK_FIELDS = ('item_name', 'category', 'current_stock', 'min_stock', 'unit', 'location', 'notes')


def _stats_payload(items) -> dict:
    stats = stock_stats(items)
    return {
        'total_items': stats.total_items,
        'low_stock': stats.low_stock,
        'out_of_stock': stats.out_of_stock,
        'total_units': stats.total_units,
        'categories': {category.value: count for category, count in stats.by_category.items()},
    }


@router.get('')
def stock_index(
    request: Request,
    _: Principal = Depends(stock_access),
    db: Session = Depends(get_db),
):
    category_raw = request.query_params.get('category', '').strip()
    try:
        category = StockCategory(category_raw) if category_raw else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail='Invalid category filter') from exc
    filters = StockFilters(
        category=category,
        location=request.query_params.get('location', '').strip() or None,
        low_stock=request.query_params.get('low_stock', '').strip().lower() in {'1', 'true', 'yes', 'on'},
        search=request.query_params.get('search', '').strip() or None,
    )
    with service_errors('load stock items'):
        items = list_stock_items(SqlStockRepository(db), filters=filters)
    return {'items': [serialize_stock_item(item) for item in items], 'stats': _stats_payload(items)}


@router.get('/low')
def stock_low(_: Principal = Depends(stock_access), db: Session = Depends(get_db)):
    with service_errors('load stock items'):
        items = list_low_stock(SqlStockRepository(db))
    return {'items': [serialize_stock_item(item) for item in items]}


@router.get('/locations')
def stock_locations(_: Principal = Depends(stock_access), db: Session = Depends(get_db)):
    with service_errors('load stock locations'):
        used = list_locations(SqlStockRepository(db))
    suggestions = sorted(set(used) | set(COMMON_LOCATIONS))
    return {'locations': used, 'suggestions': suggestions, 'units': COMMON_UNITS}


@router.get('/{stock_id}')
def stock_detail(stock_id: int, _: Principal = Depends(stock_access), db: Session = Depends(get_db)):
    with service_errors('load stock item'):
        item = get_stock_item(SqlStockRepository(db), stock_id=stock_id)
    return {'item': serialize_stock_item(item)}


@router.post('/create', status_code=201)
async def stock_create(
    request: Request,
    principal: Principal = Depends(stock_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(StockForm, form_values(form, STOCK_FIELDS))
    with service_errors('create stock item'):
        item = create_stock_item(SqlStockRepository(db), data=StockDraft(**payload.model_dump()), user_id=principal.id)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='STOCK_ITEM_CREATED',
            entity_type='stock_office',
            entity_id=item.id,
            ip=get_client_ip(request),
            metadata={'item_name': item.item_name, 'current_stock': item.current_stock},
        )
        db.commit()
    return {'item': serialize_stock_item(item)}


@router.post('/{stock_id}/update')
async def stock_update(
    stock_id: int,
    request: Request,
    principal: Principal = Depends(stock_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(StockUpdateForm, form_values(form, STOCK_FIELDS))
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail='No changes submitted')
    with service_errors('update stock item'):
        item = update_stock_item(SqlStockRepository(db), stock_id=stock_id, changes=changes, user_id=principal.id)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='STOCK_ITEM_UPDATED',
            entity_type='stock_office',
            entity_id=item.id,
            ip=get_client_ip(request),
            metadata={'fields': sorted(changes)},
        )
        db.commit()
    return {'item': serialize_stock_item(item)}


@router.post('/{stock_id}/set')
async def stock_set_quantity(
    stock_id: int,
    request: Request,
    principal: Principal = Depends(stock_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(StockSetQuantityForm, form_values(form, ('new_quantity', 'reason')))
    with service_errors('update stock quantity'):
        item = set_quantity(
            SqlStockRepository(db),
            stock_id=stock_id,
            new_quantity=payload.new_quantity,
            user_id=principal.id,
            reason=payload.reason,
        )
        log_audit(
            db,
            actor_user_id=principal.id,
            action='STOCK_QUANTITY_SET',
            entity_type='stock_office',
            entity_id=item.id,
            ip=get_client_ip(request),
            metadata={'new_stock': item.current_stock, 'reason': payload.reason},
        )
        db.commit()
    return {'item': serialize_stock_item(item)}


@router.post('/{stock_id}/adjust')
async def stock_adjust(
    stock_id: int,
    request: Request,
    principal: Principal = Depends(stock_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(StockAdjustForm, form_values(form, ('adjustment', 'reason')))
    with service_errors('adjust stock quantity'):
        result = adjust_quantity(
            SqlStockRepository(db),
            stock_id=stock_id,
            delta=payload.adjustment,
            user_id=principal.id,
            reason=payload.reason,
        )
        log_audit(
            db,
            actor_user_id=principal.id,
            action='STOCK_QUANTITY_ADJUSTED',
            entity_type='stock_office',
            entity_id=stock_id,
            ip=get_client_ip(request),
            metadata={
                'adjustment': payload.adjustment,
                'new_stock': result.value.current_stock,
                'reason': payload.reason,
                'warnings': list(result.warnings),
            },
        )
        db.commit()
    return result_payload('item', serialize_stock_item(result.value), result)


@router.post('/{stock_id}/delete')
async def stock_delete(
    stock_id: int,
    request: Request,
    principal: Principal = Depends(stock_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    require_confirmation(form)
    with service_errors('delete stock item'):
        delete_stock_item(SqlStockRepository(db), stock_id=stock_id)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='STOCK_ITEM_DELETED',
            entity_type='stock_office',
            entity_id=stock_id,
            ip=get_client_ip(request),
        )
        db.commit()
    return {'deleted': stock_id}
