from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from trade_portal.auth import Feature, Principal, is_admin_role, require_feature, visible_features
from trade_portal.db import get_db
from trade_portal.dependencies import get_templates, service_errors
from trade_portal.services.dashboard_service import load_dashboard, serialize_dashboard

router = APIRouter(tags=['dashboard'])
dashboard_access = require_feature(Feature.DASHBOARD)


@router.get('/dashboard')
def dashboard_page(
    request: Request,
    principal: Principal = Depends(dashboard_access),
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    with service_errors('load dashboard'):
        data = load_dashboard(db)
    return templates.TemplateResponse(
        'dashboard.html',
        {
            'request': request,
            'principal': principal,
            'features': [feature.value for feature in visible_features(principal.role)],
            'stats': serialize_dashboard(data, include_admin=is_admin_role(principal.role)),
        },
    )


@router.get('/api/dashboard')
def dashboard_data(
    principal: Principal = Depends(dashboard_access),
    db: Session = Depends(get_db),
):
    with service_errors('load dashboard'):
        data = load_dashboard(db)
    return serialize_dashboard(data, include_admin=is_admin_role(principal.role))
