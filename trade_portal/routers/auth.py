from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from trade_portal.config import settings
from trade_portal.db import get_db
from trade_portal.dependencies import get_client_ip, get_templates
from trade_portal.security.csrf import verify_csrf
from trade_portal.security.passwords import verify_and_rehash
from trade_portal.security.sessions import create_web_session, revoke_web_session
from trade_portal.services.audit_service import log_audit, log_auth_event
from trade_portal.services.user_service import find_user_by_email

router = APIRouter(tags=['auth'])

LOGIN_ERROR = 'Invalid email or password'


def _login_failed(request: Request, templates: Jinja2Templates, email: str):
    return templates.TemplateResponse(
        'login.html',
        {'request': request, 'error': LOGIN_ERROR, 'email': email},
        status_code=401,
    )


@router.get('/login')
def login_page(request: Request, templates: Jinja2Templates = Depends(get_templates)):
    return templates.TemplateResponse('login.html', {'request': request, 'error': None, 'email': ''})


@router.post('/login')
async def login_submit(
    request: Request,
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    email = str(form.get('email', '')).strip().lower()
    password = str(form.get('password', ''))
    ip = get_client_ip(request)
    user_agent = request.headers.get('user-agent')

    user = find_user_by_email(db, email=email) if email else None
    failure_reason = None
    new_hash = None
    if not user:
        failure_reason = 'UNKNOWN_EMAIL'
    elif not user.active:
        failure_reason = 'INACTIVE_USER'
    else:
        valid, new_hash = verify_and_rehash(password, user.password_hash)
        if not valid:
            failure_reason = 'BAD_PASSWORD'

    if failure_reason:
        log_auth_event(
            db,
            attempted_email=email,
            success=False,
            failure_reason=failure_reason,
            user_id=user.id if user else None,
            ip=ip,
            user_agent=user_agent,
        )
        db.commit()
        return _login_failed(request, templates, email)

    if new_hash:
        user.password_hash = new_hash
    token = create_web_session(db, user.id, ip=ip, user_agent=user_agent)
    log_auth_event(db, attempted_email=email, success=True, user_id=user.id, ip=ip, user_agent=user_agent)
    log_audit(db, actor_user_id=user.id, action='AUTH_LOGIN', ip=ip, metadata={'email': email})
    db.commit()

    response = RedirectResponse('/', status_code=303)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        max_age=settings.session_ttl_minutes * 60,
    )
    return response


@router.post('/logout')
def logout(request: Request, db: Session = Depends(get_db), _: None = Depends(verify_csrf)):
    principal = getattr(request.state, 'principal', None)
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        revoke_web_session(db, token)

    log_audit(
        db,
        actor_user_id=principal.id if principal else None,
        action='AUTH_LOGOUT',
        ip=get_client_ip(request),
    )
    db.commit()

    response = RedirectResponse('/login', status_code=303)
    response.delete_cookie(settings.session_cookie_name)
    return response
