from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from trade_portal.auth import Feature, Principal, get_current_principal, require_feature
from trade_portal.db import get_db
from trade_portal.dependencies import form_values, get_client_ip, service_errors, validate_form
from trade_portal.models import UserRole
from trade_portal.schemas import ProfileForm, UserCreateForm
from trade_portal.security.csrf import verify_csrf
from trade_portal.services.audit_service import log_audit
from trade_portal.services.user_service import (
    change_password,
    create_user,
    get_user,
    list_users,
    parse_role,
    role_counts,
    serialize_user,
    set_user_active,
    set_user_role,
    update_profile,
)

router = APIRouter(tags=['users'])
user_access = require_feature(Feature.USERS)


@router.get('/users')
def users_index(_: Principal = Depends(user_access), db: Session = Depends(get_db)):
    with service_errors('load users'):
        users = list_users(db)
    return {
        'users': [serialize_user(user) for user in users],
        'roles': {role.value: count for role, count in role_counts(users).items()},
    }


@router.post('/users/create', status_code=201)
async def user_create(
    request: Request,
    principal: Principal = Depends(user_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    data = form_values(form, ('email', 'full_name', 'role', 'department'))
    data['password'] = str(form.get('password', ''))
    payload = validate_form(UserCreateForm, data)
    with service_errors('create user'):
        user = create_user(
            db,
            email=payload.email,
            password=payload.password,
            full_name=payload.full_name,
            role=payload.role,
            department=payload.department,
        )
        log_audit(
            db,
            actor_user_id=principal.id,
            action='USER_CREATED',
            entity_type='user',
            entity_id=user.id,
            ip=get_client_ip(request),
            metadata={'email': user.email, 'role': user.role.value},
        )
        db.commit()
    return {'user': serialize_user(user)}


@router.post('/users/{user_id}/role')
async def user_role(
    user_id: int,
    request: Request,
    principal: Principal = Depends(user_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    with service_errors('update user role'):
        role: UserRole = parse_role(str(form.get('role', '')).strip())
        user = set_user_role(db, actor_id=principal.id, user_id=user_id, role=role)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='USER_ROLE_UPDATED',
            entity_type='user',
            entity_id=user.id,
            ip=get_client_ip(request),
            metadata={'role': user.role.value},
        )
        db.commit()
    return {'user': serialize_user(user)}


@router.post('/users/{user_id}/status')
async def user_status(
    user_id: int,
    request: Request,
    principal: Principal = Depends(user_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    active = str(form.get('active', '')).strip().lower() in {'1', 'true', 'yes', 'on'}
    with service_errors('update user status'):
        user = set_user_active(db, actor_id=principal.id, user_id=user_id, active=active)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='USER_STATUS_UPDATED',
            entity_type='user',
            entity_id=user.id,
            ip=get_client_ip(request),
            metadata={'active': user.active},
        )
        db.commit()
    return {'user': serialize_user(user)}


@router.get('/profile')
def profile_page(principal: Principal = Depends(get_current_principal), db: Session = Depends(get_db)):
    with service_errors('load profile'):
        user = get_user(db, user_id=principal.id)
    return {'user': serialize_user(user)}


@router.post('/profile')
async def profile_update(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    payload = validate_form(ProfileForm, form_values(form, ('full_name', 'department')))
    with service_errors('update profile'):
        user = update_profile(db, user_id=principal.id, full_name=payload.full_name, department=payload.department)
        log_audit(
            db,
            actor_user_id=principal.id,
            action='PROFILE_UPDATED',
            entity_type='user',
            entity_id=user.id,
            ip=get_client_ip(request),
        )
        db.commit()
    return {'user': serialize_user(user)}


@router.post('/profile/password')
async def profile_password(
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    current_password = str(form.get('current_password', ''))
    new_password = str(form.get('new_password', ''))
    if not current_password or not new_password:
        raise HTTPException(status_code=400, detail='Current and new password are required')
    with service_errors('change password'):
        change_password(
            db,
            user_id=principal.id,
            current_password=current_password,
            new_password=new_password,
            confirm_password=str(form.get('confirm_password', '')),
        )
        log_audit(
            db,
            actor_user_id=principal.id,
            action='PASSWORD_CHANGED',
            entity_type='user',
            entity_id=principal.id,
            ip=get_client_ip(request),
        )
        db.commit()
    return {'changed': True}
