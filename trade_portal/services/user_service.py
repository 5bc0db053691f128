from __future__ import annotations

import re

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from trade_portal.models import User, UserRole
from trade_portal.security.passwords import hash_password, verify_password
from trade_portal.services.errors import NotFoundError

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 8


def parse_role(raw: str) -> UserRole:
    try:
        return UserRole(raw.strip().lower())
    except ValueError as exc:
        raise ValueError(f'Unknown role: {raw}') from exc


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require_user(db: Session, user_id: int) -> User:
    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise NotFoundError('User not found')
    return user


def get_user(db: Session, *, user_id: int) -> User:
    return _require_user(db, user_id)


def find_user_by_email(db: Session, *, email: str) -> User | None:
    return db.execute(select(User).where(func.lower(User.email) == email.strip().lower())).scalar_one_or_none()


def list_users(db: Session) -> list[User]:
    return db.execute(select(User).order_by(User.created_at.desc(), User.id.desc())).scalars().all()


def role_counts(users: list[User]) -> dict[UserRole, int]:
    counts = {role: 0 for role in UserRole}
    for user in users:
        counts[UserRole(user.role)] += 1
    return counts


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str | None,
    role: UserRole,
    department: str | None,
) -> User:
    clean_email = email.strip().lower()
    if not EMAIL_RE.match(clean_email):
        raise ValueError('Valid email is required')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    if find_user_by_email(db, email=clean_email):
        raise ValueError('Email is already in use by another account')

    user = User(
        email=clean_email,
        password_hash=hash_password(password),
        full_name=_clean_optional(full_name),
        role=UserRole(role),
        department=_clean_optional(department),
        active=True,
    )
    db.add(user)
    db.flush()
    return user


def update_profile(db: Session, *, user_id: int, full_name: str | None, department: str | None) -> User:
    user = _require_user(db, user_id)
    user.full_name = _clean_optional(full_name)
    user.department = _clean_optional(department)
    db.flush()
    return user


def set_user_role(db: Session, *, actor_id: int, user_id: int, role: UserRole) -> User:
    if actor_id == user_id:
        raise ValueError('You cannot change your own role')
    user = _require_user(db, user_id)
    user.role = UserRole(role)
    db.flush()
    return user


def set_user_active(db: Session, *, actor_id: int, user_id: int, active: bool) -> User:
    if actor_id == user_id and not active:
        raise ValueError('You cannot deactivate your own account')
    user = _require_user(db, user_id)
    user.active = active
    db.flush()
    return user


def change_password(
    db: Session,
    *,
    user_id: int,
    current_password: str,
    new_password: str,
    confirm_password: str,
) -> User:
    user = _require_user(db, user_id)
    if not verify_password(current_password, user.password_hash):
        raise ValueError('Current password is incorrect')
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    if new_password != confirm_password:
        raise ValueError('New password and confirmation do not match')

    user.password_hash = hash_password(new_password)
    db.flush()
    return user


def serialize_user(user: User) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'full_name': user.full_name,
        'role': UserRole(user.role).value,
        'department': user.department,
        'active': user.active,
        'created_at': user.created_at.isoformat() if user.created_at else None,
    }
