from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, HTTPException, Request, status

from trade_portal.models import UserRole


class Feature(str, Enum):
    DASHBOARD = 'dashboard'
    DOCUMENTS = 'documents'
    SHIPMENTS = 'shipments'
    INVOICES = 'invoices'
    STOCK = 'stock'
    USERS = 'users'


@dataclass
class Principal:
    id: int
    email: str
    full_name: str | None
    role: UserRole
    active: bool


def get_current_principal(request: Request) -> Principal:
    principal = getattr(request.state, 'principal', None)
    if not principal:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    if not principal.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return principal


def is_admin_role(role: UserRole) -> bool:
    match role:
        case UserRole.ADMIN:
            return True
        case UserRole.STAFF:
            return False
        case _:
            raise ValueError(f'Unknown role: {role}')


def can_access(role: UserRole, feature: Feature) -> bool:
    match feature:
        case Feature.DASHBOARD | Feature.DOCUMENTS | Feature.SHIPMENTS:
            return True
        case Feature.INVOICES | Feature.STOCK | Feature.USERS:
            return is_admin_role(role)
        case _:
            raise ValueError(f'Unknown feature: {feature}')


def visible_features(role: UserRole) -> list[Feature]:
    return [feature for feature in Feature if can_access(role, feature)]


def require_feature(feature: Feature):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not can_access(principal.role, feature):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return principal

    return _dep


def require_role(*allowed: UserRole):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return principal

    return _dep
