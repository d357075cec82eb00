"""
Dépendances FastAPI partagées : authentification, contrôle des rôles
et paramètres de liste.

Les refus (401, 403) sont levés ici, avant toute logique métier.
"""

import datetime as dt
from typing import Literal, Optional

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from counseling.database import get_db
from counseling.errors import ForbiddenError, UnauthenticatedError
from counseling.models.admin import ADMIN_ROLES
from counseling.principal import Principal
from counseling.security import decode_access_token
from counseling.services import auth_service
from counseling.services.query_service import ListParams

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Principal:
    """Décode le jeton Bearer et recharge le compte correspondant."""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Authentification requise : jeton manquant.")

    payload = decode_access_token(credentials.credentials)
    account = auth_service.resolve_account(db, payload)
    # Rôle relu en base : il peut avoir changé depuis l'émission du jeton
    return Principal(id=account.id, email=account.email, role=account.role, account=account)


def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[Principal]:
    """Principal si un jeton est fourni, None sinon (inscription admin)."""
    if credentials is None or not credentials.credentials:
        return None
    return get_current_principal(credentials, db)


def require_roles(*roles: str):
    """Fabrique une dépendance qui n'accepte que les rôles donnés."""

    def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise ForbiddenError()
        return principal

    return checker


require_staff = require_roles(*ADMIN_ROLES)
require_student = require_roles(auth_service.STUDENT_ROLE)


def list_params(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[str] = None,
    type: Optional[str] = None,
    priority: Optional[str] = None,
    date: Optional[dt.date] = None,
    risk_level: Optional[str] = Query(None, alias="riskLevel"),
    current_class: Optional[str] = Query(None, alias="class"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
) -> ListParams:
    return ListParams(
        page=page,
        limit=limit,
        search=search,
        status=status,
        type=type,
        priority=priority,
        date=date,
        risk_level=risk_level,
        current_class=current_class,
        sort_by=sort_by,
        sort_order=sort_order,
    )
