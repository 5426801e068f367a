from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional

from fastapi import HTTPException, Request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import settings

# ---------------------------------------------------------------------------
# Roles & permissions (role claims come from the external identity provider)
# ---------------------------------------------------------------------------
SUPER_ADMIN = "SUPER_ADMIN"
NURSE = "NURSE"
LABORATORIST = "LABORATORIST"
PHARMACIST = "PHARMACIST"

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    SUPER_ADMIN: frozenset({
        "dashboard:read",
        "inventory:read", "inventory:write",
        "patients:read", "patients:write",
        "payments:read", "payments:write",
        "lab-results:read", "lab-results:write", "lab-results:request",
        "drug-orders:read", "drug-orders:write", "drug-orders:approve", "drug-orders:delete",
        "sales:read", "sales:write", "sales:void",
        "reports:read",
        "walk-in-services:read", "walk-in-services:write",
        "feedback:read", "feedback:write",
    }),
    NURSE: frozenset({
        "dashboard:read",
        "patients:read", "patients:write",
        "lab-results:read", "lab-results:request",
        "drug-orders:read", "drug-orders:write",
    }),
    LABORATORIST: frozenset({
        "dashboard:read",
        "patients:read",
        "lab-results:read", "lab-results:write",
    }),
    PHARMACIST: frozenset({
        "dashboard:read",
        "inventory:read", "inventory:write",
        "payments:read", "payments:write",
        "drug-orders:read", "drug-orders:approve",
        "sales:read", "sales:write", "sales:void",
        "walk-in-services:read", "walk-in-services:write",
    }),
}

_SALT = "clinicdesk-identity"


@dataclass(frozen=True)
class AuthorizationContext:
    user_id: str
    role: str
    name: str = ""

    @property
    def permissions(self) -> FrozenSet[str]:
        return ROLE_PERMISSIONS.get(self.role, frozenset())

    def can(self, permission: str) -> bool:
        return permission in self.permissions

    @property
    def display_name(self) -> str:
        return self.name or self.user_id


def _serializer(secret: Optional[str] = None) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret or settings.IDENTITY_SECRET, salt=_SALT)


def issue_identity_token(user_id: str, role: str, name: str = "", secret: Optional[str] = None) -> str:
    """Sign a claims payload the way the identity bridge forwards it."""
    return _serializer(secret).dumps({"sub": user_id, "role": role, "name": name})


def decode_identity_token(
    token: str,
    secret: Optional[str] = None,
    max_age: Optional[int] = None,
) -> AuthorizationContext:
    """
    Verify a forwarded claims token.
    Raises ``BadSignature`` (or ``SignatureExpired``) for anything we can't trust.
    """
    data: Dict[str, Any] = _serializer(secret).loads(
        token, max_age=max_age if max_age is not None else settings.IDENTITY_MAX_AGE_SECONDS
    )
    user_id = str(data.get("sub") or "").strip()
    role = str(data.get("role") or "").strip().upper()
    if not user_id or role not in ROLE_PERMISSIONS:
        raise BadSignature("Identity claims are incomplete")
    return AuthorizationContext(user_id=user_id, role=role, name=str(data.get("name") or ""))


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------
def get_auth_context(request: Request) -> AuthorizationContext:
    token = request.headers.get(settings.IDENTITY_HEADER)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        return decode_identity_token(token)
    except SignatureExpired:
        raise HTTPException(status_code=401, detail="Identity token expired")
    except BadSignature:
        raise HTTPException(status_code=401, detail="Unauthorized")


def require_permission(permission: str) -> Callable[[Request], AuthorizationContext]:
    def _dependency(request: Request) -> AuthorizationContext:
        ctx = get_auth_context(request)
        if not ctx.can(permission):
            raise HTTPException(status_code=403, detail="Forbidden - Insufficient permissions")
        return ctx

    return _dependency
