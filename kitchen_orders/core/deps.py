"""
FastAPI dependencies for the request pipeline:
authenticate -> authorize by role -> resolve tenant scope.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from fastapi import Header, Request

from kitchen_orders.core.errors import AuthenticationError, AuthorizationError, ValidationError
from kitchen_orders.core.scope import Role, ScopeDecision, resolve_scope
from kitchen_orders.core.security import decode_access_token, extract_token
from kitchen_orders.models import User
from kitchen_orders.services.notification import SupplierNotifier

log = logging.getLogger(__name__)

RESTAURANT_HEADER = "x-restaurant-id"
RESTAURANT_FIELD = "restaurant_id"
WRITE_METHODS = ("POST", "PUT", "PATCH")


@dataclass(frozen=True)
class Principal:
    id: UUID
    role: Role
    restaurant_id: Optional[UUID]

    @property
    def is_superadmin(self) -> bool:
        return self.role == Role.SUPERADMIN


@dataclass(frozen=True)
class RequestContext:
    principal: Principal
    scope: ScopeDecision


def parse_uuid(value: Any, field: str) -> UUID:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {field}: {value}")


def authenticate(x_auth_token: Optional[str], authorization: Optional[str]) -> Principal:
    token = extract_token(x_auth_token, authorization)
    if not token:
        raise AuthenticationError("No token, authorization denied")

    claims = decode_access_token(token)
    try:
        return Principal(
            id=UUID(claims["id"]),
            role=Role(claims["role"]),
            restaurant_id=UUID(claims["restaurant_id"]) if claims.get("restaurant_id") else None,
        )
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Token is not valid")


async def ensure_active(principal: Principal) -> Principal:
    """Tokens outlive account changes; the account must still exist and be active."""
    active = await User.filter(id=principal.id).values_list("active", flat=True)
    if not active:
        raise AuthenticationError("User no longer exists")
    if not active[0]:
        raise AuthorizationError("Account is deactivated")
    return principal


async def _body_override(request: Request) -> Optional[Any]:
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    try:
        body = await request.json()
    except ValueError:
        # Malformed JSON is reported by the route's own body validation
        return None
    if isinstance(body, dict):
        return body.get(RESTAURANT_FIELD)
    return None


async def read_override(request: Request) -> Optional[UUID]:
    """Explicit tenant override: header, then query parameter, then JSON body."""
    raw = request.headers.get(RESTAURANT_HEADER) or request.query_params.get(RESTAURANT_FIELD)
    if not raw and request.method in WRITE_METHODS:
        raw = await _body_override(request)
    if not raw:
        return None
    return parse_uuid(raw, RESTAURANT_FIELD)


async def current_principal(
    x_auth_token: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> Principal:
    return await ensure_active(authenticate(x_auth_token, authorization))


def tenant_context(*roles: Role):
    """Builds a dependency that only lets ``roles`` through and attaches their tenant scope."""
    allowed = frozenset(roles)

    async def dependency(
        request: Request,
        x_auth_token: Optional[str] = Header(None),
        authorization: Optional[str] = Header(None),
    ) -> RequestContext:
        principal = await ensure_active(authenticate(x_auth_token, authorization))
        if principal.role not in allowed:
            raise AuthorizationError("Access forbidden")

        scope = resolve_scope(principal.role, principal.restaurant_id, await read_override(request))
        request.state.scope = scope
        log.debug(f"User {principal.id} ({principal.role.value}) scoped to {scope.restaurant_id} via {scope.source.value}")
        return RequestContext(principal=principal, scope=scope)

    return dependency


def get_notifier(request: Request) -> SupplierNotifier:
    """Notifier bound to the application's per-restaurant transport registry."""
    return SupplierNotifier(request.app.state.transports)
