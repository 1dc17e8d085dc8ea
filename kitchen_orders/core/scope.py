"""
Tenant scope resolution.

Every request that touches tenant data is pinned to at most one restaurant.
The decision depends only on the caller's role, the caller's home restaurant
and an optional explicit override, so it is kept free of any HTTP detail.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from kitchen_orders.core.errors import AuthorizationError, ConfigurationError, ValidationError


class Role(str, Enum):
    KITCHEN = "kitchen"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class ScopeSource(str, Enum):
    OVERRIDE = "override"  # Explicit header/query/body value
    HOME = "home"          # Caller's own restaurant
    NONE = "none"          # Nothing resolved


KITCHEN_ROLES = (Role.KITCHEN, Role.ADMIN, Role.SUPERADMIN)
ADMIN_ROLES = (Role.ADMIN, Role.SUPERADMIN)
SUPERADMIN_ROLES = (Role.SUPERADMIN,)


@dataclass(frozen=True)
class ScopeDecision:
    restaurant_id: Optional[UUID]
    source: ScopeSource
    # Ordinary user without a home restaurant: an account problem, not "no data"
    misconfigured: bool = False

    @property
    def is_global(self) -> bool:
        """True only for an elevated caller acting across all tenants."""
        return self.restaurant_id is None and not self.misconfigured

    def require(self) -> UUID:
        """Returns the concrete tenant or raises when the operation needs one."""
        if self.restaurant_id is not None:
            return self.restaurant_id
        if self.misconfigured:
            raise ConfigurationError("User has no restaurant assigned.")
        raise ValidationError("Restaurant ID is required.")


def resolve_scope(role: Role, home_restaurant_id: Optional[UUID], override: Optional[UUID]) -> ScopeDecision:
    """
    Decides which restaurant a request operates on.

    1. An explicit override wins for the superadmin. Ordinary roles may only
       "override" with their own restaurant; anything else is rejected.
    2. Superadmin without override: home restaurant if any, otherwise global.
    3. Ordinary roles: always their home restaurant.
    """
    role = Role(role)

    if override is not None:
        if role == Role.SUPERADMIN or override == home_restaurant_id:
            return ScopeDecision(restaurant_id=override, source=ScopeSource.OVERRIDE)
        raise AuthorizationError("Only a superadmin may act on another restaurant.")

    if role == Role.SUPERADMIN:
        if home_restaurant_id is not None:
            return ScopeDecision(restaurant_id=home_restaurant_id, source=ScopeSource.HOME)
        return ScopeDecision(restaurant_id=None, source=ScopeSource.NONE)

    if home_restaurant_id is None:
        return ScopeDecision(restaurant_id=None, source=ScopeSource.NONE, misconfigured=True)
    return ScopeDecision(restaurant_id=home_restaurant_id, source=ScopeSource.HOME)


def apply_scope(query, scope: ScopeDecision, field: str = "restaurant_id"):
    """Narrows an ORM query to the decided tenant; a global scope leaves it untouched."""
    if scope.is_global:
        return query
    return query.filter(**{field: scope.require()})
