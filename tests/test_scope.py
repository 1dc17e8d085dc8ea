import pytest
from uuid import uuid4

from kitchen_orders.core.errors import AuthorizationError, ConfigurationError, ValidationError
from kitchen_orders.core.scope import Role, ScopeSource, resolve_scope

HOME = uuid4()
OTHER = uuid4()


class TestResolveScope:
    def test_superadmin_override_wins_over_home(self):
        decision = resolve_scope(Role.SUPERADMIN, HOME, OTHER)
        assert decision.restaurant_id == OTHER
        assert decision.source == ScopeSource.OVERRIDE

    def test_superadmin_override_without_home(self):
        decision = resolve_scope(Role.SUPERADMIN, None, OTHER)
        assert decision.restaurant_id == OTHER

    def test_superadmin_defaults_to_home(self):
        decision = resolve_scope(Role.SUPERADMIN, HOME, None)
        assert decision.restaurant_id == HOME
        assert decision.source == ScopeSource.HOME

    def test_superadmin_without_home_is_global(self):
        decision = resolve_scope(Role.SUPERADMIN, None, None)
        assert decision.restaurant_id is None
        assert decision.is_global
        with pytest.raises(ValidationError):
            decision.require()

    @pytest.mark.parametrize("role", [Role.KITCHEN, Role.ADMIN])
    def test_ordinary_roles_pinned_to_home(self, role):
        decision = resolve_scope(role, HOME, None)
        assert decision.restaurant_id == HOME
        assert decision.require() == HOME
        assert not decision.is_global

    @pytest.mark.parametrize("role", [Role.KITCHEN, Role.ADMIN])
    def test_ordinary_roles_cannot_override_to_another_restaurant(self, role):
        with pytest.raises(AuthorizationError):
            resolve_scope(role, HOME, OTHER)

    def test_ordinary_override_matching_home_is_accepted(self):
        decision = resolve_scope(Role.KITCHEN, HOME, HOME)
        assert decision.restaurant_id == HOME

    def test_ordinary_role_without_home_is_misconfigured(self):
        decision = resolve_scope(Role.ADMIN, None, None)
        assert decision.misconfigured
        assert not decision.is_global
        with pytest.raises(ConfigurationError):
            decision.require()

    def test_role_given_as_string(self):
        assert resolve_scope("kitchen", HOME, None).restaurant_id == HOME
