"""
Navigation target tests
"""

import pytest

from portal_shared.schemas.roles import Role, Stage
from portal_service.models.navigation import Destination, DestinationKind, safe_next_path, role_from_next


class TestNextPath:

    @pytest.mark.parametrize("value", [None, "", "https://evil.example", "//evil.example", "/\\evil", "portal"])
    def test_off_site_paths_use_default(self, value):
        assert safe_next_path(value, "/portal") == "/portal"

    def test_relative_path_kept(self):
        assert safe_next_path("/onboarding?role=worker", "/") == "/onboarding?role=worker"

    def test_role_from_next(self):
        assert role_from_next("/onboarding?role=business") == Role.BUSINESS
        assert role_from_next("/onboarding?role=admin") is None
        assert role_from_next("/portal") is None
        assert role_from_next(None) is None


class TestDestination:

    def test_role_paths(self):
        assert Destination.portal(Role.WORKER).path == "/portal?role=worker"
        assert Destination.onboarding(Role.CUSTOMER).path == "/onboarding?role=customer"
        assert Destination.setup_profile(Role.BUSINESS).path == "/setup-profile?role=business"

    def test_sign_up_encodes_next(self):
        destination = Destination.sign_up("/onboarding?role=worker")
        assert destination.kind == DestinationKind.SIGN_UP
        assert destination.path == "/auth/sign-up?next=/onboarding%3Frole%3Dworker"

    def test_unresolved_uses_next(self):
        assert Destination.unresolved("/onboarding").path == "/onboarding"


class TestStage:

    def test_progression_order(self):
        assert Stage.ENABLED.rank < Stage.BASICS_DONE.rank < Stage.PROFILE_DONE.rank

    def test_furthest(self):
        assert Stage.furthest(Stage.PROFILE_DONE, Stage.BASICS_DONE) == Stage.PROFILE_DONE
        assert Stage.furthest(Stage.ENABLED, Stage.BASICS_DONE) == Stage.BASICS_DONE

    def test_only_profile_done_is_complete(self):
        assert [stage for stage in Stage if stage.is_complete] == [Stage.PROFILE_DONE]
