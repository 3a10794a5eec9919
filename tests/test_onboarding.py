"""
Onboarding flow tests
"""

import pytest

from portal_shared.schemas.roles import Role, Stage
from portal_shared.schemas.onboarding import WorkerProfileForm, BusinessProfileForm
from portal_service.models.records import UserIdentity
from portal_service.services.onboarding_service import (
    OnboardingService, name_from_identity, onboarding_steps, split_list, to_cents
)

BASICS = {
    "first_name": "Sam",
    "last_name": "Carter",
    "email": "sam@example.com",
    "location": "Austin, TX",
}


def _stage(store, role):
    rows = store.rows(store.USER_ROLES, user_id="user-1", role=role)
    return rows[0]["stage"] if rows else None


class TestWorkerOnboarding:
    """A new worker goes from sign-up to the worker portal"""

    def test_full_flow(self, client, gateway, store):
        response = client.post("/auth/sign-up", json={
            "email": "sam@example.com",
            "password": "Abc123!@",
            "next": "/onboarding?role=worker",
        })
        assert response.json()["redirect_to"] == "/onboarding?role=worker"

        response = client.post("/select-role", json={"role": "worker"})
        assert response.json()["redirect_to"] == "/onboarding?role=worker"
        assert _stage(store, "worker") == "enabled"

        prefill = client.get("/onboarding", params={"role": "worker"}).json()
        assert prefill["email"] == "sam@example.com"
        assert prefill["email_read_only"] is True
        assert [step["current"] for step in prefill["steps"]] == [True, False]

        response = client.post("/onboarding", params={"role": "worker"}, json=BASICS)
        assert response.status_code == 200
        assert response.json()["redirect_to"] == "/setup-profile?role=worker"
        assert _stage(store, "worker") == "basics_done"
        assert store.rows(store.PROFILES, user_id="user-1")[0]["full_name"] == "Sam Carter"
        assert store.rows(store.PROFILES, user_id="user-1")[0]["city"] == "Austin, TX"

        response = client.post("/setup-profile", json={
            "role": "worker",
            "headline": "Licensed plumber",
            "about": "Residential repairs",
            "specialties": "Plumbing, Tiling , ",
            "credentials": "",
            "years_experience": "12",
            "hourly_rate": "45.5",
            "service_radius_km": "25",
        })
        assert response.status_code == 200
        assert response.json()["redirect_to"] == "/portal?role=worker"
        assert _stage(store, "worker") == "profile_done"

        profile = store.rows("worker_profiles", user_id="user-1")[0]
        assert profile["trades"] == ["Plumbing", "Tiling"]
        assert profile["certifications"] == []
        assert profile["rate_cents"] == 4550
        assert profile["bio"] == "Residential repairs"

        client.post("/auth/sign-out", follow_redirects=False)
        response = client.post("/auth/sign-in", json={"email": "sam@example.com", "password": "Abc123!@"})
        assert response.json()["redirect_to"] == "/portal?role=worker"

    def test_revisiting_earlier_step_keeps_progress(self, signed_in_client, store):
        signed_in_client.post("/onboarding", params={"role": "customer"}, json=BASICS)
        signed_in_client.post("/setup-profile", json={"role": "customer", "location": "Austin"})
        assert _stage(store, "customer") == "profile_done"

        signed_in_client.post("/select-role", json={"role": "customer"})
        signed_in_client.post("/onboarding", params={"role": "customer"}, json=BASICS)
        assert _stage(store, "customer") == "profile_done"

    def test_profile_step_back_does_not_write(self, signed_in_client, store):
        writes = store.writes
        response = signed_in_client.post("/setup-profile/back", params={"role": "business"})
        assert response.json()["redirect_to"] == "/onboarding?role=business"
        assert store.writes == writes

    def test_basics_back_signs_out(self, signed_in_client, gateway):
        response = signed_in_client.post("/onboarding/back")
        assert response.json()["redirect_to"] == "/"
        assert gateway.revoked
        assert signed_in_client.get("/auth/me").status_code == 401


class TestOnboardingValidation:

    def test_missing_required_fields(self, signed_in_client, store):
        response = signed_in_client.post("/onboarding", params={"role": "worker"}, json={
            "first_name": " ",
            "last_name": "Carter",
            "email": "sam@example.com",
            "location": "",
        })
        assert response.status_code == 422
        assert {"first_name", "location"} <= set(response.json()["field_errors"])
        assert _stage(store, "worker") is None

    def test_store_failure_keeps_user_on_step(self, signed_in_client, store):
        store.fail = True
        response = signed_in_client.post("/onboarding", params={"role": "worker"}, json=BASICS)
        assert response.status_code == 502
        assert response.json()["message"] == "Could not save your details. Please try again."

    def test_negative_rate_rejected(self, signed_in_client):
        response = signed_in_client.post("/setup-profile", json={"role": "worker", "hourly_rate": -5})
        assert response.status_code == 422
        assert "hourly_rate" in response.json()["field_errors"]

    def test_profile_role_taken_from_query(self, signed_in_client, store):
        response = signed_in_client.post(
            "/setup-profile", params={"role": "worker"}, json={"headline": "Plumber"}
        )
        assert response.status_code == 200
        assert response.json()["redirect_to"] == "/portal?role=worker"
        assert _stage(store, "worker") == "profile_done"
        assert store.rows("worker_profiles", user_id="user-1")[0]["headline"] == "Plumber"

    def test_query_role_validates_its_own_form(self, signed_in_client):
        response = signed_in_client.post(
            "/setup-profile", params={"role": "worker"}, json={"hourly_rate": -5}
        )
        assert response.status_code == 422
        assert "hourly_rate" in response.json()["field_errors"]

    def test_conflicting_roles_rejected(self, signed_in_client, store):
        response = signed_in_client.post(
            "/setup-profile", params={"role": "worker"}, json={"role": "business", "company_name": "Acme"}
        )
        assert response.status_code == 422
        assert "role" in response.json()["field_errors"]
        assert store.writes == 0

    def test_profile_without_any_role_rejected(self, signed_in_client):
        response = signed_in_client.post("/setup-profile", json={"headline": "Plumber"})
        assert response.status_code == 422
        assert response.json()["field_errors"]["role"] == "Choose a role"

    def test_requires_session(self, client):
        response = client.post("/onboarding", params={"role": "worker"}, json=BASICS)
        assert response.status_code == 401


class TestOnboardingPages:

    def test_anonymous_onboarding_redirects_to_sign_up(self, client):
        response = client.get("/onboarding", params={"role": "worker"}, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/sign-up?next=/onboarding%3Frole%3Dworker"

    def test_anonymous_select_role_goes_to_sign_up(self, client, store):
        response = client.post("/select-role", json={"role": "business"})
        assert response.json()["redirect_to"] == "/auth/sign-up?next=/onboarding%3Frole%3Dbusiness"
        assert store.writes == 0

    def test_setup_profile_defaults_from_saved_profile(self, signed_in_client):
        signed_in_client.post("/setup-profile", json={
            "role": "business",
            "company_name": "Acme Builds",
            "service_area": "Denver",
            "portfolio": "https://acme.example",
        })
        page = signed_in_client.get("/setup-profile", params={"role": "business"}).json()

        assert page["form"]["company_name"] == "Acme Builds"
        assert page["form"]["portfolio"] == "https://acme.example"
        assert [step["completed"] for step in page["steps"]] == [True, False]


class TestOnboardingHelpers:

    def test_name_from_given_and_family_name(self):
        user = UserIdentity(id="u", user_metadata={"given_name": "Gia", "family_name": "Lopez"})
        assert name_from_identity(user) == ("Gia", "Lopez")

    def test_name_split_from_full_name(self):
        user = UserIdentity(id="u", user_metadata={"full_name": "Gia Maria Lopez"})
        assert name_from_identity(user) == ("Gia", "Maria Lopez")

    def test_name_from_identity_data(self):
        user = UserIdentity(id="u", identities=[{"identity_data": {"given_name": "Ray", "family_name": "Chen"}}])
        assert name_from_identity(user) == ("Ray", "Chen")

    def test_identity_full_name_not_split(self):
        user = UserIdentity(id="u", identities=[{"identity_data": {"name": "Ray Chen"}}])
        assert name_from_identity(user) == ("", "")

    def test_metadata_full_name_beats_identity_data(self):
        user = UserIdentity(
            id="u",
            user_metadata={"full_name": "Ann Lee"},
            identities=[{"identity_data": {"given_name": "Xavier"}}]
        )
        assert name_from_identity(user) == ("Ann", "Lee")

    def test_identity_data_fills_missing_last_name(self):
        user = UserIdentity(
            id="u",
            user_metadata={"full_name": "Ann"},
            identities=[{"identity_data": {"family_name": "Lee"}}]
        )
        assert name_from_identity(user) == ("Ann", "Lee")

    def test_no_name(self):
        assert name_from_identity(UserIdentity(id="u")) == ("", "")

    def test_split_list(self):
        assert split_list(" a, b ,, c ") == ["a", "b", "c"]
        assert split_list(None) == []

    def test_to_cents(self):
        assert to_cents(19.99) == 1999
        assert to_cents(None) is None

    def test_steps(self):
        steps = onboarding_steps(2)
        assert [(s.label, s.completed, s.current) for s in steps] == [
            ("Basic info", True, False),
            ("Profile", False, True),
        ]

    def test_business_mapping(self):
        profile = OnboardingService.build_role_profile(
            "u", BusinessProfileForm(company_name="Acme", service_area="Denver", portfolio="https://acme.example")
        )
        assert (profile.company_name, profile.hq_city, profile.website) == ("Acme", "Denver", "https://acme.example")

    @pytest.mark.asyncio
    async def test_prefill_without_email_is_editable(self, store):
        prefill = await OnboardingService.prefill_basics(store, UserIdentity(id="u"), Role.CUSTOMER)
        assert prefill.email == ""
        assert prefill.email_read_only is False

    @pytest.mark.asyncio
    async def test_select_role_enables_only_once(self, store, user):
        await store.advance_role_stage(user.id, Role.WORKER, Stage.BASICS_DONE)
        await OnboardingService.select_role(store, user, Role.WORKER)
        assert (await store.get_role_stage(user.id, Role.WORKER)).stage == Stage.BASICS_DONE

    def test_worker_mapping_defaults(self):
        profile = OnboardingService.build_role_profile("u", WorkerProfileForm())
        assert profile.trades == []
        assert profile.rate_cents is None
