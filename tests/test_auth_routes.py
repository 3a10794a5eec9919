"""
Authentication route tests
"""

import pytest
from pydantic import ValidationError

from portal_shared.schemas.roles import Role, Stage
from portal_shared.schemas.auth import AuthResponseSchema
from portal_service.config import settings
from portal_service.models.records import RoleStageRecord, UserIdentity
from portal_service.services.auth_service import AuthOutcome

STRONG_PASSWORD = "Abc123!@"


def _sign_up(client, email="sam@example.com", password=STRONG_PASSWORD, next=None):
    payload = {"email": email, "password": password}
    if next:
        payload["next"] = next
    return client.post("/auth/sign-up", json=payload)


class TestSignUp:

    def test_sign_up_signs_in(self, client):
        response = _sign_up(client, next="/onboarding?role=worker")

        assert response.status_code == 201
        data = response.json()
        assert data["state"] == "signed_in"
        assert data["redirect_to"] == "/onboarding?role=worker"
        assert data["session_token"]
        assert settings.session_cookie_name in response.cookies

    def test_second_sign_up_reports_existing_account(self, client):
        _sign_up(client)
        response = _sign_up(client)

        assert response.status_code == 409
        data = response.json()
        assert data["state"] == "account_exists"
        assert data["session_token"] is None
        assert data["actions"]["sign_in"].startswith("/auth/sign-in?next=")
        assert data["actions"]["retry"].startswith("/auth/sign-up?next=")

    def test_weak_password_rejected_before_gateway(self, client, gateway):
        response = _sign_up(client, password="abc12345")

        assert response.status_code == 422
        assert "password" in response.json()["field_errors"]
        assert gateway.users == {}

    def test_invalid_email_rejected(self, client):
        response = _sign_up(client, email="not-an-email")
        assert response.status_code == 422
        assert "email" in response.json()["field_errors"]

    def test_unverified_email_is_pending(self, client, gateway, redis_client):
        gateway.confirm_email = True
        response = _sign_up(client)

        assert response.status_code == 201
        assert response.json()["state"] == "verify_email_pending"
        assert response.json()["session_token"] is None
        assert settings.oauth_flow_cookie_name in response.cookies
        assert "verifier-signup" in redis_client.data.values()

    def test_verification_link_returns_to_next(self, client, gateway):
        _sign_up(client, next="/onboarding?role=business")
        assert gateway.redirects[-1].endswith("/auth/callback?next=/onboarding%3Frole%3Dbusiness")

    def test_existing_role_goes_to_portal(self, client, gateway, store):
        _sign_up(client, email="first@example.com")
        user_id = gateway.users["first@example.com"]["user"].id
        store.tables[store.USER_ROLES].append(
            RoleStageRecord(user_id=user_id, role=Role.WORKER, stage=Stage.ENABLED).to_row()
        )

        client.get("/auth/sign-out", follow_redirects=False)
        response = client.post("/auth/sign-in", json={
            "email": "first@example.com",
            "password": STRONG_PASSWORD,
            "next": "/onboarding?role=worker",
        })
        assert response.json()["redirect_to"] == "/portal?role=worker"

    def test_sign_up_page_reads_role_from_next(self, client):
        response = client.get("/auth/sign-up", params={"next": "/onboarding?role=worker"})
        assert response.json()["role"] == "worker"
        assert response.json()["next"] == "/onboarding?role=worker"


class TestSignIn:

    def test_wrong_password(self, client, gateway):
        gateway.add_user("sam@example.com")
        response = client.post("/auth/sign-in", json={"email": "sam@example.com", "password": "nope"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid login credentials"

    def test_completed_role_is_default_destination(self, client, gateway, store):
        user = gateway.add_user("sam@example.com")
        store.tables[store.USER_ROLES].append(
            RoleStageRecord(user_id=user.id, role=Role.BUSINESS, stage=Stage.PROFILE_DONE).to_row()
        )

        response = client.post("/auth/sign-in", json={"email": "sam@example.com", "password": STRONG_PASSWORD})
        assert response.status_code == 200
        assert response.json()["redirect_to"] == "/portal?role=business"

    def test_no_roles_falls_back_to_portal(self, client, gateway):
        gateway.add_user("sam@example.com")
        response = client.post("/auth/sign-in", json={"email": "sam@example.com", "password": STRONG_PASSWORD})
        assert response.json()["redirect_to"] == "/portal"

    def test_off_site_next_ignored(self, client, gateway):
        gateway.add_user("sam@example.com")
        response = client.post("/auth/sign-in", json={
            "email": "sam@example.com",
            "password": STRONG_PASSWORD,
            "next": "https://evil.example",
        })
        assert response.json()["redirect_to"] == "/portal"

    def test_store_outage_still_signs_in(self, client, gateway, store):
        gateway.add_user("sam@example.com")
        store.fail = True
        response = client.post("/auth/sign-in", json={
            "email": "sam@example.com",
            "password": STRONG_PASSWORD,
            "next": "/portal?role=worker",
        })
        assert response.status_code == 200
        assert response.json()["redirect_to"] == "/portal?role=worker"

    def test_me_lists_role_stages(self, signed_in_client, store):
        signed_in_client.post("/select-role", json={"role": "customer"})
        response = signed_in_client.get("/auth/me")
        assert response.json()["roles"] == {"customer": "enabled"}

    def test_me_requires_session(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] is True


class TestGoogleSignIn:

    def test_one_tap_signs_in(self, client, gateway, store):
        user = UserIdentity(id="google-1", email="gia@example.com", identities=[])
        gateway.id_tokens["credential-1"] = user
        store.tables[store.USER_ROLES].append(
            RoleStageRecord(user_id=user.id, role=Role.WORKER, stage=Stage.PROFILE_DONE).to_row()
        )

        response = client.post("/auth/sign-in/one-tap", json={"credential": "credential-1"})
        assert response.json()["state"] == "signed_in"
        assert response.json()["redirect_to"] == "/portal?role=worker"

    def test_one_tap_without_credential_falls_back_to_redirect(self, client, gateway):
        response = client.post("/auth/sign-up/one-tap", json={"next": "/onboarding?role=worker"})

        assert response.status_code == 200
        assert response.json()["redirect_to"] == gateway.PROVIDER_URL
        assert settings.oauth_flow_cookie_name in response.cookies

    def test_rejected_credential_falls_back_to_redirect(self, client, gateway):
        response = client.post("/auth/sign-in/one-tap", json={"credential": "forged"})
        assert response.json()["redirect_to"] == gateway.PROVIDER_URL

    def test_oauth_redirects_to_provider(self, client, gateway):
        response = client.get("/auth/oauth/google", params={"next": "/portal"}, follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == gateway.PROVIDER_URL
        assert gateway.redirects[-1].endswith("/auth/callback?next=/portal")


class TestCallback:

    def test_code_exchange_uses_stored_verifier(self, client, gateway, store):
        user = UserIdentity(id="google-1", email="gia@example.com", identities=[])
        gateway.codes["code-1"] = user
        client.get("/auth/oauth/google", follow_redirects=False)

        response = client.get(
            "/auth/callback",
            params={"code": "code-1", "next": "/onboarding?role=customer"},
            follow_redirects=False
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/onboarding?role=customer"
        assert settings.session_cookie_name in response.cookies
        assert gateway.exchanged[-1] == {"code": "code-1", "code_verifier": "verifier-oauth"}

    def test_failed_exchange_without_session_goes_to_sign_in(self, client):
        response = client.get("/auth/callback", params={"code": "bad", "next": "/onboarding"}, follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/auth/sign-in?next=/onboarding"

    def test_failed_exchange_keeps_existing_session(self, signed_in_client):
        response = signed_in_client.get(
            "/auth/callback", params={"code": "bad", "next": "/select-role"}, follow_redirects=False
        )
        assert response.headers["location"] == "/select-role"

    def test_unstored_session_still_redirects(self, client, gateway, redis_client, monkeypatch):
        gateway.codes["code-2"] = UserIdentity(id="google-2", email="gus@example.com", identities=[])

        async def refuse_write(key, ttl, value):
            return False

        monkeypatch.setattr(redis_client, "setex", refuse_write)

        response = client.get(
            "/auth/callback", params={"code": "code-2", "next": "/portal"}, follow_redirects=False
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/auth/sign-in?next=/portal"
        assert settings.session_cookie_name not in response.cookies


class TestSignOut:

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_sign_out_revokes_and_redirects_home(self, signed_in_client, gateway, method):
        response = getattr(signed_in_client, method)("/auth/sign-out", follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == "/"
        assert gateway.revoked == ["access-user-1"]
        assert signed_in_client.get("/auth/me").status_code == 401

    def test_sign_out_without_session(self, client, gateway):
        response = client.post("/auth/sign-out", follow_redirects=False)
        assert response.headers["location"] == "/"
        assert gateway.revoked == []


class TestResendVerification:

    def test_resend(self, client, gateway):
        response = client.post("/auth/resend-verification", json={"email": "sam@example.com"})

        assert response.status_code == 200
        assert response.json()["state"] == "verify_email_pending"
        assert gateway.redirects[-1].endswith("/auth/callback?next=/onboarding")

    def test_unknown_type_rejected(self, client):
        response = client.post("/auth/resend-verification", json={"email": "sam@example.com", "type": "magic"})
        assert response.status_code == 422


class TestAuthOutcome:

    def test_defaults(self):
        outcome = AuthOutcome(response=AuthResponseSchema(success=True, redirect_to="/portal"))
        assert outcome.flow_id is None
        assert outcome.remember_me is False
        assert outcome.model_dump()["response"]["redirect_to"] == "/portal"

    def test_response_is_validated(self):
        with pytest.raises(ValidationError):
            AuthOutcome(response={"redirect_to": "/portal"})
