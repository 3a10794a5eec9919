"""
Pytest fixtures for Trade Portal tests
"""

import pytest
from typing import Any, Dict, List, Optional
from collections import defaultdict
from fastapi.testclient import TestClient

from portal_service.main import app
from portal_service.models.records import AuthResult, GatewaySession, UserIdentity
from portal_service.utils.dependencies import get_identity_gateway, get_profile_store, get_session_manager
from portal_service.utils.profile_store import ProfileStore, StoreError, UNIQUE_VIOLATION
from portal_service.utils.redis_session import RedisSessionManager
from portal_service.utils.supabase_client import GatewayError

STRONG_PASSWORD = "Abc123!@"


def pytest_configure(config):
    """Configure pytest"""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


class FakeRedis:
    """Async Redis stand-in holding keys in a dict"""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def get(self, key):
        return self.data.get(key)

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    async def ping(self):
        return True

    async def aclose(self):
        pass


class InMemoryProfileStore(ProfileStore):
    """ProfileStore whose table primitives work on in-memory rows"""

    def __init__(self):
        super().__init__(connection=None)
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.writes = 0
        self.fail = False

    def _check(self):
        if self.fail:
            raise StoreError("connection refused")

    async def _select(self, table, filters, limit=None):
        self._check()
        rows = [
            dict(row) for row in self.tables[table]
            if all(row.get(column) == value for column, value in filters.items())
        ]
        return rows[:limit] if limit is not None else rows

    async def _upsert(self, table, row, on_conflict):
        self._check()
        self.writes += 1
        keys = on_conflict.split(",")
        for existing in self.tables[table]:
            if all(existing.get(key) == row.get(key) for key in keys):
                existing.update(row)
                return
        self.tables[table].append(dict(row))

    async def _insert(self, table, row):
        self._check()
        self.writes += 1
        if table == self.WAITLIST:
            for existing in self.tables[table]:
                if existing["email"] == row["email"] and existing.get("role") == row.get("role"):
                    raise StoreError(
                        'duplicate key value violates unique constraint "waitlist_email_role_key"',
                        code=UNIQUE_VIOLATION
                    )
        self.tables[table].append(dict(row))

    def rows(self, table: str, **filters) -> List[Dict[str, Any]]:
        return [
            row for row in self.tables[table]
            if all(row.get(column) == value for column, value in filters.items())
        ]


def _session_for(user: UserIdentity) -> GatewaySession:
    return GatewaySession(access_token=f"access-{user.id}", refresh_token=f"refresh-{user.id}")


class FakeGateway:
    """Identity gateway stand-in with an in-memory user table"""

    PROVIDER_URL = "https://accounts.google.com/o/oauth2/v2/auth?client_id=test"

    def __init__(self, confirm_email: bool = False):
        self.confirm_email = confirm_email
        self.users: Dict[str, Dict[str, Any]] = {}
        self.id_tokens: Dict[str, UserIdentity] = {}
        self.codes: Dict[str, UserIdentity] = {}
        self.exchanged: List[Dict[str, Optional[str]]] = []
        self.revoked: List[str] = []
        self.redirects: List[str] = []

    def add_user(self, email: str, password: str = STRONG_PASSWORD, **metadata) -> UserIdentity:
        user = UserIdentity(
            id=f"user-{len(self.users) + 1}",
            email=email,
            user_metadata=metadata,
            identities=[{"provider": "email", "identity_data": {"email": email}}]
        )
        self.users[email] = {"user": user, "password": password}
        return user

    async def sign_up(self, email, password, redirect_to):
        self.redirects.append(redirect_to)
        if email in self.users:
            existing = self.users[email]["user"]
            return AuthResult(user=existing.model_copy(update={"identities": []}))
        user = self.add_user(email, password)
        if self.confirm_email:
            return AuthResult(user=user, code_verifier="verifier-signup")
        return AuthResult(user=user, session=_session_for(user))

    async def sign_in_with_password(self, email, password):
        entry = self.users.get(email)
        if entry is None or entry["password"] != password:
            raise GatewayError("Invalid login credentials", status=400)
        return AuthResult(user=entry["user"], session=_session_for(entry["user"]))

    async def sign_in_with_id_token(self, provider, token):
        user = self.id_tokens.get(token)
        if user is None:
            raise GatewayError("Invalid ID token", status=400)
        return AuthResult(user=user, session=_session_for(user))

    async def start_oauth(self, provider, redirect_to):
        self.redirects.append(redirect_to)
        return AuthResult(provider_url=self.PROVIDER_URL, code_verifier="verifier-oauth")

    async def exchange_code(self, code, code_verifier=None):
        self.exchanged.append({"code": code, "code_verifier": code_verifier})
        user = self.codes.get(code)
        if user is None:
            raise GatewayError("invalid flow state, no valid flow state found", status=404)
        return AuthResult(user=user, session=_session_for(user))

    async def get_user(self, access_token):
        for entry in self.users.values():
            if access_token == f"access-{entry['user'].id}":
                return entry["user"]
        return None

    async def sign_out(self, access_token):
        self.revoked.append(access_token)

    async def resend_verification(self, type, email, redirect_to):
        self.redirects.append(redirect_to)
        return "verifier-resend"


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store():
    return InMemoryProfileStore()


@pytest.fixture
def redis_client():
    return FakeRedis()


@pytest.fixture
def sessions(redis_client):
    return RedisSessionManager(client=redis_client)


@pytest.fixture
def client(gateway, store, sessions):
    """Test client wired to the in-memory backends"""
    app.dependency_overrides[get_identity_gateway] = lambda: gateway
    app.dependency_overrides[get_profile_store] = lambda: store
    app.dependency_overrides[get_session_manager] = lambda: sessions
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def signed_in_client(client):
    """Client holding a session for a freshly signed-up user"""
    response = client.post("/auth/sign-up", json={
        "email": "sam@example.com",
        "password": STRONG_PASSWORD,
    })
    assert response.status_code == 201
    return client


@pytest.fixture
def user():
    return UserIdentity(id="user-1", email="sam@example.com")
