import asyncio
from itertools import count

import pytest

from auth import repository, security, service
from auth.models import FederatedIdentity, LocalCredentials, Principal, user_from_row
from auth.schemas import LoginRequest, SignupRequest
from auth.verifiers import LocalVerifier
from core.errors import AuthenticationError, AuthorizationError, ConflictError, UserNotFound, ValidationError

from tests.conftest import TEST_SECRET


class FakeUserTable:
    """Federated user rows keyed by external subject, yielding on every call."""

    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}
        self._ids = count(100)
        self.inserts = 0

    async def get_user_by_external_subject(self, external_subject: str):
        await asyncio.sleep(0)
        return self.rows.get(external_subject)

    async def insert_federated_user(self, *, external_subject: str, username: str, email):
        await asyncio.sleep(0)
        if external_subject in self.rows:
            return None
        self.inserts += 1
        row = {
            "id": next(self._ids),
            "username": username,
            "email": email,
            "password_hash": None,
            "external_subject": external_subject,
            "is_admin": False,
        }
        self.rows[external_subject] = row
        return row


@pytest.fixture
def federated_users(monkeypatch):
    table = FakeUserTable()
    monkeypatch.setattr(repository, "get_user_by_external_subject", table.get_user_by_external_subject)
    monkeypatch.setattr(repository, "insert_federated_user", table.insert_federated_user)
    return table


def _remote_principal(subject="auth0|abc123", **claims) -> Principal:
    return Principal(subject=subject, issuer_kind="remote", claims=claims)


@pytest.mark.asyncio
async def test_first_request_creates_federated_user(federated_users):
    principal = _remote_principal(email="cook@example.com")

    user = await service.resolve_principal(principal)

    assert user.username == "cook"
    assert user.is_federated
    assert user.identity == FederatedIdentity("auth0|abc123")
    assert principal.user_id == user.id
    assert federated_users.inserts == 1


@pytest.mark.asyncio
async def test_concurrent_first_requests_create_one_user(federated_users):
    users = await asyncio.gather(*(service.resolve_principal(_remote_principal(name="Cook")) for _ in range(5)))

    assert federated_users.inserts == 1
    assert len(federated_users.rows) == 1
    assert {u.id for u in users} == {100}


@pytest.mark.asyncio
async def test_returning_federated_user_is_not_recreated(federated_users):
    first = await service.resolve_principal(_remote_principal(name="Cook"))
    second = await service.resolve_principal(_remote_principal(name="Renamed at the IdP"))

    assert first.id == second.id
    assert second.username == "Cook"
    assert federated_users.inserts == 1


@pytest.mark.parametrize(
    ("claims", "expected"),
    [
        ({"name": "Jane Doe", "email": "jane@example.com"}, "Jane Doe"),
        ({"name": "  ", "email": "jane@example.com"}, "jane"),
        ({}, "user_c33c6c00"),
        ({"email": ""}, "user_c33c6c00"),
    ],
)
def test_display_name_precedence(claims, expected):
    assert service.display_name_from_claims(claims, "auth0|5f7c8ec7c33c6c00") == expected


@pytest.mark.asyncio
async def test_deleted_local_user_fails_resolution(local_users):
    token = security.build_access_token(user_id=1, secret=TEST_SECRET)
    principal = await LocalVerifier(TEST_SECRET).verify(token)
    del local_users[1]

    with pytest.raises(UserNotFound) as excinfo:
        await service.resolve_principal(principal)

    assert excinfo.value.to_body() == {"error": "Invalid token", "message": "User not found"}


@pytest.mark.asyncio
async def test_local_principal_resolves_to_its_row(local_users):
    user = await service.resolve_principal(Principal(subject="3", issuer_kind="local"))

    assert user.is_admin is True
    assert isinstance(user.identity, LocalCredentials)


def test_user_row_variants():
    both = {"id": 1, "username": "u", "email": None, "password_hash": "h", "external_subject": "s"}

    assert user_from_row(both).identity == LocalCredentials("h")
    assert user_from_row(both, prefer="remote").identity == FederatedIdentity("s")
    with pytest.raises(ValueError):
        user_from_row({"id": 1, "username": "u", "password_hash": None, "external_subject": None})


def test_require_role(local_users):
    admin = user_from_row(local_users[3])
    member = user_from_row(local_users[1])

    service.require_role(member, "authenticated")
    service.require_role(admin, "admin")
    with pytest.raises(AuthorizationError):
        service.require_role(member, "admin")
    with pytest.raises(AuthorizationError):
        service.require_role(admin, "owner")


@pytest.fixture
def local_accounts(monkeypatch):
    rows: dict[int, dict] = {}

    async def find_local_user_conflict(*, username, email):
        for row in rows.values():
            if row["username"] == username or row["email"] == repository.normalize_email(email):
                return {"id": row["id"]}
        return None

    async def create_local_user(*, username, email, password_hash):
        row = {
            "id": len(rows) + 1,
            "username": username,
            "email": repository.normalize_email(email),
            "password_hash": password_hash,
            "external_subject": None,
            "is_admin": False,
        }
        rows[row["id"]] = row
        return row

    async def get_user_by_email(email):
        for row in rows.values():
            if row["email"] == repository.normalize_email(email):
                return row
        return None

    monkeypatch.setattr(repository, "find_local_user_conflict", find_local_user_conflict)
    monkeypatch.setattr(repository, "create_local_user", create_local_user)
    monkeypatch.setattr(repository, "get_user_by_email", get_user_by_email)
    return rows


@pytest.mark.asyncio
async def test_signup_then_login(local_accounts):
    created = await service.signup(SignupRequest(username="cook", email="Cook@Example.com", password="s3cret-pass"))

    assert created.user.email == "cook@example.com"
    assert local_accounts[1]["password_hash"] != "s3cret-pass"

    logged_in = await service.login(LoginRequest(email="cook@example.com", password="s3cret-pass"))
    principal = await LocalVerifier(TEST_SECRET).verify(logged_in.token)

    assert principal.subject == "1"


@pytest.mark.asyncio
async def test_signup_rejects_short_password(local_accounts):
    with pytest.raises(ValidationError):
        await service.signup(SignupRequest(username="cook", email="cook@example.com", password="short"))

    assert local_accounts == {}


@pytest.mark.asyncio
async def test_signup_rejects_duplicates(local_accounts):
    await service.signup(SignupRequest(username="cook", email="cook@example.com", password="s3cret-pass"))

    with pytest.raises(ConflictError):
        await service.signup(SignupRequest(username="other", email="COOK@example.com", password="s3cret-pass"))


@pytest.mark.asyncio
@pytest.mark.parametrize(("email", "password"), [("cook@example.com", "wrong-pass"), ("nobody@example.com", "s3cret-pass")])
async def test_login_failures_look_the_same(local_accounts, email, password):
    await service.signup(SignupRequest(username="cook", email="cook@example.com", password="s3cret-pass"))

    with pytest.raises(AuthenticationError) as excinfo:
        await service.login(LoginRequest(email=email, password=password))

    assert excinfo.value.to_body()["error"] == "Invalid credentials"


def test_password_hashing():
    hashed = security.hash_password("s3cret-pass")

    assert security.verify_password("s3cret-pass", hashed)
    assert not security.verify_password("other-pass", hashed)
    with pytest.raises(ValueError):
        security.hash_password("")
