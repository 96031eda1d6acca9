# tests/test_auth.py
import httpx
import pytest

from classifieds.auth import AdminPrincipal, AuthClient, authenticate_user, authorize_admin
from classifieds.exceptions import AuthenticationError, AuthorizationError
from classifieds.models import AppRole, UserStatus

from conftest import make_user


@pytest.mark.parametrize("header", [None, "", "Token admin-token", "Bearer ", "Bearer unknown"])
def test_authorize_admin_rejects_bad_credentials(db, verifier, header):
    make_user(db, "admin-1", role=AppRole.ADMIN)
    with pytest.raises(AuthenticationError) as exc:
        authorize_admin(db, verifier, header)
    assert str(exc.value) == "Unauthorized"


def test_authorize_admin_rejects_non_admin(db, verifier):
    make_user(db, "owner-1", role=AppRole.PREMIUM)
    with pytest.raises(AuthorizationError) as exc:
        authorize_admin(db, verifier, "Bearer user-token")
    assert str(exc.value) == "Forbidden"


def test_authorize_admin_without_role_record(db, verifier):
    with pytest.raises(AuthorizationError):
        authorize_admin(db, verifier, "Bearer user-token")


def test_authorize_admin_returns_principal(db, verifier):
    make_user(db, "admin-1", role=AppRole.ADMIN)
    assert authorize_admin(db, verifier, "Bearer admin-token") == AdminPrincipal("admin-1")


def test_blocked_user_cannot_authenticate(db, verifier):
    make_user(db, "owner-1", status=UserStatus.BLOCKED)
    with pytest.raises(AuthorizationError):
        authenticate_user(db, verifier, "Bearer user-token")


def test_auth_client_resolves_user_id():
    def handler(request):
        if request.headers["Authorization"] == "Bearer good":
            return httpx.Response(200, json={"id": "user-42", "email": "a@b.c"})
        return httpx.Response(401, json={"msg": "invalid JWT"})

    client = AuthClient(
        base_url="https://x.co/auth/v1",
        api_key="anon",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )
    assert client.verify("good") == "user-42"
    assert client.verify("bad") is None
