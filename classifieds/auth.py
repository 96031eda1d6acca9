# classifieds/auth.py
"""Caller identity and role checks.

Every privileged component receives an explicit principal at construction:
`AdminPrincipal` for moderation, `ServicePrincipal` for the background
reclaimer. Request handlers obtain the former only through
`authorize_admin`, which resolves the bearer credential and checks the role
before anything is mutated.
"""
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from sqlalchemy.orm import Session

from . import crud
from .config import AUTH_API_KEY, AUTH_URL, HTTP_TIMEOUT_SECONDS
from .exceptions import AuthenticationError, AuthorizationError, IdentityProviderError
from .models import AppRole, UserStatus
from .utils import logger, retry


@dataclass(frozen=True)
class UserPrincipal:
    user_id: str


@dataclass(frozen=True)
class AdminPrincipal:
    user_id: str


@dataclass(frozen=True)
class ServicePrincipal:
    name: str = "reclaimer"


def service_principal(name: str = "reclaimer") -> ServicePrincipal:
    return ServicePrincipal(name=name)


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> Optional[str]:
        """Return the user id for a valid token, None otherwise."""


class AuthClient:
    """Resolves access tokens against the identity provider's /user endpoint."""

    def __init__(self, base_url: str = AUTH_URL, api_key: str = AUTH_API_KEY, client: httpx.Client | None = None):
        if not base_url:
            raise IdentityProviderError("AUTH_URL not set")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client or httpx.Client(timeout=HTTP_TIMEOUT_SECONDS)

    @retry(httpx.TransportError, tries=2, delay=0.5)
    def _fetch_user(self, token: str) -> httpx.Response:
        return self._client.get(
            f"{self.base_url}/user",
            headers={"Authorization": f"Bearer {token}", "apikey": self.api_key},
        )

    def verify(self, token: str) -> Optional[str]:
        try:
            resp = self._fetch_user(token)
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"Identity provider unreachable: {e}") from e
        if resp.status_code in (400, 401, 403, 404):
            return None
        if resp.status_code >= 400:
            raise IdentityProviderError(f"Identity provider returned HTTP {resp.status_code}")
        user_id = resp.json().get("id")
        return str(user_id) if user_id else None

    def close(self):
        self._client.close()


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthenticationError("Unauthorized")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Unauthorized")
    return token.strip()


def authenticate_user(db: Session, verifier: IdentityVerifier, authorization: Optional[str]) -> UserPrincipal:
    token = _bearer_token(authorization)
    user_id = verifier.verify(token)
    if not user_id:
        raise AuthenticationError("Unauthorized")
    profile = crud.get_profile(db, user_id)
    if profile is not None and profile.status == UserStatus.BLOCKED.value:
        logger.info("Blocked user %s refused", user_id)
        raise AuthorizationError("Forbidden")
    return UserPrincipal(user_id=user_id)


def authorize_admin(db: Session, verifier: IdentityVerifier, authorization: Optional[str]) -> AdminPrincipal:
    """Resolve the caller and require the admin role.

    Both failure kinds carry generic messages so the response never says
    which check failed.
    """
    token = _bearer_token(authorization)
    user_id = verifier.verify(token)
    if not user_id:
        raise AuthenticationError("Unauthorized")
    role = crud.get_role(db, user_id)
    if role is None or role.role != AppRole.ADMIN.value:
        logger.warning("Non-admin user %s attempted an admin action", user_id)
        raise AuthorizationError("Forbidden")
    return AdminPrincipal(user_id=user_id)
