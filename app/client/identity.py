from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
import structlog

from app.core.config import settings
from app.core.exceptions import AuthRequired, StoreError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class UserIdentity:
    id: int
    username: str
    access_token: Optional[str] = None


class IdentityProvider(Protocol):
    def current_user(self) -> Optional[UserIdentity]:
        ...


def require_user(identity: IdentityProvider) -> UserIdentity:
    """Return the signed-in user or raise AuthRequired"""
    user = identity.current_user()
    if user is None:
        raise AuthRequired()
    return user


class StaticIdentityProvider:
    """Holds an identity set by the caller; used offline and in tests"""

    def __init__(self, user: Optional[UserIdentity] = None):
        self._user = user

    def current_user(self) -> Optional[UserIdentity]:
        return self._user

    def sign_in(self, user: UserIdentity) -> None:
        self._user = user

    def sign_out(self) -> None:
        self._user = None


class ApiIdentityProvider:
    """Signs in against the notes service and keeps the issued tokens"""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client
        self._user: Optional[UserIdentity] = None
        self._refresh_token: Optional[str] = None

    @classmethod
    def from_settings(cls) -> "ApiIdentityProvider":
        return cls(httpx.AsyncClient(base_url=settings.API_BASE_URL))

    def current_user(self) -> Optional[UserIdentity]:
        return self._user

    async def sign_in(self, username: str, password: str) -> UserIdentity:
        try:
            response = await self._client.post(
                "/auth/login", data={"username": username, "password": password}
            )
        except httpx.HTTPError as e:
            raise StoreError(f"Sign in failed: {e}") from e
        if response.status_code == 401:
            raise AuthRequired("Incorrect username or password")
        if response.is_error:
            raise StoreError("Sign in failed", status_code=response.status_code)

        tokens = response.json()
        access_token = tokens["access_token"]
        self._refresh_token = tokens["refresh_token"]

        profile = await self._client.get(
            "/users/me", headers={"Authorization": f"Bearer {access_token}"}
        )
        if profile.is_error:
            raise StoreError("Could not load user profile", status_code=profile.status_code)
        data = profile.json()
        self._user = UserIdentity(id=data["id"], username=data["username"], access_token=access_token)
        logger.info("Signed in", user_id=self._user.id)
        return self._user

    async def refresh(self) -> UserIdentity:
        """Exchange the refresh token for a new access token"""
        user = require_user(self)
        response = await self._client.post("/auth/refresh", json={"refresh_token": self._refresh_token})
        if response.is_error:
            self._user = None
            raise AuthRequired("Session expired")
        self._user = UserIdentity(
            id=user.id, username=user.username, access_token=response.json()["access_token"]
        )
        return self._user

    async def sign_out(self) -> None:
        user = self._user
        self._user = None
        self._refresh_token = None
        if user is None:
            return
        try:
            await self._client.post(
                "/auth/logout", headers={"Authorization": f"Bearer {user.access_token}"}
            )
        except httpx.HTTPError as e:
            logger.warning("Sign out request failed", error=str(e))
