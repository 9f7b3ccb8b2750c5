"""Supabase Auth client.

Provides:
- sign_in: email/password sign-in (POST /auth/v1/token?grant_type=password)
- sign_up: account creation (POST /auth/v1/signup)
- sign_out: session revocation (POST /auth/v1/logout)

The returned AuthSession carries the opaque user ID that scopes every row and
blob path, and the access token row-level security checks on each request.
"""

from dataclasses import dataclass

import httpx

from eburon.errors import AuthError
from eburon.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthSession:
    """Signed-in principal.

    Attributes:
        user_id: Supabase auth user ID
        email: Account email (may be empty for non-email providers)
        access_token: JWT sent as the bearer token on data requests
    """

    user_id: str
    email: str
    access_token: str


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if not isinstance(data, dict):
        return f"HTTP {response.status_code}"
    return str(
        data.get("error_description")
        or data.get("msg")
        or data.get("message")
        or data.get("error")
        or f"HTTP {response.status_code}"
    )


class SupabaseAuthClient:
    """Email/password auth against Supabase GoTrue."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        supabase_url: str,
        api_key: str,
        timeout_s: float = 30.0,
    ):
        self._client = client
        self._auth_url = f"{supabase_url.rstrip('/')}/auth/v1"
        self._api_key = api_key
        self._timeout = timeout_s

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in with email and password.

        Raises:
            AuthError: If credentials are rejected or the request fails.
        """
        data = await self._post(
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = self._to_session(data)
        if session is None:
            raise AuthError("Sign-in response did not include a session")
        logger.info("auth.sign_in.completed", user_id=session.user_id)
        return session

    async def sign_up(self, email: str, password: str) -> AuthSession | None:
        """Create an account.

        Returns:
            The new session, or None when email confirmation is pending.

        Raises:
            AuthError: If the account cannot be created.
        """
        data = await self._post("/signup", json={"email": email, "password": password})
        session = self._to_session(data)
        logger.info("auth.sign_up.completed", confirmation_pending=session is None)
        return session

    async def sign_out(self, session: AuthSession) -> None:
        """Revoke the session's refresh tokens.

        Raises:
            AuthError: If the request fails.
        """
        await self._post("/logout", access_token=session.access_token)
        logger.info("auth.sign_out.completed", user_id=session.user_id)

    async def _post(
        self,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict | None = None,
        access_token: str | None = None,
    ) -> dict:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {access_token or self._api_key}",
        }
        try:
            response = await self._client.post(
                f"{self._auth_url}{path}",
                params=params,
                json=json,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Auth request failed: {type(e).__name__}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning("auth.request.failed", path=path, status_code=response.status_code)
            raise AuthError(message)

        if response.status_code == 204 or not response.content:
            return {}
        data = response.json()
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _to_session(data: dict) -> AuthSession | None:
        token = data.get("access_token")
        user = data.get("user") or {}
        if not token or not user.get("id"):
            return None
        return AuthSession(user_id=user["id"], email=user.get("email", ""), access_token=token)
