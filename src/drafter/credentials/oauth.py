"""Client for the GitHub OAuth web flow endpoints used by a GitHub App."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

import httpx

from drafter.credentials.models import utcnow
from drafter.errors import AuthenticationRequiredError, TransientHostError


logger = logging.getLogger(__name__)


@dataclass
class TokenGrant:
    """Tokens returned by the OAuth token endpoint."""

    access_token: str
    refresh_token: str
    refresh_token_expires_at: datetime


class GitHubOAuthClient:
    """Exchanges codes and refresh tokens at the GitHub token endpoint."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        github_url: str = "https://github.com",
        api_url: str = "https://api.github.com",
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = f"{github_url.rstrip('/')}/login/oauth/access_token"
        self._api_url = api_url.rstrip("/")

    async def exchange_code(self, code: str) -> TokenGrant:
        """Exchange a web flow code for an access token and refresh token."""
        logger.info("Exchanging OAuth code for a user token")
        return await self._request_token({"code": code})

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new access token and rotated refresh token."""
        logger.info("Refreshing user token")
        return await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    async def get_user_login(self, access_token: str) -> str:
        """Get the login of the user an access token belongs to."""
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self._api_url}/user",
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Accept": "application/vnd.github+json",
                        "X-GitHub-Api-Version": "2022-11-28",
                    },
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise TransientHostError(f"Failed to get the authenticated user: {e}") from e
        return data["login"]

    async def _request_token(self, params: dict[str, str]) -> TokenGrant:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self._token_url,
                    data={
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        **params,
                    },
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise TransientHostError(f"Token request failed: {e}") from e

        if "error" in data:
            raise AuthenticationRequiredError(
                f"GitHub rejected the token request: {data.get('error_description') or data['error']}"
            )

        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token")
        expires_in = data.get("refresh_token_expires_in")
        if not access_token:
            raise AuthenticationRequiredError("Bad token")
        if not refresh_token or expires_in is None:
            raise AuthenticationRequiredError(
                "Bad refresh token - make sure user-to-server token expiration is enabled for the app"
            )

        logger.info("Received a valid token and refresh token")
        return TokenGrant(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_token_expires_at=utcnow() + timedelta(seconds=int(expires_in)),
        )
