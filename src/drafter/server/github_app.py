"""GitHub App authentication and app-level API calls."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache

import httpx
import jwt

from drafter.errors import TransientHostError
from drafter.github.models import AppIdentity
from drafter.server.config import Settings, get_settings


logger = logging.getLogger(__name__)


@dataclass
class InstallationAuth:
    """Authentication for a GitHub App installation."""

    installation_id: int
    token: str
    expires_at: float


class GitHubAppAuth:
    """GitHub App authentication manager."""

    def __init__(self, settings: Settings | None = None):
        """Initialize GitHub App authentication.

        Args:
            settings: Server settings (uses default if not provided)
        """
        self.settings = settings or get_settings()
        self._private_key = self.settings.get_private_key()
        self._app_id = self.settings.github_app_id
        self._api_url = self.settings.github_api_url.rstrip("/")
        self._installation_tokens: dict[int, InstallationAuth] = {}

    def generate_jwt(self, expiration_seconds: int = 600) -> str:
        """Generate a JWT for GitHub App authentication.

        Args:
            expiration_seconds: JWT expiration time in seconds

        Returns:
            JWT token string
        """
        now = int(time.time())
        payload = {
            "iat": now - 60,  # clock drift
            "exp": now + expiration_seconds,
            "iss": str(self._app_id),
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    def _app_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.generate_jwt()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def get_installation_token(self, installation_id: int) -> str:
        """Get an installation access token.

        Args:
            installation_id: GitHub App installation ID

        Returns:
            Installation access token
        """
        cached = self._installation_tokens.get(installation_id)
        if cached and cached.expires_at > time.time() + 300:  # 5 min buffer
            return cached.token

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self._api_url}/app/installations/{installation_id}/access_tokens",
                    headers=self._app_headers(),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise TransientHostError(f"Failed to get installation token: {e}") from e

        expires_at = time.time() + 3600  # Default 1 hour
        if "expires_at" in data:
            exp_dt = datetime.fromisoformat(data["expires_at"].replace("Z", "+00:00"))
            expires_at = exp_dt.timestamp()

        auth = InstallationAuth(
            installation_id=installation_id,
            token=data["token"],
            expires_at=expires_at,
        )
        self._installation_tokens[installation_id] = auth

        return auth.token

    async def get_authenticated_app(self) -> AppIdentity:
        """Get the identity of the running GitHub App."""
        logger.info("Getting authenticated app...")
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{self._api_url}/app", headers=self._app_headers())
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise TransientHostError(f"Failed to get authenticated app: {e}") from e

        return AppIdentity(
            id=data["id"],
            name=data["name"],
            slug=data["slug"],
            html_url=data["html_url"],
        )

    async def app_is_installed(self, owner: str) -> bool:
        """Check whether the app is installed on an organization or user.

        Args:
            owner: Organization or user login

        Returns:
            True if an installation for the owner exists
        """
        logger.debug(f"Checking app installations for {owner}...")
        page = 1
        try:
            async with httpx.AsyncClient() as client:
                while True:
                    response = await client.get(
                        f"{self._api_url}/app/installations",
                        params={"per_page": 100, "page": page},
                        headers=self._app_headers(),
                    )
                    response.raise_for_status()
                    installations = response.json()
                    for installation in installations:
                        account = installation.get("account") or {}
                        if account.get("login", "").lower() == owner.lower():
                            logger.debug(f"App is installed on {owner}")
                            return True
                    if len(installations) < 100:
                        break
                    page += 1
        except httpx.HTTPError as e:
            raise TransientHostError(f"Failed to list app installations: {e}") from e

        logger.debug(f"App is not installed on {owner}")
        return False


@lru_cache
def get_github_app_auth() -> GitHubAppAuth:
    """Get cached GitHub App auth instance."""
    return GitHubAppAuth()
