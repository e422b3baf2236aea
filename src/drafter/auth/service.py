"""OAuth web flow: authorize redirect and callback handling."""

import logging
from dataclasses import dataclass
from urllib.parse import urlencode

from drafter.auth.state import decode_state, encode_state, is_valid_http_url
from drafter.credentials import CredentialManager


logger = logging.getLogger(__name__)


@dataclass
class AuthorizationResult:
    """Outcome of a completed OAuth callback."""

    user_login: str
    redirect_url: str
    returns_to_pull_request: bool


class OAuthService:
    """Drives the user authorization round trip for the GitHub App."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        credentials: CredentialManager,
        default_redirect_url: str,
        github_url: str = "https://github.com",
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._credentials = credentials
        self._default_redirect_url = default_redirect_url
        self._authorize_url = f"{github_url.rstrip('/')}/login/oauth/authorize"

    def authorize_url(self, redirect_uri: str, pull_url: str | None = None) -> str:
        """Build the GitHub authorize URL with an encrypted state.

        Args:
            redirect_uri: Absolute URL of the OAuth callback route
            pull_url: Pull request the user came from

        Returns:
            URL to redirect the browser to
        """
        state = encode_state(self._client_id, pull_url, self._client_secret)
        params = urlencode(
            {
                "client_id": self._client_id,
                "redirect_uri": redirect_uri,
                "state": state,
            }
        )
        return f"{self._authorize_url}?{params}"

    def resolve_redirect(self, state: str) -> str:
        """Validate the state and pick the post-authorization redirect.

        Raises:
            ProtocolIntegrityError: If the state is invalid
        """
        decoded = decode_state(state, self._client_secret, self._client_id)
        if is_valid_http_url(decoded.originating_url):
            return decoded.originating_url  # type: ignore[return-value]
        return self._default_redirect_url

    async def complete(self, code: str, state: str) -> AuthorizationResult:
        """Handle the OAuth callback.

        The state is validated before the code is exchanged so a rejected
        state never causes a token exchange or a store write.

        Args:
            code: Web flow code from GitHub
            state: Encrypted state from the authorize redirect

        Returns:
            AuthorizationResult with the redirect target
        """
        redirect_url = self.resolve_redirect(state)

        grant = await self._credentials.oauth.exchange_code(code)
        record = await self._credentials.upsert(
            grant.access_token,
            grant.refresh_token,
            grant.refresh_token_expires_at,
        )
        logger.info(f"Stored credential for {record.id}")

        return AuthorizationResult(
            user_login=record.id,
            redirect_url=redirect_url,
            returns_to_pull_request=redirect_url != self._default_redirect_url,
        )
