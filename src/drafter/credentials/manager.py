"""Credential lifecycle: storage, expiry and rotation of user refresh tokens."""

import logging
from datetime import datetime

from drafter.credentials.cipher import TokenCipher
from drafter.credentials.models import CredentialRecord, parse_timestamp, utcnow
from drafter.credentials.oauth import GitHubOAuthClient
from drafter.credentials.store import BaseCredentialStore
from drafter.errors import (
    AuthenticationRequiredError,
    CredentialDecryptionError,
    NeedsReauthentication,
)


logger = logging.getLogger(__name__)


class CredentialManager:
    """Manages encrypted refresh tokens keyed by GitHub login.

    A record is only usable while it has not expired. Every successful refresh
    rotates the stored refresh token.
    """

    def __init__(
        self,
        store: BaseCredentialStore,
        cipher: TokenCipher,
        oauth_client: GitHubOAuthClient,
    ):
        """Initialize credential manager.

        Args:
            store: Keyed credential store
            cipher: Cipher used to encrypt refresh tokens at rest
            oauth_client: Client for the GitHub token endpoint
        """
        self.store = store
        self.cipher = cipher
        self.oauth = oauth_client

    def get(self, user_login: str) -> CredentialRecord | None:
        """Get the stored credential for a user.

        Returns:
            The record, or None if there is none or it has expired
        """
        logger.info(f"Getting refresh token for {user_login}")
        record = self.store.get(user_login)
        if not self.is_valid(record):
            return None
        return record

    def is_valid(self, record: CredentialRecord | None) -> bool:
        """Whether a record exists and has not expired."""
        if record is None:
            logger.info("No refresh token found for the user")
            return False
        if record.is_expired():
            logger.info(f"The refresh token for {record.id} is expired")
            return False
        return True

    async def upsert(
        self,
        access_token: str,
        refresh_token: str,
        expires_at: datetime | str,
        user_login: str | None = None,
        issued_at: datetime | None = None,
    ) -> CredentialRecord:
        """Encrypt and store a refresh token.

        Args:
            access_token: Access token, used to look up the login when unknown
            refresh_token: Refresh token to store
            expires_at: Refresh token expiry
            user_login: Login of the token owner, if already known
            issued_at: When the refresh token was issued (defaults to now)

        Returns:
            The stored record
        """
        login = user_login
        if not login:
            logger.info("Looking up the authenticated user for the new token")
            login = await self.oauth.get_user_login(access_token)

        record = CredentialRecord(
            id=login,
            encrypted_refresh_token=self.cipher.encrypt(refresh_token),
            expires_at=parse_timestamp(expires_at),
            issued_at=issued_at or utcnow(),
        )
        logger.info(f"Upserting refresh token for {login}")
        self.store.upsert(record)
        return record

    def delete(self, user_login: str) -> None:
        """Delete a user's credential. Deleting a missing credential is a no-op."""
        logger.info(f"Deleting refresh token for {user_login}")
        if self.store.delete(user_login):
            logger.info("Deleted user token.")
        else:
            logger.info("No token found for the user.")

    async def refresh_access_token(self, user_login: str) -> str:
        """Get a fresh access token for a user, rotating their refresh token.

        Args:
            user_login: GitHub login

        Returns:
            New access token

        Raises:
            NeedsReauthentication: If no usable credential exists
        """
        logger.info(f"Refreshing user token for {user_login}")
        record = self.get(user_login)
        if record is None:
            raise NeedsReauthentication(f"{user_login} needs to re-authenticate")

        try:
            refresh_token = self.cipher.decrypt(record.encrypted_refresh_token)
        except CredentialDecryptionError as e:
            logger.warning(f"Stored refresh token for {user_login} is unreadable, deleting it")
            self.delete(user_login)
            raise NeedsReauthentication(f"{user_login} needs to re-authenticate") from e

        try:
            grant = await self.oauth.refresh(refresh_token)
        except AuthenticationRequiredError as e:
            logger.warning(f"Refresh token for {user_login} was rejected, deleting it")
            self.delete(user_login)
            raise NeedsReauthentication(f"{user_login} needs to re-authenticate") from e

        logger.info("Storing the rotated refresh token")
        await self.upsert(
            grant.access_token,
            grant.refresh_token,
            grant.refresh_token_expires_at,
            user_login=user_login,
        )
        return grant.access_token
