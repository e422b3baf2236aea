"""Shared service instances for webhook handlers and routes."""

from functools import lru_cache

from drafter.auth import OAuthService
from drafter.credentials import (
    CredentialManager,
    GitHubOAuthClient,
    SQLiteCredentialStore,
    TokenCipher,
)
from drafter.server.config import get_settings


@lru_cache
def get_credential_manager() -> CredentialManager:
    """Get cached credential manager backed by the configured store."""
    settings = get_settings()
    return CredentialManager(
        store=SQLiteCredentialStore(settings.credential_store_path),
        cipher=TokenCipher(settings.get_token_encryption_key()),
        oauth_client=GitHubOAuthClient(
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            github_url=settings.github_url,
            api_url=settings.github_api_url,
        ),
    )


@lru_cache
def get_oauth_service() -> OAuthService:
    """Get cached OAuth service."""
    settings = get_settings()
    return OAuthService(
        client_id=settings.github_client_id,
        client_secret=settings.github_client_secret,
        credentials=get_credential_manager(),
        default_redirect_url=settings.default_redirect_url,
        github_url=settings.github_url,
    )
