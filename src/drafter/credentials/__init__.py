"""Credential lifecycle management for user OAuth tokens."""

from drafter.credentials.cipher import TokenCipher
from drafter.credentials.manager import CredentialManager
from drafter.credentials.models import CredentialRecord
from drafter.credentials.oauth import GitHubOAuthClient, TokenGrant
from drafter.credentials.store import BaseCredentialStore, SQLiteCredentialStore

__all__ = [
    "BaseCredentialStore",
    "CredentialManager",
    "CredentialRecord",
    "GitHubOAuthClient",
    "SQLiteCredentialStore",
    "TokenCipher",
    "TokenGrant",
]
