"""Pytest fixtures for drafter tests."""

import os

# Settings are read from the environment when the server modules load
os.environ.setdefault("GITHUB_APP_ID", "12345")
os.environ.setdefault("GITHUB_CLIENT_ID", "Iv1.testclient")
os.environ.setdefault("GITHUB_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("GITHUB_WEBHOOK_SECRET", "")
os.environ.setdefault("CREDENTIAL_STORE_PATH", ":memory:")

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from drafter.credentials import CredentialManager, CredentialRecord, SQLiteCredentialStore, TokenCipher
from drafter.credentials.models import utcnow
from drafter.github import AppIdentity, PullRequestFile, PullRequestInfo, RepositoryData, DiscussionCategory
from drafter.server.config import PROD_APP_ID, AppConfig, RepoSettings


ANNOUNCEMENT = """<!--
repo: https://github.com/acme/widgets
category: Announcements
labels: release, news
-->

# Widgets 2.0 is out

Everything is faster now.
"""


@pytest.fixture
def app_identity():
    """The running GitHub App."""
    return AppIdentity(
        id=1,
        name="announcement-drafter",
        slug="announcement-drafter",
        html_url="https://github.com/apps/announcement-drafter",
    )


@pytest.fixture
def pull():
    """An open pull request targeting the default branch."""
    return PullRequestInfo(
        owner="acme",
        repo="docs",
        number=7,
        author_login="octocat",
        head_ref="feature/announce",
        head_sha="abc123",
        base_ref="main",
        default_branch="main",
        html_url="https://github.com/acme/docs/pull/7",
    )


@pytest.fixture
def repo_settings():
    return RepoSettings(watch_folders=("docs/",))


@pytest.fixture
def prod_config(repo_settings):
    """Configuration for the production app."""
    return AppConfig(
        app_id=PROD_APP_ID,
        prod_app_id=PROD_APP_ID,
        base_url="https://drafter.example.com",
        auth_url="/login/oauth/authorize",
        repo_settings=repo_settings,
    )


@pytest.fixture
def dev_config(repo_settings):
    """Configuration for a development app sharing the credential store."""
    return AppConfig(
        app_id=999,
        prod_app_id=PROD_APP_ID,
        base_url="https://drafter.example.com",
        auth_url="/login/oauth/authorize",
        repo_settings=repo_settings,
    )


@pytest.fixture
def mock_github_client():
    """Installation client with one announcement file added."""
    client = MagicMock()
    client.get_pull_request_files.return_value = [
        PullRequestFile(path="docs/announce.md", status="added"),
    ]
    client.get_file_content.return_value = ANNOUNCEMENT
    client.get_review_comments.return_value = []
    client.get_repository.return_value = RepositoryData(
        node_id="R_widgets", full_name="acme/widgets"
    )
    client.get_discussion_categories.return_value = [
        DiscussionCategory(id="DIC_1", name="Announcements"),
    ]
    client.get_repository_labels.return_value = []
    return client


@pytest.fixture
def mock_app_auth(app_identity):
    """App authentication installed everywhere."""
    auth = MagicMock()
    auth.get_authenticated_app = AsyncMock(return_value=app_identity)
    auth.app_is_installed = AsyncMock(return_value=True)
    auth.get_installation_token = AsyncMock(return_value="ghs_installation")
    return auth


@pytest.fixture
def mock_oauth_client():
    """OAuth client that never talks to GitHub."""
    return MagicMock(
        exchange_code=AsyncMock(),
        refresh=AsyncMock(),
        get_user_login=AsyncMock(return_value="octocat"),
    )


@pytest.fixture
def credential_store():
    store = SQLiteCredentialStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def cipher():
    return TokenCipher("test-client-secret")


@pytest.fixture
def credential_manager(credential_store, cipher, mock_oauth_client):
    return CredentialManager(credential_store, cipher, mock_oauth_client)


@pytest.fixture
def stored_credential(credential_store, cipher):
    """A valid credential for the PR author."""
    record = CredentialRecord(
        id="octocat",
        encrypted_refresh_token=cipher.encrypt("ghr_original"),
        expires_at=utcnow() + timedelta(days=30),
    )
    credential_store.upsert(record)
    return record
