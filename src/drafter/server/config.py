"""Configuration for the webhook server."""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

from pydantic_settings import BaseSettings, SettingsConfigDict


# App ID of the production GitHub App. Any other app id is treated as a
# development install sharing the same credential store.
PROD_APP_ID = 145106

REPO_SETTINGS_PATH = ".github/announcement-drafter.yml"


class Settings(BaseSettings):
    """Server configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False

    # GitHub App settings
    github_app_id: int
    github_app_private_key: str = ""
    github_app_private_key_path: str = ""
    github_webhook_secret: str = ""
    github_client_id: str = ""
    github_client_secret: str = ""
    github_api_url: str = "https://api.github.com"
    github_url: str = "https://github.com"
    prod_app_id: int = PROD_APP_ID

    # OAuth / links
    base_url: str = "http://localhost:3000"
    auth_url: str = "/login/oauth/authorize"
    callback_url: str = "/login/oauth/callback"
    default_redirect_url: str = "https://github.com/philip-gai/announcement-drafter"

    # Credential store
    credential_store_path: str = "credentials.db"
    token_encryption_key: str = ""

    # Dry run switches
    dry_run_comments: bool = False
    dry_run_posts: bool = False

    # Logging
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        """Whether the running app identity is the production app."""
        return self.github_app_id == self.prod_app_id

    def get_private_key(self) -> str:
        """Get the GitHub App private key."""
        if self.github_app_private_key:
            return self.github_app_private_key

        if self.github_app_private_key_path:
            key_path = Path(self.github_app_private_key_path)
            if key_path.exists():
                return key_path.read_text()

        raise ValueError(
            "GitHub App private key not configured. "
            "Set GITHUB_APP_PRIVATE_KEY or GITHUB_APP_PRIVATE_KEY_PATH"
        )

    def get_token_encryption_key(self) -> str:
        """Get the password used to encrypt refresh tokens at rest."""
        key = self.token_encryption_key or self.github_client_secret
        if not key:
            raise ValueError(
                "Token encryption key not configured. "
                "Set TOKEN_ENCRYPTION_KEY or GITHUB_CLIENT_SECRET"
            )
        return key


@dataclass(frozen=True)
class RepoSettings:
    """Per-repository settings from .github/announcement-drafter.yml."""

    watch_folders: tuple[str, ...] = ()
    ignore_folders: tuple[str, ...] = ()
    require_approval: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RepoSettings":
        """Create settings from the parsed YAML file.

        Args:
            data: Parsed YAML mapping (None when the file is absent)

        Returns:
            RepoSettings instance
        """
        data = data or {}
        return cls(
            watch_folders=_as_folders(data.get("watch_folders")),
            ignore_folders=_as_folders(data.get("ignore_folders")),
            require_approval=bool(data.get("require_approval", False)),
        )

    def should_publish(self, filepath: str) -> bool:
        """Whether an added file is an announcement the app should handle."""
        watched = any(filepath.startswith(folder) for folder in self.watch_folders)
        ignored = any(filepath.startswith(folder) for folder in self.ignore_folders)
        return watched and not ignored and filepath.endswith(".md")


@dataclass(frozen=True)
class AppConfig:
    """Immutable configuration for a single webhook delivery."""

    app_id: int
    prod_app_id: int
    base_url: str
    auth_url: str
    dry_run_comments: bool = False
    dry_run_posts: bool = False
    repo_settings: RepoSettings = field(default_factory=RepoSettings)

    @classmethod
    def build(cls, settings: Settings, repo_settings: RepoSettings | None = None) -> "AppConfig":
        """Snapshot server settings plus repository settings for one delivery."""
        return cls(
            app_id=settings.github_app_id,
            prod_app_id=settings.prod_app_id,
            base_url=settings.base_url.rstrip("/"),
            auth_url=settings.auth_url,
            dry_run_comments=settings.dry_run_comments,
            dry_run_posts=settings.dry_run_posts,
            repo_settings=repo_settings or RepoSettings(),
        )

    @property
    def is_production(self) -> bool:
        return self.app_id == self.prod_app_id

    def auth_link(self, pull_url: str) -> str:
        """Link the author follows to authorize the app."""
        return f"{self.base_url}{self.auth_url}?{urlencode({'pull_url': pull_url})}"


def _as_folders(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = [value]
    return tuple(str(folder) for folder in value if folder)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]
