"""Data models for GitHub entities."""

from dataclasses import dataclass
from datetime import datetime


# Marks a status comment reporting a failure for its file
ERROR_ICON = "⛔️"
APPROVAL_REACTION = "rocket"


@dataclass
class PullRequestInfo:
    """The pull request a webhook delivery is about."""

    owner: str
    repo: str
    number: int
    author_login: str
    head_ref: str
    head_sha: str
    base_ref: str
    default_branch: str
    html_url: str = ""
    draft: bool = False
    merged: bool = False
    private: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def targets_default_branch(self) -> bool:
        return self.base_ref == self.default_branch

    @classmethod
    def from_payload(cls, payload: dict) -> "PullRequestInfo":
        """Create from a ``pull_request`` webhook payload."""
        pr = payload.get("pull_request", {})
        repo = payload.get("repository", {})
        return cls(
            owner=repo.get("owner", {}).get("login", ""),
            repo=repo.get("name", ""),
            number=pr.get("number", 0),
            author_login=pr.get("user", {}).get("login", ""),
            head_ref=pr.get("head", {}).get("ref", ""),
            head_sha=pr.get("head", {}).get("sha", ""),
            base_ref=pr.get("base", {}).get("ref", ""),
            default_branch=repo.get("default_branch", ""),
            html_url=pr.get("html_url", ""),
            draft=bool(pr.get("draft", False)),
            merged=bool(pr.get("merged", False)),
            private=bool(repo.get("private", False)),
        )


@dataclass
class PullRequestFile:
    """A file changed in a pull request."""

    path: str
    status: str = "modified"  # "added", "modified", "removed", "renamed", ...


@dataclass
class StatusComment:
    """A review comment, possibly the app's status comment for a file."""

    id: int
    body: str
    author_login: str
    path: str | None = None
    updated_at: datetime | None = None
    in_reply_to_id: int | None = None

    @property
    def is_reply(self) -> bool:
        return self.in_reply_to_id is not None

    @property
    def is_error_state(self) -> bool:
        return ERROR_ICON in self.body

    def is_status_comment_of(self, app_login: str) -> bool:
        """App-authored, top level and bound to a file."""
        return self.author_login == app_login and not self.is_reply and bool(self.path)


@dataclass
class Reaction:
    """A reaction on a review comment."""

    comment_id: int
    reactor_login: str
    content: str

    def is_approval_by(self, login: str) -> bool:
        return self.content == APPROVAL_REACTION and self.reactor_login == login


@dataclass
class AppIdentity:
    """The authenticated GitHub App."""

    id: int
    name: str
    slug: str
    html_url: str

    @property
    def login(self) -> str:
        return f"{self.slug}[bot]"

    @property
    def link_markdown(self) -> str:
        return f"[@{self.name}]({self.html_url})"


@dataclass
class RepositoryData:
    """Repository metadata needed to post a discussion."""

    node_id: str
    full_name: str
    private: bool = False


@dataclass
class DiscussionCategory:
    id: str
    name: str


@dataclass
class RepositoryLabel:
    id: str
    name: str


@dataclass
class PublishedDiscussion:
    """A discussion created by the app."""

    title: str
    url: str
    kind: str  # "repository" or "team"
    id: str | None = None
