"""GitHub integration module for drafter."""

from drafter.github.client import GitHubClient, GitHubClientError
from drafter.github.models import (
    AppIdentity,
    DiscussionCategory,
    PublishedDiscussion,
    PullRequestFile,
    PullRequestInfo,
    Reaction,
    RepositoryData,
    RepositoryLabel,
    StatusComment,
)

__all__ = [
    "GitHubClient",
    "GitHubClientError",
    "AppIdentity",
    "DiscussionCategory",
    "PublishedDiscussion",
    "PullRequestFile",
    "PullRequestInfo",
    "Reaction",
    "RepositoryData",
    "RepositoryLabel",
    "StatusComment",
]
