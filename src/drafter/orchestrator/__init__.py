"""Pull request orchestration and discussion publishing."""

from drafter.orchestrator.publisher import DiscussionPublisher, match_category, normalize_name
from drafter.orchestrator.pull_request import PullRequestOrchestrator

__all__ = [
    "DiscussionPublisher",
    "PullRequestOrchestrator",
    "match_category",
    "normalize_name",
]
