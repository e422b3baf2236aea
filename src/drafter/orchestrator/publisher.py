"""Publishing announcement documents as repository or team discussions."""

import logging
import unicodedata
from typing import Callable

from drafter.document import AnnouncementDocument, TargetRef
from drafter.errors import (
    AppNotInstalledError,
    CategoryNotFoundError,
    DiscussionsDisabledError,
    MissingOwnerError,
    MissingTargetError,
    TransientHostError,
    UserInputError,
)
from drafter.github import DiscussionCategory, GitHubClient, PublishedDiscussion
from drafter.server.config import AppConfig
from drafter.server.github_app import GitHubAppAuth


logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """Fold case and strip accents so "Nëws" and "news" compare equal."""
    decomposed = unicodedata.normalize("NFKD", name.strip())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def match_category(
    categories: list[DiscussionCategory], requested: str
) -> DiscussionCategory | None:
    """Find the category matching a requested name, ignoring case and accents."""
    wanted = normalize_name(requested)
    for category in categories:
        if normalize_name(category.name) == wanted:
            return category
    return None


class DiscussionPublisher:
    """Validates and creates the discussions an announcement asks for.

    With ``dry_run`` every precondition (installation, target repository,
    discussion category) is checked but nothing is created.
    """

    def __init__(
        self,
        github: GitHubClient,
        app_auth: GitHubAppAuth,
        config: AppConfig,
        user_client_factory: Callable[[str], GitHubClient] | None = None,
    ):
        """Initialize publisher.

        Args:
            github: Installation client, used for reads
            app_auth: App authentication, used for installation checks
            config: Per-delivery configuration
            user_client_factory: Builds a client acting as the author
        """
        self.github = github
        self.app_auth = app_auth
        self.config = config
        self._user_client_factory = user_client_factory or (lambda token: GitHubClient(token=token))

    async def publish(
        self,
        document: AnnouncementDocument,
        user_token: str | None = None,
        dry_run: bool = True,
        footer: str | None = None,
        on_published: Callable[[PublishedDiscussion], None] | None = None,
    ) -> list[PublishedDiscussion]:
        """Publish a document to its targets.

        Targets are published in order (repository, then team). A failing
        target stops the ones after it, but every discussion created before
        the failure has already been passed to ``on_published``.

        Args:
            document: Parsed announcement
            user_token: Author's access token (unused for dry runs)
            dry_run: Validate only
            footer: Text appended to the discussion body
            on_published: Called with each discussion as soon as it exists

        Returns:
            Discussions created (empty for dry runs)

        Raises:
            UserInputError: If a precondition fails
        """
        if not document.has_target:
            raise MissingTargetError("Markdown is missing a repo or team to post the discussion to")

        dry_run = dry_run or self.config.dry_run_posts
        if not dry_run and not user_token:
            raise ValueError("A user token is required to publish")

        body = document.body + (footer or "")
        published: list[PublishedDiscussion] = []

        if document.target_repo:
            discussion = await self._publish_to_repo(document, document.target_repo, body, user_token, dry_run)
            if discussion:
                published.append(discussion)
                if on_published:
                    on_published(discussion)

        if document.target_team:
            discussion = await self._publish_to_team(document, document.target_team, body, user_token, dry_run)
            if discussion:
                published.append(discussion)
                if on_published:
                    on_published(discussion)

        return published

    async def _require_installation(self, target: TargetRef, kind: str) -> None:
        if not target.owner:
            raise MissingOwnerError(
                f"Missing target {kind} owner - the {kind} url should include the owner (organization)"
            )
        if not await self.app_auth.app_is_installed(target.owner):
            raise AppNotInstalledError(
                f'The app is not installed on the organization or user "{target.owner}"'
            )

    async def _publish_to_repo(
        self,
        document: AnnouncementDocument,
        target: TargetRef,
        body: str,
        user_token: str | None,
        dry_run: bool,
    ) -> PublishedDiscussion | None:
        await self._require_installation(target, "repo")

        repo = self.github.get_repository(target.owner, target.name)
        category = self.resolve_category(target, document.discussion_category_name)

        if dry_run:
            logger.info(f"DRY RUN: not creating a discussion in {target.full_name}")
            return None

        user_client = self._user_client_factory(user_token)  # type: ignore[arg-type]
        discussion = user_client.create_repository_discussion(
            repo_node_id=repo.node_id,
            category_node_id=category.id,
            title=document.title,
            body=body,
        )

        # The discussion exists at this point, so labelling failures are only logged
        try:
            label_ids = self._resolve_label_ids(target, document.labels)
            if label_ids and discussion.id:
                user_client.add_labels_to_discussion(discussion.id, label_ids)
        except TransientHostError as e:
            logger.warning(f"Failed to label discussion {discussion.url}: {e}")

        return discussion

    async def _publish_to_team(
        self,
        document: AnnouncementDocument,
        target: TargetRef,
        body: str,
        user_token: str | None,
        dry_run: bool,
    ) -> PublishedDiscussion | None:
        await self._require_installation(target, "team")

        if dry_run:
            logger.info(f"DRY RUN: not creating a team post in {target.full_name}")
            return None

        user_client = self._user_client_factory(user_token)  # type: ignore[arg-type]
        return user_client.create_team_discussion(
            org=target.owner,
            team_slug=target.name,
            title=document.title,
            body=body,
        )

    def resolve_category(self, target: TargetRef, category_name: str | None) -> DiscussionCategory:
        """Resolve a category name against the live categories of a repository.

        Raises:
            UserInputError: If discussions are disabled or nothing matches
        """
        if not category_name:
            raise UserInputError("Missing discussion category name")

        categories = self.github.get_discussion_categories(target.owner, target.name)
        if not categories:
            raise DiscussionsDisabledError(f"Discussions are not enabled on {target.full_name}")

        match = match_category(categories, category_name)
        if match is None:
            raise CategoryNotFoundError(
                f'Could not find discussion category "{category_name}" in {target.full_name}.'
            )
        return match

    def _resolve_label_ids(self, target: TargetRef, labels: list[str]) -> list[str]:
        if not labels:
            return []
        available = {
            normalize_name(label.name): label.id
            for label in self.github.get_repository_labels(target.owner, target.name)
        }
        label_ids = []
        for name in labels:
            label_id = available.get(normalize_name(name))
            if label_id:
                label_ids.append(label_id)
            else:
                logger.warning(f'Label "{name}" does not exist in {target.full_name}, skipping')
        return label_ids
