"""Pull request lifecycle: status comments on update, discussions on merge."""

import logging
from typing import Callable

from drafter.credentials import CredentialManager
from drafter.document import AnnouncementDocument, parse
from drafter.errors import AuthenticationRequiredError, MissingTargetError, TransientHostError
from drafter.github import AppIdentity, GitHubClient, PullRequestInfo, StatusComment
from drafter.orchestrator import templates
from drafter.orchestrator.publisher import DiscussionPublisher
from drafter.server.config import AppConfig
from drafter.server.github_app import GitHubAppAuth


logger = logging.getLogger(__name__)


class PullRequestOrchestrator:
    """Drives the announcement workflow for one pull request.

    Files are handled one at a time. Each file's failure is reported (on
    update) or logged (on merge) without stopping the remaining files.
    """

    def __init__(
        self,
        github: GitHubClient,
        app_auth: GitHubAppAuth,
        credentials: CredentialManager,
        config: AppConfig,
        user_client_factory: Callable[[str], GitHubClient] | None = None,
    ):
        """Initialize orchestrator.

        Args:
            github: Installation client for the PR's repository
            app_auth: App authentication for app-level calls
            credentials: Credential manager for author tokens
            config: Configuration for this delivery
            user_client_factory: Builds a client acting as the author
        """
        self.github = github
        self.app_auth = app_auth
        self.credentials = credentials
        self.config = config
        self.publisher = DiscussionPublisher(github, app_auth, config, user_client_factory)

    # ------------------------------------------------------------------
    # PR opened / synchronized / ready for review / reopened
    # ------------------------------------------------------------------

    async def on_updated(self, pull: PullRequestInfo) -> dict:
        """Comment on every new announcement file and dry-run its publish.

        Args:
            pull: The updated pull request

        Returns:
            Result dictionary with a per-file status
        """
        if not pull.targets_default_branch:
            logger.info("The PR is not targeting the default branch, will not post anything")
            return {"status": "skipped", "reason": "not targeting the default branch"}

        if pull.draft:
            logger.info(f"PR #{pull.number} is a draft, skipping")
            return {"status": "skipped", "reason": "draft pull request"}

        files = self.github.get_pull_request_files(pull.number)
        paths = [
            f.path
            for f in files
            if f.status == "added" and self.config.repo_settings.should_publish(f.path)
        ]
        if not paths:
            logger.info("No new announcement files were added so nothing to process")
            return {"status": "skipped", "reason": "no announcement files"}

        logger.info(f"Processing {len(paths)} announcement file(s) in PR #{pull.number}")

        app = await self.app_auth.get_authenticated_app()
        comments = self.github.get_review_comments(pull.number)
        status_comments = self.get_status_comments_by_path(comments, app.login)

        results: dict[str, str] = {}
        for path in paths:
            results[path] = await self._process_updated_file(
                pull, app, path, status_comments.get(path)
            )

        logger.info("Exiting pull_request.onUpdated handler")
        return {"status": "processed", "files": results}

    async def _process_updated_file(
        self,
        pull: PullRequestInfo,
        app: AppIdentity,
        path: str,
        existing: StatusComment | None,
    ) -> str:
        # At most one comment write per file; the dry run picks the body
        try:
            document = self.load_document(path, pull.head_ref)
            if not document.has_target:
                raise MissingTargetError("Markdown is missing a repo or team to post the discussion to")

            body = self.compose_status_body(pull, app)
            await self.publisher.publish(document, dry_run=True)
            status, end_line = "ready", document.header_end_line

        except Exception as e:
            logger.warning(f"Cannot publish {path}: {e}")
            body = templates.error_comment_body(app, path, str(e))
            status, end_line = "error", 1

        try:
            self.reconcile_comment(pull, path, existing, body, end_line=end_line)
        except TransientHostError:
            logger.exception(f"Failed to write the status comment for {path}")
            return "error"
        return status

    def compose_status_body(self, pull: PullRequestInfo, app: AppIdentity) -> str:
        """Build the status comment for a file that passed parsing.

        The author is asked to authorize the app when no valid credential is
        stored, and always when running as a non-production app. A non-production
        app also clears the author's stored credential.
        """
        record = self.credentials.get(pull.author_login)

        if not self.config.is_production and record is not None:
            self.credentials.delete(pull.author_login)

        auth_link = None
        if record is None or not self.config.is_production:
            auth_link = self.config.auth_link(pull.html_url)

        return templates.status_comment_body(
            app,
            pull.author_login,
            auth_link=auth_link,
            require_approval=self.config.repo_settings.require_approval,
        )

    def reconcile_comment(
        self,
        pull: PullRequestInfo,
        path: str,
        existing: StatusComment | None,
        body: str,
        end_line: int,
    ) -> StatusComment | None:
        """Create the file's status comment, or update it if its body changed.

        Returns:
            The current status comment for the file
        """
        if existing is not None and existing.body == body:
            logger.info("Not updating the comment because nothing has changed.")
            return existing

        if self.config.dry_run_comments:
            logger.info(f"DRY RUN: not writing the status comment for {path}")
            return existing

        if existing is None:
            return self.github.create_review_comment(
                pull.number,
                pull.head_sha,
                path,
                body,
                line=end_line,
                start_line=1,
            )

        self.github.update_review_comment(pull.number, existing.id, body)
        existing.body = body
        return existing

    # ------------------------------------------------------------------
    # PR merged
    # ------------------------------------------------------------------

    async def on_merged(self, pull: PullRequestInfo) -> dict:
        """Publish every file whose status comment passed the dry run.

        Args:
            pull: The merged pull request

        Returns:
            Result dictionary with a per-file status
        """
        if not pull.targets_default_branch:
            logger.info("The PR is not targeting the default branch, will not post anything")
            return {"status": "skipped", "reason": "not targeting the default branch"}

        app = await self.app_auth.get_authenticated_app()
        comments = self.github.get_review_comments(pull.number)
        candidates = [
            comment
            for comment in self.get_status_comments_by_path(comments, app.login).values()
            if not comment.is_error_state
        ]

        if self.config.repo_settings.require_approval:
            candidates = [c for c in candidates if self.is_approved(pull, c)]

        if not candidates:
            logger.info(f"No {app.login} comments ready to publish on this PR")
            return {"status": "skipped", "reason": "no files to publish"}

        try:
            result = await self._publish_candidates(pull, app, candidates)
        finally:
            if not self.config.is_production:
                logger.info(
                    f"Current app ({self.config.app_id}) is not prod, "
                    f"deleting {pull.author_login}'s refresh token"
                )
                self.credentials.delete(pull.author_login)

        logger.info("Exiting pull_request.closed handler")
        return result

    async def _publish_candidates(
        self,
        pull: PullRequestInfo,
        app: AppIdentity,
        candidates: list[StatusComment],
    ) -> dict:
        try:
            user_token = await self.credentials.refresh_access_token(pull.author_login)
        except AuthenticationRequiredError as e:
            logger.error(f"Cannot publish for {pull.author_login}: {e}")
            return {"status": "error", "reason": "authentication required"}
        except TransientHostError as e:
            logger.error(f"Could not refresh the token of {pull.author_login}: {e}")
            return {"status": "error", "reason": "token refresh failed"}

        footer = templates.post_footer(app, pull)

        results: dict[str, str] = {}
        for comment in candidates:
            path = comment.path or ""
            try:
                document = self.load_document(path, pull.base_ref)
                await self.publisher.publish(
                    document,
                    user_token=user_token,
                    dry_run=False,
                    footer=footer,
                    on_published=lambda discussion, c=comment: self._reply_success(pull, c, discussion),
                )
                results[path] = "published"
            except Exception as e:
                logger.error(f"Failed to publish {path}: {e}")
                results[path] = "error"

        return {"status": "processed", "files": results}

    def is_approved(self, pull: PullRequestInfo, comment: StatusComment) -> bool:
        """Whether the PR author approved a status comment with a 🚀 reaction.

        A comment whose reactions cannot be read counts as not approved.
        """
        try:
            reactions = self.github.get_comment_reactions(pull.number, comment.id)
        except TransientHostError as e:
            logger.error(f"Could not read reactions on the comment for {comment.path}: {e}")
            return False

        approved = any(r.is_approval_by(pull.author_login) for r in reactions)
        if not approved:
            logger.info(f"{comment.path} was not approved by {pull.author_login}")
        return approved

    def _reply_success(self, pull, comment, discussion) -> None:
        if self.config.dry_run_comments:
            logger.info(f"DRY RUN: not replying with {discussion.url}")
            return
        try:
            self.github.reply_to_review_comment(
                pull.number, comment.id, templates.success_reply_body(discussion)
            )
        except TransientHostError as e:
            logger.error(f"Created {discussion.url} but could not reply on {comment.path}: {e}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def load_document(self, path: str, ref: str | None) -> AnnouncementDocument:
        """Fetch a file at a ref and parse it."""
        content = self.github.get_file_content(path, ref=ref)
        logger.info(f"Parsing the markdown information for {path}...")
        return parse(content)

    @staticmethod
    def get_status_comments_by_path(
        comments: list[StatusComment], app_login: str
    ) -> dict[str, StatusComment]:
        """Map each file to its most recently updated status comment.

        Args:
            comments: Review comments, most recently updated first
            app_login: The app's bot login

        Returns:
            Path to status comment
        """
        by_path: dict[str, StatusComment] = {}
        for comment in comments:
            if not comment.is_status_comment_of(app_login):
                continue
            if comment.path in by_path:
                logger.warning(f"Found multiple comments for {comment.path}. Taking most recent.")
                continue
            by_path[comment.path] = comment  # type: ignore[index]
        return by_path
