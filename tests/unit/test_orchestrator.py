"""Unit tests for the pull request orchestrator."""

from dataclasses import replace
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from drafter.credentials import TokenGrant
from drafter.credentials.models import utcnow
from drafter.errors import TransientHostError
from drafter.github import PublishedDiscussion, PullRequestFile, Reaction, StatusComment
from drafter.github.models import ERROR_ICON
from drafter.orchestrator import PullRequestOrchestrator
from drafter.orchestrator import templates
from drafter.server.config import RepoSettings


ANNOUNCEMENT_PATH = "docs/announce.md"


def announcement(category: str = "Announcements") -> str:
    return (
        "<!--\n"
        "repo: https://github.com/acme/widgets\n"
        f"category: {category}\n"
        "-->\n"
        "\n"
        "# Widgets 2.0 is out\n"
        "\n"
        "Everything is faster now.\n"
    )


@pytest.fixture
def user_client():
    client = MagicMock()
    client.create_repository_discussion.return_value = PublishedDiscussion(
        id="D_1",
        title="Widgets 2.0 is out",
        url="https://github.com/acme/widgets/discussions/1",
        kind="repository",
    )
    return client


@pytest.fixture
def make_orchestrator(mock_github_client, mock_app_auth, credential_manager, user_client):
    def _make(config):
        return PullRequestOrchestrator(
            github=mock_github_client,
            app_auth=mock_app_auth,
            credentials=credential_manager,
            config=config,
            user_client_factory=lambda token: user_client,
        )

    return _make


@pytest.fixture
def status_comment(app_identity):
    return StatusComment(
        id=11,
        body="status",
        author_login=app_identity.login,
        path=ANNOUNCEMENT_PATH,
    )


class TestOnUpdated:
    """Tests for handling opened and synchronized pull requests."""

    @pytest.mark.asyncio
    async def test_creates_status_comment(
        self, make_orchestrator, prod_config, pull, mock_github_client, app_identity, stored_credential
    ):
        result = await make_orchestrator(prod_config).on_updated(pull)

        assert result == {"status": "processed", "files": {ANNOUNCEMENT_PATH: "ready"}}
        mock_github_client.get_file_content.assert_called_once_with(ANNOUNCEMENT_PATH, ref="feature/announce")
        mock_github_client.create_review_comment.assert_called_once_with(
            7,
            "abc123",
            ANNOUNCEMENT_PATH,
            templates.status_comment_body(app_identity, "octocat"),
            line=5,
            start_line=1,
        )

    @pytest.mark.asyncio
    async def test_unchanged_comment_is_not_rewritten(
        self, make_orchestrator, prod_config, pull, mock_github_client, app_identity, stored_credential
    ):
        """Test that a second run with the same content writes nothing."""
        mock_github_client.get_review_comments.return_value = [
            StatusComment(
                id=11,
                body=templates.status_comment_body(app_identity, "octocat"),
                author_login=app_identity.login,
                path=ANNOUNCEMENT_PATH,
            )
        ]

        result = await make_orchestrator(prod_config).on_updated(pull)

        assert result["files"] == {ANNOUNCEMENT_PATH: "ready"}
        mock_github_client.create_review_comment.assert_not_called()
        mock_github_client.update_review_comment.assert_not_called()
        mock_github_client.reply_to_review_comment.assert_not_called()

    @pytest.mark.asyncio
    async def test_unchanged_error_comment_is_not_rewritten(
        self, make_orchestrator, prod_config, pull, mock_github_client, mock_app_auth, app_identity
    ):
        mock_app_auth.app_is_installed.return_value = False
        orchestrator = make_orchestrator(prod_config)

        await orchestrator.on_updated(pull)
        error_body = mock_github_client.create_review_comment.call_args.args[3]
        mock_github_client.create_review_comment.reset_mock()
        mock_github_client.get_review_comments.return_value = [
            StatusComment(id=12, body=error_body, author_login=app_identity.login, path=ANNOUNCEMENT_PATH)
        ]

        await orchestrator.on_updated(pull)

        mock_github_client.create_review_comment.assert_not_called()
        mock_github_client.update_review_comment.assert_not_called()

    @pytest.mark.asyncio
    async def test_changed_comment_is_updated(
        self, make_orchestrator, prod_config, pull, mock_github_client, status_comment
    ):
        mock_github_client.get_review_comments.return_value = [status_comment]

        await make_orchestrator(prod_config).on_updated(pull)

        mock_github_client.create_review_comment.assert_not_called()
        mock_github_client.update_review_comment.assert_called_once()
        assert mock_github_client.update_review_comment.call_args.args[:2] == (7, 11)

    @pytest.mark.asyncio
    async def test_asks_for_authorization_without_credential(
        self, make_orchestrator, prod_config, pull, mock_github_client
    ):
        await make_orchestrator(prod_config).on_updated(pull)

        body = mock_github_client.create_review_comment.call_args.args[3]
        assert "authorize the app" in body
        assert "pull_url=https%3A%2F%2Fgithub.com%2Facme%2Fdocs%2Fpull%2F7" in body

    @pytest.mark.asyncio
    async def test_non_production_clears_credential(
        self, make_orchestrator, dev_config, pull, mock_github_client, credential_store, stored_credential
    ):
        await make_orchestrator(dev_config).on_updated(pull)

        body = mock_github_client.create_review_comment.call_args.args[3]
        assert "authorize the app" in body
        assert credential_store.get("octocat") is None

    @pytest.mark.asyncio
    async def test_failing_file_does_not_block_others(
        self, make_orchestrator, prod_config, pull, mock_github_client
    ):
        """Test that an unknown category on one file only affects that file."""
        mock_github_client.get_pull_request_files.return_value = [
            PullRequestFile(path="docs/one.md", status="added"),
            PullRequestFile(path="docs/two.md", status="added"),
            PullRequestFile(path="docs/three.md", status="added"),
        ]
        contents = {
            "docs/one.md": announcement(),
            "docs/two.md": announcement(category="Does Not Exist"),
            "docs/three.md": announcement(),
        }
        mock_github_client.get_file_content.side_effect = lambda path, ref=None: contents[path]

        result = await make_orchestrator(prod_config).on_updated(pull)

        assert result["files"] == {
            "docs/one.md": "ready",
            "docs/two.md": "error",
            "docs/three.md": "ready",
        }
        calls = mock_github_client.create_review_comment.call_args_list
        assert [c.args[2] for c in calls] == ["docs/one.md", "docs/two.md", "docs/three.md"]
        assert ERROR_ICON not in calls[0].args[3]
        assert ERROR_ICON in calls[1].args[3]
        assert "Does Not Exist" in calls[1].args[3]
        assert calls[1].kwargs["line"] == 1
        assert ERROR_ICON not in calls[2].args[3]

    @pytest.mark.asyncio
    async def test_parse_error_is_reported(
        self, make_orchestrator, prod_config, pull, mock_github_client
    ):
        mock_github_client.get_file_content.return_value = "no title here"

        result = await make_orchestrator(prod_config).on_updated(pull)

        assert result["files"] == {ANNOUNCEMENT_PATH: "error"}
        body = mock_github_client.create_review_comment.call_args.args[3]
        assert "top level header" in body

    @pytest.mark.asyncio
    async def test_only_watched_added_markdown(
        self, make_orchestrator, prod_config, pull, mock_github_client
    ):
        mock_github_client.get_pull_request_files.return_value = [
            PullRequestFile(path="docs/changed.md", status="modified"),
            PullRequestFile(path="docs/image.png", status="added"),
            PullRequestFile(path="src/readme.md", status="added"),
        ]

        result = await make_orchestrator(prod_config).on_updated(pull)

        assert result["status"] == "skipped"
        mock_github_client.get_file_content.assert_not_called()

    @pytest.mark.asyncio
    async def test_dry_run_comments(self, make_orchestrator, prod_config, pull, mock_github_client):
        config = replace(prod_config, dry_run_comments=True)

        await make_orchestrator(config).on_updated(pull)

        mock_github_client.create_review_comment.assert_not_called()

    @pytest.mark.asyncio
    async def test_skips_other_base_branch(self, make_orchestrator, prod_config, pull, mock_github_client):
        pull.base_ref = "release"

        result = await make_orchestrator(prod_config).on_updated(pull)

        assert result["status"] == "skipped"
        mock_github_client.get_pull_request_files.assert_not_called()

    @pytest.mark.asyncio
    async def test_skips_draft(self, make_orchestrator, prod_config, pull, mock_github_client):
        pull.draft = True

        result = await make_orchestrator(prod_config).on_updated(pull)

        assert result["status"] == "skipped"


class TestStatusCommentLookup:
    def test_most_recent_comment_wins(self, app_identity):
        newest = StatusComment(id=2, body="new", author_login=app_identity.login, path="docs/a.md")
        older = StatusComment(id=1, body="old", author_login=app_identity.login, path="docs/a.md")
        reply = StatusComment(
            id=3, body="reply", author_login=app_identity.login, path="docs/a.md", in_reply_to_id=2
        )
        human = StatusComment(id=4, body="hi", author_login="octocat", path="docs/b.md")

        by_path = PullRequestOrchestrator.get_status_comments_by_path(
            [reply, newest, older, human], app_identity.login
        )

        assert by_path == {"docs/a.md": newest}


class TestOnMerged:
    """Tests for publishing on merge."""

    @pytest.fixture(autouse=True)
    def rotated_grant(self, mock_oauth_client):
        mock_oauth_client.refresh.return_value = TokenGrant(
            access_token="ghu_fresh",
            refresh_token="ghr_rotated",
            refresh_token_expires_at=utcnow() + timedelta(days=180),
        )

    @pytest.mark.asyncio
    async def test_publishes_and_replies(
        self,
        make_orchestrator,
        prod_config,
        pull,
        mock_github_client,
        user_client,
        status_comment,
        stored_credential,
    ):
        mock_github_client.get_review_comments.return_value = [status_comment]
        pull.merged = True

        result = await make_orchestrator(prod_config).on_merged(pull)

        assert result == {"status": "processed", "files": {ANNOUNCEMENT_PATH: "published"}}
        mock_github_client.get_file_content.assert_called_once_with(ANNOUNCEMENT_PATH, ref="main")
        body = user_client.create_repository_discussion.call_args.kwargs["body"]
        assert "https://github.com/acme/docs/pull/7" in body
        mock_github_client.reply_to_review_comment.assert_called_once_with(
            7,
            11,
            templates.success_reply_body(user_client.create_repository_discussion.return_value),
        )

    @pytest.mark.asyncio
    async def test_production_keeps_rotated_credential(
        self, make_orchestrator, prod_config, pull, mock_github_client, credential_store, cipher,
        status_comment, stored_credential,
    ):
        mock_github_client.get_review_comments.return_value = [status_comment]

        await make_orchestrator(prod_config).on_merged(pull)

        record = credential_store.get("octocat")
        assert cipher.decrypt(record.encrypted_refresh_token) == "ghr_rotated"

    @pytest.mark.asyncio
    async def test_non_production_deletes_credential(
        self, make_orchestrator, dev_config, pull, mock_github_client, credential_store,
        user_client, status_comment, stored_credential,
    ):
        mock_github_client.get_review_comments.return_value = [status_comment]

        await make_orchestrator(dev_config).on_merged(pull)

        user_client.create_repository_discussion.assert_called_once()
        assert credential_store.get("octocat") is None

    @pytest.mark.asyncio
    async def test_missing_credential(
        self, make_orchestrator, prod_config, pull, mock_github_client, user_client, status_comment
    ):
        mock_github_client.get_review_comments.return_value = [status_comment]

        result = await make_orchestrator(prod_config).on_merged(pull)

        assert result["status"] == "error"
        user_client.create_repository_discussion.assert_not_called()
        mock_github_client.reply_to_review_comment.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_comments_are_skipped(
        self, make_orchestrator, prod_config, pull, mock_github_client, app_identity,
        mock_oauth_client, stored_credential,
    ):
        mock_github_client.get_review_comments.return_value = [
            StatusComment(
                id=12,
                body=f"{ERROR_ICON} cannot publish",
                author_login=app_identity.login,
                path=ANNOUNCEMENT_PATH,
            )
        ]

        result = await make_orchestrator(prod_config).on_merged(pull)

        assert result["status"] == "skipped"
        mock_oauth_client.refresh.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_file_does_not_block_others(
        self, make_orchestrator, prod_config, pull, mock_github_client, app_identity,
        user_client, stored_credential,
    ):
        mock_github_client.get_review_comments.return_value = [
            StatusComment(id=21, body="ok", author_login=app_identity.login, path="docs/one.md"),
            StatusComment(id=22, body="ok", author_login=app_identity.login, path="docs/two.md"),
        ]
        contents = {"docs/one.md": "deleted before merge", "docs/two.md": announcement()}
        mock_github_client.get_file_content.side_effect = lambda path, ref=None: contents[path]

        result = await make_orchestrator(prod_config).on_merged(pull)

        assert result["files"] == {"docs/one.md": "error", "docs/two.md": "published"}
        mock_github_client.reply_to_review_comment.assert_called_once()
        assert mock_github_client.reply_to_review_comment.call_args.args[1] == 22

    @pytest.mark.asyncio
    async def test_requires_approval_reaction(
        self, make_orchestrator, prod_config, pull, mock_github_client, user_client,
        status_comment, stored_credential,
    ):
        config = replace(
            prod_config,
            repo_settings=RepoSettings(watch_folders=("docs/",), require_approval=True),
        )
        mock_github_client.get_review_comments.return_value = [status_comment]
        mock_github_client.get_comment_reactions.return_value = [
            Reaction(comment_id=11, reactor_login="someone-else", content="rocket"),
        ]

        result = await make_orchestrator(config).on_merged(pull)

        assert result["status"] == "skipped"
        user_client.create_repository_discussion.assert_not_called()

    @pytest.mark.asyncio
    async def test_approved_by_author(
        self, make_orchestrator, prod_config, pull, mock_github_client, user_client,
        status_comment, stored_credential,
    ):
        config = replace(
            prod_config,
            repo_settings=RepoSettings(watch_folders=("docs/",), require_approval=True),
        )
        mock_github_client.get_review_comments.return_value = [status_comment]
        mock_github_client.get_comment_reactions.return_value = [
            Reaction(comment_id=11, reactor_login="octocat", content="rocket"),
        ]

        result = await make_orchestrator(config).on_merged(pull)

        assert result["files"] == {ANNOUNCEMENT_PATH: "published"}
        user_client.create_repository_discussion.assert_called_once()

    @pytest.mark.asyncio
    async def test_repo_discussion_is_reported_when_team_post_fails(
        self, make_orchestrator, prod_config, pull, mock_github_client, user_client,
        status_comment, stored_credential,
    ):
        mock_github_client.get_review_comments.return_value = [status_comment]
        mock_github_client.get_file_content.return_value = (
            "<!--\n"
            "repo: https://github.com/acme/widgets\n"
            "team: https://github.com/orgs/acme/teams/core\n"
            "category: Announcements\n"
            "-->\n"
            "# Widgets 2.0 is out\n"
            "Everything is faster now.\n"
        )
        user_client.create_team_discussion.side_effect = TransientHostError("team post failed")

        result = await make_orchestrator(prod_config).on_merged(pull)

        assert result["files"] == {ANNOUNCEMENT_PATH: "error"}
        user_client.create_repository_discussion.assert_called_once()
        mock_github_client.reply_to_review_comment.assert_called_once_with(
            7,
            11,
            templates.success_reply_body(user_client.create_repository_discussion.return_value),
        )

    @pytest.mark.asyncio
    async def test_unreadable_reactions_do_not_block_others(
        self, make_orchestrator, prod_config, pull, mock_github_client, app_identity,
        user_client, stored_credential,
    ):
        config = replace(
            prod_config,
            repo_settings=RepoSettings(watch_folders=("docs/",), require_approval=True),
        )
        mock_github_client.get_review_comments.return_value = [
            StatusComment(id=21, body="ok", author_login=app_identity.login, path="docs/one.md"),
            StatusComment(id=22, body="ok", author_login=app_identity.login, path="docs/two.md"),
        ]
        reactions = {
            21: TransientHostError("reactions unavailable"),
            22: [Reaction(comment_id=22, reactor_login="octocat", content="rocket")],
        }

        def get_comment_reactions(pr_number, comment_id):
            outcome = reactions[comment_id]
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        mock_github_client.get_comment_reactions.side_effect = get_comment_reactions

        result = await make_orchestrator(config).on_merged(pull)

        assert result["files"] == {"docs/two.md": "published"}
        mock_github_client.get_file_content.assert_called_once_with("docs/two.md", ref="main")

    @pytest.mark.asyncio
    async def test_non_production_deletes_credential_when_refresh_fails(
        self, make_orchestrator, dev_config, pull, mock_github_client, credential_store,
        mock_oauth_client, user_client, status_comment, stored_credential,
    ):
        mock_github_client.get_review_comments.return_value = [status_comment]
        mock_oauth_client.refresh.side_effect = TransientHostError("GitHub is unreachable")

        result = await make_orchestrator(dev_config).on_merged(pull)

        assert result["status"] == "error"
        user_client.create_repository_discussion.assert_not_called()
        assert credential_store.get("octocat") is None

    @pytest.mark.asyncio
    async def test_production_keeps_credential_when_refresh_fails(
        self, make_orchestrator, prod_config, pull, mock_github_client, credential_store,
        mock_oauth_client, status_comment, stored_credential,
    ):
        mock_github_client.get_review_comments.return_value = [status_comment]
        mock_oauth_client.refresh.side_effect = TransientHostError("GitHub is unreachable")

        result = await make_orchestrator(prod_config).on_merged(pull)

        assert result == {"status": "error", "reason": "token refresh failed"}
        assert credential_store.get("octocat") is not None
