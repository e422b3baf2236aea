"""GitHub client wrapping PyGithub for REST and httpx for GraphQL."""

import logging

import httpx
import yaml
from github import Auth, Github, GithubException, UnknownObjectException
from github.PullRequest import PullRequest
from github.Repository import Repository

from drafter.errors import TargetNotFoundError, TransientHostError
from drafter.github.models import (
    DiscussionCategory,
    PublishedDiscussion,
    PullRequestFile,
    Reaction,
    RepositoryData,
    RepositoryLabel,
    StatusComment,
)


logger = logging.getLogger(__name__)

DISCUSSION_CATEGORIES_QUERY = """
query ($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    discussionCategories(first: 100) {
      nodes {
        id
        name
      }
    }
  }
}
"""

LABELS_QUERY = """
query ($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    labels(first: 100) {
      nodes {
        id
        name
      }
    }
  }
}
"""

CREATE_DISCUSSION_MUTATION = """
mutation ($repoNodeId: ID!, $categoryNodeId: ID!, $postBody: String!, $postTitle: String!) {
  createDiscussion(input: {repositoryId: $repoNodeId, categoryId: $categoryNodeId, body: $postBody, title: $postTitle}) {
    discussion {
      id
      title
      url
    }
  }
}
"""

ADD_LABELS_MUTATION = """
mutation ($labelableId: ID!, $labelIds: [ID!]!) {
  addLabelsToLabelable(input: {labelableId: $labelableId, labelIds: $labelIds}) {
    labelable {
      ... on Discussion {
        id
      }
    }
  }
}
"""


class GitHubClientError(TransientHostError):
    """Raised when GitHub operations fail."""


class GitHubClient:
    """Host API facade for one token (an installation or a user)."""

    def __init__(
        self,
        token: str,
        repo_name: str | None = None,
        api_url: str = "https://api.github.com",
    ):
        if not token:
            raise GitHubClientError("A GitHub token is required.")

        self.token = token
        self._api_url = api_url.rstrip("/")
        self._github = Github(auth=Auth.Token(token), base_url=self._api_url)
        self._repo_name = repo_name
        self._repo: Repository | None = None

    # ------------------------------------------------------------------
    # Repository helpers
    # ------------------------------------------------------------------

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            if not self._repo_name:
                raise GitHubClientError("Repository name not set.")
            try:
                self._repo = self._github.get_repo(self._repo_name)
            except GithubException as e:
                raise GitHubClientError(f"Failed to get repository: {e}") from e
        return self._repo

    def _get_pull(self, pr_number: int) -> PullRequest:
        try:
            return self.repo.get_pull(number=pr_number)
        except GithubException as e:
            raise GitHubClientError(f"Failed to get PR #{pr_number}: {e}") from e

    def get_repository(self, owner: str, name: str) -> RepositoryData:
        """Get metadata of a repository to post to.

        Raises:
            TargetNotFoundError: If the repository cannot be read with this token
        """
        logger.info(f"Getting repo data for {owner}/{name}...")
        try:
            repo = self._github.get_repo(f"{owner}/{name}")
            return RepositoryData(
                node_id=repo.node_id,
                full_name=repo.full_name,
                private=repo.private,
            )
        except GithubException as e:
            raise TargetNotFoundError(
                "Could not find the repository. Make sure the URL is correct and the "
                f'GitHub App is installed on "{owner}/{name}"'
            ) from e

    def load_repo_settings(self, path: str, ref: str | None = None) -> dict | None:
        """Load a YAML settings file from the repository.

        Returns:
            Parsed mapping, or None if the file does not exist
        """
        try:
            content = self.get_file_content(path, ref=ref)
        except GitHubClientError as e:
            if isinstance(e.__cause__, UnknownObjectException):
                logger.debug(f"No {path} file found in the repo, using defaults...")
                return None
            raise

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise GitHubClientError(f"Exception while parsing app config yml: {e}") from e
        return data if isinstance(data, dict) else None

    # ------------------------------------------------------------------
    # Pull request files
    # ------------------------------------------------------------------

    def get_pull_request_files(self, pr_number: int) -> list[PullRequestFile]:
        logger.info(f"Getting files for PR #{pr_number}...")
        try:
            return [
                PullRequestFile(path=f.filename, status=f.status)
                for f in self._get_pull(pr_number).get_files()
            ]
        except GithubException as e:
            raise GitHubClientError(
                f"Failed to get files for PR #{pr_number}: {e}"
            ) from e

    def get_file_content(self, path: str, ref: str | None = None) -> str:
        """Get content of a file from the repository.

        Args:
            path: File path in the repository
            ref: Git reference (branch, tag, commit). Defaults to repo's default branch.

        Returns:
            File content as string
        """
        try:
            if ref is None:
                ref = self.repo.default_branch

            content = self.repo.get_contents(path, ref=ref)
            if isinstance(content, list):
                raise GitHubClientError(f"Path '{path}' is a directory, not a file")
            return content.decoded_content.decode("utf-8")
        except GithubException as e:
            raise GitHubClientError(f"Failed to get file '{path}': {e}") from e

    # ------------------------------------------------------------------
    # Review comments
    # ------------------------------------------------------------------

    def get_review_comments(self, pr_number: int) -> list[StatusComment]:
        """List review comments on a PR, most recently updated first."""
        logger.info(f"Getting review comments for PR #{pr_number}...")
        try:
            comments = [
                StatusComment(
                    id=c.id,
                    body=c.body or "",
                    author_login=c.user.login if c.user else "",
                    path=c.path,
                    updated_at=c.updated_at,
                    in_reply_to_id=c.in_reply_to_id,
                )
                for c in self._get_pull(pr_number).get_review_comments(
                    sort="updated", direction="desc"
                )
            ]
        except GithubException as e:
            raise GitHubClientError(
                f"Failed to get review comments for PR #{pr_number}: {e}"
            ) from e

        comments.sort(key=lambda c: c.updated_at.timestamp() if c.updated_at else 0, reverse=True)
        return comments

    def create_review_comment(
        self,
        pr_number: int,
        commit_sha: str,
        path: str,
        body: str,
        line: int,
        start_line: int | None = None,
    ) -> StatusComment:
        """Create a review comment anchored on a line range of a file."""
        logger.info(f"Commenting on {path} in PR #{pr_number}...")
        kwargs = {"line": line, "side": "RIGHT"}
        if start_line is not None and start_line < line:
            kwargs["start_line"] = start_line
            kwargs["start_side"] = "RIGHT"
        try:
            pr = self._get_pull(pr_number)
            commit = self.repo.get_commit(commit_sha)
            comment = pr.create_review_comment(body, commit, path, **kwargs)
        except GithubException as e:
            raise GitHubClientError(
                f"Failed to comment on '{path}' in PR #{pr_number}: {e}"
            ) from e

        return StatusComment(
            id=comment.id,
            body=comment.body or body,
            author_login=comment.user.login if comment.user else "",
            path=comment.path or path,
            updated_at=comment.updated_at,
        )

    def update_review_comment(self, pr_number: int, comment_id: int, body: str) -> None:
        logger.info(f"Updating review comment {comment_id} on PR #{pr_number}...")
        try:
            self._get_pull(pr_number).get_review_comment(comment_id).edit(body)
        except GithubException as e:
            raise GitHubClientError(f"Failed to update comment {comment_id}: {e}") from e

    def reply_to_review_comment(self, pr_number: int, comment_id: int, body: str) -> None:
        logger.info(f"Replying to review comment {comment_id} on PR #{pr_number}...")
        try:
            self._get_pull(pr_number).create_review_comment_reply(comment_id, body)
        except GithubException as e:
            raise GitHubClientError(f"Failed to reply to comment {comment_id}: {e}") from e

    def get_comment_reactions(self, pr_number: int, comment_id: int) -> list[Reaction]:
        try:
            comment = self._get_pull(pr_number).get_review_comment(comment_id)
            return [
                Reaction(
                    comment_id=comment_id,
                    reactor_login=r.user.login if r.user else "",
                    content=r.content,
                )
                for r in comment.get_reactions()
            ]
        except GithubException as e:
            raise GitHubClientError(
                f"Failed to get reactions for comment {comment_id}: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Discussions
    # ------------------------------------------------------------------

    def get_discussion_categories(self, owner: str, name: str) -> list[DiscussionCategory]:
        logger.info(f"Getting discussion categories for {owner}/{name}...")
        data = self._graphql(DISCUSSION_CATEGORIES_QUERY, {"owner": owner, "repo": name})
        repository = data.get("repository") or {}
        nodes = (repository.get("discussionCategories") or {}).get("nodes") or []
        return [DiscussionCategory(id=n["id"], name=n["name"]) for n in nodes if n]

    def get_repository_labels(self, owner: str, name: str) -> list[RepositoryLabel]:
        logger.info(f"Getting repository labels for {owner}/{name}...")
        data = self._graphql(LABELS_QUERY, {"owner": owner, "repo": name})
        repository = data.get("repository") or {}
        nodes = (repository.get("labels") or {}).get("nodes") or []
        return [RepositoryLabel(id=n["id"], name=n["name"]) for n in nodes if n]

    def create_repository_discussion(
        self,
        repo_node_id: str,
        category_node_id: str,
        title: str,
        body: str,
    ) -> PublishedDiscussion:
        logger.info("Creating repo discussion...")
        data = self._graphql(
            CREATE_DISCUSSION_MUTATION,
            {
                "repoNodeId": repo_node_id,
                "categoryNodeId": category_node_id,
                "postBody": body,
                "postTitle": title,
            },
        )
        discussion = (data.get("createDiscussion") or {}).get("discussion")
        if not discussion:
            raise GitHubClientError("GitHub did not return the created discussion")
        logger.info("Successfully created the repo discussion.")
        return PublishedDiscussion(
            id=discussion["id"],
            title=discussion["title"],
            url=discussion["url"],
            kind="repository",
        )

    def add_labels_to_discussion(self, discussion_id: str, label_ids: list[str]) -> None:
        if not label_ids:
            logger.info("No labels to add.")
            return
        self._graphql(
            ADD_LABELS_MUTATION,
            {"labelableId": discussion_id, "labelIds": label_ids},
        )
        logger.info("Successfully added labels to the discussion.")

    def create_team_discussion(
        self,
        org: str,
        team_slug: str,
        title: str,
        body: str,
    ) -> PublishedDiscussion:
        logger.info(f"Creating team post for {org}/{team_slug}...")
        # PyGithub has no write call for team discussions
        discussion = self._rest(
            "POST",
            f"/orgs/{org}/teams/{team_slug}/discussions",
            {"title": title, "body": body},
        )
        if not discussion.get("html_url"):
            raise GitHubClientError("GitHub did not return the created team post")
        logger.info("Successfully created the team post.")
        return PublishedDiscussion(
            id=discussion.get("node_id"),
            title=discussion.get("title") or title,
            url=discussion["html_url"],
            kind="team",
        )

    # ------------------------------------------------------------------
    # Raw HTTP
    # ------------------------------------------------------------------

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }

    def _rest(self, method: str, path: str, body: dict) -> dict:
        try:
            with httpx.Client() as client:
                response = client.request(
                    method,
                    f"{self._api_url}{path}",
                    json=body,
                    headers=self._headers(),
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GitHubClientError(f"{method} {path} failed: {e}") from e
        return payload if isinstance(payload, dict) else {}

    def _graphql(self, query: str, variables: dict) -> dict:
        try:
            with httpx.Client() as client:
                response = client.post(
                    f"{self._api_url}/graphql",
                    json={"query": query, "variables": variables},
                    headers=self._headers(),
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            raise GitHubClientError(f"GraphQL request failed: {e}") from e

        if payload.get("errors"):
            messages = "; ".join(err.get("message", "") for err in payload["errors"])
            raise GitHubClientError(f"GraphQL request failed: {messages}")
        return payload.get("data") or {}
