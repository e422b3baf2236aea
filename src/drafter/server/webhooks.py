"""Webhook handlers for GitHub events."""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from enum import Enum

from fastapi import HTTPException, Request

from drafter.github import GitHubClient, PullRequestInfo
from drafter.orchestrator import PullRequestOrchestrator
from drafter.server.config import REPO_SETTINGS_PATH, AppConfig, RepoSettings, get_settings
from drafter.server.dependencies import get_credential_manager
from drafter.server.github_app import get_github_app_auth


logger = logging.getLogger(__name__)

# Pull request actions that (re)validate announcement files
UPDATE_ACTIONS = {"opened", "synchronize", "ready_for_review", "reopened"}


class WebhookEvent(str, Enum):
    """Supported webhook events."""

    PULL_REQUEST = "pull_request"


@dataclass
class WebhookPayload:
    """Parsed webhook payload."""

    event: str
    action: str
    installation_id: int
    repository: str
    sender: str
    data: dict


async def verify_webhook_signature(request: Request, body: bytes) -> bool:
    """Verify the webhook signature from GitHub.

    Args:
        request: FastAPI request
        body: Raw request body

    Returns:
        True if signature is valid

    Raises:
        HTTPException: If signature is invalid
    """
    settings = get_settings()

    if not settings.github_webhook_secret:
        logger.warning("Webhook secret not configured, skipping verification")
        return True

    signature_header = request.headers.get("X-Hub-Signature-256", "")
    if not signature_header:
        raise HTTPException(status_code=401, detail="Missing signature header")

    expected_signature = (
        "sha256="
        + hmac.new(
            settings.github_webhook_secret.encode(),
            body,
            hashlib.sha256,
        ).hexdigest()
    )

    if not hmac.compare_digest(signature_header, expected_signature):
        raise HTTPException(status_code=401, detail="Invalid signature")

    return True


def parse_webhook_payload(event_type: str, payload: dict) -> WebhookPayload:
    """Parse a webhook payload into a structured format.

    Args:
        event_type: GitHub event type
        payload: Raw payload dictionary

    Returns:
        Parsed WebhookPayload
    """
    return WebhookPayload(
        event=event_type,
        action=payload.get("action", ""),
        installation_id=payload.get("installation", {}).get("id", 0),
        repository=payload.get("repository", {}).get("full_name", ""),
        sender=payload.get("sender", {}).get("login", ""),
        data=payload,
    )


async def build_orchestrator(payload: WebhookPayload) -> PullRequestOrchestrator:
    """Assemble the clients and per-delivery configuration for a PR event."""
    settings = get_settings()
    app_auth = get_github_app_auth()

    token = await app_auth.get_installation_token(payload.installation_id)
    client = GitHubClient(
        token=token,
        repo_name=payload.repository,
        api_url=settings.github_api_url,
    )

    repo_settings = RepoSettings.from_dict(client.load_repo_settings(REPO_SETTINGS_PATH))
    config = AppConfig.build(settings, repo_settings)
    logger.debug(f"Using config: {config}")

    return PullRequestOrchestrator(
        github=client,
        app_auth=app_auth,
        credentials=get_credential_manager(),
        config=config,
        user_client_factory=lambda user_token: GitHubClient(
            token=user_token, api_url=settings.github_api_url
        ),
    )


async def handle_pull_request_event(payload: WebhookPayload) -> dict:
    """Handle pull request events.

    Args:
        payload: Webhook payload

    Returns:
        Result dictionary
    """
    pull = PullRequestInfo.from_payload(payload.data)

    if payload.action in UPDATE_ACTIONS:
        logger.info(f"Handling pull_request.{payload.action} for {pull.full_name}#{pull.number}")
        orchestrator = await build_orchestrator(payload)
        return await orchestrator.on_updated(pull)

    if payload.action == "closed":
        if not pull.merged:
            logger.info(f"PR #{pull.number} was closed without merging, skipping")
            return {"status": "skipped", "reason": "closed without merge"}
        logger.info(f"Handling pull_request.closed for {pull.full_name}#{pull.number}")
        orchestrator = await build_orchestrator(payload)
        return await orchestrator.on_merged(pull)

    logger.debug(f"Ignoring pull_request action: {payload.action}")
    return {"status": "ignored", "reason": f"unsupported action: {payload.action}"}


async def handle_webhook(event_type: str, payload: dict) -> dict:
    """Main webhook handler that routes to specific handlers.

    Args:
        event_type: GitHub event type
        payload: Webhook payload

    Returns:
        Handler result
    """
    parsed = parse_webhook_payload(event_type, payload)

    logger.info(
        f"Received webhook: {event_type}/{parsed.action} "
        f"from {parsed.repository or 'N/A'} by {parsed.sender}"
    )

    if event_type == WebhookEvent.PULL_REQUEST:
        return await handle_pull_request_event(parsed)

    logger.debug(f"Ignoring event type: {event_type}")
    return {"status": "ignored", "event": event_type}
