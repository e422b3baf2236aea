"""FastAPI application for GitHub App webhook handling."""

import logging
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request

from drafter.server.config import get_settings
from drafter.server.oauth import create_oauth_router
from drafter.server.webhooks import handle_webhook, verify_webhook_signature


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'none'",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains; preload",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Xss-Protection": "0",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info(f"Starting announcement drafter on {settings.host}:{settings.port}")
    logger.info(f"GitHub App ID: {settings.github_app_id}")
    if not settings.is_production:
        logger.info("Running as a non-production app, user tokens are not kept after use")
    yield
    logger.info("Shutting down announcement drafter")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app
    """
    settings = get_settings()

    app = FastAPI(
        title="Announcement Drafter",
        description="GitHub App that turns markdown files in pull requests into discussions",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.get("/")
    async def root():
        """Root endpoint with app info."""
        return {
            "name": "Announcement Drafter",
            "version": "0.1.0",
            "status": "running",
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.post("/webhook")
    async def webhook(request: Request, background_tasks: BackgroundTasks):
        """GitHub webhook endpoint.

        Receives webhook events from GitHub and processes them.
        """
        body = await request.body()

        await verify_webhook_signature(request, body)

        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid JSON payload")

        event_type = request.headers.get("X-GitHub-Event", "")
        if not event_type:
            raise HTTPException(status_code=400, detail="Missing X-GitHub-Event header")

        if event_type == "ping":
            return {"status": "pong", "zen": payload.get("zen", "")}

        # Comments and posts are written after the delivery is acknowledged
        background_tasks.add_task(process_webhook_async, event_type, payload)

        return {
            "status": "accepted",
            "event": event_type,
            "action": payload.get("action", ""),
        }

    app.include_router(create_oauth_router(settings))

    return app


async def process_webhook_async(event_type: str, payload: dict):
    """Process webhook asynchronously.

    Args:
        event_type: GitHub event type
        payload: Webhook payload
    """
    try:
        result = await handle_webhook(event_type, payload)
        logger.info(f"Webhook processed: {result}")
    except Exception as e:
        logger.exception(f"Error processing webhook: {e}")


# Create default app instance
app = create_app()
