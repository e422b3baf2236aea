"""Browser routes for authorizing the app to post as a user."""

import html
import json
import logging
import secrets

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from drafter.auth import OAuthService
from drafter.errors import AuthenticationRequiredError, ProtocolIntegrityError, TransientHostError
from drafter.server.config import Settings
from drafter.server.dependencies import get_oauth_service


logger = logging.getLogger(__name__)

SECONDS_TO_REDIRECT = 6

SUCCESS_PAGE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <title>announcement-drafter | authorization</title>
    <script nonce="{nonce}">
      setTimeout(function () {{
        window.location = {redirect_url};
      }}, {seconds} * 1000);
    </script>
  </head>
  <body>
    <div>
      <h2>Success! Now Announcement Drafter can create discussions for you 🚀</h2>
    </div>
    <div>
      <p>Sending you back to the {location} in just a few seconds...</p>
    </div>
  </body>
</html>
"""


def render_success_page(redirect_url: str, returns_to_pull_request: bool, nonce: str) -> str:
    """Render the page shown after a successful authorization."""
    location = "pull request" if returns_to_pull_request else "Announcement Drafter repository"
    # json.dumps quotes the URL for the script; "</" must not close the tag
    script_url = json.dumps(redirect_url).replace("</", "<\\/")
    return SUCCESS_PAGE.format(
        nonce=html.escape(nonce),
        redirect_url=script_url,
        seconds=SECONDS_TO_REDIRECT,
        location=html.escape(location),
    )


def get_callback_redirect_uri(request: Request, callback_path: str) -> str:
    """Absolute URL of the callback route, honoring reverse proxy headers."""
    proto = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or request.url.netloc
    return f"{proto}://{host}{callback_path}"


def create_oauth_router(settings: Settings) -> APIRouter:
    """Create the router for the authorize redirect and the OAuth callback.

    Args:
        settings: Server settings (both paths are configurable)

    Returns:
        Configured APIRouter
    """
    router = APIRouter(tags=["oauth"])

    async def authorize(
        request: Request,
        pull_url: str | None = None,
        service: OAuthService = Depends(get_oauth_service),
    ):
        redirect_uri = get_callback_redirect_uri(request, settings.callback_url)
        url = service.authorize_url(redirect_uri, pull_url)
        logger.info(f"Redirecting user to {url}")
        return RedirectResponse(url, status_code=302)

    async def callback(
        code: str | None = None,
        state: str | None = None,
        service: OAuthService = Depends(get_oauth_service),
    ):
        logger.info("Received OAuth callback...")
        if not code:
            return PlainTextResponse("No code", status_code=400)
        if not state:
            return PlainTextResponse("No state", status_code=400)

        try:
            result = await service.complete(code, state)
        except ProtocolIntegrityError as e:
            logger.warning(f"Rejected OAuth state: {e}")
            return PlainTextResponse(str(e), status_code=400)
        except AuthenticationRequiredError as e:
            logger.warning(f"OAuth code exchange was rejected: {e}")
            return PlainTextResponse("Unable to authorize", status_code=400)
        except TransientHostError as e:
            logger.error(f"OAuth code exchange failed: {e}")
            return PlainTextResponse("Unable to reach GitHub", status_code=502)

        nonce = secrets.token_urlsafe(16)
        page = render_success_page(result.redirect_url, result.returns_to_pull_request, nonce)
        return HTMLResponse(
            page,
            headers={"Content-Security-Policy": f"script-src 'nonce-{nonce}'; default-src 'none'"},
        )

    router.add_api_route(settings.auth_url, authorize, methods=["GET"])
    router.add_api_route(settings.callback_url, callback, methods=["GET"])
    return router
