"""Authenticated OAuth ``state`` values for the browser authorization round trip.

The state carries the app's client id and the page the user came from. It is
encrypted with Fernet (AES-CBC plus HMAC) using a key derived from the app's
client secret, so a tampered value never decrypts.
"""

import base64
import hashlib
import json
from dataclasses import dataclass
from urllib.parse import urlparse

from cryptography.fernet import Fernet, InvalidToken

from drafter.errors import ProtocolIntegrityError


@dataclass
class OAuthState:
    """Decoded OAuth state."""

    client_id: str
    originating_url: str | None = None


def _fernet(secret: str) -> Fernet:
    key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())
    return Fernet(key)


def encode_state(client_id: str, originating_url: str | None, secret: str) -> str:
    """Encrypt an OAuth state value.

    Args:
        client_id: The app's OAuth client id
        originating_url: Page to return to after authorization
        secret: The app's client secret

    Returns:
        Opaque URL-safe token
    """
    payload = json.dumps({"github_client_id": client_id, "pull_url": originating_url})
    return _fernet(secret).encrypt(payload.encode("utf-8")).decode("ascii")


def decode_state(value: str, secret: str, expected_client_id: str) -> OAuthState:
    """Decrypt and validate an OAuth state value.

    Raises:
        ProtocolIntegrityError: If the value is undecryptable, malformed, or
            was issued for another client id
    """
    try:
        payload = _fernet(secret).decrypt(value.encode("ascii"))
        data = json.loads(payload)
    except (InvalidToken, UnicodeError, ValueError) as e:
        raise ProtocolIntegrityError("Unable to parse state") from e

    if not isinstance(data, dict) or data.get("github_client_id") != expected_client_id:
        raise ProtocolIntegrityError("Invalid state")

    originating_url = data.get("pull_url")
    return OAuthState(
        client_id=data["github_client_id"],
        originating_url=originating_url if isinstance(originating_url, str) else None,
    )


def is_valid_http_url(value: str | None) -> bool:
    """Whether a value is a well-formed http(s) URL."""
    if not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
