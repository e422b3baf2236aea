"""OAuth authorization round trip for app users."""

from drafter.auth.service import AuthorizationResult, OAuthService
from drafter.auth.state import OAuthState, decode_state, encode_state, is_valid_http_url

__all__ = [
    "AuthorizationResult",
    "OAuthService",
    "OAuthState",
    "decode_state",
    "encode_state",
    "is_valid_http_url",
]
