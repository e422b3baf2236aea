"""Error taxonomy for announcement drafter.

Errors fall in four families:

- ``UserInputError``: problems with the markdown file or its targets. Always
  surfaced to the author as a PR comment and never retried.
- ``AuthenticationRequiredError``: no usable credential for the author.
- ``TransientHostError``: network or API failures talking to GitHub.
- ``ProtocolIntegrityError``: tampered or foreign OAuth state.
"""


class DrafterError(Exception):
    """Base class for all drafter errors."""


class UserInputError(DrafterError):
    """Raised when the announcement file or its targets are invalid."""


class ParseError(UserInputError):
    """Raised when the YAML header of a file cannot be parsed."""


class MissingTitleError(UserInputError):
    """Raised when a file has no top level ``# `` heading."""


class MissingOwnerError(UserInputError):
    """Raised when a repo or team URL has no owner segment."""


class MissingTargetError(UserInputError):
    """Raised when a file names neither a repository nor a team."""


class TargetNotFoundError(UserInputError):
    """Raised when the target repository cannot be fetched."""


class AppNotInstalledError(UserInputError):
    """Raised when the app is not installed on the target owner."""


class DiscussionsDisabledError(UserInputError):
    """Raised when the target repository has no discussion categories."""


class CategoryNotFoundError(UserInputError):
    """Raised when no discussion category matches the requested name."""


class AuthenticationRequiredError(DrafterError):
    """Raised when the author must (re)authorize the app."""


NeedsReauthentication = AuthenticationRequiredError


class CredentialDecryptionError(DrafterError):
    """Raised when a stored refresh token matches no known format."""


class TransientHostError(DrafterError):
    """Raised when a GitHub API or network call fails."""


class ProtocolIntegrityError(DrafterError):
    """Raised when an OAuth state value is undecryptable or mismatched."""
