"""Data models for stored user credentials."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CredentialRecord:
    """An encrypted OAuth refresh token for one GitHub user.

    ``id`` is the user's login. The refresh token is only ever held in its
    encrypted form here.
    """

    id: str
    encrypted_refresh_token: str
    expires_at: datetime
    issued_at: datetime = field(default_factory=utcnow)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def __repr__(self) -> str:
        return (
            f"CredentialRecord(id={self.id!r}, issued_at={self.issued_at.isoformat()}, "
            f"expires_at={self.expires_at.isoformat()})"
        )

    def to_dict(self) -> dict:
        """Convert record to a store document."""
        return {
            "id": self.id,
            "refreshToken": self.encrypted_refresh_token,
            "refreshTokenCreatedAt": self.issued_at.isoformat(),
            "refreshTokenExpiresAt": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CredentialRecord":
        """Create record from a store document."""
        record = cls(
            id=data["id"],
            encrypted_refresh_token=data["refreshToken"],
            expires_at=parse_timestamp(data["refreshTokenExpiresAt"]),
        )
        if data.get("refreshTokenCreatedAt"):
            record.issued_at = parse_timestamp(data["refreshTokenCreatedAt"])
        return record


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
