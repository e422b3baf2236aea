"""Data models for parsed announcement files."""

from dataclasses import dataclass, field


@dataclass
class TargetRef:
    """A repository or team a discussion is posted to."""

    name: str
    owner: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class AnnouncementDocument:
    """Structured publish intent extracted from one markdown file."""

    title: str
    body: str
    target_repo: TargetRef | None = None
    target_team: TargetRef | None = None
    discussion_category_name: str | None = None
    labels: list[str] = field(default_factory=list)
    header_end_line: int = 1

    @property
    def repo(self) -> str | None:
        return self.target_repo.name if self.target_repo else None

    @property
    def repo_owner(self) -> str | None:
        return self.target_repo.owner if self.target_repo else None

    @property
    def team(self) -> str | None:
        return self.target_team.name if self.target_team else None

    @property
    def team_owner(self) -> str | None:
        return self.target_team.owner if self.target_team else None

    @property
    def has_target(self) -> bool:
        return self.target_repo is not None or self.target_team is not None
