"""Parser turning an announcement markdown file into an AnnouncementDocument.

An announcement file looks like::

    <!--
    repo: https://github.com/acme/widgets
    category: Announcements
    labels: release, news
    -->

    # Hello

    World

The YAML payload lives in the first HTML comment. The first ``# `` heading is
the discussion title and everything after it is the discussion body.
"""

import logging
import re
from typing import Any

import yaml

from drafter.document.models import AnnouncementDocument, TargetRef
from drafter.errors import MissingOwnerError, MissingTitleError, ParseError


logger = logging.getLogger(__name__)

COMMENT_START = "<!--"
COMMENT_END = "-->"
TITLE_MARKER = "# "

# Index of the owner segment in a URL split on "/"
# https://github.com/{owner}/{repo}
REPO_OWNER_SEGMENT = 3
# https://github.com/orgs/{owner}/teams/{team}
TEAM_OWNER_SEGMENT = 4

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def parse(content: str) -> AnnouncementDocument:
    """Parse markdown content into an announcement document.

    Args:
        content: Raw markdown file content

    Returns:
        Parsed AnnouncementDocument

    Raises:
        ParseError: If the YAML header is malformed
        MissingTitleError: If there is no top level heading
        MissingOwnerError: If a repo or team URL has no owner
    """
    header = parse_header(content)

    target_repo = _parse_target(_repo_url(header), REPO_OWNER_SEGMENT, "repo")
    target_team = _parse_target(_as_text(header.get("team")), TEAM_OWNER_SEGMENT, "team")

    category = None
    if target_repo:
        category = _parse_category(header.get("category"))

    title, body = parse_title_and_body(content, start=_header_close_offset(content))

    return AnnouncementDocument(
        title=title,
        body=body,
        target_repo=target_repo,
        target_team=target_team,
        discussion_category_name=category,
        labels=parse_labels(header.get("labels")),
        header_end_line=get_header_end_line(content),
    )


def parse_header(content: str) -> dict[str, Any]:
    """Extract the YAML payload of the first HTML comment block.

    Returns an empty mapping when the file has no comment block.
    """
    start = content.find(COMMENT_START)
    if start == -1:
        logger.debug("No comment header found in markdown")
        return {}
    start += len(COMMENT_START)
    end = content.find(COMMENT_END, start)
    if end == -1:
        raise ParseError("The YAML provided was invalid: the header comment is never closed.")

    yaml_str = content[start:end]
    logger.debug(f"Parsing YAML header:\n{yaml_str}")
    try:
        data = yaml.safe_load(yaml_str)
    except yaml.YAMLError as e:
        raise ParseError("The YAML provided was invalid.") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError("The YAML provided was invalid: expected key/value pairs.")
    return data


def parse_title_and_body(content: str, start: int = 0) -> tuple[str, str]:
    """Split the content into the post title and the post body.

    Args:
        content: Raw markdown file content
        start: Offset to search for the heading from (skips the YAML header,
            whose comments also start with ``# ``)

    Raises:
        MissingTitleError: If there is no ``# `` heading or it is empty
    """
    marker = content.find(TITLE_MARKER, start)
    if marker == -1:
        raise MissingTitleError(
            "You must include a top level header # in your markdown that has the post title"
        )

    title_start = marker + len(TITLE_MARKER)
    line_break = _LINE_BREAK.search(content, title_start)
    title_end = line_break.start() if line_break else len(content)
    title = content[title_start:title_end].strip()
    if not title:
        raise MissingTitleError("The top level header # in your markdown must not be empty")

    body = content[title_end:].strip()
    return title, body


def parse_labels(raw: Any) -> list[str]:
    """Normalize labels given as a YAML list or a comma separated string."""
    if not raw:
        return []
    if isinstance(raw, list):
        items = [str(label) for label in raw if label is not None]
    elif isinstance(raw, str):
        items = raw.split(",")
    else:
        return []
    return [label.strip() for label in items if label.strip()]


def get_header_end_line(content: str) -> int:
    """Return the 1-based line number closing the header comment.

    Defaults to 1 when there is no closing marker.
    """
    for index, line in enumerate(_LINE_BREAK.split(content)):
        if COMMENT_END in line:
            return index + 1
    return 1


def _header_close_offset(content: str) -> int:
    start = content.find(COMMENT_START)
    if start == -1:
        return 0
    end = content.find(COMMENT_END, start + len(COMMENT_START))
    return 0 if end == -1 else end + len(COMMENT_END)


def _repo_url(header: dict[str, Any]) -> str | None:
    return _as_text(header.get("repo")) or _as_text(header.get("repository"))


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_target(url: str | None, owner_segment: int, kind: str) -> TargetRef | None:
    if not url:
        return None

    segments = url.split("/")
    owner = segments[owner_segment].strip() if len(segments) > owner_segment else ""
    if not owner:
        raise MissingOwnerError(
            f"Unable to get {kind} owner - the {kind} url should include the owner (organization)"
        )

    name = segments[-1].strip()
    if not name:
        raise ParseError(f"Unable to get {kind} name from {url}")

    return TargetRef(name=name, owner=owner)


def _parse_category(raw: Any) -> str:
    category = (_as_text(raw) or "").split("/")[-1].strip()
    if not category:
        raise ParseError("Unable to get discussion category")
    return category
