"""Unit tests for the announcement parser."""

import pytest

from drafter.document import parse
from drafter.document.parser import get_header_end_line, parse_header, parse_labels
from drafter.errors import MissingOwnerError, MissingTitleError, ParseError


class TestParse:
    """Tests for parsing a full announcement file."""

    def test_parse_repo_announcement(self):
        """Test that header, title and body are extracted."""
        content = (
            "<!--\n"
            "repo: https://github.com/acme/widgets\n"
            "category: Announcements\n"
            "-->\n"
            "\n"
            "# Hello\n"
            "\n"
            "World\n"
        )

        doc = parse(content)

        assert doc.title == "Hello"
        assert doc.body == "World"
        assert doc.repo == "widgets"
        assert doc.repo_owner == "acme"
        assert doc.discussion_category_name == "Announcements"
        assert doc.team is None
        assert doc.header_end_line == 4

    def test_parse_team_announcement(self):
        """Test that a team URL yields the org and team slug."""
        content = (
            "<!--\n"
            "team: https://github.com/orgs/acme/teams/core\n"
            "-->\n"
            "# Team update\n"
            "Body text\n"
        )

        doc = parse(content)

        assert doc.team == "core"
        assert doc.team_owner == "acme"
        assert doc.target_repo is None
        assert doc.discussion_category_name is None

    def test_parse_repo_and_team(self):
        content = (
            "<!--\n"
            "repo: https://github.com/acme/widgets\n"
            "team: https://github.com/orgs/acme/teams/core\n"
            "category: General\n"
            "-->\n"
            "# Both\n"
        )

        doc = parse(content)

        assert doc.target_repo.full_name == "acme/widgets"
        assert doc.target_team.full_name == "acme/core"
        assert doc.body == ""

    def test_repository_key_alias(self):
        content = (
            "<!--\n"
            "repository: https://github.com/acme/widgets\n"
            "category: General\n"
            "-->\n"
            "# Title\n"
        )

        assert parse(content).repo == "widgets"

    def test_body_keeps_later_headings(self):
        """Test that only the first heading becomes the title."""
        content = "# First\n\nIntro\n\n# Second\n\nMore\n"

        doc = parse(content)

        assert doc.title == "First"
        assert doc.body == "Intro\n\n# Second\n\nMore"

    def test_yaml_comment_is_not_the_title(self):
        content = (
            "<!--\n"
            "# where to post\n"
            "repo: https://github.com/acme/widgets\n"
            "category: General\n"
            "-->\n"
            "# Real title\n"
        )

        assert parse(content).title == "Real title"

    def test_no_header_has_no_target(self):
        doc = parse("# Just a title\n\nSome text")

        assert doc.title == "Just a title"
        assert doc.has_target is False
        assert doc.header_end_line == 1

    def test_crlf_line_endings(self):
        content = "<!--\r\nteam: https://github.com/orgs/acme/teams/core\r\n-->\r\n# Title\r\nBody\r\n"

        doc = parse(content)

        assert doc.title == "Title"
        assert doc.body == "Body"
        assert doc.header_end_line == 3

    def test_reparse_is_stable(self):
        """Test that re-serializing a parsed document parses the same."""
        content = (
            "<!--\n"
            "repo: https://github.com/acme/widgets\n"
            "category: News\n"
            "labels: [a, b]\n"
            "-->\n"
            "# Title\n"
            "Line one\n"
        )
        doc = parse(content)
        rebuilt = (
            "<!--\n"
            f"repo: https://github.com/{doc.repo_owner}/{doc.repo}\n"
            f"category: {doc.discussion_category_name}\n"
            f"labels: {', '.join(doc.labels)}\n"
            "-->\n"
            f"# {doc.title}\n"
            f"{doc.body}\n"
        )

        assert parse(rebuilt) == doc


class TestParseErrors:
    """Tests for invalid announcement files."""

    def test_missing_title(self):
        content = "<!--\nteam: https://github.com/orgs/acme/teams/core\n-->\nNo heading here\n"

        with pytest.raises(MissingTitleError):
            parse(content)

    def test_empty_title(self):
        with pytest.raises(MissingTitleError):
            parse("# \nBody")

    def test_missing_repo_owner(self):
        content = "<!--\nrepo: https://github.com\ncategory: General\n-->\n# Title\n"

        with pytest.raises(MissingOwnerError):
            parse(content)

    def test_missing_team_owner(self):
        content = "<!--\nteam: https://github.com/orgs\n-->\n# Title\n"

        with pytest.raises(MissingOwnerError):
            parse(content)

    def test_repo_without_category(self):
        content = "<!--\nrepo: https://github.com/acme/widgets\n-->\n# Title\n"

        with pytest.raises(ParseError):
            parse(content)

    def test_invalid_yaml(self):
        content = "<!--\nrepo: [unclosed\n-->\n# Title\n"

        with pytest.raises(ParseError):
            parse(content)

    def test_unclosed_header(self):
        with pytest.raises(ParseError):
            parse("<!--\nrepo: https://github.com/acme/widgets\n# Title\n")

    def test_header_must_be_a_mapping(self):
        with pytest.raises(ParseError):
            parse_header("<!--\n- just\n- a list\n-->\n")


class TestHelpers:
    """Tests for parser helpers."""

    def test_labels_from_string(self):
        assert parse_labels("release, news ,") == ["release", "news"]

    def test_labels_from_list(self):
        assert parse_labels(["release", " news "]) == ["release", "news"]

    def test_labels_empty(self):
        assert parse_labels(None) == []
        assert parse_labels("") == []

    def test_header_end_line(self):
        assert get_header_end_line("<!--\na: b\nc: d\n-->\n# T") == 4

    def test_header_end_line_defaults_to_one(self):
        assert get_header_end_line("# T\nbody") == 1

    def test_empty_header(self):
        assert parse_header("<!-- -->\n# T") == {}
