"""Markdown templates for the comments and posts the app writes."""

from drafter.github.models import ERROR_ICON, AppIdentity, PublishedDiscussion, PullRequestInfo


WARNING_ICON = "⚠️"

RELATIVE_LINKS_GUIDANCE = (
    "- Do not use relative links to files in your repo. Instead, use full URLs and for "
    "media drag/drop or paste the file into the markdown. The link generated for media "
    "should contain `https://user-images.githubusercontent.com`.\n"
)


def status_comment_body(
    app: AppIdentity,
    author_login: str,
    auth_link: str | None = None,
    require_approval: bool = False,
) -> str:
    """Body of the status comment on a file that will be published.

    Args:
        app: The running app
        author_login: PR author
        auth_link: Authorization link, when the author must authenticate
        require_approval: Whether the author must approve with a reaction
    """
    body = (
        f"{WARNING_ICON} {app.link_markdown} will create a discussion using this file "
        f"once this PR is merged {WARNING_ICON}\n\n"
        "**IMPORTANT**:\n\n"
    )
    if auth_link:
        body += (
            f"- @{author_login}: you must [authorize the app]({auth_link}) before merging "
            "this pull request so the discussion can be created as you. "
            "This is not required every time.\n"
        )
    if require_approval:
        body += f"- To approve, @{author_login} **must** react to this comment with a 🚀\n"
    body += RELATIVE_LINKS_GUIDANCE
    return body


def error_comment_body(app: AppIdentity, filepath: str, message: str) -> str:
    """Body of the status comment on a file that cannot be published."""
    quoted = "\n".join(f"> {line}" for line in message.splitlines() or [""])
    return (
        f"{ERROR_ICON} {app.link_markdown} will not be able to create a discussion "
        f"for `{filepath}` {ERROR_ICON}\n\n"
        "Please fix the issues and update the PR:\n\n"
        f"{quoted}\n"
    )


def success_reply_body(discussion: PublishedDiscussion) -> str:
    """Reply posted under a status comment once its discussion exists."""
    return (
        f"🎉 This {discussion.kind} discussion has been posted! 🎉\n"
        f"> View it here: [{discussion.title}]({discussion.url})"
    )


def post_footer(app: AppIdentity, pull: PullRequestInfo) -> str:
    """Footer appended to every published discussion.

    The pull request link is left out for private repositories.
    """
    from_pull = "" if pull.private else f"<a href='{pull.html_url}'>from a pull request</a> "
    return (
        f"\n\n<hr /><em>This discussion was created {from_pull}"
        f"using <a href='{app.html_url}'>{app.name}</a>.</em>\n"
    )
