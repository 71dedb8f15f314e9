"""Review references embedded in commit messages, and related text helpers."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from diffview.core.models.entities import ReviewRef

if TYPE_CHECKING:
    from diffview.core.models.entities import RevisionInfo

_REVISION_LINE = re.compile(
    r"^Differential Revision:\s*(?P<url>https?://\S+/(?P<name>D(?P<id>\d+)))\s*$",
    re.MULTILINE | re.IGNORECASE,
)


def parse_review_reference(message: str) -> ReviewRef | None:
    """Extract the review linked from a commit message, if any.

    Recognizes a ``Differential Revision: <url>/D<number>`` trailer line.
    The last matching line wins.
    """
    matches = list(_REVISION_LINE.finditer(message or ""))
    if not matches:
        return None
    match = matches[-1]
    return ReviewRef(name=match.group("name"), url=match.group("url"), id=match.group("id"))


def get_revision_update_message(review: ReviewRef) -> str:
    """Template offered to the user when updating an existing review."""
    return (
        "\n\n"
        f"# Updating {review.name}\n"
        "#\n"
        "# Enter a brief description of the changes included in this update.\n"
        "# The first line is used as subject, next lines as comment."
    )


def extract_update_message(review: ReviewRef, publish_message: str) -> str:
    """User-authored text of an update, with the template removed."""
    template = get_revision_update_message(review).strip()
    return publish_message.replace(template, "").strip()


def format_file_diff_revision_title(revision_info: RevisionInfo) -> str:
    if not revision_info.bookmarks:
        return revision_info.hash
    return f"{revision_info.hash} - ({', '.join(revision_info.bookmarks)})"
