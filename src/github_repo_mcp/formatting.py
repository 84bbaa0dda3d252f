"""Text rendering for tool results."""

from __future__ import annotations

from typing import Any

DIR_GLYPH = "📁"
FILE_GLYPH = "📄"
DRAFT_MARKER = " [DRAFT]"
TRUNCATED_WARNING = "Warning: the tree was truncated by GitHub; this listing may be incomplete."


def short_sha(sha: str | None, length: int = 7) -> str:
    if not sha:
        return "unknown"
    return sha[:length]


def format_date(timestamp: str | None) -> str:
    # GitHub timestamps are ISO 8601; the date is the first ten characters.
    return (timestamp or "")[:10]


def _draft(pr: dict[str, Any]) -> str:
    return DRAFT_MARKER if pr.get("draft") else ""


def render_listing_entry(item: dict[str, Any]) -> str:
    glyph = DIR_GLYPH if item.get("type") == "dir" else FILE_GLYPH
    size = item.get("size")
    suffix = f" ({size}B)" if size else ""
    return f"{glyph} {item['path']}{suffix}"


def render_pr_summary(pr: dict[str, Any]) -> str:
    """Three-line summary used by list_prs."""
    return (
        f"#{pr['number']}{_draft(pr)} [{pr['state']}] {pr['title']}\n"
        f"  {pr['head']['ref']} → {pr['base']['ref']} by @{pr['user']['login']} ({format_date(pr['created_at'])})\n"
        f"  {pr['html_url']}"
    )


def render_pr_detail(pr: dict[str, Any]) -> str:
    """Full detail used by get_pr.

    Reviewer, label and description lines are omitted entirely when empty.
    """
    reviewers = pr.get("requested_reviewers") or []
    labels = pr.get("labels") or []
    body = pr.get("body")

    lines = [
        f"PR #{pr['number']}{_draft(pr)}: {pr['title']}",
        f"State: {pr['state']}{' (merged)' if pr.get('merged') else ''}",
        f"Author: @{pr['user']['login']}",
        f"Branch: {pr['head']['ref']} → {pr['base']['ref']}",
        f"Commits: {pr['commits']} | +{pr['additions']} -{pr['deletions']} in {pr['changed_files']} file(s)",
        f"Created: {format_date(pr['created_at'])} | Updated: {format_date(pr['updated_at'])}",
    ]
    if reviewers:
        lines.append("Reviewers: " + ", ".join(f"@{r['login']}" for r in reviewers))
    if labels:
        lines.append("Labels: " + ", ".join(label["name"] for label in labels))
    if body:
        lines.append(f"\nDescription:\n{body}")
    lines.append(f"\nURL: {pr['html_url']}")
    return "\n".join(lines)


def render_tree(paths: list[str], *, path_prefix: str | None, truncated: bool) -> str:
    scope = f" under '{path_prefix}'" if path_prefix else ""
    text = f"{len(paths)} files{scope}:\n" + "\n".join(paths)
    if truncated:
        text += f"\n\n{TRUNCATED_WARNING}"
    return text


def mention_list(logins: list[str]) -> str:
    return ", ".join(f"@{login}" for login in logins)
