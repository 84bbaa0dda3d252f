"""Every tool surfaces a non-success upstream status as `Error <status>: <body>`."""

from __future__ import annotations

import pytest
from conftest import BASE, text_response

from github_repo_mcp.tools import TOOL_METADATA

BODY = '{"message":"Server Error"}'

CASES = [
    ("read_file", {"path": "a.txt"}, ("GET", f"{BASE}/contents/a.txt")),
    ("list_files", {}, ("GET", f"{BASE}/contents/")),
    ("search_files", {"query": "q"}, ("GET", "/search/code")),
    ("list_branches", {}, ("GET", f"{BASE}/branches")),
    ("get_file_tree", {}, ("GET", f"{BASE}/git/ref/heads/main")),
    ("list_prs", {}, ("GET", f"{BASE}/pulls")),
    ("get_pr", {"pull_number": 1}, ("GET", f"{BASE}/pulls/1")),
    ("merge_pr", {"pull_number": 1}, ("PUT", f"{BASE}/pulls/1/merge")),
    ("close_pr", {"pull_number": 1}, ("PATCH", f"{BASE}/pulls/1")),
    ("add_pr_comment", {"pull_number": 1, "body": "hi"}, ("POST", f"{BASE}/issues/1/comments")),
    ("request_pr_review", {"pull_number": 1, "reviewers": ["bob"]}, ("POST", f"{BASE}/pulls/1/requested_reviewers")),
]


def test_cases_cover_every_tool() -> None:
    covered = {case[0] for case in CASES} | {"write_file", "create_pr"}
    assert covered == set(TOOL_METADATA)


@pytest.mark.asyncio
@pytest.mark.parametrize(("tool", "arguments", "route"), CASES, ids=[c[0] for c in CASES])
async def test_server_error_is_surfaced_verbatim(make_registry, tool, arguments, route) -> None:
    registry, github, audit = make_registry({route: text_response(500, BODY)})

    out = await registry.invoke(tool, arguments)

    assert out.is_error is True
    assert out.text == f"Error 500: {BODY}"
    assert len(github.calls) == 1
    assert audit.events[-1].outcome == "failed"


@pytest.mark.asyncio
async def test_write_file_put_failure(make_registry) -> None:
    path = f"{BASE}/contents/a.txt"
    registry, _github, _audit = make_registry(
        {("GET", path): text_response(500, BODY), ("PUT", path): text_response(500, BODY)}
    )

    out = await registry.invoke("write_file", {"path": "a.txt", "content": "x", "message": "m"})

    assert out.is_error is True
    assert out.text == f"Error 500: {BODY}"


@pytest.mark.asyncio
async def test_create_pr_failure(make_registry) -> None:
    registry, _github, _audit = make_registry({("POST", f"{BASE}/pulls"): text_response(500, BODY)})

    out = await registry.invoke("create_pr", {"title": "t", "head": "h", "base": "b"})

    assert out.is_error is True
    assert out.text == "Error 500: Server Error"
