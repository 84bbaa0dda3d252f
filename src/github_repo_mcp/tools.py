"""Tool definitions and handlers.

This module:
- defines the tools (public contract surface) as declarative input schemas
- builds a per-server runtime from host-provided config
- implements one async handler per tool on top of `GitHubClient`
- wires handlers into a `ToolRegistry`

Every handler follows the same protocol: issue the upstream request(s), turn any
non-success status into `Error <status>: <body>`, turn a file/directory mix-up into a
guidance envelope, and otherwise render the relevant fields as text. Once the status is a
success the payload shape is trusted; a malformed payload raises out of the handler.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from .audit import AuditLogger
from .config import AppConfig, load_config_from_env
from .envelope import ToolResult, error_result, text_result
from .errors import mismatch_error, upstream_error
from .formatting import (mention_list, render_listing_entry, render_pr_detail,
                         render_pr_summary, render_tree, short_sha)
from .github_client import GitHubClient
from .registry import ToolDescriptor, ToolRegistry

logger = logging.getLogger(__name__)

_BRANCH = {"type": "string", "description": "Branch name (defaults to the repository's configured default branch)"}
_PULL_NUMBER = {"type": "integer", "minimum": 1, "description": "The pull request number"}

TOOL_METADATA: dict[str, dict[str, Any]] = {
    "read_file": {
        "description": (
            "Read a file from the GitHub repository. Returns the file content as text. "
            "Use for any file: source code, markdown, JSON, config, etc."
        ),
        "inputSchema": {
            "type": "object",
            "required": ["path"],
            "properties": {
                "path": {
                    "type": "string",
                    "minLength": 1,
                    "description": "File path relative to repo root, e.g. 'src/app/main.py'",
                },
                "branch": _BRANCH,
            },
            "additionalProperties": False,
        },
    },
    "write_file": {
        "description": "Create or update a file in the GitHub repository. Commits directly to the specified branch.",
        "inputSchema": {
            "type": "object",
            "required": ["path", "content", "message"],
            "properties": {
                "path": {"type": "string", "minLength": 1, "description": "File path relative to repo root"},
                "content": {"type": "string", "description": "The full file content to write"},
                "message": {"type": "string", "minLength": 1, "description": "Git commit message"},
                "branch": _BRANCH,
            },
            "additionalProperties": False,
        },
    },
    "list_files": {
        "description": "List files and directories in a path within the GitHub repository.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "default": "",
                    "description": "Directory path relative to repo root (defaults to root)",
                },
                "branch": _BRANCH,
            },
            "additionalProperties": False,
        },
    },
    "search_files": {
        "description": "Search for files or code in the GitHub repository using GitHub's code search API.",
        "inputSchema": {
            "type": "object",
            "required": ["query"],
            "properties": {
                "query": {"type": "string", "minLength": 1, "description": "Search query (code, filename, etc.)"},
            },
            "additionalProperties": False,
        },
    },
    "list_branches": {
        "description": "List branches in the GitHub repository.",
        "inputSchema": {"type": "object", "properties": {}, "additionalProperties": False},
    },
    "get_file_tree": {
        "description": (
            "Get the full recursive file tree of the GitHub repository. Useful for understanding project structure."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "branch": _BRANCH,
                "path_prefix": {
                    "type": "string",
                    "description": "Filter results to paths starting with this prefix, e.g. 'src/agents/'",
                },
            },
            "additionalProperties": False,
        },
    },
    "list_prs": {
        "description": "List pull requests for the GitHub repository.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "state": {
                    "type": "string",
                    "enum": ["open", "closed", "all"],
                    "default": "open",
                    "description": "PR state filter (defaults to 'open')",
                },
                "base": {"type": "string", "description": "Filter by base branch name"},
                "head": {
                    "type": "string",
                    "description": "Filter by head branch name (format: 'user:branch' or just 'branch')",
                },
            },
            "additionalProperties": False,
        },
    },
    "get_pr": {
        "description": "Get details of a specific pull request by number.",
        "inputSchema": {
            "type": "object",
            "required": ["pull_number"],
            "properties": {"pull_number": _PULL_NUMBER},
            "additionalProperties": False,
        },
    },
    "create_pr": {
        "description": "Create a new pull request in the GitHub repository.",
        "inputSchema": {
            "type": "object",
            "required": ["title", "head", "base"],
            "properties": {
                "title": {"type": "string", "minLength": 1, "description": "Title of the pull request"},
                "body": {
                    "type": "string",
                    "default": "",
                    "description": "Body/description of the pull request (markdown supported)",
                },
                "head": {
                    "type": "string",
                    "minLength": 1,
                    "description": "The branch containing changes (e.g. 'feature/my-feature')",
                },
                "base": {"type": "string", "minLength": 1, "description": "The branch to merge into (e.g. 'main')"},
                "draft": {"type": "boolean", "default": False, "description": "Create as draft PR (defaults to false)"},
            },
            "additionalProperties": False,
        },
    },
    "merge_pr": {
        "description": "Merge a pull request. The PR must be open and mergeable.",
        "inputSchema": {
            "type": "object",
            "required": ["pull_number"],
            "properties": {
                "pull_number": {**_PULL_NUMBER, "description": "The pull request number to merge"},
                "commit_title": {"type": "string", "description": "Title for the merge commit (optional)"},
                "commit_message": {
                    "type": "string",
                    "description": "Extra detail for the merge commit message (optional)",
                },
                "merge_method": {
                    "type": "string",
                    "enum": ["merge", "squash", "rebase"],
                    "default": "merge",
                    "description": "Merge method (defaults to 'merge')",
                },
            },
            "additionalProperties": False,
        },
    },
    "close_pr": {
        "description": "Close a pull request without merging it.",
        "inputSchema": {
            "type": "object",
            "required": ["pull_number"],
            "properties": {"pull_number": {**_PULL_NUMBER, "description": "The pull request number to close"}},
            "additionalProperties": False,
        },
    },
    "add_pr_comment": {
        "description": "Add a comment to a pull request (uses the Issues comments API).",
        "inputSchema": {
            "type": "object",
            "required": ["pull_number", "body"],
            "properties": {
                "pull_number": _PULL_NUMBER,
                "body": {"type": "string", "minLength": 1, "description": "The comment text (markdown supported)"},
            },
            "additionalProperties": False,
        },
    },
    "request_pr_review": {
        "description": "Request a review on a pull request from one or more GitHub users.",
        "inputSchema": {
            "type": "object",
            "required": ["pull_number", "reviewers"],
            "properties": {
                "pull_number": _PULL_NUMBER,
                "reviewers": {
                    "type": "array",
                    "minItems": 1,
                    "items": {"type": "string", "minLength": 1},
                    "description": "GitHub usernames to request reviews from (without the @ prefix)",
                },
            },
            "additionalProperties": False,
        },
    },
}


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server dependencies shared across tool calls."""

    config: AppConfig
    audit: AuditLogger
    github: GitHubClient


_RUNTIME: Runtime | None = None
_REGISTRY: ToolRegistry | None = None


def build_runtime(config: AppConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> Runtime:
    audit = AuditLogger(
        sink_path=config.audit_log_path,
        max_bytes=config.audit_max_bytes,
        max_backups=config.audit_max_backups,
    )
    github = GitHubClient(
        token=config.token,
        api_base_url=config.api_base_url,
        timeout_s=config.limits.timeout_s,
        transport=transport,
    )
    return Runtime(config=config, audit=audit, github=github)


def initialize_runtime_from_env() -> Runtime:
    """Initialize and cache runtime from environment.

    Called at server startup (fail-fast), and can also be used lazily.
    """
    global _RUNTIME  # pylint: disable=global-statement
    if _RUNTIME is None:
        _RUNTIME = build_runtime(load_config_from_env())
        logger.info("Runtime initialized for %s", _RUNTIME.config.full_name)
    return _RUNTIME


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _repo_path(runtime: Runtime, suffix: str) -> str:
    return f"/repos/{runtime.config.owner}/{runtime.config.repo}{suffix}"


def _contents_path(runtime: Runtime, path: str) -> str:
    return _repo_path(runtime, f"/contents/{quote(path.strip('/'), safe='/')}")


def _branch(runtime: Runtime, arguments: dict[str, Any]) -> str:
    return arguments.get("branch") or runtime.config.default_branch


def _sha(runtime: Runtime, sha: str | None) -> str:
    return short_sha(sha, runtime.config.limits.sha_display_len)


def _failed(resp: httpx.Response) -> ToolResult:
    return upstream_error(resp.status_code, resp.text)


def _error_messages(resp: httpx.Response) -> str:
    """Prefer GitHub's structured validation messages over the raw body."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    if not isinstance(data, dict):
        return resp.text

    errors = data.get("errors")
    if isinstance(errors, list) and errors:
        messages: list[str] = []
        for err in errors:
            if isinstance(err, dict):
                msg = err.get("message") or err.get("code")
                if isinstance(msg, str) and msg:
                    messages.append(msg)
            elif isinstance(err, str):
                messages.append(err)
        if messages:
            return "; ".join(messages)

    message = data.get("message")
    if isinstance(message, str) and message:
        return message
    return resp.text


def _decode_content(content: str) -> str:
    raw = base64.b64decode(content.replace("\n", ""))
    return raw.decode("utf-8", errors="replace")


def _encode_content(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


# -----------------------------------------------------------------------------
# Files
# -----------------------------------------------------------------------------


async def _tool_read_file(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    path = arguments["path"]
    ref = _branch(runtime, arguments)

    resp = await runtime.github.request(_contents_path(runtime, path), params={"ref": ref})
    if not resp.is_success:
        return _failed(resp)

    data = resp.json()
    if isinstance(data, list) or (isinstance(data, dict) and data.get("type") == "dir"):
        return mismatch_error(f"Path '{path}' is a directory, not a file. Use list_files instead.")
    if data.get("type") != "file":
        return mismatch_error(f"Path '{path}' is a {data.get('type')}, not a regular file.")
    if data.get("encoding") == "none":
        return error_result(
            f"File '{path}' is too large to be returned by the contents API ({data.get('size', '?')} bytes)."
        )

    return text_result(_decode_content(data.get("content") or ""))


async def _tool_write_file(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    path = arguments["path"]
    ref = _branch(runtime, arguments)
    locator = _contents_path(runtime, path)

    # The version token is fetched right before the write and never reused.
    sha: str | None = None
    existing = await runtime.github.request(locator, params={"ref": ref})
    if existing.is_success:
        data = existing.json()
        if isinstance(data, dict) and isinstance(data.get("sha"), str):
            sha = data["sha"]

    body: dict[str, Any] = {
        "message": arguments["message"],
        "content": _encode_content(arguments["content"]),
        "branch": ref,
    }
    if sha:
        body["sha"] = sha

    resp = await runtime.github.request(locator, method="PUT", json_body=body)
    if not resp.is_success:
        return _failed(resp)

    commit = resp.json().get("commit") or {}
    action = "updated" if sha else "created"
    return text_result(f"File {action}: {path} (commit: {_sha(runtime, commit.get('sha'))})")


async def _tool_list_files(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    dir_path = arguments.get("path") or ""
    ref = _branch(runtime, arguments)

    resp = await runtime.github.request(_contents_path(runtime, dir_path), params={"ref": ref})
    if not resp.is_success:
        return _failed(resp)

    items = resp.json()
    if not isinstance(items, list):
        return mismatch_error(f"Path '{dir_path}' is a file, not a directory. Use read_file instead.")

    listing = "\n".join(render_listing_entry(item) for item in items)
    return text_result(listing or "(empty directory)")


async def _tool_search_files(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    query = arguments["query"]

    resp = await runtime.github.request(
        "/search/code",
        params={
            "q": f"{query} repo:{runtime.config.full_name}",
            "per_page": str(runtime.config.limits.search_page_size),
        },
    )
    if not resp.is_success:
        return _failed(resp)

    data = resp.json()
    if data["total_count"] == 0:
        return text_result(f"No results found for: {query}")

    results = "\n".join(f"  {item['path']}" for item in data["items"])
    return text_result(f"Found {data['total_count']} result(s):\n{results}")


# -----------------------------------------------------------------------------
# Branches and trees
# -----------------------------------------------------------------------------


async def _tool_list_branches(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    resp = await runtime.github.request(
        _repo_path(runtime, "/branches"),
        params={"per_page": str(runtime.config.limits.branches_page_size)},
    )
    if not resp.is_success:
        return _failed(resp)

    listing = "\n".join(f"  {b['name']} ({_sha(runtime, b['commit']['sha'])})" for b in resp.json())
    return text_result(f"Branches:\n{listing}")


async def _tool_get_file_tree(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    ref = _branch(runtime, arguments)
    path_prefix = arguments.get("path_prefix")

    # branch -> commit -> recursive tree; each hop is built from the previous response.
    ref_resp = await runtime.github.request(_repo_path(runtime, f"/git/ref/heads/{quote(ref, safe='/')}"))
    if not ref_resp.is_success:
        return _failed(ref_resp)
    commit_sha = ref_resp.json()["object"]["sha"]

    commit_resp = await runtime.github.request(_repo_path(runtime, f"/git/commits/{commit_sha}"))
    if not commit_resp.is_success:
        return _failed(commit_resp)
    tree_sha = commit_resp.json()["tree"]["sha"]

    tree_resp = await runtime.github.request(
        _repo_path(runtime, f"/git/trees/{tree_sha}"),
        params={"recursive": "1"},
    )
    if not tree_resp.is_success:
        return _failed(tree_resp)
    tree_data = tree_resp.json()

    paths = [entry["path"] for entry in tree_data["tree"] if entry.get("type") == "blob"]
    if path_prefix:
        paths = [p for p in paths if p.startswith(path_prefix)]

    return text_result(render_tree(paths, path_prefix=path_prefix, truncated=bool(tree_data.get("truncated"))))


# -----------------------------------------------------------------------------
# Pull requests
# -----------------------------------------------------------------------------


async def _tool_list_prs(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    state = arguments["state"]
    params = {"state": state, "per_page": str(runtime.config.limits.pulls_page_size)}
    if arguments.get("base"):
        params["base"] = arguments["base"]
    head = arguments.get("head")
    if head:
        # GitHub ignores a head filter that is not qualified with an owner.
        params["head"] = head if ":" in head else f"{runtime.config.owner}:{head}"

    resp = await runtime.github.request(_repo_path(runtime, "/pulls"), params=params)
    if not resp.is_success:
        return _failed(resp)

    prs = resp.json()
    if not prs:
        return text_result(f"No {state} pull requests found.")
    return text_result("\n\n".join(render_pr_summary(pr) for pr in prs))


async def _tool_get_pr(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    resp = await runtime.github.request(_repo_path(runtime, f"/pulls/{arguments['pull_number']}"))
    if not resp.is_success:
        return _failed(resp)
    return text_result(render_pr_detail(resp.json()))


async def _tool_create_pr(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    payload = {
        "title": arguments["title"],
        "body": arguments["body"],
        "head": arguments["head"],
        "base": arguments["base"],
        "draft": arguments["draft"],
    }

    resp = await runtime.github.request(_repo_path(runtime, "/pulls"), method="POST", json_body=payload)
    if not resp.is_success:
        return upstream_error(resp.status_code, _error_messages(resp))

    pr = resp.json()
    return text_result(f"PR #{pr['number']} created: {pr['title']}\n{pr['html_url']}")


async def _tool_merge_pr(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    pull_number = arguments["pull_number"]
    body = {"merge_method": arguments["merge_method"]}
    if arguments.get("commit_title"):
        body["commit_title"] = arguments["commit_title"]
    if arguments.get("commit_message"):
        body["commit_message"] = arguments["commit_message"]

    resp = await runtime.github.request(
        _repo_path(runtime, f"/pulls/{pull_number}/merge"),
        method="PUT",
        json_body=body,
    )
    if not resp.is_success:
        return _failed(resp)

    data = resp.json()
    return text_result(f"PR #{pull_number} merged successfully.\n{data['message']}\nCommit: {data['sha']}")


async def _tool_close_pr(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    resp = await runtime.github.request(
        _repo_path(runtime, f"/pulls/{arguments['pull_number']}"),
        method="PATCH",
        json_body={"state": "closed"},
    )
    if not resp.is_success:
        return _failed(resp)

    pr = resp.json()
    return text_result(f"PR #{pr['number']} closed: {pr['title']}\n{pr['html_url']}")


async def _tool_add_pr_comment(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    pull_number = arguments["pull_number"]

    # Pull requests share the issue comment stream upstream.
    resp = await runtime.github.request(
        _repo_path(runtime, f"/issues/{pull_number}/comments"),
        method="POST",
        json_body={"body": arguments["body"]},
    )
    if not resp.is_success:
        return _failed(resp)

    comment = resp.json()
    return text_result(f"Comment added to PR #{pull_number}. Comment ID: {comment['id']}\n{comment['html_url']}")


async def _tool_request_pr_review(runtime: Runtime, arguments: dict[str, Any]) -> ToolResult:
    pull_number = arguments["pull_number"]
    reviewers = arguments["reviewers"]

    resp = await runtime.github.request(
        _repo_path(runtime, f"/pulls/{pull_number}/requested_reviewers"),
        method="POST",
        json_body={"reviewers": reviewers},
    )
    if not resp.is_success:
        return _failed(resp)

    return text_result(f"Review requested from: {mention_list(reviewers)} on PR #{pull_number}")


_TOOL_FUNCS: dict[str, Any] = {
    "read_file": _tool_read_file,
    "write_file": _tool_write_file,
    "list_files": _tool_list_files,
    "search_files": _tool_search_files,
    "list_branches": _tool_list_branches,
    "get_file_tree": _tool_get_file_tree,
    "list_prs": _tool_list_prs,
    "get_pr": _tool_get_pr,
    "create_pr": _tool_create_pr,
    "merge_pr": _tool_merge_pr,
    "close_pr": _tool_close_pr,
    "add_pr_comment": _tool_add_pr_comment,
    "request_pr_review": _tool_request_pr_review,
}


def build_registry(runtime: Runtime) -> ToolRegistry:
    """Register every tool in TOOL_METADATA against the given runtime."""
    registry = ToolRegistry(runtime)
    for name, meta in TOOL_METADATA.items():
        registry.register(
            ToolDescriptor(name=name, description=meta["description"], input_schema=meta["inputSchema"]),
            _TOOL_FUNCS[name],
        )
    return registry


def get_registry() -> ToolRegistry:
    """Return the process-wide registry, building it on first use."""
    global _REGISTRY  # pylint: disable=global-statement
    if _REGISTRY is None:
        _REGISTRY = build_registry(initialize_runtime_from_env())
    return _REGISTRY


async def dispatch_tool(name: str, arguments: dict[str, Any] | None) -> ToolResult:
    """Dispatch a tool call against the process-wide registry."""
    return await get_registry().invoke(name, arguments)
