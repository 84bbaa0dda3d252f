"""File tools: read_file, write_file, list_files, search_files."""

from __future__ import annotations

import base64

import pytest
from conftest import BASE, json_response, text_response


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


@pytest.mark.asyncio
async def test_read_file_decodes_base64_content(make_registry) -> None:
    registry, github, _audit = make_registry(
        {("GET", f"{BASE}/contents/README.md"): json_response(200, {"type": "file", "content": "SGVsbG8=", "encoding": "base64"})}
    )

    out = await registry.invoke("read_file", {"path": "README.md"})

    assert out.is_error is False
    assert out.text == "Hello"
    assert github.calls[0]["params"] == {"ref": "main"}


@pytest.mark.asyncio
async def test_read_file_round_trips_multiline_utf8(make_registry) -> None:
    text = "héllo wörld\n✓ done\n"
    encoded = _b64(text)
    # GitHub wraps base64 content at 60 characters.
    wrapped = "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60))
    registry, github, _audit = make_registry(
        {("GET", f"{BASE}/contents/docs/notes.md"): json_response(200, {"type": "file", "content": wrapped, "encoding": "base64"})}
    )

    out = await registry.invoke("read_file", {"path": "docs/notes.md", "branch": "dev"})

    assert out.text == text
    assert github.calls[0]["params"] == {"ref": "dev"}


@pytest.mark.asyncio
async def test_read_file_uses_configured_default_branch(make_registry) -> None:
    registry, github, _audit = make_registry(
        {("GET", f"{BASE}/contents/a.txt"): json_response(200, {"type": "file", "content": _b64("x"), "encoding": "base64"})},
        default_branch="trunk",
    )

    _ = await registry.invoke("read_file", {"path": "a.txt"})

    assert github.calls[0]["params"] == {"ref": "trunk"}


@pytest.mark.asyncio
async def test_read_file_on_directory_points_to_list_files(make_registry) -> None:
    registry, _github, _audit = make_registry(
        {("GET", f"{BASE}/contents/src"): json_response(200, [{"name": "a.py", "path": "src/a.py", "type": "file"}])}
    )

    out = await registry.invoke("read_file", {"path": "src"})

    assert out.is_error is True
    assert "is a directory, not a file" in out.text
    assert "list_files" in out.text


@pytest.mark.asyncio
async def test_read_file_reports_files_too_large_for_contents_api(make_registry) -> None:
    registry, _github, _audit = make_registry(
        {("GET", f"{BASE}/contents/big.bin"): json_response(200, {"type": "file", "content": "", "encoding": "none", "size": 5_000_000})}
    )

    out = await registry.invoke("read_file", {"path": "big.bin"})

    assert out.is_error is True
    assert "5000000 bytes" in out.text


@pytest.mark.asyncio
async def test_read_file_surfaces_upstream_error_verbatim(make_registry) -> None:
    body = '{"message":"Not Found","documentation_url":"https://docs.github.com"}'
    registry, _github, _audit = make_registry({("GET", f"{BASE}/contents/missing.md"): text_response(404, body)})

    out = await registry.invoke("read_file", {"path": "missing.md"})

    assert out.is_error is True
    assert out.text == f"Error 404: {body}"


@pytest.mark.asyncio
async def test_write_file_creates_when_no_version_token(make_registry) -> None:
    path = f"{BASE}/contents/new.txt"
    registry, github, _audit = make_registry(
        {
            ("GET", path): text_response(404, "Not Found"),
            ("PUT", path): json_response(201, {"commit": {"sha": "abcdef1234567890"}}),
        }
    )

    out = await registry.invoke("write_file", {"path": "new.txt", "content": "hi ✓", "message": "add file"})

    assert out.is_error is False
    assert out.text == "File created: new.txt (commit: abcdef1)"
    put = github.calls[1]
    assert put["method"] == "PUT"
    assert "sha" not in put["json_body"]
    assert put["json_body"]["branch"] == "main"
    assert put["json_body"]["message"] == "add file"
    assert base64.b64decode(put["json_body"]["content"]).decode("utf-8") == "hi ✓"


@pytest.mark.asyncio
async def test_write_file_updates_with_exact_version_token(make_registry) -> None:
    path = f"{BASE}/contents/README.md"
    registry, github, _audit = make_registry(
        {
            ("GET", path): json_response(200, {"type": "file", "sha": "old-blob-sha", "content": "", "encoding": "base64"}),
            ("PUT", path): json_response(200, {"commit": {"sha": "1234567abcdef"}}),
        }
    )

    out = await registry.invoke(
        "write_file", {"path": "README.md", "content": "new", "message": "update", "branch": "feature/x"}
    )

    assert out.text == "File updated: README.md (commit: 1234567)"
    assert github.calls[0]["params"] == {"ref": "feature/x"}
    assert github.calls[1]["json_body"]["sha"] == "old-blob-sha"
    assert github.calls[1]["json_body"]["branch"] == "feature/x"


@pytest.mark.asyncio
async def test_write_file_commit_sha_missing_renders_unknown(make_registry) -> None:
    path = f"{BASE}/contents/x.txt"
    registry, _github, _audit = make_registry(
        {("GET", path): text_response(404, "Not Found"), ("PUT", path): json_response(201, {})}
    )

    out = await registry.invoke("write_file", {"path": "x.txt", "content": "", "message": "m"})

    assert out.text == "File created: x.txt (commit: unknown)"


@pytest.mark.asyncio
async def test_write_file_stale_token_surfaces_as_upstream_error(make_registry) -> None:
    path = f"{BASE}/contents/x.txt"
    registry, _github, _audit = make_registry(
        {
            ("GET", path): json_response(200, {"type": "file", "sha": "stale"}),
            ("PUT", path): text_response(409, '{"message":"x.txt does not match stale"}'),
        }
    )

    out = await registry.invoke("write_file", {"path": "x.txt", "content": "a", "message": "m"})

    assert out.is_error is True
    assert out.text.startswith("Error 409:")


@pytest.mark.asyncio
async def test_list_files_renders_glyphs_and_sizes(make_registry) -> None:
    items = [
        {"name": "src", "path": "src", "type": "dir", "size": 0},
        {"name": "README.md", "path": "README.md", "type": "file", "size": 120},
    ]
    registry, github, _audit = make_registry({("GET", f"{BASE}/contents/"): json_response(200, items)})

    out = await registry.invoke("list_files", {})

    assert out.text == "📁 src\n📄 README.md (120B)"
    assert github.calls[0]["params"] == {"ref": "main"}


@pytest.mark.asyncio
async def test_list_files_empty_directory(make_registry) -> None:
    registry, _github, _audit = make_registry({("GET", f"{BASE}/contents/empty"): json_response(200, [])})

    out = await registry.invoke("list_files", {"path": "empty/"})

    assert out.is_error is False
    assert out.text == "(empty directory)"


@pytest.mark.asyncio
async def test_list_files_on_file_points_to_read_file(make_registry) -> None:
    registry, _github, _audit = make_registry(
        {("GET", f"{BASE}/contents/README.md"): json_response(200, {"type": "file", "path": "README.md"})}
    )

    out = await registry.invoke("list_files", {"path": "README.md"})

    assert out.is_error is True
    assert "is a file, not a directory" in out.text
    assert "read_file" in out.text


@pytest.mark.asyncio
async def test_search_files_scopes_query_to_repository(make_registry) -> None:
    payload = {"total_count": 2, "items": [{"path": "src/a.py", "name": "a.py"}, {"path": "b.py", "name": "b.py"}]}
    registry, github, _audit = make_registry({("GET", "/search/code"): json_response(200, payload)})

    out = await registry.invoke("search_files", {"query": "def main"})

    assert out.text == "Found 2 result(s):\n  src/a.py\n  b.py"
    assert github.calls[0]["params"] == {"q": "def main repo:octo/repo", "per_page": "20"}


@pytest.mark.asyncio
async def test_search_files_no_results(make_registry) -> None:
    registry, _github, _audit = make_registry(
        {("GET", "/search/code"): json_response(200, {"total_count": 0, "items": []})}
    )

    out = await registry.invoke("search_files", {"query": "nothing-here"})

    assert out.is_error is False
    assert out.text == "No results found for: nothing-here"
