"""Shared fakes for tool tests.

`FakeGitHub` stands in for `GitHubClient`: it answers from a routing table keyed by
(method, path) and records every call so tests can assert on call counts and payloads.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import pytest

import github_repo_mcp.tools as tools
from github_repo_mcp.audit import AuditEvent
from github_repo_mcp.config import AppConfig, LimitsConfig

OWNER = "octo"
REPO = "repo"
BASE = f"/repos/{OWNER}/{REPO}"


@dataclass
class DummyAudit:
    events: list[AuditEvent] = field(default_factory=list)

    def write_event(self, event: AuditEvent) -> None:
        self.events.append(event)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


class FakeGitHub:
    def __init__(self, routes: dict[tuple[str, str], httpx.Response]) -> None:
        self._routes = routes
        self.calls: list[dict[str, Any]] = []

    async def request(self, locator: str, **kwargs: Any) -> httpx.Response:
        method = kwargs.get("method", "GET")
        self.calls.append({"locator": locator, "method": method, **kwargs})
        key = (method, locator)
        if key not in self._routes:
            raise AssertionError(f"Unexpected GitHub call: {key}")
        return self._routes[key]


def json_response(status_code: int, payload: Any) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def text_response(status_code: int, text: str) -> httpx.Response:
    return httpx.Response(status_code, text=text)


def make_config(**overrides: Any) -> AppConfig:
    values: dict[str, Any] = {
        "owner": OWNER,
        "repo": REPO,
        "token": "test-token",
        "default_branch": "main",
        "api_base_url": "https://api.github.com",
        "audit_log_path": None,
        "audit_max_bytes": 5 * 1024 * 1024,
        "audit_max_backups": 2,
        "log_level": "INFO",
        "limits": LimitsConfig(),
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def make_registry() -> Callable[..., tuple[tools.ToolRegistry, FakeGitHub, DummyAudit]]:
    def _make(routes: dict[tuple[str, str], httpx.Response] | None = None, **config: Any):
        github = FakeGitHub(routes or {})
        audit = DummyAudit()
        runtime = tools.Runtime(
            config=make_config(**config),
            audit=audit,  # type: ignore[arg-type]
            github=github,  # type: ignore[arg-type]
        )
        return tools.build_registry(runtime), github, audit

    return _make
