"""Configuration loading for github-repo-mcp.

Configuration is supplied by the host environment, not by the agent. The server is bound
to exactly one repository and one bearer credential for its whole lifetime. The credential
is a secret and must never be emitted to agents, logs, or audit reasons.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ToolError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT_S = 30.0


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Fixed page sizes and display limits."""

    # Network
    timeout_s: float = DEFAULT_TIMEOUT_S

    # Page sizes (first page only, no pagination)
    search_page_size: int = 20
    branches_page_size: int = 30
    pulls_page_size: int = 50

    # Commit SHAs and other opaque hashes are shown truncated
    sha_display_len: int = 7


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Repository + credential binding configuration."""

    owner: str
    repo: str
    token: str | None = field(repr=False)
    default_branch: str
    api_base_url: str

    audit_log_path: Path | None
    audit_max_bytes: int
    audit_max_backups: int
    log_level: str
    limits: LimitsConfig

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def has_token(self) -> bool:
        return bool(self.token)


def _parse_repository(value: str | None) -> tuple[str, str]:
    if not value:
        raise ToolError(code="Config", message="Missing required configuration (GITHUB_REPOSITORY)")
    parts = [p.strip() for p in value.strip().split("/")]
    if len(parts) != 2 or not all(parts):
        raise ToolError(code="Config", message="GITHUB_REPOSITORY must have the form 'owner/name'")
    return parts[0], parts[1]


def _parse_timeout(value: str | None) -> float:
    if not value:
        return DEFAULT_TIMEOUT_S
    try:
        timeout = float(value)
    except ValueError as exc:
        raise ToolError(code="Config", message="GITHUB_REPO_MCP_TIMEOUT_S must be a number") from exc
    if timeout <= 0:
        raise ToolError(code="Config", message="GITHUB_REPO_MCP_TIMEOUT_S must be positive")
    return timeout


def _parse_log_level(value: str | None) -> str:
    if not value:
        return "INFO"
    level = value.strip().upper()
    if level not in logging.getLevelNamesMapping():
        raise ToolError(code="Config", message=f"Unknown log level: {value}")
    return level


def load_config_from_env() -> AppConfig:
    """Load and validate configuration from environment variables.

    A missing credential is logged but not raised: calls proceed and fail upstream.

    Raises:
        ToolError: If the repository binding or another setting is missing/invalid.
    """
    owner, repo = _parse_repository(os.getenv("GITHUB_REPOSITORY"))

    token = os.getenv("GITHUB_PAT") or os.getenv("GITHUB_TOKEN") or None
    if token is None:
        logger.error("GITHUB_PAT is not configured; GitHub requests will be rejected as unauthorized")

    api_base_url = (os.getenv("GITHUB_API_URL") or DEFAULT_API_URL).rstrip("/")
    if not api_base_url.startswith("https://"):
        raise ToolError(code="Config", message="GITHUB_API_URL must be an https:// URL")

    default_branch = (os.getenv("GITHUB_DEFAULT_BRANCH") or "main").strip() or "main"

    audit_path_raw = os.getenv("GITHUB_REPO_MCP_AUDIT_LOG_PATH")
    audit_path: Path | None = None
    if audit_path_raw:
        p = Path(audit_path_raw)
        if not p.is_absolute():
            raise ToolError(code="Config", message="GITHUB_REPO_MCP_AUDIT_LOG_PATH must be an absolute path when set")
        audit_path = p

    return AppConfig(
        owner=owner,
        repo=repo,
        token=token,
        default_branch=default_branch,
        api_base_url=api_base_url,
        audit_log_path=audit_path,
        audit_max_bytes=5 * 1024 * 1024,
        audit_max_backups=2,
        log_level=_parse_log_level(os.getenv("GITHUB_REPO_MCP_LOG_LEVEL")),
        limits=LimitsConfig(timeout_s=_parse_timeout(os.getenv("GITHUB_REPO_MCP_TIMEOUT_S"))),
    )
