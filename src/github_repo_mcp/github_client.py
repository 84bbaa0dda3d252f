"""GitHub REST client wrapper.

Pure transport:
- injects the fixed protocol headers (bearer credential, API version pin, accept, user agent)
- accepts a path relative to the API base URL or an absolute URL
- returns the raw response; status codes and bodies are interpreted by the tool handlers
- no retries
"""

from __future__ import annotations

from typing import Any

import httpx

from . import __version__

API_VERSION = "2022-11-28"
ACCEPT = "application/vnd.github+json"
USER_AGENT = f"github-repo-mcp/{__version__}"


class GitHubClient:
    """Minimal GitHub REST client."""

    def __init__(
        self,
        *,
        token: str | None,
        api_base_url: str = "https://api.github.com",
        timeout_s: float = 30.0,
        user_agent: str = USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a GitHub REST client.

        Args:
            token: Bearer credential. When None the Authorization header is omitted and
                GitHub rejects the call on its own terms.
            api_base_url: Base URL that relative locators are joined to.
            timeout_s: Transport timeout for a single request.
            user_agent: Client identifier sent with every request.
            transport: Optional httpx transport for tests.
        """
        self._token = token
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._user_agent = user_agent
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": ACCEPT,
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": self._user_agent,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def url_for(self, locator: str) -> str:
        """Resolve a relative API path or pass an absolute URL through."""
        if locator.startswith(("https://", "http://")):
            return locator
        if not locator.startswith("/"):
            locator = "/" + locator
        return f"{self._api_base_url}{locator}"

    async def request(
        self,
        locator: str,
        *,
        method: str = "GET",
        json_body: Any = None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Perform one HTTP call and return the response without inspecting it.

        Caller-supplied headers override individual default keys; defaults are never removed.
        """
        merged = self._headers()
        if headers:
            merged.update(headers)

        async with httpx.AsyncClient(
            follow_redirects=False,
            timeout=self._timeout_s,
            transport=self._transport,
        ) as client:
            return await client.request(
                method,
                self.url_for(locator),
                headers=merged,
                json=json_body,
                params=params,
            )
