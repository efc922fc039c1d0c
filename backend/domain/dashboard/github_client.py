"""HTTP client for the GitHub REST API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

import aiohttp

from backend.domain.dashboard.errors import UpstreamError

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


def _header_int(headers: Mapping[str, str], name: str) -> Optional[int]:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


class GitHubClient:
    def __init__(
        self,
        *,
        base_url: str,
        identity: str,
        token: str = "",
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._identity = identity
        self._token = token
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": f"{self._identity}-dashboard-cache-service",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def get_json(self, path: str) -> Any:
        """GET ``path`` and decode JSON; every failure becomes UpstreamError."""

        url = f"{self._base_url}{path}"
        session = self._get_session()
        try:
            async with session.get(
                url,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status >= 400:
                    raise await self._error_from_response(resp)
                try:
                    return await resp.json(content_type=None)
                except ValueError as exc:
                    raise UpstreamError(
                        f"GitHub returned invalid JSON for {path}",
                        status=resp.status,
                    ) from exc
        except asyncio.TimeoutError as exc:
            raise UpstreamError(
                f"GitHub request timed out after {self._timeout:.1f}s: {path}"
            ) from exc
        except aiohttp.ClientError as exc:
            raise UpstreamError(f"GitHub request failed: {exc}") from exc

    async def _error_from_response(self, resp: aiohttp.ClientResponse) -> UpstreamError:
        detail = ""
        try:
            body = await resp.json(content_type=None)
        except Exception:
            body = None
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            detail = f" - {body['message']}"

        remaining = _header_int(resp.headers, "X-RateLimit-Remaining")
        reset = _header_int(resp.headers, "X-RateLimit-Reset")
        status_line = f"{resp.status} {resp.reason or ''}".strip()
        return UpstreamError(
            f"GitHub request failed: {status_line}{detail}",
            status=resp.status,
            rate_limit_remaining=remaining,
            rate_limit_reset=reset,
        )

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


__all__ = ["GitHubClient", "GITHUB_API_VERSION"]
