"""Builds a complete dashboard snapshot from the upstream API.

Profile, repository list and profile README are required: if any of them
fails the build fails and nothing is produced. The commit activity history
is best-effort and degrades to a zero-filled window.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Callable, Optional, Protocol
from urllib.parse import quote

from backend.domain.dashboard.errors import UpstreamError
from backend.domain.dashboard.models import SOURCE_UPSTREAM, Snapshot
from backend.domain.dashboard.normalize import (
    CommitHistoryAccumulator,
    decode_readme,
    empty_commit_history,
    max_event_pages,
    normalize_repos,
    normalize_user,
)

logger = logging.getLogger(__name__)


class UpstreamSource(Protocol):
    async def get_json(self, path: str) -> Any: ...


class SnapshotBuilder:
    def __init__(
        self,
        source: UpstreamSource,
        *,
        identity: str,
        ttl_minutes: int,
        history_days: int,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self._source = source
        self._identity = identity
        self._ttl_minutes = ttl_minutes
        self._history_days = history_days
        self._today = today

    async def build(self) -> Snapshot:
        login = quote(self._identity, safe="")
        results = await asyncio.gather(
            self._source.get_json(f"/users/{login}"),
            self._source.get_json(f"/users/{login}/repos?per_page=100"),
            self._source.get_json(f"/repos/{login}/{login}/readme"),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                if isinstance(result, UpstreamError):
                    raise result
                raise UpstreamError(f"GitHub request failed: {result}") from result
        user_raw, repos_raw, readme_raw = results

        if not isinstance(user_raw, dict):
            raise UpstreamError("Invalid GitHub user response.")
        if not isinstance(repos_raw, list):
            raise UpstreamError("Invalid GitHub repos response.")
        readme = self._readme_text(readme_raw)

        commit_history = await self._commit_history_or_empty(login)

        payload = {
            "user": normalize_user(user_raw),
            "repos": normalize_repos(repos_raw),
            "readme": readme,
            "commit_history": commit_history,
        }
        return Snapshot.create(
            identity=self._identity,
            payload=payload,
            ttl_minutes=self._ttl_minutes,
            source=SOURCE_UPSTREAM,
        )

    def _readme_text(self, readme_raw: Any) -> str:
        if (
            not isinstance(readme_raw, dict)
            or readme_raw.get("encoding") != "base64"
            or not isinstance(readme_raw.get("content"), str)
        ):
            raise UpstreamError("Unsupported README format from GitHub API.")
        try:
            return decode_readme(readme_raw["content"])
        except ValueError as exc:
            raise UpstreamError(str(exc)) from exc

    async def _commit_history_or_empty(self, login: str) -> list[dict[str, Any]]:
        today = self._today() if self._today else None
        try:
            return await self.fetch_commit_history(login, today=today)
        except Exception as exc:
            logger.warning("Failed to refresh commit history, using empty history: %s", exc)
            return empty_commit_history(self._history_days, today=today)

    async def fetch_commit_history(
        self, login: str, *, today: Optional[date] = None
    ) -> list[dict[str, Any]]:
        accumulator = CommitHistoryAccumulator(self._history_days, today=today)
        for page in range(1, max_event_pages(self._history_days) + 1):
            events = await self._source.get_json(
                f"/users/{login}/events/public?per_page=100&page={page}"
            )
            if not isinstance(events, list) or not events:
                break
            if accumulator.add_page(events):
                break
        return accumulator.history()


__all__ = ["SnapshotBuilder", "UpstreamSource"]
