"""Upstream record normalisation.

Only the fields the dashboard renders are kept; everything else returned by
the upstream API is dropped so the cached document stays small and stable.
"""

from __future__ import annotations

import base64
import binascii
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from backend.domain.dashboard.models import parse_timestamp

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_user(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "login": user.get("login"),
        "avatar_url": user.get("avatar_url"),
        "html_url": user.get("html_url"),
        "name": user.get("name"),
        "bio": user.get("bio"),
        "followers": user.get("followers", 0),
        "following": user.get("following", 0),
        "public_repos": user.get("public_repos", 0),
    }


def normalize_repo(repo: dict[str, Any]) -> dict[str, Any]:
    topics = repo.get("topics")
    return {
        "id": repo.get("id"),
        "name": repo.get("name"),
        "html_url": repo.get("html_url"),
        "description": repo.get("description"),
        "created_at": repo.get("created_at"),
        "updated_at": repo.get("updated_at"),
        "pushed_at": repo.get("pushed_at"),
        "language": repo.get("language"),
        "stargazers_count": repo.get("stargazers_count", 0),
        "open_issues_count": repo.get("open_issues_count", 0),
        "forks_count": repo.get("forks_count", 0),
        "topics": list(topics) if isinstance(topics, list) else [],
        "archived": bool(repo.get("archived")),
    }


def normalize_repos(repos: Iterable[Any]) -> list[dict[str, Any]]:
    """Normalise and sort by most recent push first."""

    normalized = [normalize_repo(repo) for repo in repos if isinstance(repo, dict)]
    normalized.sort(key=lambda repo: parse_timestamp(repo["pushed_at"]) or _EPOCH, reverse=True)
    return normalized


def decode_readme(content: str) -> str:
    try:
        raw = base64.b64decode(content.replace("\n", ""), validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"README content is not valid base64: {exc}") from exc
    return raw.decode("utf-8", errors="replace")


def empty_commit_history(days: int, *, today: Optional[date] = None) -> list[dict[str, Any]]:
    """Zero-filled history for the last ``days`` UTC days, oldest first."""

    end = today or datetime.now(timezone.utc).date()
    return [
        {"date": (end - timedelta(days=offset)).isoformat(), "commit_count": 0}
        for offset in range(days - 1, -1, -1)
    ]


def max_event_pages(days: int) -> int:
    # Public events are capped upstream; wider windows are allowed a few more pages.
    if days <= 30:
        return 3
    if days <= 60:
        return 5
    if days <= 120:
        return 7
    return 10


def push_commit_count(event: dict[str, Any]) -> int:
    payload = event.get("payload") or {}
    size = payload.get("size")
    if isinstance(size, int) and not isinstance(size, bool):
        return max(1, size)
    commits = payload.get("commits")
    if isinstance(commits, list):
        return max(1, len(commits))
    return 1


class CommitHistoryAccumulator:
    """Folds pages of public events into a per-day push count."""

    def __init__(self, days: int, *, today: Optional[date] = None) -> None:
        self._history = empty_commit_history(days, today=today)
        self._counts = {day["date"]: 0 for day in self._history}
        first_day = date.fromisoformat(self._history[0]["date"])
        self._range_start = datetime(
            first_day.year, first_day.month, first_day.day, tzinfo=timezone.utc
        )

    def add_page(self, events: Iterable[Any]) -> bool:
        """Count a page; returns True once events older than the window were seen."""

        reached_older = False
        for event in events:
            if not isinstance(event, dict):
                continue
            created_at = parse_timestamp(event.get("created_at"))
            if created_at is None:
                continue
            if created_at < self._range_start:
                reached_older = True
                continue
            if event.get("type") != "PushEvent":
                continue
            day_key = created_at.astimezone(timezone.utc).date().isoformat()
            if day_key not in self._counts:
                continue
            self._counts[day_key] += push_commit_count(event)
        return reached_older

    def history(self) -> list[dict[str, Any]]:
        return [
            {"date": day["date"], "commit_count": self._counts[day["date"]]}
            for day in self._history
        ]


__all__ = [
    "CommitHistoryAccumulator",
    "decode_readme",
    "empty_commit_history",
    "max_event_pages",
    "normalize_repo",
    "normalize_repos",
    "normalize_user",
    "push_commit_count",
]
