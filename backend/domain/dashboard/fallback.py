"""Last-known-good snapshot from a pre-provisioned local file."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import quote

from backend.domain.dashboard.errors import FallbackUnavailable
from backend.domain.dashboard.models import SOURCE_LOCAL_SNAPSHOT, Snapshot
from backend.domain.dashboard.normalize import empty_commit_history, normalize_repos

logger = logging.getLogger(__name__)


def _owner_of(repos: list[Any]) -> Optional[dict[str, Any]]:
    for repo in repos:
        if isinstance(repo, dict) and isinstance(repo.get("owner"), dict):
            return repo["owner"]
    return None


def _str_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


class LocalFallbackLoader:
    """Reads a JSON array of repositories (upstream repo shape) from disk.

    The display identity comes from the first ``owner`` object found in the
    file, else the configured identity.
    """

    def __init__(
        self,
        path: Path,
        *,
        identity: str,
        ttl_minutes: int,
        history_days: int,
    ) -> None:
        self.path = path
        self._identity = identity
        self._ttl_minutes = ttl_minutes
        self._history_days = history_days

    async def load(self) -> Snapshot:
        raw = await asyncio.to_thread(self._read)
        return self._build(raw)

    def _read(self) -> Any:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise FallbackUnavailable(self.path, "file not found") from exc
        except OSError as exc:
            raise FallbackUnavailable(self.path, f"unreadable: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise FallbackUnavailable(self.path, f"not UTF-8 text: {exc}") from exc
        try:
            return json.loads(text)
        except ValueError as exc:
            raise FallbackUnavailable(self.path, f"invalid JSON: {exc}") from exc

    def _build(self, raw: Any) -> Snapshot:
        if not isinstance(raw, list):
            raise FallbackUnavailable(self.path, "expected a JSON array of repositories")
        repos = normalize_repos(raw)
        if not repos:
            raise FallbackUnavailable(self.path, "no repositories in snapshot")

        owner = _owner_of(raw) or {}
        login = _str_or(owner.get("login"), self._identity)
        encoded = quote(login, safe="")
        user = {
            "login": login,
            "avatar_url": _str_or(
                owner.get("avatar_url"), f"https://avatars.githubusercontent.com/{encoded}"
            ),
            "html_url": _str_or(owner.get("html_url"), f"https://github.com/{encoded}"),
            "name": None,
            "bio": None,
            "followers": 0,
            "following": 0,
            "public_repos": len(repos),
        }
        logger.info("Loaded %d repositories from local snapshot %s", len(repos), self.path)
        # fetched_at is the load time, not the age of the file contents.
        return Snapshot.create(
            identity=self._identity,
            payload={
                "user": user,
                "repos": repos,
                "readme": "",
                "commit_history": empty_commit_history(self._history_days),
            },
            ttl_minutes=self._ttl_minutes,
            source=SOURCE_LOCAL_SNAPSHOT,
        )


__all__ = ["LocalFallbackLoader"]
