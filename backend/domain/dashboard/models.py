"""Snapshot document and refresh outcome types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator

SOURCE_UPSTREAM = "github-api"
SOURCE_LOCAL_SNAPSHOT = "local-snapshot"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""

    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; anything unparsable yields None."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SnapshotMeta(BaseModel):
    """Freshness metadata stored next to the payload."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    identity: str = Field(validation_alias=AliasChoices("identity", "username"))
    fetched_at: Optional[datetime] = None
    source: str = SOURCE_UPSTREAM
    ttl_minutes: int = Field(validation_alias=AliasChoices("ttl_minutes", "cache_ttl_minutes"))

    @field_validator("fetched_at", mode="before")
    @classmethod
    def _lenient_fetched_at(cls, value: Any) -> Optional[datetime]:
        # A broken timestamp must not discard the snapshot; it only makes it stale.
        return parse_timestamp(value)

    @field_serializer("fetched_at")
    def _serialize_fetched_at(self, value: Optional[datetime]) -> Optional[str]:
        return format_timestamp(value) if value is not None else None


class Snapshot(BaseModel):
    """The single cached dashboard document for one identity."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    meta: SnapshotMeta
    payload: dict[str, Any]

    @classmethod
    def create(
        cls,
        *,
        identity: str,
        payload: dict[str, Any],
        ttl_minutes: int,
        source: str = SOURCE_UPSTREAM,
        fetched_at: Optional[datetime] = None,
    ) -> Snapshot:
        meta = SnapshotMeta(
            identity=identity,
            fetched_at=fetched_at or utcnow(),
            source=source,
            ttl_minutes=ttl_minutes,
        )
        return cls(meta=meta, payload=payload)

    @classmethod
    def from_json(cls, raw: str | bytes) -> Snapshot:
        return cls.model_validate_json(raw)

    def to_json(self) -> str:
        return self.model_dump_json()

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def age_seconds(self, now: datetime) -> Optional[float]:
        if self.meta.fetched_at is None:
            return None
        return (now - self.meta.fetched_at).total_seconds()

    def is_fresh(self, now: datetime, ttl_minutes: int) -> bool:
        age = self.age_seconds(now)
        if age is None:
            return False
        return age <= ttl_minutes * 60


class CacheStatus(str, Enum):
    HIT = "HIT"
    MISS = "MISS"
    REFRESH = "REFRESH"
    STALE = "STALE"
    FALLBACK = "FALLBACK"
    UNAVAILABLE = "UNAVAILABLE"


@dataclass(frozen=True)
class CacheResult:
    """What the coordinator hands back to its callers."""

    status: CacheStatus
    snapshot: Optional[Snapshot] = None
    error: Optional[BaseException] = None

    @property
    def available(self) -> bool:
        return self.snapshot is not None


__all__ = [
    "SOURCE_UPSTREAM",
    "SOURCE_LOCAL_SNAPSHOT",
    "CacheResult",
    "CacheStatus",
    "Snapshot",
    "SnapshotMeta",
    "format_timestamp",
    "parse_timestamp",
    "utcnow",
]
