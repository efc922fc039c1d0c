"""Dashboard snapshot cache: builder, stores, refresh coordinator and scheduler."""

from .coordinator import RefreshCoordinator  # noqa: F401
from .errors import (  # noqa: F401
    DashboardError,
    FallbackUnavailable,
    StoreError,
    Unauthorized,
    UpstreamError,
)
from .models import CacheResult, CacheStatus, Snapshot, SnapshotMeta  # noqa: F401
from .store import MemorySnapshotStore, RedisSnapshotStore, SnapshotStore  # noqa: F401
