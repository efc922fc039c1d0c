"""Static dashboard site with single-page-app fallback.

Registered last so API routes always win. Any non-API path that is not a
file under the static directory is answered with ``index.html``.
"""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse


def build_site_router(static_dir: Path) -> APIRouter:
    router = APIRouter()
    root = static_dir.resolve()
    index = root / "index.html"

    @router.get("/{full_path:path}", include_in_schema=False)
    async def site(full_path: str) -> FileResponse:
        if full_path == "api" or full_path.startswith("api/"):
            raise HTTPException(status_code=404)
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and root in candidate.parents:
            return FileResponse(candidate)
        if not index.is_file():
            raise HTTPException(status_code=404)
        return FileResponse(index)

    return router


__all__ = ["build_site_router"]
