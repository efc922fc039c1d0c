"""Run the dashboard cache service: ``python -m backend.apps.dashboard_api``."""

import uvicorn

from backend.core.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "backend.apps.dashboard_api.app:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
