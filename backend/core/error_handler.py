"""Background task supervision for the service lifespan."""

import asyncio
import logging
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exception: Optional[BaseException] = context.get("exception")
    message = context.get("message", "Unhandled exception in event loop")
    task = context.get("task") or context.get("future")
    task_name = task.get_name() if isinstance(task, asyncio.Task) else None
    logger.error(
        "Event loop error in %s: %s",
        task_name or "<loop>",
        message,
        exc_info=exception,
    )


def setup_global_exception_handler() -> None:
    """Route exceptions that escape tasks to the application log."""

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("Exception handler not installed: no running loop")
        return
    loop.set_exception_handler(_log_loop_exception)


def safe_background_task(task_name: str, task_coro: Awaitable[Any]) -> asyncio.Task:
    """Schedule ``task_coro`` so that a failure is logged and the result is None."""

    async def runner() -> Any:
        try:
            return await task_coro
        except asyncio.CancelledError:
            logger.info("Background task %s cancelled during shutdown", task_name)
            return None
        except Exception:
            logger.exception("Background task %s failed", task_name)
            return None

    return asyncio.create_task(runner(), name=task_name)


class GracefulShutdown:
    """Cancels still-running startup tasks (cache warmup) when the app stops."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self.tasks: list[asyncio.Task] = []

    def add_task(self, task: asyncio.Task) -> None:
        self.tasks.append(task)

    async def shutdown(self) -> None:
        pending = [task for task in self.tasks if not task.done()]
        if not pending:
            return
        for task in pending:
            task.cancel()
        done, still_running = await asyncio.wait(pending, timeout=self.timeout)
        if still_running:
            names = ", ".join(task.get_name() for task in still_running)
            logger.warning(
                "Background tasks still running %.1fs after cancel: %s", self.timeout, names
            )
        else:
            logger.info("Stopped %d background task(s)", len(done))


__all__ = ["GracefulShutdown", "safe_background_task", "setup_global_exception_handler"]
