"""Bridge between sync Celery task bodies and the async pipeline."""

import asyncio
from typing import Any, Awaitable, Optional

_worker_loop: Optional[asyncio.AbstractEventLoop] = None


def get_worker_loop() -> asyncio.AbstractEventLoop:
    """Return this process's event loop, creating it on first use.

    The Redis client and provider HTTP clients are process-wide and bound to
    the loop that created them, so every task in a worker process reuses one
    loop instead of calling ``asyncio.run`` per task.
    """
    global _worker_loop

    if _worker_loop is None or _worker_loop.is_closed():
        _worker_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_worker_loop)
    return _worker_loop


def reset_worker_loop() -> None:
    """Forget a loop inherited across fork; the child builds its own on first use."""
    global _worker_loop
    _worker_loop = None


def run_async(coro: Awaitable[Any]) -> Any:
    """Run a coroutine to completion on the worker loop."""
    return get_worker_loop().run_until_complete(coro)


__all__ = ["get_worker_loop", "reset_worker_loop", "run_async"]
