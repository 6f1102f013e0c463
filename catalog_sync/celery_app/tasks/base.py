"""
Base task class — lifecycle logging, async bridge, trigger dispatch.

Every catalog sync task derives from BaseTask. Task bodies stay thin:
they build a typed Trigger and hand it to the worker-side dispatcher,
which runs the async services on a fresh event loop.
Version: 1.0.0
"""
import asyncio
import logging
from typing import Any

from celery import Task

from catalog_sync.container import get_worker_dispatcher
from catalog_sync.schemas.webhooks import Trigger

logger = logging.getLogger(__name__)


class BaseTask(Task):
    abstract = True

    # Only RetryableError is retried, and only by tasks that call self.retry().
    # Per-product and per-tenant failures never reach this layer.
    retry_backoff = True
    retry_backoff_max = 300
    retry_jitter = True
    max_retries = 3

    track_started = True

    @staticmethod
    def _describe(args, kwargs) -> str:
        params = [str(a) for a in args or ()] + [f"{k}={v}" for k, v in (kwargs or {}).items()]
        return ", ".join(params) or "-"

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(
            f"Task {self.name}[{task_id}] gave up ({self._describe(args, kwargs)}): "
            f"{type(exc).__name__}: {exc}"
        )

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        logger.warning(
            f"Task {self.name}[{task_id}] retry {self.request.retries + 1}/{self.max_retries} "
            f"({self._describe(args, kwargs)}): {exc}"
        )

    def on_success(self, retval, task_id, args, kwargs):
        status = retval.get("status") if isinstance(retval, dict) else None
        logger.info(f"Task {self.name}[{task_id}] done status={status}")


def run_async(coro):
    """
    Drive a coroutine to completion from a synchronous task body.

    A new loop per call keeps prefork children from sharing a loop.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def dispatch(trigger: Trigger) -> Any:
    """Run a trigger inline through the worker dispatcher."""
    return run_async(get_worker_dispatcher().dispatch(trigger))
