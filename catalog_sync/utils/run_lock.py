"""
Run lock — Redis SET NX EX guard against overlapping scheduled runs.

A full sync or refresh sweep that outlives its schedule interval must
not be started a second time while the first is still going. This does
not serialize individual products.
Version: 1.0.0
"""
import logging

import redis

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL = 3600  # 1 hour


def _key(name: str) -> str:
    return f"run_lock:{name}"


def acquire_run_lock(client: redis.Redis, name: str, holder: str = "unknown", ttl: int = DEFAULT_LOCK_TTL) -> bool:
    """Acquire a named run lock.

    Returns True if lock was acquired (this run should proceed).
    Returns False if lock is already held (another run is in progress).
    """
    acquired = client.set(_key(name), holder, nx=True, ex=ttl)

    if acquired:
        logger.info(f"Run lock ACQUIRED: name={name}, holder={holder}, ttl={ttl}s")
    else:
        current = client.get(_key(name))
        logger.info(f"Run lock HELD: name={name}, holder={current}, skipping")

    return bool(acquired)


def release_run_lock(client: redis.Redis, name: str) -> None:
    client.delete(_key(name))
    logger.debug(f"Run lock released: name={name}")
