"""
OAuth transaction store — short-lived state records between authorize and callback.

Each transaction lives under one Redis key with a native TTL. Claiming a
state is atomic (Lua), so two concurrent callbacks carrying the same
state cannot both proceed: the first moves it from authorize_issued to
callback_received, the second finds it in the wrong state and gets None.
Calls go through redis.asyncio so the request loop is never blocked.

Usage:
    store = OAuthTransactionStore(redis.Redis.from_url(settings.redis_url, decode_responses=True))
    await store.create(txn, ttl_seconds=3600)
    txn = await store.claim(state)   # None if unknown, expired or replayed
Version: 1.0.0
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from catalog_sync.core.constants.sync import OAUTH_TRANSACTION_PREFIX, TransactionState
from catalog_sync.core.exceptions import DatabaseTransientError
from catalog_sync.schemas.oauth import OAuthTransaction

logger = logging.getLogger("oauth_transaction_store")

# Atomically move a transaction from ARGV[1] to ARGV[2], keeping its TTL.
# Returns the pre-transition JSON, or nil if absent or not in ARGV[1].
CLAIM_STATE_SCRIPT = """
local raw = redis.call('GET', KEYS[1])
if not raw then
    return nil
end
local txn = cjson.decode(raw)
if txn['status'] ~= ARGV[1] then
    return nil
end
txn['status'] = ARGV[2]
redis.call('SET', KEYS[1], cjson.encode(txn), 'KEEPTTL')
return raw
"""


class OAuthTransactionStore:
    """Redis-backed OAuth transactions with per-item TTL."""

    def __init__(self, redis_client: redis.Redis, key_prefix: str = OAUTH_TRANSACTION_PREFIX):
        self._redis = redis_client
        self._prefix = key_prefix
        self._claim_script = self._redis.register_script(CLAIM_STATE_SCRIPT)

    def _key(self, state: str) -> str:
        return f"{self._prefix}:{state}"

    async def create(self, txn: OAuthTransaction, ttl_seconds: int) -> None:
        try:
            # NX: a state collision must never overwrite a live transaction
            created = await self._redis.set(
                self._key(txn.state), txn.model_dump_json(), nx=True, ex=ttl_seconds
            )
        except RedisError as e:
            logger.error(f"Redis error creating OAuth transaction: {e}")
            raise DatabaseTransientError(f"OAuth transaction write failed: {e}")
        if not created:
            raise DatabaseTransientError("OAuth state collision")
        logger.debug(f"OAuth transaction created platform={txn.platform.value} ttl={ttl_seconds}s")

    async def claim(self, state: str) -> Optional[OAuthTransaction]:
        """
        Single-use claim of a pending transaction.

        Returns None when the state is unknown, expired, or already claimed.
        """
        try:
            raw = await self._claim_script(
                keys=[self._key(state)],
                args=[
                    TransactionState.AUTHORIZE_ISSUED.value,
                    TransactionState.CALLBACK_RECEIVED.value,
                ],
            )
        except RedisError as e:
            logger.error(f"Redis error claiming OAuth transaction: {e}")
            raise DatabaseTransientError(f"OAuth transaction claim failed: {e}")

        if raw is None:
            return None

        txn = OAuthTransaction(**json.loads(raw))
        if txn.expires_at <= datetime.now(timezone.utc):
            # TTL not yet reaped by Redis; the claim already made it unusable
            try:
                await self._redis.delete(self._key(state))
            except RedisError as e:
                logger.warning(f"Redis error deleting expired OAuth transaction: {e}")
            return None
        txn.status = TransactionState.CALLBACK_RECEIVED
        return txn

    async def mark_failed(self, txn: OAuthTransaction) -> None:
        """Leave a failed tombstone until TTL so the state cannot be reused."""
        txn.status = TransactionState.FAILED
        try:
            await self._redis.set(self._key(txn.state), txn.model_dump_json(), keepttl=True, xx=True)
        except RedisError as e:
            logger.error(f"Redis error marking OAuth transaction failed: {e}")
            raise DatabaseTransientError(f"OAuth transaction update failed: {e}")

    async def delete(self, state: str) -> None:
        try:
            await self._redis.delete(self._key(state))
        except RedisError as e:
            logger.error(f"Redis error deleting OAuth transaction: {e}")
            raise DatabaseTransientError(f"OAuth transaction delete failed: {e}")
