"""
Celery task exports — all tasks registered from submodules.

Celery tasks package.
Exports all tasks for convenient imports.
Version: 1.0.0
"""
from catalog_sync.celery_app.tasks.catalog_sync import run_full_sync, sync_product
from catalog_sync.celery_app.tasks.token_refresh import refresh_expiring_tokens

__all__ = [
    "run_full_sync",
    "sync_product",
    "refresh_expiring_tokens",
]
