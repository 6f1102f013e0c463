"""
Celery configuration — broker, task routes, beat schedule.

Celery application configuration.
Configures Redis broker, task queues, rate limiting, and the periodic
triggers (token refresh sweep and full catalog sync).

Note: On Windows, Celery's prefork pool doesn't work properly.
Use --pool=solo or --pool=threads on Windows.

=============================================================================
RUNNING WORKERS
=============================================================================

    All queues in one worker:
        celery -A catalog_sync.celery_app worker -Q default,sync,auth -l info -n all@%h

    Celery Beat (scheduler):
        celery -A catalog_sync.celery_app beat -l info

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================
    SYNC_ENABLED: "true" or "false", master on/off for scheduled runs (default: true)
    SYNC_DISPATCH_MINUTE: Minute of each hour to start the full sync (default: 0)
    TOKEN_REFRESH_INTERVAL_HOURS: Hours between refresh sweeps (default: 6)
    PLATFORM_B_API_RATE_LIMIT: Incremental sync tasks per minute (default: 60/m)
Version: 1.0.0
"""
import logging
import platform

from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from catalog_sync.core.config import settings

# Configure logging for this module
logger = logging.getLogger(__name__)

# Detect Windows platform for pool configuration
IS_WINDOWS = platform.system() == "Windows"

REDIS_URL = settings.redis_url
SYNC_ENABLED = settings.sync_enabled
SYNC_DISPATCH_MINUTE = settings.sync_dispatch_minute
TOKEN_REFRESH_INTERVAL_HOURS = settings.token_refresh_interval_hours
PLATFORM_B_RATE_LIMIT = settings.platform_b_api_rate_limit


def _build_beat_schedule() -> dict:
    """Build Celery Beat schedule; empty when scheduled runs are disabled."""
    if not SYNC_ENABLED:
        return {}

    return {
        "refresh-expiring-tokens": {
            "task": "tasks.token_refresh.refresh_expiring_tokens",
            "schedule": crontab(minute=30, hour=f"*/{TOKEN_REFRESH_INTERVAL_HOURS}"),
            "options": {"queue": "auth"},
        },
        "full-catalog-sync": {
            "task": "tasks.catalog_sync.run_full_sync",
            "schedule": crontab(minute=SYNC_DISPATCH_MINUTE),
            "options": {"queue": "sync"},
        },
    }


def _log_schedule_config():
    """Log scheduler configuration at startup."""
    if not SYNC_ENABLED:
        logger.info("Scheduled sync DISABLED (SYNC_ENABLED=false); no beat entries")
        return
    logger.info(
        f"Scheduled sync ENABLED: full sync at minute {SYNC_DISPATCH_MINUTE} of each hour, "
        f"token refresh every {TOKEN_REFRESH_INTERVAL_HOURS}h"
    )


_log_schedule_config()

celery_app = Celery(
    "catalog_sync",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "catalog_sync.celery_app.tasks.catalog_sync",
        "catalog_sync.celery_app.tasks.token_refresh",
    ]
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    task_queues=(
        Queue("default"),
        Queue("sync"),
        Queue("auth"),
    ),
    task_default_queue="default",
    task_routes={
        "tasks.catalog_sync.*": {"queue": "sync"},
        "tasks.token_refresh.*": {"queue": "auth"},
    },

    task_annotations={
        "tasks.catalog_sync.sync_product": {
            "rate_limit": PLATFORM_B_RATE_LIMIT,
        },
    },

    beat_schedule=_build_beat_schedule(),

    # Result expiration
    result_expires=3600,  # 1 hour

    # Retry settings
    task_default_retry_delay=30,
    task_max_retries=3,

    # Worker pool configuration for Windows compatibility
    worker_pool="solo" if IS_WINDOWS else "prefork",

    # Visibility timeout
    broker_transport_options={"visibility_timeout": 3600},

    # Custom log format
    worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
    worker_task_log_format="[%(asctime)s: %(levelname)s/%(processName)s] [%(task_name)s] %(message)s",
)
