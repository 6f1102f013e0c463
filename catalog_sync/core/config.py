import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


load_dotenv()


class Settings(BaseModel):
    # Supabase
    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_service_role_key: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

    # Platform A (HMAC-signed storefront OAuth)
    platform_a_app_key: str | None = os.getenv("PLATFORM_A_APP_KEY")
    platform_a_app_secret: str | None = os.getenv("PLATFORM_A_APP_SECRET")
    platform_a_redirect_uri: str = os.getenv(
        "PLATFORM_A_REDIRECT_URI", "http://localhost:8000/api/v1/platform-a/callback"
    )
    platform_a_scopes: str = os.getenv("PLATFORM_A_SCOPES", "read_products,write_products")
    platform_a_api_version: str = os.getenv("PLATFORM_A_API_VERSION", "v20230901")
    platform_a_domain_suffix: str = os.getenv("PLATFORM_A_DOMAIN_SUFFIX", "myshopline.com")
    # Max clock skew accepted on signed install/callback/uninstall requests
    platform_a_signature_max_age_seconds: int = int(os.getenv("PLATFORM_A_SIGNATURE_MAX_AGE_SECONDS", "300"))

    # Platform B (PKCE authorization-code OAuth)
    platform_b_client_id: str | None = os.getenv("PLATFORM_B_CLIENT_ID")
    platform_b_client_secret: str | None = os.getenv("PLATFORM_B_CLIENT_SECRET")
    platform_b_redirect_uri: str = os.getenv(
        "PLATFORM_B_REDIRECT_URI", "http://localhost:8000/api/v1/platform-b/callback"
    )
    platform_b_scopes: str = os.getenv("PLATFORM_B_SCOPES", "products:read products:write")
    platform_b_api_base_url: str = os.getenv(
        "PLATFORM_B_API_BASE_URL", "https://api.buywithprime.amazon.com"
    )
    platform_b_authorize_url: str = os.getenv(
        "PLATFORM_B_AUTHORIZE_URL", "https://api.buywithprime.amazon.com/oauth/authorize"
    )
    platform_b_token_url: str = os.getenv(
        "PLATFORM_B_TOKEN_URL", "https://api.buywithprime.amazon.com/oauth/token"
    )
    # PEM-encoded public key used to verify callback verification tokens
    platform_b_verification_public_key: Optional[str] = os.getenv("PLATFORM_B_VERIFICATION_PUBLIC_KEY")
    platform_b_verification_algorithms: list[str] = os.getenv(
        "PLATFORM_B_VERIFICATION_ALGORITHMS", "RS256,ES256"
    ).split(",")

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    celery_result_backend: str = os.getenv("CELERY_RESULT_BACKEND", os.getenv("REDIS_URL", "redis://localhost:6379/0"))

    # OAuth transactions
    oauth_state_ttl_seconds: int = int(os.getenv("OAUTH_STATE_TTL_SECONDS", "3600"))

    # Token refresh
    token_refresh_window_hours: int = int(os.getenv("TOKEN_REFRESH_WINDOW_HOURS", "24"))
    token_refresh_max_failures: int = int(os.getenv("TOKEN_REFRESH_MAX_FAILURES", "3"))
    token_refresh_interval_hours: int = int(os.getenv("TOKEN_REFRESH_INTERVAL_HOURS", "6"))

    # Sync
    sync_enabled: bool = os.getenv("SYNC_ENABLED", "true").lower() == "true"
    sync_dispatch_minute: int = int(os.getenv("SYNC_DISPATCH_MINUTE", "0"))
    sync_max_workers: int = int(os.getenv("SYNC_MAX_WORKERS", "4"))
    platform_call_timeout: float = float(os.getenv("PLATFORM_CALL_TIMEOUT", "30"))

    # Rate limits
    platform_b_api_rate_limit: str = os.getenv("PLATFORM_B_API_RATE_LIMIT", "60/m")


settings = Settings()
