"""
Custom exception hierarchy for Catalog Sync.

Exceptions are categorized as:
- RetryableError: Transient errors that should trigger Celery retry
- NonRetryableError: Permanent errors that should fail immediately

Failures are contained at the smallest unit (one product, one tenant,
one refresh). The orchestrator and refresh sweep catch these per unit
and turn them into recorded outcomes.
"""


class CatalogSyncException(Exception):
    """Base exception for Catalog Sync."""
    pass


# ============================================
# RETRYABLE ERRORS - Will trigger Celery retry
# ============================================
class RetryableError(CatalogSyncException):
    """
    Base class for errors that should trigger retry.

    Use this for transient errors where retrying might succeed:
    - Network timeouts
    - Rate limits (with backoff)
    - Temporary platform unavailability
    """
    pass


class UpstreamAPIError(RetryableError):
    """
    A platform catalog or OAuth call failed.

    Recorded per product as a failed outcome; does not abort sibling work.
    """
    def __init__(self, service: str, message: str, status_code: int = None):
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service} API error: {message}")


class RateLimitError(UpstreamAPIError):
    """Platform rate limit exceeded."""
    def __init__(self, service: str, retry_after: int = 60):
        self.retry_after = retry_after
        super().__init__(service, f"rate limited. Retry after {retry_after}s", status_code=429)


class ConnectionTimeoutError(RetryableError):
    """Outbound call exceeded its timeout."""
    pass


class DatabaseTransientError(RetryableError):
    """
    Transient database error.

    Examples: connection pool exhausted, temporary unavailability
    """
    pass


class TokenRefreshFailed(RetryableError):
    """Refresh call rejected or unreachable. Tolerated up to a bounded count."""
    def __init__(self, platform: str, tenant_id: str, message: str):
        self.platform = platform
        self.tenant_id = tenant_id
        super().__init__(f"{platform} token refresh failed for {tenant_id}: {message}")


# ============================================
# NON-RETRYABLE ERRORS - No automatic retry
# ============================================
class NonRetryableError(CatalogSyncException):
    """
    Base class for errors that should NOT trigger retry.

    Use this for permanent errors where retrying won't help:
    - Validation failures
    - Forged or replayed callbacks
    - Missing credentials
    """
    pass


class ValidationError(NonRetryableError):
    """Malformed or missing input."""
    pass


class InvalidTenantInput(ValidationError):
    """Tenant hint failed platform-specific domain/format validation."""
    pass


class AuthenticationFailed(NonRetryableError):
    """
    Signature or proof mismatch.

    Carries no detail about which check failed.
    """
    def __init__(self, message: str = "Request authentication failed"):
        super().__init__(message)


class InvalidOrExpiredState(NonRetryableError):
    """OAuth state unknown, expired, or already used."""
    pass


class TokenExchangeFailed(NonRetryableError):
    """Authorization code could not be exchanged for tokens."""
    def __init__(self, platform: str, message: str, status_code: int = None):
        self.platform = platform
        self.status_code = status_code
        super().__init__(f"{platform} token exchange failed: {message}")


class CredentialNotFound(NonRetryableError):
    """No usable credential for (tenant, platform)."""
    def __init__(self, tenant_id: str, platform: str):
        self.tenant_id = tenant_id
        self.platform = platform
        super().__init__(f"No active {platform} credential for tenant {tenant_id}")


class NotLinked(NonRetryableError):
    """Tenant has no counterpart installation. Callers skip, not fail."""
    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant {tenant_id} is not linked to Platform B")
