"""
OAuth schemas — credential records, transactions and install responses.
Version: 1.0.0
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from catalog_sync.core.constants.sync import CredentialStatus, Platform, TransactionState


class CredentialRecord(BaseModel):
    tenant_id: str
    platform: Platform
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: datetime
    status: CredentialStatus = CredentialStatus.ACTIVE
    consecutive_failures: int = 0
    last_error: Optional[str] = None


class TokenGrant(BaseModel):
    """Token endpoint response reduced to what the credential store keeps."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int
    installation_id: Optional[str] = None

    @classmethod
    def from_response(cls, body: Dict[str, Any]) -> "TokenGrant":
        """Accept snake_case or camelCase token payloads. Raises ValueError if incomplete."""
        body = body or {}
        return cls(
            access_token=body.get("access_token") or body.get("accessToken"),
            refresh_token=body.get("refresh_token") or body.get("refreshToken"),
            expires_in=body.get("expires_in") or body.get("expiresIn"),
            installation_id=body.get("installation_id") or body.get("installationId"),
        )


class OAuthTransaction(BaseModel):
    state: str
    platform: Platform
    tenant_hint: str
    code_verifier: Optional[str] = None
    status: TransactionState = TransactionState.AUTHORIZE_ISSUED
    created_at: datetime
    expires_at: datetime


class InstallStart(BaseModel):
    state: str
    authorize_url: str


class InstallResult(BaseModel):
    tenant_id: str
    platform: Platform
    status: CredentialStatus
    expires_at: datetime


class CallbackProof(BaseModel):
    """Everything a verifier needs from the inbound request."""
    params: Dict[str, str] = {}
    path: str = ""
    query: str = ""
    body: bytes = b""
