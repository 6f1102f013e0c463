"""
PKCE and state helpers for OAuth authorize requests.
Version: 1.0.0
"""
import base64
import hashlib
import secrets


def generate_state() -> str:
    """Unguessable single-use state value (64 hex chars)."""
    return secrets.token_hex(32)


def generate_code_verifier() -> str:
    """RFC 7636 code verifier: 43-128 unreserved characters."""
    return secrets.token_urlsafe(64)[:96]


def code_challenge_s256(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
