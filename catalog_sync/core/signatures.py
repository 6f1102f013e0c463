"""
Signature verification — inbound authenticity checks for both platforms.

Two verifiers, both pure (no I/O, no state):

- HmacSignatureVerifier: Platform A install/callback query parameters.
  Canonical string is every parameter except `sign`, sorted by key and
  joined as key=value pairs with '&'; HMAC-SHA256 hex keyed with the
  app secret. The signed timestamp must fall inside a freshness window
  so a captured install or uninstall URL cannot be replayed later.
- SignedTokenVerifier: Platform B callback verification token. The JWT
  must verify against the fixed public key, and its `requestHash` claim
  must equal sha256(path-and-query-without-token + body).

Every verification failure raises the same AuthenticationFailed with no
detail about which check failed.
Version: 1.0.0
"""
import hashlib
import hmac
import logging
import time
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, urlencode

from jose import jwt
from jose.exceptions import JOSEError

from catalog_sync.core.exceptions import AuthenticationFailed, ValidationError

logger = logging.getLogger(__name__)

SIGNATURE_PARAM = "sign"
TOKEN_PARAM = "token"

DEFAULT_MAX_SIGNATURE_AGE = 300  # 5 minutes
MILLISECOND_THRESHOLD = 10_000_000_000


def canonical_query(params: Mapping[str, str], exclude: Iterable[str] = (SIGNATURE_PARAM,)) -> str:
    """Sorted key=value pairs joined with '&', skipping excluded keys."""
    skip = set(exclude)
    return "&".join(f"{key}={params[key]}" for key in sorted(params) if key not in skip)


def hmac_sha256_hex(secret: str, message: str | bytes) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class HmacSignatureVerifier:
    """Verifies HMAC-signed query parameters from Platform A."""

    def __init__(
        self,
        app_key: str,
        app_secret: str,
        handle_param: str = "handle",
        max_age_seconds: Optional[int] = DEFAULT_MAX_SIGNATURE_AGE,
        clock: Callable[[], float] = time.time,
    ):
        self._app_key = app_key
        self._app_secret = app_secret
        self._required = ("appkey", handle_param, "timestamp", SIGNATURE_PARAM)
        self._max_age = max_age_seconds
        self._clock = clock

    def sign(self, params: Mapping[str, str]) -> str:
        return hmac_sha256_hex(self._app_secret, canonical_query(params))

    def verify(self, params: Mapping[str, str], extra_required: Sequence[str] = ()) -> Dict[str, str]:
        """
        Verify the declared signature and return the parameters.

        Raises:
            ValidationError: a required parameter is missing or empty
            AuthenticationFailed: signature or app key mismatch, or a
                timestamp outside the accepted window
        """
        missing = [key for key in (*self._required, *extra_required) if not params.get(key)]
        if missing:
            raise ValidationError(f"Missing required parameters: {', '.join(missing)}")

        expected = self.sign(params)
        signature_ok = hmac.compare_digest(expected, str(params[SIGNATURE_PARAM]))
        app_key_ok = hmac.compare_digest(str(params["appkey"]), self._app_key)
        if not (signature_ok and app_key_ok):
            raise AuthenticationFailed()
        if not self._is_fresh(params["timestamp"]):
            logger.debug(f"Signed request timestamp outside window: {params['timestamp']}")
            raise AuthenticationFailed()
        return dict(params)

    def _is_fresh(self, timestamp: str) -> bool:
        if self._max_age is None:
            return True
        try:
            issued = float(timestamp)
        except (TypeError, ValueError):
            return False
        # Platform A sends seconds on some calls and milliseconds on others
        if issued > MILLISECOND_THRESHOLD:
            issued /= 1000
        return abs(self._clock() - issued) <= self._max_age


def compute_request_hash(path: str, query: str | Sequence[Tuple[str, str]], body: bytes = b"") -> str:
    """sha256 hex of the request path and query with the token removed, followed by the body."""
    pairs = parse_qsl(query, keep_blank_values=True) if isinstance(query, str) else list(query)
    remaining = urlencode([(key, value) for key, value in pairs if key != TOKEN_PARAM])
    target = f"{path}?{remaining}" if remaining else path
    return hashlib.sha256(target.encode("utf-8") + (body or b"")).hexdigest()


class SignedTokenVerifier:
    """Verifies Platform B callback verification tokens."""

    def __init__(self, public_key: Optional[str], algorithms: Sequence[str] = ("RS256",)):
        self._public_key = public_key
        self._algorithms = list(algorithms)

    def verify(
        self,
        token: Optional[str],
        path: str,
        query: str | Sequence[Tuple[str, str]],
        body: bytes = b"",
    ) -> dict:
        """
        Verify the token signature and its request binding.

        Returns:
            The verified claims

        Raises:
            AuthenticationFailed: on any failure, including missing token or key
        """
        if not token or not self._public_key:
            raise AuthenticationFailed()

        try:
            claims = jwt.decode(
                token,
                self._public_key,
                algorithms=self._algorithms,
                options={"verify_aud": False},
            )
        except JOSEError as e:
            logger.debug(f"Verification token rejected: {e}")
            raise AuthenticationFailed()

        declared = claims.get("requestHash")
        actual = compute_request_hash(path, query, body)
        if not isinstance(declared, str) or not hmac.compare_digest(declared, actual):
            raise AuthenticationFailed()
        return claims
