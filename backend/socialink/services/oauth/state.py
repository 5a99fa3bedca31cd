"""OAuth state handling

The state string is ``base64("<user uuid>|<random token>")``. Decoding only
recovers the user id; the random part is never checked. Replay protection,
when enabled, comes from ``OAuthStateStore`` which keeps a one-time record of
every state it issued. The TikTok PKCE verifier lives in the same store, keyed
by state.
"""
import base64
import hashlib
import logging
import secrets
from typing import Optional, Tuple
from uuid import UUID

import redis

from socialink.core.config import settings
from socialink.core.errors import OAuthError, OAuthErrorKind
from socialink.db.redis import get_redis_client

security_logger = logging.getLogger("security")


def encode_state(user_id: UUID) -> str:
    """Bind a user id to a new, unguessable state string"""
    nonce = secrets.token_urlsafe(16)
    return base64.b64encode(f"{user_id}|{nonce}".encode("utf-8")).decode("ascii")


def decode_state(state: Optional[str]) -> Tuple[Optional[UUID], bool]:
    """Recover the user id from a state string.

    Never raises: anything that is not strict base64 whose first
    pipe-delimited field parses as a UUID yields ``(None, False)``.
    """
    if not state or not state.strip():
        return None, False
    try:
        decoded = base64.b64decode(state.strip(), validate=True).decode("utf-8")
        return UUID(decoded.split("|")[0].strip()), True
    except (ValueError, TypeError):
        # binascii.Error and UnicodeDecodeError are both ValueErrors
        return None, False


def generate_pkce_pair() -> Tuple[str, str]:
    """Return (code_verifier, S256 code_challenge), both base64url without padding"""
    verifier = secrets.token_urlsafe(32)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
    return verifier, challenge


class OAuthStateStore:
    """Short-lived, single-use server-side records for issued OAuth states"""

    def __init__(self, redis_client=None, ttl: Optional[int] = None, namespace: Optional[str] = None):
        self._redis = redis_client
        self.ttl = ttl if ttl is not None else settings.OAUTH_STATE_TTL
        self.namespace = namespace or settings.ENVIRONMENT

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis_client()
        return self._redis

    def _state_key(self, state: str) -> str:
        return f"{self.namespace}:oauth_state:{state}"

    def _verifier_key(self, state: str) -> str:
        return f"{self.namespace}:oauth_verifier:{state}"

    def _unavailable(self, action: str, error: "redis.RedisError") -> OAuthError:
        security_logger.error(f"OAuth state store unavailable while {action}: {error}")
        return OAuthError(OAuthErrorKind.NETWORK_ERROR, "Network error: OAuth state store unavailable")

    def _pop(self, key: str) -> Optional[str]:
        # GET and DEL inside MULTI/EXEC so two callbacks cannot both see the value
        try:
            pipe = self.redis.pipeline()
            pipe.get(key)
            pipe.delete(key)
            value, _ = pipe.execute()
        except redis.RedisError as e:
            raise self._unavailable("consuming a record", e)
        return value

    def _setex(self, key: str, value: str, action: str) -> None:
        try:
            self.redis.setex(key, self.ttl, value)
        except redis.RedisError as e:
            raise self._unavailable(action, e)

    def issue(self, state: str, user_id: UUID) -> None:
        self._setex(self._state_key(state), str(user_id), "issuing a state")

    def consume(self, state: str, user_id: UUID) -> bool:
        """Atomically remove an issued state; False if unknown, expired, reused or bound to another user"""
        stored = self._pop(self._state_key(state))
        if stored is None:
            security_logger.warning(f"OAuth state for user {user_id} was not issued, already used or expired")
            return False
        if stored != str(user_id):
            security_logger.warning(f"OAuth state user mismatch: record={stored} decoded={user_id}")
            return False
        return True

    def save_code_verifier(self, state: str, verifier: str) -> None:
        self._setex(self._verifier_key(state), verifier, "saving a code verifier")

    def pop_code_verifier(self, state: str) -> Optional[str]:
        return self._pop(self._verifier_key(state))
