"""
Adapter over Supabase Auth.

Supabase owns credentials and issues the bearer tokens; this service only
registers, signs in, verifies tokens and signs out. Verified identities are
cached briefly so a burst of record requests costs one round trip.
"""

import hashlib
import logging
import time
from typing import Any, Dict, Optional, Tuple

from supabase import Client

from app.core.errors import AppError, ConflictError, InternalError, UnauthorizedError
from app.modules.auth.schemas import LoginRequest, RegisterRequest, RegisterResponse, TokenResponse

logger = logging.getLogger(__name__)


class TokenCache:
    def __init__(self, ttl_seconds: float = 60, max_size: int = 500):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._entries: Dict[str, Tuple[Dict[str, Any], float]] = {}

    @staticmethod
    def _key(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    def get(self, token: str) -> Optional[Dict[str, Any]]:
        key = self._key(token)
        entry = self._entries.get(key)
        if entry is None:
            return None
        identity, expires_at = entry
        if time.monotonic() >= expires_at:
            self._entries.pop(key, None)
            return None
        return identity

    def put(self, token: str, identity: Dict[str, Any]) -> None:
        # Full cache: skip rather than evict, entries age out on their own
        if len(self._entries) < self.max_size:
            self._entries[self._key(token)] = (identity, time.monotonic() + self.ttl_seconds)

    def discard(self, token: str) -> None:
        self._entries.pop(self._key(token), None)

    def clear(self) -> None:
        self._entries.clear()


token_cache = TokenCache()


def clear_auth_cache() -> None:
    token_cache.clear()


def _identity_from(user) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "user_metadata": user.user_metadata or {},
        "app_metadata": user.app_metadata or {},
    }


class AuthService:
    def __init__(self, supabase: Client, cache: TokenCache = token_cache):
        self.supabase = supabase
        self.cache = cache

    def register(self, data: RegisterRequest) -> RegisterResponse:
        """Create an identity with the auth provider. The local user row is made on first sign-in."""
        metadata = {"full_name": data.full_name} if data.full_name else {}
        try:
            response = self.supabase.auth.sign_up({
                "email": data.email,
                "password": data.password,
                "options": {"data": metadata},
            })
        except Exception as e:
            message = str(e).lower()
            if "already registered" in message or "already exists" in message:
                raise ConflictError("User already exists")
            logger.exception("Registration failed for %s", data.email)
            raise InternalError("Registration failed")

        if not response.user:
            raise InternalError("Registration failed")
        return RegisterResponse(
            auth_id=response.user.id,
            email=response.user.email or data.email,
            message="User registered successfully",
        )

    def login(self, data: LoginRequest) -> TokenResponse:
        try:
            response = self.supabase.auth.sign_in_with_password({
                "email": data.email,
                "password": data.password,
            })
        except Exception as e:
            message = str(e).lower()
            if "invalid" in message or "credentials" in message:
                raise UnauthorizedError("Invalid email or password")
            logger.exception("Login failed for %s", data.email)
            raise InternalError("Login failed")

        if not response.user or not response.session:
            raise UnauthorizedError("Invalid email or password")
        return TokenResponse(
            access_token=response.session.access_token,
            auth_id=response.user.id,
            email=response.user.email or data.email,
        )

    def get_identity(self, token: str) -> Dict[str, Any]:
        """Verify a bearer token and return the provider identity behind it."""
        identity = self.cache.get(token)
        if identity is not None:
            return identity
        try:
            response = self.supabase.auth.get_user(jwt=token)
        except AppError:
            raise
        except Exception as e:
            logger.info("Token rejected by auth provider: %s", e)
            raise UnauthorizedError("Invalid or expired token")

        if not response or not response.user:
            raise UnauthorizedError("Invalid or expired token")
        identity = _identity_from(response.user)
        self.cache.put(token, identity)
        return identity

    def logout(self, token: str) -> bool:
        self.cache.discard(token)
        try:
            self.supabase.auth.sign_out()
        except Exception as e:
            logger.warning("Sign out failed: %s", e)
            return False
        return True
