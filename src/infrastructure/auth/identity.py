"""
infrastructure.auth.identity - Bearer / guest token verification.

Implements IdentityResolverPort with python-jose. A valid Bearer token
wins; otherwise a guest token from the X-Anon-Token header is accepted.
Guest tokens are signed with their own secret and carry typ="anon".
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import uuid4

from jose import JWTError, jwt

from domain.exceptions import AuthenticationError
from domain.models import Identity

logger = logging.getLogger(__name__)

AUTH_REQUIRED_MESSAGE = "Please sign in or register as a guest to use this feature."


class JWTIdentityResolver:
    """Resolves an Identity from request credentials.

    Implements IdentityResolverPort (structural typing, no explicit inheritance).
    """

    def __init__(
        self,
        jwt_secret: str,
        anon_jwt_secret: str,
        jwt_algorithm: str = "HS256",
    ):
        self._jwt_secret = jwt_secret
        self._anon_jwt_secret = anon_jwt_secret
        self._jwt_algorithm = jwt_algorithm

    def resolve(
        self, authorization: Optional[str], anon_token: Optional[str],
    ) -> Identity:
        """Return the caller's Identity.

        Raises:
            AuthenticationError: If neither credential verifies.
        """
        bearer = _bearer_token(authorization)
        if bearer:
            payload = self._decode(bearer, self._jwt_secret)
            if payload is not None and payload.get("sub"):
                user_id = str(payload["sub"])
                return Identity(type="user", subject=f"user:{user_id}", id=user_id)
            logger.info("Bearer token rejected, trying guest token")

        if anon_token:
            payload = self._decode(anon_token, self._anon_jwt_secret)
            if payload is not None and payload.get("typ") == "anon" and payload.get("sub"):
                anon_id = str(payload["sub"])
                return Identity(type="anon", subject=f"anon:{anon_id}", id=anon_id)
            logger.info("Guest token rejected")

        raise AuthenticationError(AUTH_REQUIRED_MESSAGE)

    def _decode(self, token: str, secret: str) -> Optional[dict[str, Any]]:
        try:
            return jwt.decode(token, secret, algorithms=[self._jwt_algorithm])
        except JWTError as exc:
            logger.debug("Token verification failed: %s", exc)
            return None

    # ── Token issuing (guest sign-up, CLI, tests) ─────────────

    def create_anon_token(
        self, anon_id: Optional[str] = None, expiry_days: int = 30,
    ) -> str:
        """Issue a guest token with a fresh random id unless one is given."""
        return self._encode(
            {"sub": anon_id or uuid4().hex, "typ": "anon"},
            self._anon_jwt_secret,
            timedelta(days=expiry_days),
        )

    def create_user_token(self, user_id: str, expiry_hours: int = 24) -> str:
        return self._encode(
            {"sub": str(user_id), "typ": "user"},
            self._jwt_secret,
            timedelta(hours=expiry_hours),
        )

    def _encode(self, claims: dict[str, Any], secret: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {**claims, "iat": now, "exp": now + ttl}
        return jwt.encode(payload, secret, algorithm=self._jwt_algorithm)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
