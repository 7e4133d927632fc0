"""
application.services.rate_limiter - Shared search quota per subject.

One rolling window covers every search type. check() is read-only and
runs before any model call; record() consumes one unit after a search
fully succeeds. The two are not joined atomically, so a burst of
concurrent requests can each pass check() before any of them records.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from application.dto import RateLimitDecision
from domain.entities import RateLimitRecord
from domain.exceptions import RateLimitedError
from domain.models import Identity
from domain.ports import RateLimitRepository

logger = logging.getLogger(__name__)

GUEST_LIMIT_MESSAGE = "You have reached your guest search limit. Sign in for more searches."
USER_LIMIT_MESSAGE = "You have reached your weekly search limit."


def quota_key(identity: Identity) -> str:
    return f"search:{identity.subject}"


class RateLimiter:
    """Admits or rejects searches against a per-subject rolling quota."""

    def __init__(
        self,
        repo: RateLimitRepository,
        authenticated_limit: int = 20,
        anonymous_limit: int = 5,
        window_seconds: int = 7 * 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self._repo = repo
        self._authenticated_limit = authenticated_limit
        self._anonymous_limit = anonymous_limit
        self._window_seconds = window_seconds
        self._clock = clock

    def limit_for(self, identity: Identity) -> int:
        return self._anonymous_limit if identity.is_guest else self._authenticated_limit

    async def status(self, identity: Identity) -> RateLimitDecision:
        """Current quota without consuming anything."""
        record = await self._repo.get(quota_key(identity))
        return self.describe(identity, record)

    async def check(self, identity: Identity) -> RateLimitDecision:
        """Fail fast before any work starts.

        A broken counter store admits the request (fail open) rather than
        blocking every search.

        Raises:
            RateLimitedError: When the subject has no searches left.
        """
        try:
            decision = await self.status(identity)
        except Exception:
            logger.exception("Rate-limit lookup failed for %s, admitting", identity.subject)
            return self.describe(identity, None)

        if not decision.allowed:
            message = GUEST_LIMIT_MESSAGE if identity.is_guest else USER_LIMIT_MESSAGE
            logger.info(
                "Rate limited %s (%d/%d, resets %s)",
                identity.subject, decision.used, decision.limit, decision.reset_at,
            )
            raise RateLimitedError(message, decision)
        return decision

    async def record(self, identity: Identity) -> RateLimitDecision:
        """Consume one unit after a successful search and return the new quota."""
        record = await self._repo.take(
            quota_key(identity), self._window_seconds, self._clock(),
        )
        return self.describe(identity, record)

    def describe(
        self, identity: Identity, record: Optional[RateLimitRecord] = None,
    ) -> RateLimitDecision:
        """Quota view for a counter row; None means nothing used in this window."""
        limit = self.limit_for(identity)
        now = self._clock()

        if record is None or record.window_start + self._window_seconds <= now:
            used = 0
            window_start = now
        else:
            used = record.request_count
            window_start = record.window_start

        reset_at = datetime.fromtimestamp(
            window_start + self._window_seconds, tz=timezone.utc,
        ).isoformat()
        return RateLimitDecision(
            allowed=used < limit,
            remaining=max(0, limit - used),
            limit=limit,
            reset_at=reset_at,
            used=used,
            reason="guest" if identity.is_guest else "user",
        )
