"""
adapters.cli.session - Local credential storage.

The token the CLI searches with (a guest token or a user Bearer token) is
stored in ~/.product-search/session.json so it survives between
invocations.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path

logger = logging.getLogger(__name__)

_SESSION_DIR  = Path.home() / ".product-search"
_SESSION_FILE = _SESSION_DIR / "session.json"


@dataclass
class Session:
    token: str
    token_type: str = "anon"  # "anon" or "user"

    @property
    def is_guest(self) -> bool:
        return self.token_type == "anon"


def load_session() -> Session | None:
    """Return the stored session, or None if nothing usable is stored."""
    if not _SESSION_FILE.exists():
        return None
    try:
        data = json.loads(_SESSION_FILE.read_text(encoding="utf-8"))
        return Session(**data)
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Ignoring unreadable session file %s: %s", _SESSION_FILE, exc)
        return None


def save_session(session: Session) -> None:
    """Persist session credentials to disk."""
    _SESSION_DIR.mkdir(parents=True, exist_ok=True)
    _SESSION_FILE.write_text(
        json.dumps(asdict(session), indent=2), encoding="utf-8"
    )


def clear_session() -> None:
    """Delete stored credentials."""
    if _SESSION_FILE.exists():
        _SESSION_FILE.unlink()
