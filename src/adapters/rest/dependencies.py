"""
Shared FastAPI dependencies.

- get_factory(): returns the initialized ServiceFactory (set at startup).
- get_identity(): Bearer / X-Anon-Token resolution. Failures raise
  AuthenticationError, which app.py maps to a 401 JSON body.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from factory import ServiceFactory
from domain.models import Identity

# Module-level reference set by app lifespan
_factory: ServiceFactory | None = None


def set_factory(factory: ServiceFactory) -> None:
    global _factory
    _factory = factory


def get_factory() -> ServiceFactory:
    if _factory is None:
        raise RuntimeError("ServiceFactory not initialized.")
    return _factory


async def get_identity(
    authorization: Optional[str] = Header(default=None),
    x_anon_token: Optional[str] = Header(default=None, alias="X-Anon-Token"),
    factory: ServiceFactory = Depends(get_factory),
) -> Identity:
    """Resolve the caller. Raises AuthenticationError when nothing verifies."""
    resolver = factory.create_identity_resolver()
    return resolver.resolve(authorization, x_anon_token)
