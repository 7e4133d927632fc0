"""Read-only quota status for the caller."""

from fastapi import APIRouter, Depends

from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, get_identity
from adapters.rest.schemas import RateLimitOut
from domain.models import Identity

router = APIRouter(tags=["rate-limit"])


@router.get("/rate-limit", response_model=RateLimitOut)
async def get_rate_limit(
    identity: Identity = Depends(get_identity),
    factory: ServiceFactory = Depends(get_factory),
):
    decision = await factory.create_rate_limiter().status(identity)
    return RateLimitOut(
        remaining=decision.remaining,
        limit=decision.limit,
        reset_at=decision.reset_at,
        used=decision.used,
        reason=decision.reason,
    )
