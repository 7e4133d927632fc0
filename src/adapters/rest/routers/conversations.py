"""Owner-scoped conversation history endpoints."""

from fastapi import APIRouter, Depends, Response

from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, get_identity
from adapters.rest.schemas import (
    ConversationDetailOut,
    ConversationOut,
    ConversationPatchBody,
    MessageOut,
)
from domain.entities import Conversation
from domain.models import Identity

router = APIRouter(tags=["conversations"])


def _conversation_out(c: Conversation) -> dict:
    return ConversationOut(
        id=c.id,
        title=c.title,
        status=c.status,
        total_categories=c.total_categories,
        total_products=c.total_products,
        thumbnail_url=c.thumbnail_url,
        created_at=c.created_at,
        updated_at=c.updated_at,
    ).model_dump()


@router.get("/conversations", response_model=list[ConversationOut])
async def list_conversations(
    identity: Identity = Depends(get_identity),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_conversation_service()
    return [_conversation_out(c) for c in await service.list_for(identity)]


@router.get("/conversations/{conversation_id}", response_model=ConversationDetailOut)
async def get_conversation(
    conversation_id: str,
    identity: Identity = Depends(get_identity),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_conversation_service()
    detail = await service.get_detail(identity, conversation_id)
    return ConversationDetailOut(
        **_conversation_out(detail.conversation),
        messages=[
            MessageOut(
                id=view.message.id,
                role=view.message.role,
                content=view.message.content,
                metadata=view.message.metadata,
                created_at=view.message.created_at,
                categories=[c.to_dict() for c in view.categories],
            )
            for view in detail.messages
        ],
    )


@router.patch("/conversations/{conversation_id}", response_model=ConversationOut)
async def update_conversation(
    conversation_id: str,
    body: ConversationPatchBody,
    identity: Identity = Depends(get_identity),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_conversation_service()
    updated = await service.set_status(identity, conversation_id, body.status)
    return _conversation_out(updated)


@router.delete("/conversations/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    identity: Identity = Depends(get_identity),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_conversation_service()
    await service.delete(identity, conversation_id)
    return Response(status_code=204)
