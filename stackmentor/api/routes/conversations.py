"""Conversation and message endpoints."""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from stackmentor.api.middleware.auth import get_current_user
from stackmentor.models.conversation import (
    Conversation,
    CreatePrivateConversationRequest,
    EditMessageRequest,
    Message,
    SendMessageRequest,
)
from stackmentor.models.user import UserDB
from stackmentor.services.database import get_db_session
from stackmentor.services.message_service import MessageService
from stackmentor.services.realtime import ConnectionManager, connection_manager

router = APIRouter(prefix="/api", tags=["conversations"])


def get_connection_manager() -> ConnectionManager:
    """FastAPI dependency returning the live connection registry."""
    return connection_manager


def get_message_service(
    db: AsyncSession = Depends(get_db_session),
    broker: ConnectionManager = Depends(get_connection_manager),
) -> MessageService:
    return MessageService(db, broker)


@router.get("/conversations", response_model=list[Conversation])
async def list_conversations(
    service: MessageService = Depends(get_message_service),
    current_user: UserDB = Depends(get_current_user),
) -> list[Conversation]:
    """Conversations the caller takes part in, with unread counts."""
    return await service.list_conversations(current_user.user_id)


@router.post("/conversations/private", response_model=Conversation)
async def open_private_conversation(
    request: CreatePrivateConversationRequest,
    service: MessageService = Depends(get_message_service),
    current_user: UserDB = Depends(get_current_user),
) -> Conversation:
    """Open the one-to-one conversation with another user (reused if it exists)."""
    return await service.get_or_create_private_conversation(current_user.user_id, request.user_id)


@router.get("/conversations/{conversation_id}/messages", response_model=list[Message])
async def list_messages(
    conversation_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    before: datetime | None = Query(None, description="Only messages sent before this time"),
    service: MessageService = Depends(get_message_service),
    current_user: UserDB = Depends(get_current_user),
) -> list[Message]:
    """Messages in chronological order, flagged read/unread for the caller."""
    return await service.get_conversation_messages(
        conversation_id, current_user.user_id, limit=limit, before=before
    )


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: uuid.UUID,
    request: SendMessageRequest,
    service: MessageService = Depends(get_message_service),
    current_user: UserDB = Depends(get_current_user),
) -> Message:
    """Post a message; participants receive it live over the WebSocket."""
    return await service.send_message(
        conversation_id, current_user.user_id, request.content, request.media_urls
    )


@router.post("/conversations/{conversation_id}/read")
async def mark_read(
    conversation_id: uuid.UUID,
    service: MessageService = Depends(get_message_service),
    current_user: UserDB = Depends(get_current_user),
) -> dict:
    """Mark every message in the conversation as read by the caller."""
    marked = await service.mark_conversation_read(conversation_id, current_user.user_id)
    return {"marked": marked}


@router.patch("/messages/{message_id}", response_model=Message)
async def edit_message(
    message_id: uuid.UUID,
    request: EditMessageRequest,
    service: MessageService = Depends(get_message_service),
    current_user: UserDB = Depends(get_current_user),
) -> Message:
    """Edit one of the caller's messages."""
    return await service.edit_message(message_id, current_user.user_id, request.content)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: uuid.UUID,
    service: MessageService = Depends(get_message_service),
    current_user: UserDB = Depends(get_current_user),
) -> Response:
    """Soft-delete one of the caller's messages."""
    await service.delete_message(message_id, current_user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
