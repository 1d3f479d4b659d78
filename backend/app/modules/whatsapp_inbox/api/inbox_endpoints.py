"""
WhatsApp Inbox API Endpoints
Conversations, messages, contact profiles, chat actions and outbound sends.

Every route requires an authenticated user (401) and a resolved tenant
(403) before its body runs.
"""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.tenancy.dependencies import TenantContext, get_tenant_context
from app.modules.whatsapp_inbox.schemas.inbox_schemas import (
    # Request schemas
    SendMessageRequest,
    ChatActionRequest,
    DeleteMessageRequest,
    # Response schemas
    ContactOut,
    MessageOut,
    ConversationItem,
    ConversationsResponse,
    MessagesResponse,
    SendResultItem,
    SendMessageResponse,
    ActionResponse,
)
from app.modules.whatsapp_inbox.services.attachments import prepare_attachment
from app.modules.whatsapp_inbox.services.conversation_service import ConversationService
from app.modules.whatsapp_inbox.services.dispatch_service import OutboundDispatcher
from app.modules.whatsapp_inbox.services.zapi_client import ZAPIClient, get_zapi_client
from app.shared.core.constants import CONVERSATIONS_PAGE_SIZE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.shared.db.session import get_db

router = APIRouter()
logger = logging.getLogger("inbox_api")


# ============================================
# DEPENDENCIES
# ============================================

def get_conversation_service(
    db: AsyncSession = Depends(get_db),
    provider: ZAPIClient = Depends(get_zapi_client),
) -> ConversationService:
    return ConversationService(db, provider)


def get_dispatcher(
    db: AsyncSession = Depends(get_db),
    provider: ZAPIClient = Depends(get_zapi_client),
) -> OutboundDispatcher:
    return OutboundDispatcher(db, provider)


# ============================================
# CONVERSATIONS
# ============================================

@router.get("/conversations", response_model=ConversationsResponse, summary="List conversations")
async def list_conversations(
    limit: int = Query(CONVERSATIONS_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    tenant: TenantContext = Depends(get_tenant_context),
    service: ConversationService = Depends(get_conversation_service),
):
    """Contacts by most recent activity with their latest message."""
    items = await service.list_conversations(tenant.tenant_id, limit=limit, offset=offset)
    return ConversationsResponse(
        conversations=[
            ConversationItem(
                contact=ContactOut.from_row(item["contact"]),
                last_message=MessageOut.from_row(item["last_message"]) if item["last_message"] else None,
            )
            for item in items
        ],
        limit=limit,
        offset=offset,
    )


@router.delete("/conversations", response_model=ActionResponse, summary="Delete a conversation")
async def delete_conversation(
    phone: str = Query(..., min_length=1),
    tenant: TenantContext = Depends(get_tenant_context),
    service: ConversationService = Depends(get_conversation_service),
):
    result = await service.delete_conversation(tenant.tenant_id, phone)
    return ActionResponse(**result)


# ============================================
# MESSAGES & CONTACT
# ============================================

@router.get("/messages", response_model=MessagesResponse, summary="Conversation history")
async def list_messages(
    phone: str = Query(..., min_length=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    before: Optional[datetime] = Query(None, description="Only messages older than this timestamp"),
    tenant: TenantContext = Depends(get_tenant_context),
    service: ConversationService = Depends(get_conversation_service),
):
    """Messages oldest first; paginate with offset or with a before-cursor."""
    result = await service.list_messages(tenant.tenant_id, phone, limit=limit, offset=offset, before=before)
    return MessagesResponse(
        contact=ContactOut.from_row(result["contact"]),
        messages=[MessageOut.from_row(m) for m in result["messages"]],
    )


@router.get("/contact", response_model=ContactOut, summary="Contact profile")
async def get_contact(
    phone: str = Query(..., min_length=1),
    refresh: bool = Query(True, description="Refresh profile fields from Z-API first"),
    tenant: TenantContext = Depends(get_tenant_context),
    service: ConversationService = Depends(get_conversation_service),
):
    contact = await service.get_contact(tenant.tenant_id, phone, refresh=refresh)
    return ContactOut.from_row(contact)


@router.post("/chat", response_model=ActionResponse, summary="Mark read / unread or clear a chat")
async def chat_action(
    request: ChatActionRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    service: ConversationService = Depends(get_conversation_service),
):
    result = await service.chat_action(tenant.tenant_id, request.phone, request.action)
    return ActionResponse(**result)


@router.delete("/message", response_model=ActionResponse, summary="Delete a message")
async def delete_message(
    request: DeleteMessageRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    service: ConversationService = Depends(get_conversation_service),
):
    result = await service.delete_message(tenant.tenant_id, request.phone, request.message_id, owner=request.owner)
    return ActionResponse(**result)


# ============================================
# OUTBOUND
# ============================================

@router.post("/send", response_model=SendMessageResponse, summary="Send to one or more phones")
async def send_message(
    request: SendMessageRequest,
    tenant: TenantContext = Depends(get_tenant_context),
    dispatcher: OutboundDispatcher = Depends(get_dispatcher),
):
    """
    Send a text (or attachment) to every phone in the list.

    Always 200 once dispatch starts: per-recipient failures are reported
    in the results, never as an HTTP error.
    """
    if not request.phones:
        raise HTTPException(status_code=400, detail="At least one phone is required")

    attachment = None
    if request.attachment is not None:
        attachment = prepare_attachment(
            request.attachment.data,
            mime_type=request.attachment.mime_type,
            file_name=request.attachment.file_name,
            kind=request.attachment.kind,
        )

    try:
        results = await dispatcher.dispatch(
            tenant.tenant_id,
            request.phones,
            message=request.message,
            name=request.name,
            template=request.template,
            force=request.force,
            attachment=attachment,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SendMessageResponse(results=[SendResultItem(**r) for r in results])
