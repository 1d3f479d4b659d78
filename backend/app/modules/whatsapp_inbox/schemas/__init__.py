"""
WhatsApp Inbox Schemas

Pydantic models for API request/response validation.
"""

from .inbox_schemas import (
    # Request schemas
    AttachmentIn,
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
    WebhookResponse,
    ActionResponse,
)

__all__ = [
    "AttachmentIn",
    "SendMessageRequest",
    "ChatActionRequest",
    "DeleteMessageRequest",
    "ContactOut",
    "MessageOut",
    "ConversationItem",
    "ConversationsResponse",
    "MessagesResponse",
    "SendResultItem",
    "SendMessageResponse",
    "WebhookResponse",
    "ActionResponse",
]
