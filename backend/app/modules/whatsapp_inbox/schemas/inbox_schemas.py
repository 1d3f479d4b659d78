"""
WhatsApp Inbox - Pydantic Schemas
Request and Response models for API endpoints.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime

from app.modules.whatsapp_inbox.constants import ChatAction, SendStatus, WebhookOutcome
from app.shared.utils.phone_utils import format_phone_display


# ============================================
# REQUEST MODELS
# ============================================

class AttachmentIn(BaseModel):
    """Base64 (or data URL) file sent alongside / instead of text"""
    data: str = Field(..., description="Base64 payload or data URL")
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    file_name: Optional[str] = Field(default=None, alias="fileName")
    kind: Optional[str] = Field(default="auto", description="image | audio | video | document | auto")

    class Config:
        populate_by_name = True


class SendMessageRequest(BaseModel):
    """Request to send one message to many phones"""
    phones: List[str] = Field(
        default_factory=list,
        max_length=500,
        description="Raw phone numbers, any format"
    )
    message: Optional[str] = Field(default=None, description="Text body (caption when an attachment is sent)")
    name: Optional[str] = Field(default=None, description="Contact name to store for new contacts")
    template: Optional[str] = Field(default=None, description="Outreach template tag")
    force: bool = Field(default=False, description="Send even if this template was already sent")
    attachment: Optional[AttachmentIn] = None

    @field_validator("phones", mode="before")
    @classmethod
    def split_phone_string(cls, v):
        """Accept a comma/newline separated string as well as a list."""
        if isinstance(v, str):
            return [p.strip() for p in v.replace("\n", ",").split(",") if p.strip()]
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "phones": ["11987654321", "+55 21 99876-5432"],
                "message": "Olá! Podemos conversar?",
                "template": "default_outreach",
                "force": False
            }
        }


class ChatActionRequest(BaseModel):
    phone: str
    action: ChatAction


class DeleteMessageRequest(BaseModel):
    phone: str
    message_id: str = Field(..., alias="messageId", description="Provider message id")
    owner: bool = Field(default=True, description="True when we sent the message")

    class Config:
        populate_by_name = True


# ============================================
# RESPONSE MODELS
# ============================================

class ContactOut(BaseModel):
    id: int
    phone: str
    phone_display: str = ""
    name: Optional[str] = None
    is_whatsapp: bool = True
    photo_url: Optional[str] = None
    about: Optional[str] = None
    notify: Optional[str] = None
    short: Optional[str] = None
    vname: Optional[str] = None
    presence_status: Optional[str] = None
    chat_unread: bool = False
    last_message_at: Optional[datetime] = None
    last_outbound_template: Optional[str] = None
    last_outbound_at: Optional[datetime] = None
    metadata_updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ContactOut":
        data = {k: v for k, v in row.items() if k in cls.model_fields and v is not None}
        data["phone_display"] = format_phone_display(row["phone"])
        return cls(**data)


class MessageOut(BaseModel):
    id: int
    contact_id: int
    direction: str
    body: Optional[str] = None
    media: Optional[Dict[str, Any]] = None
    status: str
    provider_message_id: Optional[str] = None
    created_at: Optional[datetime] = None
    edited_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "MessageOut":
        return cls(**{k: v for k, v in row.items() if k in cls.model_fields})


class ConversationItem(BaseModel):
    contact: ContactOut
    last_message: Optional[MessageOut] = None


class ConversationsResponse(BaseModel):
    conversations: List[ConversationItem]
    limit: int
    offset: int


class MessagesResponse(BaseModel):
    contact: ContactOut
    messages: List[MessageOut]


class SendResultItem(BaseModel):
    phone: str
    status: SendStatus
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


class SendMessageResponse(BaseModel):
    results: List[SendResultItem]


class WebhookResponse(BaseModel):
    ok: bool = True
    outcome: WebhookOutcome
    message_id: Optional[int] = None
    contact_id: Optional[int] = None
    updated: Optional[int] = None


class ActionResponse(BaseModel):
    ok: bool = True
    action: Optional[str] = None
    contact_id: Optional[int] = None
    updated: Optional[bool] = None
