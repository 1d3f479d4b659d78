"""
WhatsApp Inbox Constants
Centralized enums and constants for the inbox module.
"""
from enum import Enum
from typing import Optional


class MessageDirection(str, Enum):
    """Direction of a WhatsApp message."""
    INBOUND = "inbound"    # Contact sent it
    OUTBOUND = "outbound"  # We sent it


class MessageStatus(str, Enum):
    """
    Message status.

    Inbound:  RECEIVED → READ
    Outbound: SENT → DELIVERED → READ
    Either can end in DELETED.
    """
    RECEIVED = "received"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    PLAYED = "played"
    FAILED = "failed"
    DELETED = "deleted"

    @classmethod
    def from_provider(cls, value: Optional[str]) -> Optional["MessageStatus"]:
        """
        Map a Z-API status callback value (SENT, RECEIVED, READ, READ_BY_ME, PLAYED) to ours.

        Unknown or missing values map to None so the caller can skip them.
        """
        mapping = {
            "SENT": cls.SENT,
            "RECEIVED": cls.DELIVERED,
            "DELIVERED": cls.DELIVERED,
            "READ": cls.READ,
            "READ_BY_ME": cls.READ,
            "PLAYED": cls.PLAYED,
            "FAILED": cls.FAILED,
        }
        return mapping.get(str(value or "").strip().upper())

    @property
    def rank(self) -> Optional[int]:
        return STATUS_RANK.get(self)


# Status callbacks only move a message forward along this order.
# Statuses without a rank (deleted) are never overwritten by a callback.
STATUS_RANK = {
    MessageStatus.RECEIVED: 0,
    MessageStatus.SENT: 1,
    MessageStatus.DELIVERED: 2,
    MessageStatus.FAILED: 2,
    MessageStatus.READ: 3,
    MessageStatus.PLAYED: 4,
}


class WebhookOutcome(str, Enum):
    """Terminal outcome of one webhook delivery."""
    PERSISTED = "persisted"
    DUPLICATE = "duplicate"       # Provider redelivered a message we already stored
    EMPTY = "empty"               # Notification without text or media
    STATUS_UPDATED = "status_updated"
    IGNORED = "ignored"           # Event types we do not store


class SendStatus(str, Enum):
    """Per-recipient result of an outbound dispatch."""
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # Same template already sent and force not set


class ChatAction(str, Enum):
    READ = "read"
    UNREAD = "unread"
    CLEAR = "clear"


class AttachmentKind(str, Enum):
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"
    AUTO = "auto"


class ZapiEventType(str, Enum):
    """Z-API webhook "type" values."""
    RECEIVED = "ReceivedCallback"
    MESSAGE_STATUS = "MessageStatusCallback"
    DELIVERY = "DeliveryCallback"
    PRESENCE = "PresenceChatCallback"
    CONNECTED = "ConnectedCallback"
    DISCONNECTED = "DisconnectedCallback"


# Stored body for a message deleted through the inbox
DELETED_MESSAGE_BODY = "[deleted]"

# Body labels for media sent without a caption
MEDIA_FALLBACK_BODIES = {
    AttachmentKind.IMAGE: "[image]",
    AttachmentKind.AUDIO: "[audio]",
    AttachmentKind.VIDEO: "[video]",
    AttachmentKind.DOCUMENT: "[document]",
}

# Extension used for document uploads when the mime type is unknown
DEFAULT_DOCUMENT_EXTENSION = "bin"

DOCUMENT_EXTENSIONS_BY_MIME = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "text/plain": "txt",
    "text/csv": "csv",
    "application/zip": "zip",
}

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "bmp"}
AUDIO_EXTENSIONS = {"mp3", "ogg", "oga", "opus", "wav", "m4a", "aac"}
VIDEO_EXTENSIONS = {"mp4", "mov", "avi", "mkv", "webm", "3gp"}
