"""
WhatsApp Inbox Module

Tenant-scoped WhatsApp inbox on top of the Z-API gateway.
Key features:
- Webhook ingestion with deduplication by provider message id
- Outbound dispatch (text and attachments) with per-recipient results
- Conversation listing, contact profiles, chat actions
"""

from .models.contact import Contact
from .models.message import Message

__all__ = [
    "Contact",
    "Message",
]
