"""
WhatsApp Inbox Services

Business logic layer for the inbox module.
"""

from .zapi_client import ZAPIClient, zapi_client
from .webhook_service import WebhookIngestionService
from .dispatch_service import OutboundDispatcher
from .conversation_service import ConversationService

__all__ = [
    "ZAPIClient",
    "zapi_client",
    "WebhookIngestionService",
    "OutboundDispatcher",
    "ConversationService",
]
