"""
WhatsApp Inbox Models

Exports all ORM models for the inbox module.
"""

from .contact import Contact
from .message import Message

__all__ = [
    "Contact",
    "Message",
]
