"""
In-memory stand-ins for the inbox repositories.

Same method names and return shapes as ContactRepository /
MessageRepository, with the (tenant_id, phone) and
(tenant_id, provider_message_id) uniqueness rules enforced in Python.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.modules.whatsapp_inbox.constants import MessageStatus, STATUS_RANK


class InboxStore:
    def __init__(self):
        self.contacts: List[Dict[str, Any]] = []
        self.messages: List[Dict[str, Any]] = []

    def contacts_for(self, tenant_id: str) -> List[Dict[str, Any]]:
        return [c for c in self.contacts if c["tenant_id"] == tenant_id]

    def messages_for(self, tenant_id: str) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m["tenant_id"] == tenant_id]


class FakeContactRepository:
    def __init__(self, store: InboxStore):
        self.store = store

    async def get_by_id(self, tenant_id, contact_id):
        for contact in self.store.contacts_for(tenant_id):
            if contact["id"] == contact_id:
                return dict(contact)
        return None

    async def get_by_phone(self, tenant_id, phone):
        for contact in self.store.contacts_for(tenant_id):
            if contact["phone"] == phone:
                return dict(contact)
        return None

    async def upsert(self, tenant_id, phone, name=None, is_whatsapp=True, photo_url=None, last_message_at=None):
        for contact in self.store.contacts_for(tenant_id):
            if contact["phone"] == phone:
                contact["name"] = name or contact["name"]
                contact["photo_url"] = photo_url or contact["photo_url"]
                contact["last_message_at"] = last_message_at or contact["last_message_at"]
                contact["is_whatsapp"] = is_whatsapp
                return dict(contact)

        contact = {
            "id": len(self.store.contacts) + 1,
            "tenant_id": tenant_id,
            "phone": phone,
            "name": name,
            "is_whatsapp": is_whatsapp,
            "photo_url": photo_url,
            "last_message_at": last_message_at,
            "chat_unread": False,
            "last_outbound_template": None,
            "last_outbound_at": None,
            "presence_status": None,
        }
        self.store.contacts.append(contact)
        return dict(contact)

    async def touch(self, tenant_id, contact_id, at=None, unread=None, outbound_template=None):
        now = at or datetime.now(timezone.utc)
        for contact in self.store.contacts_for(tenant_id):
            if contact["id"] == contact_id:
                contact["last_message_at"] = now
                if unread is not None:
                    contact["chat_unread"] = unread
                if outbound_template is not None:
                    contact["last_outbound_template"] = outbound_template
                    contact["last_outbound_at"] = now
                return True
        return False

    async def update_metadata(self, tenant_id, contact_id, metadata):
        for contact in self.store.contacts_for(tenant_id):
            if contact["id"] == contact_id:
                contact.update(metadata)
                return dict(contact)
        return None


class FakeMessageRepository:
    def __init__(self, store: InboxStore):
        self.store = store
        self.insert_calls = 0

    def _find(self, tenant_id, provider_message_id):
        for message in self.store.messages_for(tenant_id):
            if message["provider_message_id"] == provider_message_id:
                return message
        return None

    async def get_by_provider_id(self, tenant_id, provider_message_id):
        message = self._find(tenant_id, provider_message_id)
        return dict(message) if message else None

    async def insert_if_absent(
        self,
        tenant_id,
        contact_id,
        direction,
        status,
        body=None,
        media=None,
        provider_message_id=None,
    ) -> Optional[int]:
        self.insert_calls += 1
        # Stands in for the partial unique index
        if provider_message_id and self._find(tenant_id, provider_message_id):
            return None

        message = {
            "id": len(self.store.messages) + 1,
            "tenant_id": tenant_id,
            "contact_id": contact_id,
            "direction": direction,
            "status": status,
            "body": body,
            "media": media,
            "provider_message_id": provider_message_id,
            "created_at": datetime.now(timezone.utc),
        }
        self.store.messages.append(message)
        return message["id"]

    async def update_status_by_provider_ids(self, tenant_id, provider_message_ids, status):
        new_rank = MessageStatus(status).rank
        if new_rank is None:
            return 0
        updated = 0
        for message in self.store.messages_for(tenant_id):
            current_rank = STATUS_RANK.get(MessageStatus(message["status"]), len(STATUS_RANK))
            if message["provider_message_id"] in provider_message_ids and current_rank < new_rank:
                message["status"] = status
                updated += 1
        return updated
