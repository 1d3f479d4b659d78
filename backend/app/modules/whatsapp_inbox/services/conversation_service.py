"""
Conversation Service
Inbox reads and chat management, always under one tenant.

Orchestrates:
- Conversation list with last-message previews
- Message history (limit/offset or before-cursor)
- Contact detail with provider profile refresh
- Chat actions (read / unread / clear)
- Message deletion and conversation deletion
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.whatsapp_inbox.constants import ChatAction, DELETED_MESSAGE_BODY
from app.modules.whatsapp_inbox.repositories.contact_repository import ContactRepository
from app.modules.whatsapp_inbox.repositories.message_repository import MessageRepository
from app.modules.whatsapp_inbox.services.zapi_client import ZAPIClient, zapi_client
from app.shared.core.constants import CONVERSATIONS_PAGE_SIZE, DEFAULT_PAGE_SIZE
from app.shared.utils.exceptions import EntityNotFoundError
from app.shared.utils.phone_utils import normalize_phone

logger = logging.getLogger("conversation_service")


class ConversationService:
    """Tenant-scoped inbox operations."""

    def __init__(self, db: AsyncSession, provider: Optional[ZAPIClient] = None):
        self.db = db
        self.provider = provider or zapi_client
        self.contact_repo = ContactRepository(db)
        self.message_repo = MessageRepository(db)

    async def _require_contact(self, tenant_id: str, raw_phone: str) -> dict:
        phone = normalize_phone(raw_phone)
        contact = await self.contact_repo.get_by_phone(tenant_id, phone)
        if not contact:
            raise EntityNotFoundError("Contact", phone)
        return contact

    # ============================================
    # READS
    # ============================================

    async def list_conversations(
        self,
        tenant_id: str,
        limit: int = CONVERSATIONS_PAGE_SIZE,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """Contacts by most recent activity, each with its latest non-empty message."""
        contacts = await self.contact_repo.list_recent(tenant_id, limit=limit, offset=offset)
        previews = await self.message_repo.latest_previews(tenant_id, [c["id"] for c in contacts])
        return [
            {"contact": contact, "last_message": previews.get(contact["id"])}
            for contact in contacts
        ]

    async def list_messages(
        self,
        tenant_id: str,
        phone: str,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        before: Optional[datetime] = None
    ) -> Dict[str, Any]:
        contact = await self._require_contact(tenant_id, phone)
        messages = await self.message_repo.list_for_contact(
            tenant_id, contact["id"], limit=limit, offset=offset, before=before
        )
        return {"contact": contact, "messages": messages}

    async def get_contact(self, tenant_id: str, phone: str, refresh: bool = True) -> dict:
        """
        Contact detail. With refresh, profile fields are pulled from Z-API
        first; a provider failure propagates as ProviderError (502).
        """
        contact = await self._require_contact(tenant_id, phone)
        if not refresh or not self.provider.is_configured():
            return contact

        metadata = await self.provider.get_contact_metadata(contact["phone"])
        photo_url = await self.provider.get_profile_picture(contact["phone"])

        now = datetime.now(timezone.utc)
        updates: Dict[str, Any] = {
            "about": metadata.get("about"),
            "notify": metadata.get("notify"),
            "short": metadata.get("short"),
            "vname": metadata.get("vname"),
            "metadata_updated_at": now,
        }
        if not contact.get("name"):
            updates["name"] = metadata.get("name") or metadata.get("notify") or metadata.get("vname")
        if photo_url:
            updates["photo_url"] = photo_url
            updates["photo_updated_at"] = now

        # Keep what we already know when the provider has nothing
        updates = {k: v for k, v in updates.items() if v is not None}

        refreshed = await self.contact_repo.update_metadata(tenant_id, contact["id"], updates)
        await self.db.commit()
        logger.info(f"Contact metadata refreshed: contact_id={contact['id']}")
        return refreshed or contact

    # ============================================
    # WRITES
    # ============================================

    async def chat_action(self, tenant_id: str, phone: str, action: ChatAction) -> dict:
        """Apply the action at Z-API first, then mirror it locally."""
        contact = await self._require_contact(tenant_id, phone)
        await self.provider.modify_chat(contact["phone"], action.value)

        try:
            if action == ChatAction.CLEAR:
                removed = await self.message_repo.delete_for_contact(tenant_id, contact["id"])
                await self.contact_repo.reset_activity(tenant_id, contact["id"])
                logger.info(f"Chat cleared: contact_id={contact['id']} messages_removed={removed}")
            else:
                await self.contact_repo.set_unread(tenant_id, contact["id"], action == ChatAction.UNREAD)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.error(f"Chat action failed locally: contact_id={contact['id']} action={action.value}")
            raise

        return {"ok": True, "action": action.value, "contact_id": contact["id"]}

    async def delete_message(self, tenant_id: str, phone: str, provider_message_id: str, owner: bool = True) -> dict:
        contact = await self._require_contact(tenant_id, phone)
        await self.provider.delete_message(provider_message_id, contact["phone"], owner=owner)

        updated = await self.message_repo.mark_deleted(
            tenant_id, contact["id"], provider_message_id, DELETED_MESSAGE_BODY
        )
        await self.db.commit()
        if not updated:
            logger.warning(
                f"Deleted at provider but not found locally: contact_id={contact['id']} "
                f"provider_message_id={provider_message_id}"
            )
        return {"ok": True, "updated": updated}

    async def delete_conversation(self, tenant_id: str, phone: str) -> dict:
        """Remove the contact and (by cascade) its whole history."""
        contact = await self._require_contact(tenant_id, phone)
        await self.contact_repo.delete(tenant_id, contact["id"])
        await self.db.commit()
        logger.info(f"Conversation deleted: contact_id={contact['id']}")
        return {"ok": True, "contact_id": contact["id"]}
