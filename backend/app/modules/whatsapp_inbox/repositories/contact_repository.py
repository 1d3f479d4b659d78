"""
Contact Repository
Database operations for the contacts table.

Key patterns:
- Every query carries a mandatory tenant_id filter
- Upsert on (tenant_id, phone) with COALESCE so NULLs never erase known data
- No commits here; services own the transaction
"""
from datetime import datetime
from typing import Optional, List, Dict, Any
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert

from app.modules.whatsapp_inbox.models.contact import Contact
from app.shared.core.constants import CONVERSATIONS_PAGE_SIZE

# Profile fields the provider can refresh on a contact
METADATA_FIELDS = (
    "name", "about", "notify", "short", "vname", "photo_url",
    "presence_status", "metadata_updated_at", "photo_updated_at", "presence_updated_at",
)


def _to_dict(contact: Contact) -> dict:
    return {k: v for k, v in contact.__dict__.items() if not k.startswith('_') and k != "messages"}


class ContactRepository:
    """Repository for tenant-scoped contact CRUD operations."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get_by_id(self, tenant_id: str, contact_id: int) -> Optional[dict]:
        query = select(Contact).where(Contact.tenant_id == tenant_id, Contact.id == contact_id)
        result = await self.db.execute(query)
        contact = result.scalar_one_or_none()
        return _to_dict(contact) if contact else None

    async def get_by_phone(self, tenant_id: str, phone: str) -> Optional[dict]:
        """Fetch a contact by canonical phone under one tenant."""
        query = select(Contact).where(Contact.tenant_id == tenant_id, Contact.phone == phone)
        result = await self.db.execute(query)
        contact = result.scalar_one_or_none()
        return _to_dict(contact) if contact else None

    async def list_recent(
        self,
        tenant_id: str,
        limit: int = CONVERSATIONS_PAGE_SIZE,
        offset: int = 0
    ) -> List[dict]:
        """Contacts ordered by most recent activity, never-active contacts last."""
        query = (
            select(Contact)
            .where(Contact.tenant_id == tenant_id)
            .order_by(Contact.last_message_at.desc().nullslast(), Contact.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [_to_dict(c) for c in result.scalars().all()]

    async def count(self, tenant_id: str) -> int:
        query = select(func.count()).select_from(Contact).where(Contact.tenant_id == tenant_id)
        result = await self.db.execute(query)
        return result.scalar() or 0

    # ============================================
    # UPSERT
    # ============================================

    async def upsert(
        self,
        tenant_id: str,
        phone: str,
        name: Optional[str] = None,
        is_whatsapp: bool = True,
        photo_url: Optional[str] = None,
        last_message_at: Optional[datetime] = None,
    ) -> dict:
        """
        Insert or update a contact by (tenant_id, phone).
        Uses COALESCE to preserve existing values when new values are NULL.
        """
        values: Dict[str, Any] = {
            "tenant_id": tenant_id,
            "phone": phone,
            "name": name,
            "is_whatsapp": is_whatsapp,
            "photo_url": photo_url,
            "last_message_at": last_message_at,
        }
        stmt = insert(Contact).values(**values)

        update_dict = {
            "name": func.coalesce(stmt.excluded.name, Contact.name),
            "photo_url": func.coalesce(stmt.excluded.photo_url, Contact.photo_url),
            "last_message_at": func.coalesce(stmt.excluded.last_message_at, Contact.last_message_at),
            "is_whatsapp": stmt.excluded.is_whatsapp,
            "updated_at": func.now(),
        }

        stmt = (
            stmt.on_conflict_do_update(
                index_elements=["tenant_id", "phone"],
                set_=update_dict
            )
            .returning(Contact)
            .execution_options(populate_existing=True)
        )

        result = await self.db.execute(stmt)
        # No commit here - let service layer manage transaction
        return _to_dict(result.scalar_one())

    # ============================================
    # UPDATE OPERATIONS
    # ============================================

    async def touch(
        self,
        tenant_id: str,
        contact_id: int,
        at: Optional[datetime] = None,
        unread: Optional[bool] = None,
        outbound_template: Optional[str] = None,
    ) -> bool:
        """Record activity on a contact (last_message_at, unread flag, last template sent)."""
        values: Dict[str, Any] = {
            "last_message_at": at or func.now(),
            "updated_at": func.now(),
        }
        if unread is not None:
            values["chat_unread"] = unread
        if outbound_template is not None:
            values["last_outbound_template"] = outbound_template
            values["last_outbound_at"] = at or func.now()

        stmt = (
            update(Contact)
            .where(Contact.tenant_id == tenant_id, Contact.id == contact_id)
            .values(**values)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def update_metadata(self, tenant_id: str, contact_id: int, metadata: Dict[str, Any]) -> Optional[dict]:
        """Apply a provider profile refresh. Unknown keys are ignored."""
        values = {k: v for k, v in metadata.items() if k in METADATA_FIELDS}
        if not values:
            return await self.get_by_id(tenant_id, contact_id)
        values["updated_at"] = func.now()

        stmt = (
            update(Contact)
            .where(Contact.tenant_id == tenant_id, Contact.id == contact_id)
            .values(**values)
            .returning(Contact)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        contact = result.scalar_one_or_none()
        return _to_dict(contact) if contact else None

    async def set_unread(self, tenant_id: str, contact_id: int, unread: bool) -> bool:
        stmt = (
            update(Contact)
            .where(Contact.tenant_id == tenant_id, Contact.id == contact_id)
            .values(chat_unread=unread, updated_at=func.now())
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def reset_activity(self, tenant_id: str, contact_id: int) -> bool:
        """Called after a chat is cleared: no last activity, nothing unread."""
        stmt = (
            update(Contact)
            .where(Contact.tenant_id == tenant_id, Contact.id == contact_id)
            .values(last_message_at=None, chat_unread=False, updated_at=func.now())
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    # ============================================
    # DELETE OPERATIONS
    # ============================================

    async def delete(self, tenant_id: str, contact_id: int) -> bool:
        """Delete a contact; its messages go with it (ON DELETE CASCADE)."""
        stmt = delete(Contact).where(Contact.tenant_id == tenant_id, Contact.id == contact_id)
        result = await self.db.execute(stmt)
        return result.rowcount > 0
