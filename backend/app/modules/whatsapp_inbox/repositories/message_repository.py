"""
Message Repository
Database operations for the messages table.

Deduplication lives here: insert_if_absent() relies on the partial unique
index (tenant_id, provider_message_id) and reports a conflict as None
instead of raising.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable
from sqlalchemy import select, update, delete, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert

from app.modules.whatsapp_inbox.constants import MessageStatus, STATUS_RANK
from app.modules.whatsapp_inbox.models.message import Message
from app.shared.core.constants import DEFAULT_PAGE_SIZE


def _to_dict(message: Message) -> dict:
    return {k: v for k, v in message.__dict__.items() if not k.startswith('_') and k != "contact"}


class MessageRepository:
    """Repository for tenant-scoped message operations."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get_by_id(self, tenant_id: str, message_id: int) -> Optional[dict]:
        query = select(Message).where(Message.tenant_id == tenant_id, Message.id == message_id)
        result = await self.db.execute(query)
        message = result.scalar_one_or_none()
        return _to_dict(message) if message else None

    async def get_by_provider_id(self, tenant_id: str, provider_message_id: str) -> Optional[dict]:
        """Fetch a message by the provider's id (webhook dedup pre-check)."""
        query = select(Message).where(
            Message.tenant_id == tenant_id,
            Message.provider_message_id == provider_message_id
        )
        result = await self.db.execute(query)
        message = result.scalar_one_or_none()
        return _to_dict(message) if message else None

    async def list_for_contact(
        self,
        tenant_id: str,
        contact_id: int,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        before: Optional[datetime] = None
    ) -> List[dict]:
        """
        Conversation history for a contact, oldest first.

        Returns the most recent `limit` messages (skipping `offset` newer ones),
        or the most recent ones strictly older than `before` when a cursor is given.
        """
        query = select(Message).where(
            Message.tenant_id == tenant_id,
            Message.contact_id == contact_id
        )
        if before is not None:
            query = query.where(Message.created_at < before)

        query = (
            query.order_by(Message.created_at.desc(), Message.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        messages = [_to_dict(m) for m in result.scalars().all()]
        messages.reverse()
        return messages

    async def latest_previews(self, tenant_id: str, contact_ids: Iterable[int]) -> Dict[int, dict]:
        """
        Latest non-empty message per contact, keyed by contact_id.
        One query using DISTINCT ON.
        """
        ids = list(contact_ids)
        if not ids:
            return {}

        query = (
            select(Message)
            .where(
                Message.tenant_id == tenant_id,
                Message.contact_id.in_(ids),
                Message.body.isnot(None),
                func.length(func.trim(Message.body)) > 0
            )
            .distinct(Message.contact_id)
            .order_by(Message.contact_id, Message.created_at.desc(), Message.id.desc())
        )
        result = await self.db.execute(query)
        return {m.contact_id: _to_dict(m) for m in result.scalars().all()}

    # ============================================
    # CREATE OPERATIONS
    # ============================================

    async def insert_if_absent(
        self,
        tenant_id: str,
        contact_id: int,
        direction: str,
        status: str,
        body: Optional[str] = None,
        media: Optional[Dict[str, Any]] = None,
        provider_message_id: Optional[str] = None,
    ) -> Optional[int]:
        """
        Insert a message unless (tenant_id, provider_message_id) already exists.

        Returns:
            The new row id, or None when the provider id was already stored
            (a redelivery).
        """
        stmt = (
            insert(Message)
            .values(
                tenant_id=tenant_id,
                contact_id=contact_id,
                direction=direction,
                status=status,
                body=body,
                media=media,
                provider_message_id=provider_message_id,
            )
            .on_conflict_do_nothing(
                index_elements=["tenant_id", "provider_message_id"],
                index_where=Message.provider_message_id.isnot(None),
            )
            .returning(Message.id)
        )
        result = await self.db.execute(stmt)
        # No commit - let service layer manage transaction
        return result.scalar_one_or_none()

    # ============================================
    # UPDATE OPERATIONS
    # ============================================

    async def update_status_by_provider_ids(
        self,
        tenant_id: str,
        provider_message_ids: List[str],
        status: str
    ) -> int:
        """
        Apply a provider status callback. Returns how many rows changed.

        Only rows whose current status ranks below the new one move, so a
        late SENT never downgrades a READ message.
        """
        new_rank = MessageStatus(status).rank
        if not provider_message_ids or new_rank is None:
            return 0
        current_rank = case(
            {s.value: r for s, r in STATUS_RANK.items()},
            value=Message.status,
            else_=len(STATUS_RANK),
        )
        stmt = (
            update(Message)
            .where(
                Message.tenant_id == tenant_id,
                Message.provider_message_id.in_(provider_message_ids),
                Message.deleted_at.is_(None),
                current_rank < new_rank,
            )
            .values(status=status)
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0

    async def mark_deleted(self, tenant_id: str, contact_id: int, provider_message_id: str, body: str) -> bool:
        """Soft-delete: keep the row, replace its content."""
        stmt = (
            update(Message)
            .where(
                Message.tenant_id == tenant_id,
                Message.contact_id == contact_id,
                Message.provider_message_id == provider_message_id
            )
            .values(body=body, media=None, status="deleted", deleted_at=func.now())
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    # ============================================
    # DELETE OPERATIONS
    # ============================================

    async def delete_for_contact(self, tenant_id: str, contact_id: int) -> int:
        """Physically remove a contact's history (chat clear)."""
        stmt = delete(Message).where(Message.tenant_id == tenant_id, Message.contact_id == contact_id)
        result = await self.db.execute(stmt)
        return result.rowcount or 0
