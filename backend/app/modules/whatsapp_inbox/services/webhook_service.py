"""
Webhook Ingestion Service
Turns one Z-API webhook delivery into at most one stored message.

Flow per delivery (authenticity is checked before this service runs):
    phone resolved -> body/media extracted -> dedup checked
        -> {skipped | persisted} -> contact updated

Deliveries are at-least-once. A redelivered provider message id is
acknowledged without a second row: first by a lookup, and finally by the
partial unique index (ON CONFLICT DO NOTHING) which closes the race between
two concurrent deliveries.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.whatsapp_inbox.constants import (
    MessageDirection,
    MessageStatus,
    WebhookOutcome,
    ZapiEventType,
)
from app.modules.whatsapp_inbox.repositories.contact_repository import ContactRepository
from app.modules.whatsapp_inbox.repositories.message_repository import MessageRepository
from app.modules.whatsapp_inbox.services import payload_extractors as extract
from app.shared.db.retry import run_with_retry
from app.shared.utils.phone_utils import normalize_phone_or_none

logger = logging.getLogger("webhook_service")


class WebhookIngestionService:
    """
    Processes verified webhook payloads for one tenant.

    Each handler returns a result dict with at least an "outcome" key
    (see WebhookOutcome).
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.contact_repo = ContactRepository(db)
        self.message_repo = MessageRepository(db)

    async def handle_event(self, tenant_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Route a payload by its Z-API "type" (Dictionary Dispatch).
        Anything that is not a status/presence/connection event is treated
        as a message.
        """
        event_type = payload.get("type") or ""

        event_handlers = {
            ZapiEventType.MESSAGE_STATUS.value: self._handle_status,
            ZapiEventType.DELIVERY.value: self._handle_delivery,
            ZapiEventType.PRESENCE.value: self._handle_presence,
            ZapiEventType.CONNECTED.value: self._handle_connection,
            ZapiEventType.DISCONNECTED.value: self._handle_connection,
        }
        handler = event_handlers.get(event_type, self._handle_message)

        result = await handler(tenant_id, payload)
        logger.info(f"Webhook processed: type={event_type or 'unknown'} outcome={result['outcome'].value}")
        return result

    # ============================================
    # MESSAGE EVENTS
    # ============================================

    async def _handle_message(self, tenant_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        phone = extract.extract_phone(payload)

        body = extract.extract_body(payload)
        media = extract.extract_media(payload)
        if not body and media and media.get("caption"):
            body = media["caption"]

        if not body and not media:
            logger.info(f"Webhook without content acknowledged: phone={phone}")
            return {"outcome": WebhookOutcome.EMPTY}

        provider_message_id = extract.extract_provider_message_id(payload)
        if provider_message_id:
            existing = await self.message_repo.get_by_provider_id(tenant_id, provider_message_id)
            if existing:
                logger.info(f"Duplicate webhook skipped: provider_message_id={provider_message_id} phone={phone}")
                return {
                    "outcome": WebhookOutcome.DUPLICATE,
                    "message_id": existing["id"],
                    "contact_id": existing["contact_id"],
                }

        from_me = extract.is_from_me(payload)
        direction = MessageDirection.OUTBOUND if from_me else MessageDirection.INBOUND
        status = MessageStatus.SENT if from_me else MessageStatus.RECEIVED
        # Sender name/photo describe us, not the contact, on our own messages
        sender_name = None if from_me else extract.extract_sender_name(payload)
        sender_photo = None if from_me else extract.extract_sender_photo(payload)

        async def upsert_contact() -> dict:
            contact = await self.contact_repo.upsert(
                tenant_id,
                phone,
                name=sender_name,
                is_whatsapp=True,
                photo_url=sender_photo,
            )
            await self.db.commit()
            return contact

        contact = await run_with_retry(upsert_contact, operation="contact upsert", session=self.db)

        async def insert_message() -> Optional[int]:
            new_id = await self.message_repo.insert_if_absent(
                tenant_id,
                contact["id"],
                direction=direction.value,
                status=status.value,
                body=body,
                media=media,
                provider_message_id=provider_message_id,
            )
            if new_id is not None:
                await self.contact_repo.touch(tenant_id, contact["id"], unread=not from_me)
            await self.db.commit()
            return new_id

        message_id = await run_with_retry(insert_message, operation="message insert", session=self.db)

        if message_id is None:
            logger.info(f"Duplicate webhook resolved by constraint: provider_message_id={provider_message_id}")
            return {"outcome": WebhookOutcome.DUPLICATE, "contact_id": contact["id"]}

        logger.info(
            f"Message stored: message_id={message_id} contact_id={contact['id']} "
            f"direction={direction.value} provider_message_id={provider_message_id}"
        )
        return {"outcome": WebhookOutcome.PERSISTED, "message_id": message_id, "contact_id": contact["id"]}

    # ============================================
    # STATUS / PRESENCE / CONNECTION EVENTS
    # ============================================

    async def _handle_status(self, tenant_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        ids = extract.extract_status_ids(payload)
        if not ids:
            return {"outcome": WebhookOutcome.EMPTY}

        status = MessageStatus.from_provider(payload.get("status"))
        if status is None:
            logger.info(f"Status callback with unknown status ignored: status={payload.get('status')!r}")
            return {"outcome": WebhookOutcome.IGNORED}

        return await self._apply_status(tenant_id, ids, status)

    async def _handle_delivery(self, tenant_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Z-API confirms an outbound send; an "error" field means it never left."""
        ids = extract.extract_status_ids(payload)
        if not ids:
            return {"outcome": WebhookOutcome.EMPTY}

        status = MessageStatus.FAILED if payload.get("error") else MessageStatus.SENT
        return await self._apply_status(tenant_id, ids, status)

    async def _apply_status(self, tenant_id: str, ids: List[str], status: MessageStatus) -> Dict[str, Any]:
        async def apply_status() -> int:
            count = await self.message_repo.update_status_by_provider_ids(tenant_id, ids, status.value)
            await self.db.commit()
            return count

        updated = await run_with_retry(apply_status, operation="status update", session=self.db)
        logger.info(f"Status callback applied: status={status.value} ids={len(ids)} updated={updated}")
        return {"outcome": WebhookOutcome.STATUS_UPDATED, "updated": updated}

    async def _handle_presence(self, tenant_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        phone = normalize_phone_or_none(payload.get("phone"))
        contact = await self.contact_repo.get_by_phone(tenant_id, phone) if phone else None
        if not contact:
            return {"outcome": WebhookOutcome.IGNORED}

        async def apply_presence() -> None:
            await self.contact_repo.update_metadata(
                tenant_id,
                contact["id"],
                {"presence_status": payload.get("status"), "presence_updated_at": datetime.now(timezone.utc)},
            )
            await self.db.commit()

        await run_with_retry(apply_presence, operation="presence update", session=self.db)
        return {"outcome": WebhookOutcome.STATUS_UPDATED, "contact_id": contact["id"]}

    async def _handle_connection(self, tenant_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.info(f"Instance connection event: type={payload.get('type')} connected={payload.get('connected')}")
        return {"outcome": WebhookOutcome.IGNORED}
