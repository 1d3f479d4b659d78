"""
Outbound Dispatch Service
Sends one message (text or attachment) to a list of phones.

Partial-failure semantics: every recipient is attempted independently and
in sequence; one failure is reported in-band and never aborts the batch.
"""
import logging
from typing import Dict, Any, Optional, List
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.whatsapp_inbox.constants import MessageDirection, MessageStatus, SendStatus, AttachmentKind
from app.modules.whatsapp_inbox.repositories.contact_repository import ContactRepository
from app.modules.whatsapp_inbox.repositories.message_repository import MessageRepository
from app.modules.whatsapp_inbox.services.attachments import PreparedAttachment
from app.modules.whatsapp_inbox.services.zapi_client import ZAPIClient, SendResult, zapi_client
from app.shared.core.config import settings
from app.shared.db.retry import run_with_retry
from app.shared.utils.exceptions import (
    InvalidPhoneError,
    PersistenceError,
    ProviderError,
    ProviderNotConfiguredError,
)
from app.shared.utils.phone_utils import normalize_phone_or_none

logger = logging.getLogger("dispatch_service")


def normalize_recipients(phones: List[str]) -> List[str]:
    """Normalize, drop invalid entries and duplicates, keep the caller's order."""
    recipients: List[str] = []
    for raw in phones or []:
        phone = normalize_phone_or_none(raw)
        if phone and phone not in recipients:
            recipients.append(phone)
    return recipients


class OutboundDispatcher:
    """Per-tenant outbound sender backed by Z-API."""

    def __init__(self, db: AsyncSession, provider: Optional[ZAPIClient] = None):
        self.db = db
        self.provider = provider or zapi_client
        self.contact_repo = ContactRepository(db)
        self.message_repo = MessageRepository(db)

    def resolve_text(
        self,
        message: Optional[str],
        template: Optional[str],
        attachment: Optional[PreparedAttachment]
    ) -> Optional[str]:
        """The configured default message applies only to plain default-template sends."""
        text = (message or "").strip() or None
        if text is None and attachment is None and template == settings.DEFAULT_OUTREACH_TEMPLATE:
            return settings.DEFAULT_OUTREACH_MESSAGE
        return text

    async def dispatch(
        self,
        tenant_id: str,
        phones: List[str],
        message: Optional[str] = None,
        name: Optional[str] = None,
        template: Optional[str] = None,
        force: bool = False,
        attachment: Optional[PreparedAttachment] = None,
    ) -> List[Dict[str, Any]]:
        """
        Send to every valid phone.

        Returns:
            One result per recipient: {"phone", "status": sent|failed|skipped,
            "provider_message_id"?, "error"?}

        Raises:
            InvalidPhoneError: no phone survived normalization.
            ValueError: nothing to send (no text and no attachment).
            ProviderNotConfiguredError: Z-API credentials missing.
        """
        template = template or settings.DEFAULT_OUTREACH_TEMPLATE
        recipients = normalize_recipients(phones)
        if not recipients:
            raise InvalidPhoneError(phones)

        text = self.resolve_text(message, template, attachment)
        if text is None and attachment is None:
            raise ValueError("Message body or attachment is required")

        if not self.provider.is_configured():
            raise ProviderNotConfiguredError("Z-API is not configured")

        logger.info(f"Dispatch started: recipients={len(recipients)} template={template} force={force}")

        results = []
        for phone in recipients:
            results.append(await self._dispatch_one(tenant_id, phone, text, name, template, force, attachment))

        sent = sum(1 for r in results if r["status"] == SendStatus.SENT)
        logger.info(f"Dispatch finished: sent={sent} total={len(results)}")
        return results

    async def _dispatch_one(
        self,
        tenant_id: str,
        phone: str,
        text: Optional[str],
        name: Optional[str],
        template: str,
        force: bool,
        attachment: Optional[PreparedAttachment],
    ) -> Dict[str, Any]:
        contact_id = None
        try:
            async def upsert_contact() -> dict:
                contact = await self.contact_repo.upsert(tenant_id, phone, name=name, is_whatsapp=True)
                await self.db.commit()
                return contact

            contact = await run_with_retry(upsert_contact, operation="contact upsert", session=self.db)
            contact_id = contact["id"]

            if not force and contact.get("last_outbound_template") == template:
                logger.info(f"Recipient skipped, template already sent: phone={phone} template={template}")
                return {"phone": phone, "status": SendStatus.SKIPPED}

            send_result = await self._send(phone, text, attachment)

            body = text or (attachment.fallback_body() if attachment else None)
            media = attachment.descriptor() if attachment else None

            async def record_message() -> Optional[int]:
                new_id = await self.message_repo.insert_if_absent(
                    tenant_id,
                    contact_id,
                    direction=MessageDirection.OUTBOUND.value,
                    status=MessageStatus.SENT.value,
                    body=body,
                    media=media,
                    provider_message_id=send_result.message_id,
                )
                await self.contact_repo.touch(tenant_id, contact_id, outbound_template=template)
                await self.db.commit()
                return new_id

            await run_with_retry(record_message, operation="outbound message insert", session=self.db)

            return {"phone": phone, "status": SendStatus.SENT, "provider_message_id": send_result.message_id}

        except (ProviderError, PersistenceError) as e:
            await self._rollback_quietly(phone)
            logger.error(
                f"Dispatch failed for recipient: phone={phone} contact_id={contact_id} "
                f"error={e.__class__.__name__}: {e.message}"
            )
            return {"phone": phone, "status": SendStatus.FAILED, "error": e.message}
        except Exception as e:
            # Pool timeouts, dead connections and the like: still one recipient only
            await self._rollback_quietly(phone)
            logger.error(
                f"Dispatch failed for recipient: phone={phone} contact_id={contact_id} "
                f"error={e.__class__.__name__}: {e}",
                exc_info=True,
            )
            return {"phone": phone, "status": SendStatus.FAILED, "error": str(e) or e.__class__.__name__}

    async def _rollback_quietly(self, phone: str) -> None:
        try:
            await self.db.rollback()
        except Exception as e:
            logger.error(f"Rollback failed after dispatch error: phone={phone} error={e}", exc_info=True)

    async def _send(self, phone: str, text: Optional[str], attachment: Optional[PreparedAttachment]) -> SendResult:
        if attachment is None:
            return await self.provider.send_text(phone, text)

        if attachment.kind == AttachmentKind.IMAGE:
            return await self.provider.send_image(phone, attachment.data_url, caption=text)
        if attachment.kind == AttachmentKind.AUDIO:
            return await self.provider.send_audio(phone, attachment.data_url)
        if attachment.kind == AttachmentKind.VIDEO:
            return await self.provider.send_video(phone, attachment.data_url, caption=text)
        return await self.provider.send_document(
            phone,
            attachment.data_url,
            attachment.extension,
            file_name=attachment.file_name,
            caption=text,
        )
