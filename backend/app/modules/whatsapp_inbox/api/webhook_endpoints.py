"""
Z-API Webhook Endpoints

POST /api/webhooks/zapi
    200 {ok, outcome}  persisted / duplicate / empty / status_updated / ignored
    400                no sender phone in payload, or invalid JSON
    401                token missing or wrong (strict mode)
    403                host/path not mapped to a tenant
    500                secret not configured, or persistence failed after retries
                       (the provider redelivers)
GET /api/webhooks/zapi
    200 liveness ack for the provider's URL check
"""
import logging
from fastapi import APIRouter, HTTPException, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.tenancy.dependencies import TenantContext, get_webhook_tenant_context
from app.modules.whatsapp_inbox.schemas.inbox_schemas import WebhookResponse
from app.modules.whatsapp_inbox.services.webhook_auth import WebhookVerifier, get_client_ip
from app.modules.whatsapp_inbox.services.webhook_service import WebhookIngestionService
from app.shared.db.session import get_db

router = APIRouter()
logger = logging.getLogger("webhook_api")


# ============================================
# DEPENDENCIES
# ============================================

def get_webhook_verifier() -> WebhookVerifier:
    return WebhookVerifier.from_settings()


def verify_zapi_webhook(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
) -> bool:
    """Runs before tenant resolution and before any session is opened."""
    return verifier.verify(request.headers, get_client_ip(request))


def get_webhook_service(db: AsyncSession = Depends(get_db)) -> WebhookIngestionService:
    return WebhookIngestionService(db)


# ============================================
# ROUTES
# ============================================

@router.post("/zapi", response_model=WebhookResponse, summary="Z-API webhook handler")
async def zapi_webhook(
    request: Request,
    verified: bool = Depends(verify_zapi_webhook),
    tenant: TenantContext = Depends(get_webhook_tenant_context),
    service: WebhookIngestionService = Depends(get_webhook_service),
):
    """
    Handle incoming Z-API webhook events.

    Supported events:
    - ReceivedCallback: inbound (or fromMe) message, stored once per provider id
    - MessageStatusCallback: delivery/read receipts for stored messages
    - PresenceChatCallback: contact presence
    - Connected/DisconnectedCallback: acknowledged only
    """
    try:
        payload = await request.json()
    except ValueError as e:
        logger.error(f"Invalid webhook JSON payload: {str(e)}")
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook payload must be a JSON object")

    event_type = payload.get("type", "unknown")
    logger.info(f"Webhook received: type={event_type} verified={verified} host={tenant.host}")

    result = await service.handle_event(tenant.tenant_id, payload)
    return WebhookResponse(ok=True, **result)


@router.get("/zapi", summary="Z-API webhook liveness")
async def zapi_webhook_ack():
    return {"ok": True}
