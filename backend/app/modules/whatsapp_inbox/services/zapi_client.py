"""
Z-API Client Service
Low-level API wrapper for the Z-API WhatsApp gateway.

API Documentation: https://developer.z-api.io/

Handles:
- Authentication (instance id + token in the path, Client-Token header)
- Send text / image / audio / video / document (with retry)
- Batch WhatsApp-existence check for phone numbers
- Contact metadata and profile picture
- Delete message, modify chat (read / unread / clear)
- Webhook URL registration

Retry Strategy:
- Max 3 attempts with exponential backoff (1s, 2s, 4s... capped)
- Only retries on: Timeout, Connection errors, 5xx server errors
- Does NOT retry on: 4xx client errors

Every failure that survives the retry policy surfaces as ProviderError.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from app.shared.core.config import settings
from app.shared.core.constants import TIMEOUT_ZAPI_API, TIMEOUT_ZAPI_MEDIA
from app.shared.utils.exceptions import ProviderError, ProviderNotConfiguredError
from app.shared.utils.http_client import http_client_manager

logger = logging.getLogger("zapi_client")

# Retry settings
MAX_RETRY_ATTEMPTS = 3
RETRY_MIN_WAIT_SECONDS = 1
RETRY_MAX_WAIT_SECONDS = 8


# ============================================
# CUSTOM EXCEPTIONS FOR RETRY LOGIC
# ============================================

class ZAPIRetryableError(Exception):
    """Exception that indicates the request should be retried."""
    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Server error: {status_code}")


class ZAPINonRetryableError(Exception):
    """Exception that indicates the request should NOT be retried (client error)."""
    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Client error: {status_code}")


# ============================================
# RETRY DECORATOR
# ============================================

def zapi_retry():
    """
    Retry decorator for Z-API calls.

    Retries on:
    - ZAPIRetryableError (server errors)
    - httpx.TimeoutException
    - httpx.ConnectError

    Does NOT retry on:
    - ZAPINonRetryableError (4xx client errors)
    - Other exceptions
    """
    return retry(
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        wait=wait_exponential(
            multiplier=1,
            min=RETRY_MIN_WAIT_SECONDS,
            max=RETRY_MAX_WAIT_SECONDS
        ),
        retry=retry_if_exception_type((
            ZAPIRetryableError,
            httpx.TimeoutException,
            httpx.ConnectError,
        )),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


@dataclass
class SendResult:
    """What the provider tells us about an accepted message."""
    message_id: Optional[str]
    zaap_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class ZAPIClient:
    """
    Z-API client for WhatsApp messaging.

    Pass http_client to use a dedicated httpx.AsyncClient (tests use one
    backed by httpx.MockTransport); otherwise the shared pooled client is used.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        instance_id: Optional[str] = None,
        token: Optional[str] = None,
        client_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.ZAPI_BASE_URL).rstrip('/')
        self.instance_id = instance_id if instance_id is not None else settings.ZAPI_INSTANCE_ID
        self.token = token if token is not None else settings.ZAPI_TOKEN
        self.client_token = client_token if client_token is not None else settings.ZAPI_CLIENT_TOKEN
        self._http_client = http_client

        if not self.is_configured():
            logger.warning("ZAPI_INSTANCE_ID / ZAPI_TOKEN not configured in .env")

    def is_configured(self) -> bool:
        """Check if Z-API credentials are present."""
        return bool(self.base_url and self.instance_id and self.token)

    def _client(self) -> httpx.AsyncClient:
        return self._http_client or http_client_manager.get_client()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/instances/{self.instance_id}/token/{self.token}/{path.lstrip('/')}"

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.client_token:
            headers["Client-Token"] = self.client_token
        return headers

    # ============================================
    # TRANSPORT
    # ============================================

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: float = TIMEOUT_ZAPI_API,
    ) -> Any:
        """
        Perform a call and translate every failure into ProviderError.
        """
        if not self.is_configured():
            raise ProviderNotConfiguredError("Z-API is not configured")

        try:
            return await self._request_with_retry(method, path, json, params, timeout)
        except ZAPINonRetryableError as e:
            logger.error(f"Z-API {method} {path} rejected: status={e.status_code} detail={e.detail[:200]}")
            raise ProviderError(
                f"Z-API rejected the request ({e.status_code})",
                provider_status=e.status_code,
                detail=e.detail
            ) from e
        except ZAPIRetryableError as e:
            logger.error(f"Z-API {method} {path} failed after {MAX_RETRY_ATTEMPTS} attempts: status={e.status_code}")
            raise ProviderError(
                f"Z-API unavailable ({e.status_code})",
                provider_status=e.status_code,
                detail=e.detail
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Z-API {method} {path} transport error after retries: {e}")
            raise ProviderError(f"Z-API request failed: {e.__class__.__name__}") from e

    @zapi_retry()
    async def _request_with_retry(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
        timeout: float,
    ) -> Any:
        """Internal method with retry decorator. Raises for retry logic to work."""
        response = await self._client().request(
            method,
            self._url(path),
            headers=self._get_headers(),
            json=json,
            params=params,
            timeout=timeout,
        )

        if 200 <= response.status_code < 300:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise ZAPINonRetryableError(response.status_code, "Malformed JSON response") from e

        if response.status_code >= 500:
            logger.warning(f"Z-API server error {response.status_code}, will retry...")
            raise ZAPIRetryableError(response.status_code, response.text)

        raise ZAPINonRetryableError(response.status_code, response.text)

    @staticmethod
    def _send_result(data: Any) -> SendResult:
        if not isinstance(data, dict):
            raise ProviderError("Z-API returned an unexpected send response")
        message_id = data.get("messageId") or data.get("id")
        if not message_id:
            logger.warning(f"Z-API send response without message id: {data}")
        return SendResult(message_id=message_id, zaap_id=data.get("zaapId"), raw=data)

    # ============================================
    # MESSAGE OPERATIONS
    # ============================================

    async def send_text(self, phone: str, message: str) -> SendResult:
        data = await self._request("POST", "send-text", json={"phone": phone, "message": message})
        logger.info(f"Text message sent: phone={phone}")
        return self._send_result(data)

    async def send_image(self, phone: str, image: str, caption: Optional[str] = None) -> SendResult:
        """image: URL or base64 data URL."""
        payload = {"phone": phone, "image": image}
        if caption:
            payload["caption"] = caption
        data = await self._request("POST", "send-image", json=payload, timeout=TIMEOUT_ZAPI_MEDIA)
        logger.info(f"Image sent: phone={phone}")
        return self._send_result(data)

    async def send_audio(self, phone: str, audio: str) -> SendResult:
        data = await self._request("POST", "send-audio", json={"phone": phone, "audio": audio}, timeout=TIMEOUT_ZAPI_MEDIA)
        logger.info(f"Audio sent: phone={phone}")
        return self._send_result(data)

    async def send_video(self, phone: str, video: str, caption: Optional[str] = None) -> SendResult:
        payload = {"phone": phone, "video": video}
        if caption:
            payload["caption"] = caption
        data = await self._request("POST", "send-video", json=payload, timeout=TIMEOUT_ZAPI_MEDIA)
        logger.info(f"Video sent: phone={phone}")
        return self._send_result(data)

    async def send_document(
        self,
        phone: str,
        document: str,
        extension: str,
        file_name: Optional[str] = None,
        caption: Optional[str] = None
    ) -> SendResult:
        """Z-API needs the file extension in the path (send-document/pdf)."""
        payload = {"phone": phone, "document": document}
        if file_name:
            payload["fileName"] = file_name
        if caption:
            payload["caption"] = caption
        data = await self._request("POST", f"send-document/{extension}", json=payload, timeout=TIMEOUT_ZAPI_MEDIA)
        logger.info(f"Document sent: phone={phone} extension={extension}")
        return self._send_result(data)

    async def delete_message(self, message_id: str, phone: str, owner: bool = True) -> None:
        """owner=True deletes a message we sent; False deletes one we received."""
        await self._request(
            "DELETE",
            "messages",
            params={"messageId": message_id, "phone": phone, "owner": str(owner).lower()}
        )
        logger.info(f"Message deleted at provider: phone={phone} message_id={message_id}")

    # ============================================
    # CONTACT OPERATIONS
    # ============================================

    async def phone_exists_batch(self, phones: List[str]) -> Dict[str, bool]:
        """
        Ask which numbers have WhatsApp.

        Returns:
            {input phone: exists} for every unique input phone.
        """
        unique = list(dict.fromkeys(p for p in phones if p))
        if not unique:
            return {}

        data = await self._request("POST", "phone-exists-batch", json={"phones": unique})
        if not isinstance(data, list):
            raise ProviderError("Z-API returned an unexpected phone-exists response")

        result = {phone: False for phone in unique}
        for item in data:
            if not isinstance(item, dict):
                continue
            input_phone = str(item.get("inputPhone") or item.get("phone") or "")
            if input_phone in result:
                result[input_phone] = bool(item.get("exists"))
        return result

    async def get_contact_metadata(self, phone: str) -> Dict[str, Any]:
        """Profile fields: name, notify, short, vname, about, imgUrl."""
        data = await self._request("GET", f"contacts/{phone}")
        return data if isinstance(data, dict) else {}

    async def get_profile_picture(self, phone: str) -> Optional[str]:
        data = await self._request("GET", "profile-picture", params={"phone": phone})
        if isinstance(data, dict):
            return data.get("link") or None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0].get("link") or None
        return None

    async def modify_chat(self, phone: str, action: str) -> None:
        """action: read | unread | clear | delete"""
        await self._request("POST", "modify-chat", json={"phone": phone, "action": action})
        logger.info(f"Chat modified at provider: phone={phone} action={action}")

    # ============================================
    # WEBHOOK OPERATIONS
    # ============================================

    async def update_webhooks(self, url: str, notify_sent_by_me: bool = True) -> None:
        """Point every Z-API webhook (received, status, presence...) at url."""
        await self._request(
            "PUT",
            "update-every-webhooks",
            json={"value": url, "notifySentByMe": notify_sent_by_me}
        )
        logger.info(f"Z-API webhooks updated: url={url}")


# Singleton instance
zapi_client = ZAPIClient()


def get_zapi_client() -> ZAPIClient:
    """FastAPI dependency (overridable in tests)."""
    return zapi_client
