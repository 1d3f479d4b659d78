"""
Z-API Webhook Updater Script
============================
Points every Z-API webhook (received, status, presence, connect) at this
backend. Detects an ngrok tunnel when no URL is given.

Usage:
    Development (ngrok): python scripts/update_zapi_webhook.py
    Production:          python scripts/update_zapi_webhook.py --url https://your-domain.com
"""

import asyncio
import os
import sys
from typing import Optional

import httpx
from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.modules.whatsapp_inbox.services.zapi_client import ZAPIClient
from app.shared.utils.exceptions import ProviderError, ProviderNotConfiguredError

# Webhook endpoint path on our backend
WEBHOOK_PATH = "/api/webhooks/zapi"

NGROK_API_URL = "http://localhost:4040/api/tunnels"


def get_ngrok_url() -> Optional[str]:
    """Detect current ngrok tunnel URL."""
    try:
        response = httpx.get(NGROK_API_URL, timeout=5)
        for tunnel in response.json().get("tunnels", []):
            if tunnel.get("public_url", "").startswith("https"):
                return tunnel["public_url"]
    except (httpx.HTTPError, ValueError) as e:
        print(f"⚠️ Could not detect ngrok: {e}")
    return None


def resolve_webhook_url(base_url: Optional[str]) -> Optional[str]:
    if base_url:
        print(f"🌐 Using production URL: {base_url}")
        return f"{base_url.rstrip('/')}{WEBHOOK_PATH}"

    ngrok_url = get_ngrok_url()
    if not ngrok_url:
        print("❌ No ngrok tunnel found. Start ngrok first: ngrok http 8000")
        return None
    print(f"🔗 Using ngrok URL: {ngrok_url}")
    return f"{ngrok_url}{WEBHOOK_PATH}"


async def update_webhook(base_url: Optional[str] = None) -> bool:
    """
    Register the webhook URL with Z-API.

    Args:
        base_url: Override URL (for production). If None, uses ngrok.
    """
    webhook_url = resolve_webhook_url(base_url)
    if not webhook_url:
        return False

    print(f"📡 Webhook endpoint: {webhook_url}")
    print("\n⏳ Updating Z-API webhooks...")

    async with httpx.AsyncClient(timeout=30.0) as http_client:
        client = ZAPIClient(http_client=http_client)
        try:
            await client.update_webhooks(webhook_url, notify_sent_by_me=True)
        except ProviderNotConfiguredError:
            print("❌ Missing Z-API configuration in .env")
            print("   Required: ZAPI_INSTANCE_ID, ZAPI_TOKEN (and ZAPI_CLIENT_TOKEN if enabled)")
            return False
        except ProviderError as e:
            print(f"\n❌ Failed: {e.message} {e.detail or ''}")
            return False

    print("\n✅ SUCCESS! Webhooks updated.")
    print(f"   📡 URL: {webhook_url}")
    return True


def main():
    print("=" * 50)
    print("📱 Z-API WEBHOOK UPDATER")
    print("=" * 50)

    production_url = None
    if len(sys.argv) > 1:
        if sys.argv[1] == "--url" and len(sys.argv) > 2:
            production_url = sys.argv[2]
        elif sys.argv[1].startswith("http"):
            production_url = sys.argv[1]

    success = asyncio.run(update_webhook(production_url))

    print("=" * 50)
    if success:
        print("\n💡 Remember: deliveries must carry ZAPI_WEBHOOK_TOKEN in a header.")
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
