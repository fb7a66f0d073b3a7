# file: relay/sender.py
import logging
from typing import Any, Dict, Optional
import aiohttp
from leadfactory.config import get_settings

log = logging.getLogger("relay")


class SendError(RuntimeError):
    """The relay or its provider refused a message"""


class SenderClient:
    """HTTP client for the sender relay (`/send/email`, `/send/whatsapp`)"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None):
        s = get_settings()
        self.base_url = (base_url or s.sender_base).rstrip("/")
        self.timeout = timeout or s.sender_timeout_seconds
        self.session = None

    async def connect(self):
        if not self.session:
            self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _post(self, path: str, payload: Dict[str, Any], what: str) -> Dict[str, Any]:
        if not self.session:
            await self.connect()
        async with self.session.post(f"{self.base_url}{path}", json=payload) as response:
            try:
                data = await response.json(content_type=None)
            except ValueError:
                data = {}
            if not isinstance(data, dict):
                data = {}
            if response.status >= 400 or not data.get("ok"):
                error = data.get("error") or f"{what} send failed"
                log.error("relay %s returned %s: %s", path, response.status, error)
                raise SendError(str(error))
            return data

    async def send_email(self, to: str, subject: str, body: str, html: Optional[str] = None) -> Dict[str, Any]:
        payload = {"to": to, "subject": subject, "body": body}
        if html is not None:
            payload["html"] = html
        return await self._post("/send/email", payload, "Email")

    async def send_whatsapp(self, to_e164: str, body: str) -> Dict[str, Any]:
        return await self._post("/send/whatsapp", {"toE164": to_e164, "body": body}, "WhatsApp")
