"""
Wassenger WhatsApp API Client

Sends text and media messages through the Wassenger REST API, downloads
inbound media, and verifies webhook signatures.

API Reference: https://app.wassenger.com/docs
"""

import re
import hmac
import hashlib
import logging
from typing import Optional, Dict, Any
import httpx

from ... import config

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4096


class WassengerClientError(Exception):
    """Exception raised for Wassenger API errors"""
    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to E.164 (`+<digits>`).

    Returns None when fewer than 10 digits remain after stripping
    formatting characters.
    """
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if len(digits) < 10:
        return None
    return f"+{digits}"


class WassengerClient:
    """
    Client for the Wassenger API.

    Usage:
        client = WassengerClient()
        await client.send_text("+6591234567", "Hello!")
    """

    def __init__(
        self,
        api_key: str = None,
        device_id: str = None,
        base_url: str = None,
        transport: httpx.AsyncBaseTransport = None
    ):
        self.api_key = api_key or config.wassenger_api_key()
        self.device_id = device_id or config.wassenger_device_id()
        self.base_url = (base_url or config.wassenger_api_url()).rstrip("/")
        self._transport = transport

        if not self.api_key:
            logger.warning("Wassenger credentials not configured. Set WASSENGER_API_KEY")

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Token": self.api_key or "",
            "Content-Type": "application/json"
        }

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=30.0, transport=self._transport)

    async def _post_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send a message payload to Wassenger.

        Raises:
            WassengerClientError: If the API key is missing or the API returns an error
        """
        if not self.api_key:
            raise WassengerClientError("Wassenger credentials not configured")

        if self.device_id:
            payload["device"] = self.device_id

        async with self._http() as client:
            response = await client.post(
                f"{self.base_url}/messages",
                headers=self._get_headers(),
                json=payload
            )

            try:
                result = response.json()
            except ValueError:
                result = {"raw": response.text}

            if response.status_code >= 400:
                error_msg = result.get("message") or result.get("error") or "Unknown error"
                logger.error(f"Wassenger API error ({response.status_code}): {error_msg}")
                raise WassengerClientError(
                    error_msg,
                    status_code=response.status_code,
                    response=result
                )

            return result

    async def send_text(self, recipient: str, message: str) -> Dict[str, Any]:
        """
        Send a text message.

        Args:
            recipient: Phone number in international format
            message: Message text (truncated to 4096 chars)

        Returns:
            API response with message ID
        """
        if len(message) > MAX_TEXT_LENGTH:
            message = message[:MAX_TEXT_LENGTH - 3] + "..."
            logger.warning(f"Message truncated to {MAX_TEXT_LENGTH} chars for {recipient}")

        result = await self._post_message({"phone": recipient, "message": message})
        logger.info(f"Sent text message to {recipient}: id={result.get('id')}")
        return result

    async def send_media(self, recipient: str, media_url: str, caption: str = "") -> Dict[str, Any]:
        """
        Send a media message by URL.

        Args:
            recipient: Phone number in international format
            media_url: Publicly reachable URL of the media file
            caption: Optional caption
        """
        result = await self._post_message({
            "phone": recipient,
            "media": {"url": media_url},
            "caption": caption,
        })
        logger.info(f"Sent media message to {recipient}: id={result.get('id')}")
        return result

    async def fetch_bytes(self, url: str) -> bytes:
        """Download an inbound media file and return its raw bytes."""
        async with self._http() as client:
            response = await client.get(url, headers={"Token": self.api_key or ""})
            if response.status_code >= 400:
                logger.error(f"Media download failed ({response.status_code}) for {url}")
                raise WassengerClientError(
                    "Media download failed",
                    status_code=response.status_code
                )
            return response.content


def verify_signature(signature: Optional[str], raw_body: bytes, secret: Optional[str]) -> bool:
    """
    Verify an inbound webhook's HMAC-SHA256 signature.

    Args:
        signature: Header value, hex digest with an optional "sha256=" prefix
        raw_body: Raw request body bytes
        secret: Shared webhook secret

    Returns:
        True if the signature matches
    """
    if not secret or not signature:
        return False

    if signature.startswith("sha256="):
        signature = signature[7:]

    computed_signature = hmac.new(
        secret.encode("utf-8"),
        raw_body,
        hashlib.sha256
    ).hexdigest()

    return hmac.compare_digest(signature.strip().lower(), computed_signature)
