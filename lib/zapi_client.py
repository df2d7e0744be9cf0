import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from lib.error_handler import ConfigurationError, DependencyRejected, DependencyTimeout

logger = logging.getLogger(__name__)

class ZAPIClient:
    """Async client for the Z-API WhatsApp gateway."""

    def __init__(self, base_url: str, client_token: str, timeout: float = 30.0):
        if not base_url:
            logger.error("ZAPI_URL is not configured")
            raise ConfigurationError("ZAPI_URL not configured")
        if not client_token:
            logger.error("ZAPI_CLIENT_TOKEN is not configured")
            raise ConfigurationError("ZAPI_CLIENT_TOKEN not configured")
        self.base_url = base_url.rstrip('/')
        self.client_token = client_token
        self.timeout = timeout

    @property
    def headers(self) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'Client-Token': self.client_token,
        }

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as session:
                async with session.request(method, url, json=payload) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        logger.error(f"Z-API {method} {path} returned {response.status}: {error_text}")
                        raise DependencyRejected(f"Z-API returned {response.status} for {path}")
                    return await response.json(content_type=None) or {}
        except asyncio.TimeoutError:
            logger.error(f"Z-API {method} {path} timed out after {self.timeout}s")
            raise DependencyTimeout(f"Z-API request to {path} timed out")
        except aiohttp.ClientError as e:
            logger.error(f"Z-API {method} {path} failed: {str(e)}")
            raise DependencyRejected(f"Z-API request to {path} failed: {str(e)}")

    async def send_text(self, phone: str, message: str) -> Dict[str, Any]:
        return await self._request('POST', '/send-text', {'phone': phone, 'message': message})

    async def send_image(self, phone: str, image_url: str, caption: Optional[str] = None) -> Dict[str, Any]:
        payload = {'phone': phone, 'image': image_url}
        if caption:
            payload['caption'] = caption
        return await self._request('POST', '/send-image', payload)

    async def send_document(self, phone: str, document_url: str, filename: Optional[str] = None) -> Dict[str, Any]:
        payload = {'phone': phone, 'document': document_url}
        if filename:
            payload['fileName'] = filename
        # Z-API picks the document type from the path extension
        return await self._request('POST', '/send-document/pdf', payload)

    async def send_audio(self, phone: str, audio_url: str) -> Dict[str, Any]:
        return await self._request('POST', '/send-audio', {'phone': phone, 'audio': audio_url})

    async def send_typing(self, phone: str, is_typing: bool) -> Dict[str, Any]:
        return await self._request('POST', '/typing', {'phone': phone, 'typing': is_typing})

    async def get_message_status(self, message_id: str) -> Dict[str, Any]:
        return await self._request('GET', f'/message-status/{message_id}')

    async def mark_message_read(self, message_id: str) -> Dict[str, Any]:
        return await self._request('POST', '/read-message', {'messageId': message_id})
