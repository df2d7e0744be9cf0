import logging
from typing import Any, Dict, Optional

from lib.zapi_client import ZAPIClient

logger = logging.getLogger(__name__)

class MessagingService:
    """Sends bot output over WhatsApp and keeps the transcript in step with it."""

    def __init__(self, zapi_client: ZAPIClient, storage_service=None):
        self.client = zapi_client
        self.storage = storage_service
        logger.info("Messaging service initialized")

    async def send_message(self, phone: str, message: str, client_id: Optional[str] = None) -> Dict[str, Any]:
        """Send a WhatsApp text and log it as an assistant message"""
        try:
            logger.info(f"Sending message to {phone}: {message[:40]}...")
            receipt = await self.client.send_text(phone, message)
            logger.info(f"Message sent successfully: {receipt.get('messageId') or receipt.get('id')}")
        except Exception as e:
            logger.error(f"Failed to send message: {str(e)}")
            raise

        if client_id and self.storage:
            try:
                await self.storage.store_chat_message(client_id, 'assistant', message)
            except Exception as e:
                # The user already has the message; only the transcript is behind
                logger.error(f"Failed to store assistant message for {client_id}: {str(e)}")

        return receipt

    async def send_document(self, phone: str, url: str, filename: str) -> Dict[str, Any]:
        try:
            logger.info(f"Sending document {filename} to {phone}")
            return await self.client.send_document(phone, url, filename)
        except Exception as e:
            logger.error(f"Failed to send document: {str(e)}")
            raise

    async def send_error_message(self, phone: str, message: str, client_id: Optional[str] = None) -> None:
        """Send error message"""
        try:
            await self.send_message(phone, message, client_id)
        except Exception as e:
            logger.error(f"Failed to send error message: {str(e)}")
            # Don't raise here to avoid error cascade

    async def set_typing(self, phone: str, is_typing: bool) -> None:
        try:
            await self.client.send_typing(phone, is_typing)
        except Exception as e:
            logger.warning(f"Failed to update typing status for {phone}: {str(e)}")
