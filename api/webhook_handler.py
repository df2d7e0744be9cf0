import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

from lib.error_handler import ValidationError

logger = logging.getLogger(__name__)

# Delivery receipts are posted to the same webhook as inbound messages
IGNORED_STATUSES = {'SENT', 'DELIVERED', 'READ', 'PLAYED'}

class InboundMessage(BaseModel):
    phone: str
    text: str

class WebhookHandler:
    def __init__(self, conversation_handler):
        self.conversations = conversation_handler

    def parse(self, payload: Any) -> Optional[InboundMessage]:
        """
        Normalize a gateway payload. Returns None for events that should be
        acknowledged and dropped; raises ValidationError when there is no sender.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Webhook payload is not a JSON object")

        message: Dict[str, Any] = payload
        if isinstance(payload.get('message'), dict):
            message = payload['message']

        # Our own sends come back through the webhook
        if self._flag(payload, message, 'fromMe') or self._flag(payload, message, 'fromApi'):
            logger.info("Ignoring message sent by the bot")
            return None

        status = message.get('status') or payload.get('status')
        if status in IGNORED_STATUSES or message.get('ack'):
            logger.info(f"Ignoring status webhook: {status or 'ACK'}")
            return None

        message_type = message.get('messageType')
        if message_type and message_type != 'textMessage':
            logger.info(f"Ignoring message of type {message_type}")
            return None

        phone = message.get('phone') or message.get('from')
        if not phone:
            raise ValidationError("Sender phone not found in webhook payload")

        text = message.get('text')
        if isinstance(text, dict):
            text = text.get('message')
        if not isinstance(text, str) or not text:
            text = message.get('body')

        return InboundMessage(phone=str(phone), text=text if isinstance(text, str) else '')

    @staticmethod
    def _flag(payload: Dict[str, Any], message: Dict[str, Any], name: str) -> bool:
        return bool(message.get(name) or payload.get(name))

    async def handle(self, payload: Any) -> Tuple[str, int]:
        """Handle one webhook call and return the plain-text body and HTTP status"""
        try:
            inbound = self.parse(payload)
        except ValidationError as e:
            logger.error(f"Rejected webhook: {e.message}")
            return "Número do remetente não encontrado", e.status_code

        if inbound is None:
            return "Evento ignorado", 200

        if not inbound.text.strip():
            logger.info(f"Ignoring empty message from {inbound.phone}")
            return "Mensagem vazia ignorada", 200

        logger.info(f"Message from {inbound.phone}: {inbound.text[:40]}")
        await self.conversations.handle_message(inbound.phone, inbound.text)
        return "Webhook processado", 200
