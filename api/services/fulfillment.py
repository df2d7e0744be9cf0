import logging

from api import messages
from api.models import Client, Conversation, ConversationState
from lib.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

class PlanPipeline:
    """
    Generates, renders, publishes and delivers a client's plan once payment is confirmed.

    Each run starts from scratch: a failed run leaves the conversation in PAID
    so the client's next message triggers a full retry.
    """

    def __init__(self, storage_service, plan_author, document_service, messaging_service):
        self.storage = storage_service
        self.plan_author = plan_author
        self.documents = document_service
        self.messaging = messaging_service

    async def run(self, phone: str, client: Client, conversation: Conversation) -> bool:
        """Returns True when the plan reached the client and the conversation moved to QUESTIONS."""
        context = conversation.context
        if not context.is_complete:
            logger.error(f"Conversation {conversation.id} reached PAID without a complete profile")
            await self.messaging.send_error_message(phone, messages.MISSING_PROFILE, client.id)
            return False

        pdf_path = None
        await self.messaging.set_typing(phone, True)
        try:
            logger.info(f"Generating plan for client {client.id}")
            plan_text = await self.plan_author.generate_plan(context)
            await self.storage.save_plan_text(client.id, plan_text)

            pdf_path = await self.documents.render(context, plan_text)

            try:
                remote_path = await self.documents.upload(phone, pdf_path)
            except Exception as e:
                logger.error(f"Plan upload failed for client {client.id}: {str(e)}")
                await self.messaging.send_error_message(phone, messages.PLAN_GENERATION_FAILED, client.id)
                return False

            url = await self.documents.public_url(remote_path)
            if not url:
                logger.error(f"No public URL for {remote_path}")
                await self.messaging.send_error_message(phone, messages.PLAN_LINK_UNAVAILABLE, client.id)
                return False

            await self.messaging.send_message(phone, messages.PLAN_READY.format(url=url), client.id)
            await self._send_pdf(phone, url)

            await self.storage.mark_client_paid(client.id, url, context)
            await self.storage.update_conversation(conversation.id, state=ConversationState.QUESTIONS)
            logger.info(f"Conversation {conversation.id} moved to {ConversationState.QUESTIONS.value}")
            await self.messaging.send_message(phone, messages.QUESTIONS_INVITE, client.id)
            return True

        except Exception as e:
            message = ErrorHandler.handle_conversation_error(e, phone, ConversationState.PAID.value)
            await self.messaging.send_error_message(phone, message, client.id)
            return False

        finally:
            await self.messaging.set_typing(phone, False)
            self.documents.cleanup(pdf_path)

    async def _send_pdf(self, phone: str, url: str) -> None:
        # The link message already went out, so a failed attachment is not fatal
        try:
            await self.messaging.send_document(phone, url, messages.PLAN_FILENAME)
        except Exception as e:
            logger.warning(f"Could not attach plan PDF for {phone}: {str(e)}")
