import logging
import re
from typing import Optional

from api import messages
from api.models import Client, Conversation, ConversationState, ProfileContext
from lib.client_locks import ClientLocks
from lib.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

# Payment is confirmed by the client's own words until a payment provider is wired in
PAYMENT_CONFIRMATION = re.compile(r'pag(uei|amento)|comprovativo|pago|feito|transfer', re.IGNORECASE)

SALUTATION = re.compile(
    r"^\s*((ol[aá]|oi|bom dia|boa tarde|boa noite|hello|hi|hey|hola)\b[\s!.,?]*)+",
    re.IGNORECASE
)
NAME_INTRO = re.compile(
    r"(eu\s+)?(sou\s+(o|a)\s+|sou\s+|chamo-me\s+|me\s+chamo\s+|(o\s+)?meu\s+nome\s+[ée]\s+)",
    re.IGNORECASE
)

class ConversationHandler:
    """Per-client intake and fulfillment state machine."""

    def __init__(
        self,
        storage_service,
        messaging_service,
        plan_author,
        plan_pipeline,
        client_locks: Optional[ClientLocks] = None,
        payment_link: str = ''
    ):
        self.storage = storage_service
        self.messaging = messaging_service
        self.plan_author = plan_author
        self.pipeline = plan_pipeline
        self.locks = client_locks or ClientLocks()
        self.payment_link = payment_link
        self._handlers = {
            ConversationState.START: self.handle_start,
            ConversationState.WAITING_FOR_INFO: self.handle_waiting_for_info,
            ConversationState.WAITING_FOR_PAYMENT: self.handle_waiting_for_payment,
            ConversationState.PAID: self.handle_paid,
            ConversationState.QUESTIONS: self.handle_questions,
        }

    async def handle_message(self, phone: str, text: str) -> None:
        """Process one inbound text. Messages from the same phone are handled one at a time."""
        async with self.locks.hold(phone):
            await self._process(phone, text)

    async def _process(self, phone: str, text: str) -> None:
        client = await self.storage.get_or_create_client(phone)
        conversation = await self.storage.get_active_conversation(client.id)
        state = conversation.state if conversation else ConversationState.START
        logger.info(f"Client {client.id} ({phone}) is in state {state.value}")

        # Q&A logs the question itself, after reading the history it answers from
        if not (client.ai_enabled and state is ConversationState.QUESTIONS):
            await self._record_inbound(client, text)

        if not client.ai_enabled:
            logger.info(f"AI disabled for client {client.id}, leaving message for a human")
            return

        try:
            await self._handlers[state](phone, text, client, conversation)
        except Exception as e:
            message = ErrorHandler.handle_conversation_error(e, phone, state.value)
            await self.messaging.send_error_message(phone, message, client.id)

    async def _record_inbound(self, client: Client, text: str) -> None:
        try:
            await self.storage.store_chat_message(client.id, 'user', text)
        except Exception as e:
            logger.error(f"Failed to store inbound message for {client.id}: {str(e)}")

    async def handle_start(self, phone: str, text: str, client: Client, conversation: Optional[Conversation]) -> None:
        name = self._strip_salutation(text)

        # Nothing is stored until the reply went out, so a failed send leaves the client in START
        if not name:
            await self.messaging.send_message(phone, messages.GREETING, client.id)
            conversation = await self.storage.create_conversation(client.id, ConversationState.WAITING_FOR_INFO)
        else:
            context = ProfileContext(name=name)
            await self.messaging.send_message(phone, messages.FIELD_PROMPTS['age'].format(name=name), client.id)
            conversation = await self.storage.create_conversation(client.id, ConversationState.WAITING_FOR_INFO, context)
        logger.info(f"Started conversation {conversation.id} for client {client.id}")

    @staticmethod
    def _strip_salutation(text: str) -> str:
        """What is left of a first message once a leading greeting and "sou o" are removed."""
        match = SALUTATION.match(text)
        name = text[match.end():] if match else text
        intro = NAME_INTRO.match(name)
        if intro:
            name = name[intro.end():]
        return name.strip(' \t\n!.,?')

    async def handle_waiting_for_info(self, phone: str, text: str, client: Client, conversation: Conversation) -> None:
        context = conversation.context.model_copy()
        field = context.next_missing_field()
        if field is None:
            await self.messaging.send_message(phone, messages.INFO_ALREADY_COLLECTED, client.id)
            return

        if field == 'name':
            text = self._strip_salutation(text) or text
        setattr(context, field, text)
        next_field = context.next_missing_field()

        # The answer is only kept once the next prompt was accepted by the gateway
        if next_field is not None:
            prompt = messages.FIELD_PROMPTS[next_field].format(name=context.name)
            await self.messaging.send_message(phone, prompt, client.id)
            await self.storage.update_conversation(conversation.id, context=context)
            return

        await self.messaging.send_message(
            phone,
            messages.PAYMENT_REQUEST.format(name=context.name, link=self.payment_link),
            client.id
        )
        await self.storage.update_conversation(
            conversation.id,
            state=ConversationState.WAITING_FOR_PAYMENT,
            context=context
        )
        logger.info(f"Profile complete for client {client.id}, waiting for payment")
        await self.storage.update_client(client.id, context.to_client_fields())

    async def handle_waiting_for_payment(self, phone: str, text: str, client: Client, conversation: Conversation) -> None:
        if not PAYMENT_CONFIRMATION.search(text):
            await self.messaging.send_message(
                phone,
                messages.PAYMENT_REMINDER.format(link=self.payment_link),
                client.id
            )
            return

        await self.messaging.send_message(phone, messages.PAYMENT_CONFIRMED, client.id)
        await self.storage.update_conversation(conversation.id, state=ConversationState.PAID)
        conversation.state = ConversationState.PAID
        logger.info(f"Payment confirmed for client {client.id}")
        await self.handle_paid(phone, text, client, conversation)

    async def handle_paid(self, phone: str, text: str, client: Client, conversation: Conversation) -> None:
        await self.pipeline.run(phone, client, conversation)

    async def handle_questions(self, phone: str, text: str, client: Client, conversation: Conversation) -> None:
        if not text.strip():
            await self.messaging.send_message(phone, messages.EMPTY_QUESTION, client.id)
            return

        await self.messaging.set_typing(phone, True)
        try:
            history = await self.storage.get_chat_history(client.id)
            await self._record_inbound(client, text)
            answer = await self.plan_author.answer_question(
                conversation.context,
                client.plan_text,
                text,
                history
            )
        except Exception as e:
            message = ErrorHandler.handle_question_error(e, phone)
            await self.messaging.send_error_message(phone, message, client.id)
            return
        finally:
            await self.messaging.set_typing(phone, False)

        await self.messaging.send_message(phone, answer, client.id)
