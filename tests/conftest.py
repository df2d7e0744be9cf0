import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from api.conversation import ConversationHandler
from api.models import ChatMessage, Client, Conversation, ConversationState, ProfileContext
from api.services.documents import PlanDocumentService
from api.services.fulfillment import PlanPipeline
from api.services.messaging import MessagingService
from api.services.plan_author import PlanAuthorService
from api.webhook_handler import WebhookHandler
from lib.client_locks import ClientLocks
from lib.error_handler import DependencyRejected
from lib.openai_client import OpenAIClient
from lib.zapi_client import ZAPIClient

TEST_PHONE = "351911111111"
TEST_PLAN = "Treino: 3x por semana, agachamentos 3x12.\nAlimentação: mais proteína."
FULL_PROFILE = {
    'name': 'João Silva',
    'age': '30',
    'goal': 'ganhar massa',
    'gender': 'masculino',
    'height': '180',
    'weight': '75',
}


class FakeStorage:
    """In-memory stand-in for StorageService. Yields on every call like the real one."""

    def __init__(self):
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.clients: Dict[str, Dict[str, Any]] = {}
        self.conversations: List[Dict[str, Any]] = []
        self.messages: List[Dict[str, Any]] = []
        self.uploads: Dict[str, bytes] = {}
        self.fail_upload = False
        self.public_urls = True

    def _next_id(self) -> str:
        return str(next(self._ids))

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    # Test helpers

    def seed(self, phone: str, state: ConversationState, context: Optional[Dict[str, Any]] = None, **client_fields) -> Client:
        client_id = self._next_id()
        self.clients[client_id] = {'id': client_id, 'phone': phone, 'paid': False, 'ai_enabled': True, **client_fields}
        self.conversations.append({
            'id': self._next_id(),
            'client_id': client_id,
            'state': state.value,
            'context': dict(context or {}),
            'created_at': self._tick(),
        })
        return Client(**self.clients[client_id])

    def client_row(self, phone: str) -> Optional[Dict[str, Any]]:
        return next((row for row in self.clients.values() if row['phone'] == phone), None)

    def latest_conversation(self, client_id: str) -> Optional[Dict[str, Any]]:
        rows = [row for row in self.conversations if row['client_id'] == client_id]
        return rows[-1] if rows else None

    def transcript(self, client_id: str) -> List[tuple]:
        return [(m['role'], m['content']) for m in self.messages if m['client_id'] == client_id]

    # StorageService interface

    async def get_client_by_phone(self, phone: str) -> Optional[Client]:
        await asyncio.sleep(0)
        row = self.client_row(phone)
        return Client(**row) if row else None

    async def get_or_create_client(self, phone: str) -> Client:
        client = await self.get_client_by_phone(phone)
        if client:
            return client
        await asyncio.sleep(0)
        client_id = self._next_id()
        self.clients[client_id] = {'id': client_id, 'phone': phone, 'paid': False, 'ai_enabled': True}
        return Client(**self.clients[client_id])

    async def update_client(self, client_id: str, fields: Dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self.clients[client_id].update(fields)

    async def save_plan_text(self, client_id: str, plan_text: str) -> None:
        await self.update_client(client_id, {'plan_text': plan_text})

    async def mark_client_paid(self, client_id: str, plan_url: str, context: ProfileContext) -> None:
        await self.update_client(client_id, {**context.to_client_fields(), 'paid': True, 'plan_url': plan_url})

    async def get_active_conversation(self, client_id: str) -> Optional[Conversation]:
        await asyncio.sleep(0)
        row = self.latest_conversation(client_id)
        return Conversation(**row) if row else None

    async def create_conversation(self, client_id: str, state: ConversationState, context: Optional[ProfileContext] = None) -> Conversation:
        await asyncio.sleep(0)
        row = {
            'id': self._next_id(),
            'client_id': client_id,
            'state': state.value,
            'context': (context or ProfileContext()).to_record(),
            'created_at': self._tick(),
        }
        self.conversations.append(row)
        return Conversation(**row)

    async def update_conversation(self, conversation_id: str, state: Optional[ConversationState] = None, context: Optional[ProfileContext] = None) -> None:
        await asyncio.sleep(0)
        row = next(row for row in self.conversations if row['id'] == conversation_id)
        if state is not None:
            row['state'] = state.value
        if context is not None:
            row['context'] = context.to_record()

    async def store_chat_message(self, client_id: str, role: str, content: str) -> None:
        await asyncio.sleep(0)
        self.messages.append({
            'id': self._next_id(),
            'client_id': client_id,
            'role': role,
            'content': content,
            'created_at': self._tick(),
        })

    async def get_chat_history(self, client_id: str) -> List[ChatMessage]:
        await asyncio.sleep(0)
        return [
            ChatMessage(**row) for row in self.messages
            if row['client_id'] == client_id and row['role'] in ('user', 'assistant')
        ]

    async def upload_file(self, path: str, data: bytes, content_type: str = 'application/pdf') -> None:
        await asyncio.sleep(0)
        if self.fail_upload:
            raise DependencyRejected("Supabase upload file failed: bucket not found")
        self.uploads[path] = data

    async def get_public_url(self, path: str) -> Optional[str]:
        await asyncio.sleep(0)
        if not self.public_urls:
            return None
        return f"https://storage.example.com/plans/{path}"


@pytest.fixture
def storage():
    return FakeStorage()

@pytest.fixture
def zapi():
    client = MagicMock(spec=ZAPIClient)
    client.send_text.return_value = {'messageId': 'msg-1'}
    client.send_document.return_value = {'messageId': 'doc-1'}
    client.send_typing.return_value = {}
    return client

@pytest.fixture
def ai():
    client = MagicMock(spec=OpenAIClient)
    client.complete.return_value = TEST_PLAN
    return client

@pytest.fixture
def messaging(zapi, storage):
    return MessagingService(zapi_client=zapi, storage_service=storage)

@pytest.fixture
def plan_author(ai):
    return PlanAuthorService(openai_client=ai)

@pytest.fixture
def documents(storage):
    return PlanDocumentService(storage_service=storage)

@pytest.fixture
def pipeline(storage, plan_author, documents, messaging):
    return PlanPipeline(storage, plan_author, documents, messaging)

@pytest.fixture
def conversation_handler(storage, messaging, plan_author, pipeline):
    return ConversationHandler(
        storage_service=storage,
        messaging_service=messaging,
        plan_author=plan_author,
        plan_pipeline=pipeline,
        client_locks=ClientLocks(),
        payment_link="https://pay.example.com/fitai"
    )

@pytest.fixture
def webhook_handler(conversation_handler):
    return WebhookHandler(conversation_handler)

@pytest.fixture
def sent_texts(zapi):
    """Texts sent through the gateway so far, in order."""
    return lambda: [call.args[1] for call in zapi.send_text.await_args_list]
