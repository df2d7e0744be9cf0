import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from api.models import ChatMessage, Client, Conversation, ConversationState, ProfileContext
from lib.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

class StorageService:
    def __init__(self, supabase_client, plans_bucket: str = 'plans', timeout: float = 30.0):
        self.supabase = supabase_client
        self.plans_bucket = plans_bucket
        self.timeout = timeout
        self.clients_table = 'clients'
        self.conversations_table = 'conversations'
        self.messages_table = 'chat_messages'
        logger.info(f"Storage service initialized with bucket: {plans_bucket}")

    async def _execute(self, operation: str, call: Callable[[], Any]) -> Any:
        """Run a blocking Supabase call in an executor, bounded by the timeout."""
        try:
            loop = asyncio.get_running_loop()
            return await asyncio.wait_for(loop.run_in_executor(None, call), timeout=self.timeout)
        except Exception as e:
            logger.error(f"Supabase {operation} failed: {str(e)}")
            raise ErrorHandler.wrap(e, f"Supabase {operation}")

    # Clients

    async def get_client_by_phone(self, phone: str) -> Optional[Client]:
        result = await self._execute(
            'select client',
            lambda: self.supabase.table(self.clients_table)
                .select('*')
                .eq('phone', phone)
                .limit(1)
                .execute()
        )
        return Client(**result.data[0]) if result.data else None

    async def get_or_create_client(self, phone: str) -> Client:
        client = await self.get_client_by_phone(phone)
        if client:
            return client

        logger.info(f"Creating client for {phone}")
        result = await self._execute(
            'insert client',
            lambda: self.supabase.table(self.clients_table)
                .insert({'phone': phone, 'ai_enabled': True, 'paid': False})
                .execute()
        )
        return Client(**result.data[0])

    async def update_client(self, client_id: str, fields: Dict[str, Any]) -> None:
        data = {**fields, 'updated_at': _now()}
        await self._execute(
            'update client',
            lambda: self.supabase.table(self.clients_table)
                .update(data)
                .eq('id', client_id)
                .execute()
        )

    async def save_plan_text(self, client_id: str, plan_text: str) -> None:
        await self.update_client(client_id, {'plan_text': plan_text})

    async def mark_client_paid(self, client_id: str, plan_url: str, context: ProfileContext) -> None:
        await self.update_client(client_id, {
            **context.to_client_fields(),
            'paid': True,
            'plan_url': plan_url,
            'last_context': context.to_record(),
        })

    # Conversations

    async def get_active_conversation(self, client_id: str) -> Optional[Conversation]:
        """The most recently created conversation is the active one."""
        result = await self._execute(
            'select conversation',
            lambda: self.supabase.table(self.conversations_table)
                .select('*')
                .eq('client_id', client_id)
                .order('created_at', desc=True)
                .limit(1)
                .execute()
        )
        return Conversation(**result.data[0]) if result.data else None

    async def create_conversation(
        self,
        client_id: str,
        state: ConversationState,
        context: Optional[ProfileContext] = None
    ) -> Conversation:
        record = {
            'client_id': client_id,
            'state': state.value,
            'context': (context or ProfileContext()).to_record(),
        }
        result = await self._execute(
            'insert conversation',
            lambda: self.supabase.table(self.conversations_table)
                .insert(record)
                .execute()
        )
        return Conversation(**result.data[0])

    async def update_conversation(
        self,
        conversation_id: str,
        state: Optional[ConversationState] = None,
        context: Optional[ProfileContext] = None
    ) -> None:
        data: Dict[str, Any] = {'updated_at': _now()}
        if state is not None:
            data['state'] = state.value
        if context is not None:
            data['context'] = context.to_record()
        await self._execute(
            'update conversation',
            lambda: self.supabase.table(self.conversations_table)
                .update(data)
                .eq('id', conversation_id)
                .execute()
        )

    # Chat messages

    async def store_chat_message(self, client_id: str, role: str, content: str) -> None:
        """Append one message to the client's transcript"""
        if not content:
            logger.error("Cannot store message: content is required")
            return

        await self._execute(
            'insert chat message',
            lambda: self.supabase.table(self.messages_table)
                .insert({'client_id': client_id, 'role': role, 'content': content})
                .execute()
        )

        if role == 'user':
            # Keeps the dashboard's "last activity" column current
            await self.update_client(client_id, {'last_message_at': _now()})

    async def get_chat_history(self, client_id: str) -> List[ChatMessage]:
        """User and assistant messages for a client, oldest first. System rows are left out."""
        result = await self._execute(
            'select chat history',
            lambda: self.supabase.table(self.messages_table)
                .select('*')
                .eq('client_id', client_id)
                .order('created_at', desc=False)
                .execute()
        )
        messages = [ChatMessage(**row) for row in result.data or []]
        return [message for message in messages if message.role in ('user', 'assistant')]

    # Blob storage

    async def upload_file(self, path: str, data: bytes, content_type: str = 'application/pdf') -> None:
        await self._execute(
            'upload file',
            lambda: self.supabase.storage.from_(self.plans_bucket).upload(
                path,
                data,
                {'content-type': content_type, 'upsert': 'true'}
            )
        )
        logger.info(f"Uploaded {len(data)} bytes to {self.plans_bucket}/{path}")

    async def get_public_url(self, path: str) -> Optional[str]:
        url = await self._execute(
            'get public url',
            lambda: self.supabase.storage.from_(self.plans_bucket).get_public_url(path)
        )
        # Older clients return a dict instead of the URL string
        if isinstance(url, dict):
            url = url.get('publicUrl') or url.get('publicURL')
        return url or None
