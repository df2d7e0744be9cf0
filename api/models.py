import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

logger = logging.getLogger(__name__)

# Order in which the intake collects the profile
INTAKE_FIELDS = ('name', 'age', 'goal', 'gender', 'height', 'weight')

_NUMBER_RE = re.compile(r'\d+(?:[.,]\d+)?')


class ConversationState(str, Enum):
    START = 'START'
    WAITING_FOR_INFO = 'WAITING_FOR_INFO'
    WAITING_FOR_PAYMENT = 'WAITING_FOR_PAYMENT'
    PAID = 'PAID'
    QUESTIONS = 'QUESTIONS'

    @classmethod
    def parse(cls, value: Any) -> 'ConversationState':
        """Map a stored state string to a state, falling back to START."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown conversation state {value!r}, treating as START")
            return cls.START


class ProfileContext(BaseModel):
    """Profile draft filled field by field during intake."""
    model_config = ConfigDict(extra='allow')

    name: Optional[str] = None
    age: Optional[str] = None
    goal: Optional[str] = None
    gender: Optional[str] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    experience: Optional[str] = None
    available_days: Optional[str] = None
    health_conditions: Optional[str] = None
    exercise_preferences: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    equipment: Optional[str] = None
    motivation: Optional[str] = None

    def next_missing_field(self) -> Optional[str]:
        for field in INTAKE_FIELDS:
            if getattr(self, field) is None:
                return field
        return None

    @property
    def is_complete(self) -> bool:
        return self.next_missing_field() is None

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def to_client_fields(self) -> Dict[str, Any]:
        """Profile columns for the clients table, with numeric fields parsed."""
        fields = {
            'name': self.name,
            'goal': self.goal,
            'gender': self.gender,
            'age': _parse_number(self.age, int),
            'height': _parse_number(self.height, float),
            'weight': _parse_number(self.weight, float),
            'experience': self.experience,
            'available_days': self.available_days,
            'health_conditions': self.health_conditions,
            'exercise_preferences': self.exercise_preferences,
            'dietary_restrictions': self.dietary_restrictions,
            'equipment': self.equipment,
            'motivation': self.motivation,
        }
        return {key: value for key, value in fields.items() if value is not None}


def _parse_number(value: Optional[str], cast):
    if not value:
        return None
    match = _NUMBER_RE.search(value)
    if not match:
        return None
    number = float(match.group().replace(',', '.'))
    return cast(number)


class Client(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str
    phone: str
    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    goal: Optional[str] = None
    experience: Optional[str] = None
    available_days: Optional[str] = None
    health_conditions: Optional[str] = None
    exercise_preferences: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    equipment: Optional[str] = None
    motivation: Optional[str] = None
    paid: bool = False
    plan_url: Optional[str] = None
    plan_text: Optional[str] = None
    ai_enabled: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('id', 'phone', mode='before')
    @classmethod
    def _as_str(cls, value):
        return str(value)

    @field_validator('paid', mode='before')
    @classmethod
    def _paid_default(cls, value):
        return bool(value)

    @field_validator('ai_enabled', mode='before')
    @classmethod
    def _ai_enabled_default(cls, value):
        # Rows created before the column existed carry NULL
        return True if value is None else value


class Conversation(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str
    client_id: str
    state: ConversationState = ConversationState.START
    context: ProfileContext = ProfileContext()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('id', 'client_id', mode='before')
    @classmethod
    def _as_str(cls, value):
        return str(value)

    @field_validator('state', mode='before')
    @classmethod
    def _parse_state(cls, value):
        return ConversationState.parse(value)

    @field_validator('context', mode='before')
    @classmethod
    def _empty_context(cls, value):
        return value or {}


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: Optional[str] = None
    client_id: str
    role: Literal['user', 'assistant', 'system']
    content: str
    created_at: Optional[datetime] = None

    @field_validator('id', 'client_id', mode='before')
    @classmethod
    def _as_str(cls, value):
        return None if value is None else str(value)

    def as_prompt_message(self) -> Dict[str, str]:
        return {'role': self.role, 'content': self.content}
