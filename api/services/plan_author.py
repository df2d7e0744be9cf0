import logging
from typing import Dict, List, Optional

from api.models import ChatMessage, ProfileContext
from lib.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

PLAN_NOT_FOUND = "Plano não encontrado."

QUESTION_INSTRUCTION = (
    "És um personal trainer e nutricionista da FitAI. "
    "O cliente já recebeu o plano de treino e nutrição abaixo e vai fazer perguntas sobre ele. "
    "Responde em português de Portugal, de forma clara e curta, porque a resposta será enviada por WhatsApp. "
    "Baseia-te apenas no plano e no perfil do cliente. "
    "Se a pergunta exigir acompanhamento médico, recomenda que o cliente consulte um profissional de saúde."
)

def _or_unknown(value: Optional[str], suffix: str = '') -> str:
    return f"{value}{suffix}" if value else "Não informado"

class PlanAuthorService:
    def __init__(self, openai_client: OpenAIClient, plan_max_tokens: int = 800, answer_max_tokens: int = 500):
        self.client = openai_client
        self.plan_max_tokens = plan_max_tokens
        self.answer_max_tokens = answer_max_tokens

    def _format_profile(self, profile: ProfileContext) -> str:
        lines = [
            f"Nome: {_or_unknown(profile.name)}",
            f"Idade: {_or_unknown(profile.age, ' anos')}",
            f"Género: {_or_unknown(profile.gender)}",
            f"Altura: {_or_unknown(profile.height, ' cm')}",
            f"Peso: {_or_unknown(profile.weight, ' kg')}",
            f"Objetivo: {_or_unknown(profile.goal)}",
        ]
        optional = [
            ("Experiência", profile.experience),
            ("Dias disponíveis", profile.available_days),
            ("Condições de saúde", profile.health_conditions),
            ("Preferências de exercício", profile.exercise_preferences),
            ("Restrições alimentares", profile.dietary_restrictions),
            ("Equipamento", profile.equipment),
            ("Motivação", profile.motivation),
        ]
        lines.extend(f"{label}: {value}" for label, value in optional if value)
        return "\n".join(lines)

    def build_plan_prompt(self, profile: ProfileContext) -> str:
        return (
            "Crie um plano de treino personalizado e detalhado para a pessoa com o seguinte perfil:\n\n"
            f"{self._format_profile(profile)}\n\n"
            "O plano deve incluir:\n\n"
            "- Sugestões específicas de exercícios (tipo, séries, repetições ou duração)\n"
            "- Frequência semanal recomendada (dias e duração das sessões)\n"
            "- Dicas práticas de alimentação e nutrição adaptadas ao objetivo\n"
            "- Recomendações de descanso e recuperação\n"
            "- Avisos ou precauções importantes (se aplicável)\n\n"
            "Apresente o plano de forma clara e estruturada, dividido em secções para treino, alimentação e cuidados."
        )

    async def generate_plan(self, profile: ProfileContext) -> str:
        """Draft a training and nutrition plan for the profile"""
        logger.info(f"Generating plan for {profile.name or 'unnamed client'}")
        messages = [{"role": "user", "content": self.build_plan_prompt(profile)}]
        plan = await self.client.complete(messages, max_tokens=self.plan_max_tokens)
        logger.info(f"Plan generated ({len(plan)} chars)")
        return plan

    def build_question_messages(
        self,
        profile: ProfileContext,
        plan_text: Optional[str],
        question: str,
        history: List[ChatMessage]
    ) -> List[Dict[str, str]]:
        system_prompt = (
            f"{QUESTION_INSTRUCTION}\n\n"
            f"Perfil do cliente:\n{self._format_profile(profile)}\n\n"
            f"Plano do cliente:\n{plan_text or PLAN_NOT_FOUND}"
        )
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(
            message.as_prompt_message()
            for message in history
            if message.role in ('user', 'assistant')
        )
        messages.append({"role": "user", "content": question})
        return messages

    async def answer_question(
        self,
        profile: ProfileContext,
        plan_text: Optional[str],
        question: str,
        history: List[ChatMessage]
    ) -> str:
        messages = self.build_question_messages(profile, plan_text, question, history)
        logger.info(f"Answering question with {len(messages) - 2} history messages")
        return await self.client.complete(messages, max_tokens=self.answer_max_tokens)
