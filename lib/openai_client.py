import asyncio
import logging
from typing import Dict, List, Optional

from openai import OpenAI

from lib.error_handler import DependencyRejected, ErrorHandler

logger = logging.getLogger(__name__)

class OpenAIClient:
    def __init__(self, api_key: str = '', model: str = 'gpt-4o-mini', timeout: float = 30.0, client: Optional[OpenAI] = None):
        self.client = client or OpenAI(api_key=api_key)
        self.model = model
        self.timeout = timeout

    async def complete(self, messages: List[Dict[str, str]], max_tokens: int) -> str:
        """
        Run a chat completion and return the reply text
        """
        try:
            # Run the blocking SDK call in an executor so the event loop stays free
            loop = asyncio.get_running_loop()
            response = await asyncio.wait_for(
                loop.run_in_executor(
                    None,
                    lambda: self.client.chat.completions.create(
                        model=self.model,
                        messages=messages,
                        max_tokens=max_tokens
                    )
                ),
                timeout=self.timeout
            )
        except Exception as e:
            logger.error(f"OpenAI completion failed: {str(e)}")
            raise ErrorHandler.wrap(e, 'OpenAI')

        if not response.choices or not response.choices[0].message.content:
            raise DependencyRejected("OpenAI returned an empty completion")

        return response.choices[0].message.content.strip()
