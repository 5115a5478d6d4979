"""
OpenAI chat-completions inference session.
"""

from typing import Optional

from openai import AsyncOpenAI

from tab_organizer.agents.inference import InferenceSession
from tab_organizer.config import get_logger

logger = get_logger(__name__)


class OpenAIInferenceSession(InferenceSession):
    """Inference session backed by the OpenAI chat completions API.

    The client is created on the first prompt and kept for the lifetime of
    the session. Top-K is not part of the OpenAI API; it is forwarded only to
    OpenAI-compatible servers configured through ``base_url``.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        temperature: float = 0.3,
        top_k: Optional[int] = 40,
    ):
        super().__init__(temperature=temperature, top_k=top_k)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
            logger.info(f"Initialized OpenAI session (model: {self.model})")
        return self._client

    async def prompt(self, text: str) -> str:
        extra_body = None
        if self.base_url and self.top_k is not None:
            extra_body = {"top_k": self.top_k}

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": text}],
            temperature=self.temperature,
            extra_body=extra_body,
        )
        return response.choices[0].message.content or ""
