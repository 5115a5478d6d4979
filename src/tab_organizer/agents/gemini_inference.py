"""
Gemini inference session.
"""

from typing import Optional

from tab_organizer.agents.inference import InferenceSession
from tab_organizer.config import get_logger

logger = get_logger(__name__)


class GeminiInferenceSession(InferenceSession):
    """Inference session using Gemini with fixed temperature and top-K."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        temperature: float = 0.3,
        top_k: Optional[int] = 40,
    ):
        super().__init__(temperature=temperature, top_k=top_k)
        self.api_key = api_key
        self.model_name = model
        self._model = None

    def _ensure_model(self):
        if self._model is not None:
            return self._model

        try:
            import google.generativeai as genai
        except ImportError:
            logger.error("google-generativeai package not installed. Run: pip install 'tab-organizer[gemini]'")
            raise

        genai.configure(api_key=self.api_key)
        generation_config = {"temperature": self.temperature}
        if self.top_k is not None:
            generation_config["top_k"] = self.top_k
        self._model = genai.GenerativeModel(
            self.model_name, generation_config=generation_config
        )
        logger.info(f"Initialized Gemini session (model: {self.model_name})")
        return self._model

    async def prompt(self, text: str) -> str:
        model = self._ensure_model()
        response = await model.generate_content_async(text)
        return response.text
