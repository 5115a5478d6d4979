"""
Text-generation sessions with pluggable providers.

A session is configured once with its sampling parameters and then reused
for every prompt of the process lifetime.
"""

from abc import ABC, abstractmethod
from typing import Optional

from tab_organizer.config import get_logger, get_settings, Settings

logger = get_logger(__name__)


class InferenceSession(ABC):
    """Abstract base for long-lived text-generation sessions."""

    def __init__(self, temperature: float = 0.3, top_k: Optional[int] = 40):
        """
        Args:
            temperature: Sampling temperature used for every prompt
            top_k: Top-K sampling cutoff used for every prompt
        """
        self.temperature = temperature
        self.top_k = top_k

    @abstractmethod
    async def prompt(self, text: str) -> str:
        """
        Generate a completion for a prompt.

        Args:
            text: Full prompt text

        Returns:
            Raw model output
        """
        pass


def create_inference_session(settings: Settings) -> InferenceSession:
    """
    Build the session for the configured provider.

    Args:
        settings: Application settings

    Returns:
        Configured (not yet connected) inference session

    Raises:
        ValueError: If the selected provider has no API key
    """
    provider = settings.inference_provider.lower()

    if provider == "gemini":
        if not settings.gemini_api_key:
            raise ValueError("Gemini provider requires GEMINI_API_KEY")

        from tab_organizer.agents.gemini_inference import GeminiInferenceSession
        return GeminiInferenceSession(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            temperature=settings.inference_temperature,
            top_k=settings.inference_top_k,
        )

    if provider != "openai":
        logger.warning(f"Unknown provider '{provider}', using OpenAI")

    if not settings.openai_api_key:
        raise ValueError("OpenAI provider requires OPENAI_API_KEY")

    from tab_organizer.agents.openai_inference import OpenAIInferenceSession
    return OpenAIInferenceSession(
        api_key=settings.openai_api_key,
        model=settings.openai_llm_model,
        base_url=settings.openai_base_url,
        temperature=settings.inference_temperature,
        top_k=settings.inference_top_k,
    )


# Global session instance
_session: Optional[InferenceSession] = None


def get_inference_session() -> InferenceSession:
    """Get or create the process-wide inference session."""
    global _session
    if _session is None:
        _session = create_inference_session(get_settings())
        logger.info(f"Inference session created ({type(_session).__name__})")
    return _session
