"""
Tests for inference session creation and the OpenAI-backed session.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from tab_organizer.agents import inference as inference_module
from tab_organizer.agents.gemini_inference import GeminiInferenceSession
from tab_organizer.agents.inference import create_inference_session, get_inference_session
from tab_organizer.agents.openai_inference import OpenAIInferenceSession
from tab_organizer.config import Settings


def make_settings(**overrides) -> Settings:
    values = {
        "inference_provider": "openai",
        "openai_api_key": "test-api-key",
        "gemini_api_key": None,
        "openai_base_url": None,
        "inference_temperature": 0.3,
        "inference_top_k": 40,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def mock_async_openai():
    """Mock AsyncOpenAI client returning a fixed completion."""
    with patch("tab_organizer.agents.openai_inference.AsyncOpenAI") as mock:
        client = Mock()
        completion = Mock()
        completion.choices = [Mock(message=Mock(content='{"ok": true}'))]
        client.chat.completions.create = AsyncMock(return_value=completion)
        mock.return_value = client
        yield mock


@pytest.fixture
def reset_session():
    inference_module._session = None
    yield
    inference_module._session = None


class TestCreateInferenceSession:
    """Tests for provider selection."""

    def test_openai_session(self):
        session = create_inference_session(make_settings(inference_temperature=0.5, inference_top_k=10))

        assert isinstance(session, OpenAIInferenceSession)
        assert session.temperature == 0.5
        assert session.top_k == 10

    def test_gemini_session(self):
        session = create_inference_session(
            make_settings(inference_provider="Gemini", gemini_api_key="gemini-key")
        )

        assert isinstance(session, GeminiInferenceSession)
        assert session.api_key == "gemini-key"

    def test_gemini_requires_key(self):
        with pytest.raises(ValueError):
            create_inference_session(make_settings(inference_provider="gemini"))

    def test_openai_requires_key(self):
        with pytest.raises(ValueError):
            create_inference_session(make_settings(openai_api_key=None))

    def test_unknown_provider_uses_openai(self):
        session = create_inference_session(make_settings(inference_provider="mystery"))

        assert isinstance(session, OpenAIInferenceSession)

    def test_session_is_created_once(self, reset_session):
        with patch.object(inference_module, "get_settings", return_value=make_settings()):
            first = get_inference_session()
            second = get_inference_session()

        assert first is second


class TestOpenAIInferenceSession:
    """Tests for OpenAIInferenceSession."""

    def test_prompt_uses_fixed_temperature(self, mock_async_openai):
        session = OpenAIInferenceSession(api_key="k", model="gpt-4o-mini", temperature=0.3)

        result = asyncio.run(session.prompt("Describe this page"))

        assert result == '{"ok": true}'
        kwargs = mock_async_openai.return_value.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"] == [{"role": "user", "content": "Describe this page"}]
        assert kwargs["extra_body"] is None

    def test_top_k_forwarded_to_compatible_server(self, mock_async_openai):
        session = OpenAIInferenceSession(api_key="k", base_url="http://localhost:8000/v1", top_k=20)

        asyncio.run(session.prompt("hello"))

        kwargs = mock_async_openai.return_value.chat.completions.create.call_args.kwargs
        assert kwargs["extra_body"] == {"top_k": 20}
        mock_async_openai.assert_called_once_with(api_key="k", base_url="http://localhost:8000/v1")

    def test_client_created_once(self, mock_async_openai):
        session = OpenAIInferenceSession(api_key="k")

        asyncio.run(session.prompt("one"))
        asyncio.run(session.prompt("two"))

        assert mock_async_openai.call_count == 1

    def test_empty_content_becomes_empty_string(self, mock_async_openai):
        completion = Mock()
        completion.choices = [Mock(message=Mock(content=None))]
        mock_async_openai.return_value.chat.completions.create.return_value = completion
        session = OpenAIInferenceSession(api_key="k")

        assert asyncio.run(session.prompt("hello")) == ""
