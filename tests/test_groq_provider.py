import asyncio
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from whatsapp_kit.services.llm import GroqProvider, LLMError


def _mock_http(mock_client_cls, status_code=200, payload=None, text="", error=None):
    response = Mock(status_code=status_code, text=text)
    response.json.return_value = payload or {}
    client = AsyncMock()
    if error is not None:
        client.post.side_effect = error
    else:
        client.post.return_value = response
    mock_client_cls.return_value.__aenter__.return_value = client
    return client


COMPLETION = {
    "id": "chatcmpl-1",
    "model": "openai/gpt-oss-120b",
    "choices": [{"message": {"role": "assistant", "content": "  Hi!  "}}],
    "usage": {"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12},
}


class TestGroqProvider:
    @patch("whatsapp_kit.services.llm.groq_provider.httpx.AsyncClient")
    def test_generate(self, mock_client_cls):
        http = _mock_http(mock_client_cls, payload=COMPLETION)
        provider = GroqProvider("gsk-test")

        response = asyncio.run(provider.generate([{"role": "user", "content": "hi"}], max_tokens=50))

        assert response.content == "Hi!"
        assert response.total_tokens == 12
        assert response.id == "chatcmpl-1"
        args, kwargs = http.post.call_args
        assert args[0] == "https://api.groq.com/openai/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer gsk-test"
        assert kwargs["json"] == {
            "model": "openai/gpt-oss-120b",
            "messages": [{"role": "user", "content": "hi"}],
            "max_tokens": 50,
        }

    @patch("whatsapp_kit.services.llm.groq_provider.httpx.AsyncClient")
    def test_model_override_and_no_max_tokens(self, mock_client_cls):
        http = _mock_http(mock_client_cls, payload=COMPLETION)

        asyncio.run(GroqProvider("k").generate([], model="llama-3.1-8b-instant"))

        body = http.post.call_args[1]["json"]
        assert body["model"] == "llama-3.1-8b-instant"
        assert "max_tokens" not in body

    @patch("whatsapp_kit.services.llm.groq_provider.httpx.AsyncClient")
    def test_error_status(self, mock_client_cls):
        _mock_http(mock_client_cls, status_code=429, text="rate limited")

        with pytest.raises(LLMError, match="429 rate limited"):
            asyncio.run(GroqProvider("k").generate([]))

    @patch("whatsapp_kit.services.llm.groq_provider.httpx.AsyncClient")
    def test_empty_choice(self, mock_client_cls):
        _mock_http(mock_client_cls, payload={"choices": [{"message": {"content": "   "}}]})

        with pytest.raises(LLMError, match="did not return a message"):
            asyncio.run(GroqProvider("k").generate([]))

    @patch("whatsapp_kit.services.llm.groq_provider.httpx.AsyncClient")
    def test_non_json_body(self, mock_client_cls):
        http = _mock_http(mock_client_cls, text="<html>gateway</html>")
        http.post.return_value.json.side_effect = ValueError("no json")

        with pytest.raises(LLMError, match="invalid response"):
            asyncio.run(GroqProvider("k").generate([]))

    @pytest.mark.parametrize("payload", [{"choices": ["oops"]}, {"choices": [{"message": "oops"}]}, {"choices": "x"}])
    @patch("whatsapp_kit.services.llm.groq_provider.httpx.AsyncClient")
    def test_malformed_choices(self, mock_client_cls, payload):
        _mock_http(mock_client_cls, payload=payload)

        with pytest.raises(LLMError, match="invalid response"):
            asyncio.run(GroqProvider("k").generate([]))

    @patch("whatsapp_kit.services.llm.groq_provider.httpx.AsyncClient")
    def test_transport_error(self, mock_client_cls):
        _mock_http(mock_client_cls, error=httpx.ReadTimeout("timed out"))

        with pytest.raises(LLMError, match="timed out"):
            asyncio.run(GroqProvider("k").generate([]))
