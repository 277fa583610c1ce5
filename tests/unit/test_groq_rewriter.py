"""
Tests for Groq Rewriter
=======================

The Groq SDK client is replaced with a mock; requests never leave the
process.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import groq
import httpx
import pytest

from autonews.ai.providers.groq_provider import GroqRewriter
from autonews.config.settings import AISettings
from autonews.utils.exceptions import AIError, ErrorCode

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _status_error(error_class, status_code):
    request = httpx.Request("POST", GROQ_URL)
    response = httpx.Response(status_code, request=request)
    return error_class(f"status {status_code}", response=response, body=None)


@pytest.fixture
def client():
    client = Mock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def rewriter(client):
    return GroqRewriter(api_key="test-key", model_name="test-model", client=client)


REWRITE_REPLY = {
    "title": "Record-Setting Quantum Processor Unveiled",
    "content": "Researchers presented a quantum processor that sets a new record.",
    "meta_description": "A new quantum processor sets a record.",
    "keywords": ["quantum", "processor"],
    "category": "Technology",
    "summary": "A quantum processor set a record.",
}


class TestGroqRewriter:

    def test_missing_api_key(self):
        with pytest.raises(AIError) as exc_info:
            GroqRewriter(api_key=None)
        assert exc_info.value.error_code == ErrorCode.AI_INVALID_CREDENTIALS

    def test_from_settings(self):
        rewriter = GroqRewriter.from_settings(
            AISettings(groq_api_key="k", groq_model="m", temperature=0.2, max_tokens=500)
        )
        assert rewriter.model_name == "m"
        assert rewriter.temperature == 0.2
        assert rewriter.max_tokens == 500

    @pytest.mark.asyncio
    async def test_rewrite(self, rewriter, client):
        client.chat.completions.create.return_value = _completion(json.dumps(REWRITE_REPLY))

        result = await rewriter.rewrite("Original body", "Original title", "https://example.com/a")

        assert result.title == REWRITE_REPLY["title"]
        assert result.keywords == ["quantum", "processor"]
        assert result.category == "Technology"

        request = client.chat.completions.create.call_args.kwargs
        assert request["model"] == "test-model"
        assert request["response_format"] == {"type": "json_object"}
        assert "Original title" in request["messages"][1]["content"]
        assert "https://example.com/a" in request["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_rewrite_accepts_camel_case_meta_description(self, rewriter, client):
        reply = dict(REWRITE_REPLY)
        reply["metaDescription"] = reply.pop("meta_description")
        client.chat.completions.create.return_value = _completion(json.dumps(reply))

        result = await rewriter.rewrite("Body", "Title")

        assert result.meta_description == "A new quantum processor sets a record."

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [None, "", "not json", "[1, 2]", json.dumps({"title": "only"})])
    async def test_invalid_response(self, rewriter, client, reply):
        client.chat.completions.create.return_value = _completion(reply)

        with pytest.raises(AIError) as exc_info:
            await rewriter.rewrite("Body", "Title")

        assert exc_info.value.error_code == ErrorCode.AI_INVALID_RESPONSE

    @pytest.mark.asyncio
    async def test_translate(self, rewriter, client):
        client.chat.completions.create.return_value = _completion(json.dumps({
            "title": "Procesador cuántico",
            "content": "Contenido traducido",
            "meta_description": "Descripción",
        }))

        result = await rewriter.translate("Body", "Title", "Meta", "Spanish")

        assert result.title == "Procesador cuántico"
        assert "Spanish" in client.chat.completions.create.call_args.kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_image_prompt_is_plain_text(self, rewriter, client):
        client.chat.completions.create.return_value = _completion("  A glowing chip on a lab bench.  ")

        prompt = await rewriter.generate_image_prompt("Title", "Body")

        assert prompt == "A glowing chip on a lab bench."
        assert "response_format" not in client.chat.completions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_rate_limit(self, rewriter, client):
        client.chat.completions.create.side_effect = _status_error(groq.RateLimitError, 429)

        with pytest.raises(AIError) as exc_info:
            await rewriter.rewrite("Body", "Title")

        assert exc_info.value.error_code == ErrorCode.AI_RATE_LIMIT
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_invalid_credentials(self, rewriter, client):
        client.chat.completions.create.side_effect = _status_error(groq.AuthenticationError, 401)

        with pytest.raises(AIError) as exc_info:
            await rewriter.rewrite("Body", "Title")

        assert exc_info.value.error_code == ErrorCode.AI_INVALID_CREDENTIALS
        assert not exc_info.value.recoverable

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self, rewriter, client):
        client.chat.completions.create.side_effect = _status_error(groq.InternalServerError, 503)

        with pytest.raises(AIError) as exc_info:
            await rewriter.rewrite("Body", "Title")

        assert exc_info.value.error_code == ErrorCode.AI_API_ERROR
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_connection_error(self, rewriter, client):
        client.chat.completions.create.side_effect = groq.APIConnectionError(
            request=httpx.Request("POST", GROQ_URL)
        )

        with pytest.raises(AIError) as exc_info:
            await rewriter.rewrite("Body", "Title")

        assert exc_info.value.error_code == ErrorCode.AI_CONNECTION_ERROR

    @pytest.mark.asyncio
    async def test_timeout(self, rewriter, client):
        client.chat.completions.create.side_effect = groq.APITimeoutError(
            request=httpx.Request("POST", GROQ_URL)
        )

        with pytest.raises(AIError) as exc_info:
            await rewriter.rewrite("Body", "Title")

        assert exc_info.value.error_code == ErrorCode.AI_TIMEOUT
