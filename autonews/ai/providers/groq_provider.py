"""
Groq Rewriter Implementation
============================

Groq-backed content rewriter using JSON-mode chat completions, with SDK
errors mapped onto ``AIError`` codes.
"""

from typing import Optional

import groq
from groq import AsyncGroq
from pydantic import ValidationError as PydanticValidationError

from .base import ContentRewriter, RewriteResult, TranslationResult
from ...config.settings import AISettings
from ...utils.exceptions import AIError, ErrorCode
from ...utils.logging import get_logger_for_component


class GroqRewriter(ContentRewriter):
    """Content rewriter backed by the Groq chat completions API."""

    provider_name = "groq"

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "llama-3.1-70b-versatile",
        temperature: float = 0.7,
        max_tokens: int = 4000,
        timeout: float = 120,
        client: Optional[AsyncGroq] = None,
    ):
        """Initialize Groq rewriter.

        Args:
            api_key: Groq API key
            model_name: Chat model to use
            temperature: Sampling temperature
            max_tokens: Maximum tokens per response
            timeout: Request timeout in seconds
            client: Pre-built async client (tests)

        Raises:
            AIError: If no API key is configured
        """
        if client is None and not api_key:
            raise AIError(
                "Groq API key is required (set AUTONEWS_AI__GROQ_API_KEY)",
                provider=self.provider_name,
                error_code=ErrorCode.AI_INVALID_CREDENTIALS,
                recoverable=False,
            )

        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.async_client = client or AsyncGroq(api_key=api_key, timeout=timeout)
        self.logger = get_logger_for_component("groq_rewriter")

    @classmethod
    def from_settings(cls, ai_settings: AISettings) -> "GroqRewriter":
        return cls(
            api_key=ai_settings.groq_api_key,
            model_name=ai_settings.groq_model,
            temperature=ai_settings.temperature,
            max_tokens=ai_settings.max_tokens,
            timeout=ai_settings.rewrite_timeout,
        )

    async def rewrite(
        self, content: str, title: str, source_url: Optional[str] = None
    ) -> RewriteResult:
        self.logger.debug(f"Rewriting article: {title[:50]}")
        reply = await self._make_chat_completion(
            self._build_rewrite_prompt(content, title, source_url), json_mode=True
        )
        return self._validate(RewriteResult, self._parse_json_object(reply))

    async def translate(
        self, content: str, title: str, meta_description: str, target_language: str
    ) -> TranslationResult:
        self.logger.debug(f"Translating article to {target_language}: {title[:50]}")
        reply = await self._make_chat_completion(
            self._build_translation_prompt(content, title, meta_description, target_language),
            json_mode=True,
        )
        return self._validate(TranslationResult, self._parse_json_object(reply))

    async def generate_image_prompt(self, title: str, content: str) -> str:
        reply = await self._make_chat_completion(
            self._build_image_prompt(title, content), json_mode=False, max_tokens=200
        )
        prompt = (reply or "").strip()
        if not prompt:
            raise AIError(
                "Empty image prompt from Groq",
                provider=self.provider_name,
                error_code=ErrorCode.AI_INVALID_RESPONSE,
            )
        return prompt

    def _validate(self, model, data):
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise AIError(
                f"AI response failed validation: {e.error_count()} error(s)",
                provider=self.provider_name,
                error_code=ErrorCode.AI_INVALID_RESPONSE,
                context={"errors": e.errors(include_url=False)},
            ) from e

    async def _make_chat_completion(
        self, prompt: str, json_mode: bool, max_tokens: Optional[int] = None
    ) -> Optional[str]:
        """Send one chat completion request and return the reply text.

        Raises:
            AIError: For any SDK error
        """
        request = {
            "model": self.model_name,
            "messages": [
                {
                    "role": "system",
                    "content": "You are a professional news editor. Follow the requested output format exactly.",
                },
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self.async_client.chat.completions.create(**request)

        except groq.RateLimitError as e:
            self.logger.warning(f"Groq rate limit exceeded: {e}")
            raise AIError(
                "Groq rate limit exceeded",
                provider=self.provider_name,
                error_code=ErrorCode.AI_RATE_LIMIT,
                retryable=True,
            ) from e

        except groq.APITimeoutError as e:
            raise AIError(
                "Groq request timed out",
                provider=self.provider_name,
                error_code=ErrorCode.AI_TIMEOUT,
                retryable=True,
            ) from e

        except groq.APIConnectionError as e:
            self.logger.error(f"Groq connection error: {e}")
            raise AIError(
                f"Connection to Groq failed: {e}",
                provider=self.provider_name,
                error_code=ErrorCode.AI_CONNECTION_ERROR,
                retryable=True,
            ) from e

        except groq.APIStatusError as e:
            self.logger.error(f"Groq API error: {e.status_code} - {e.message}")
            if e.status_code == 401:
                raise AIError(
                    "Invalid Groq API key",
                    provider=self.provider_name,
                    error_code=ErrorCode.AI_INVALID_CREDENTIALS,
                    recoverable=False,
                ) from e
            raise AIError(
                f"Groq API error: {e.status_code} - {e.message}",
                provider=self.provider_name,
                error_code=ErrorCode.AI_API_ERROR,
                retryable=e.status_code >= 500,
            ) from e

        if not response.choices:
            return None
        return response.choices[0].message.content
