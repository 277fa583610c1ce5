"""
Base Content Rewriter Interface
===============================

Abstract interface for AI services that rewrite, translate and illustrate
articles, plus the prompt builders and response parsing shared by
implementations.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ...database.models import RewriteResult, TranslationResult
from ...utils.exceptions import AIError, ErrorCode

__all__ = ["ContentRewriter", "RewriteResult", "TranslationResult"]


class ContentRewriter(ABC):
    """Abstract base class for AI rewrite providers."""

    provider_name = "base"

    @abstractmethod
    async def rewrite(
        self, content: str, title: str, source_url: Optional[str] = None
    ) -> RewriteResult:
        """Rewrite an article into new, unique wording.

        Args:
            content: Original article body
            title: Original title
            source_url: Original URL, given to the model as context

        Returns:
            Rewritten title, body, meta description, keywords, category, summary

        Raises:
            AIError: If the request fails or the response is unusable
        """

    @abstractmethod
    async def translate(
        self, content: str, title: str, meta_description: str, target_language: str
    ) -> TranslationResult:
        """Translate an article.

        Raises:
            AIError: If the request fails or the response is unusable
        """

    @abstractmethod
    async def generate_image_prompt(self, title: str, content: str) -> str:
        """One or two sentence prompt for an illustration of the article.

        Raises:
            AIError: If the request fails
        """

    def _build_rewrite_prompt(
        self, content: str, title: str, source_url: Optional[str] = None
    ) -> str:
        source_line = f"\nSource URL: {source_url}" if source_url else ""
        return f"""Rewrite this news article so it is unique and plagiarism-free while keeping the core facts.

Original Title: {title}
Original Content: {content}{source_line}

Requirements:
- Cover the same story with different sentence structure, vocabulary and phrasing
- Keep factual accuracy and key information
- Professional, news-appropriate tone
- An engaging title and relevant SEO keywords
- One category such as Technology, Politics, Sports, Business, Health, Entertainment

Respond with a JSON object with exactly these keys:
"title" (string), "content" (string), "meta_description" (string, 150-160 characters),
"keywords" (array of strings), "category" (string), "summary" (string, 2-3 sentences)."""

    def _build_translation_prompt(
        self, content: str, title: str, meta_description: str, target_language: str
    ) -> str:
        return f"""Translate the following article to {target_language}. Keep the meaning, tone and professional news style.

Title: {title}
Content: {content}
Meta Description: {meta_description}

Respond with a JSON object with exactly these keys:
"title" (string), "content" (string), "meta_description" (string)."""

    def _build_image_prompt(self, title: str, content: str) -> str:
        return f"""Based on this news article, write a prompt for a professional, news-appropriate illustration.

Title: {title}
Content: {content[:500]}

The prompt should be detailed but concise (1-2 sentences) and represent the story without being too literal.
Reply with the prompt text only."""

    def _parse_json_object(self, text: Optional[str]) -> Dict[str, Any]:
        """Decode a model reply that must be a JSON object.

        Raises:
            AIError: If the reply is empty, not JSON or not an object
        """
        if not text or not text.strip():
            raise AIError(
                "Empty response from AI provider",
                provider=self.provider_name,
                error_code=ErrorCode.AI_INVALID_RESPONSE,
            )
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise AIError(
                f"AI response is not valid JSON: {e}",
                provider=self.provider_name,
                error_code=ErrorCode.AI_INVALID_RESPONSE,
            ) from e
        if not isinstance(data, dict):
            raise AIError(
                "AI response is not a JSON object",
                provider=self.provider_name,
                error_code=ErrorCode.AI_INVALID_RESPONSE,
            )
        # Accept camelCase from models that ignore the requested key names
        if "metaDescription" in data and "meta_description" not in data:
            data["meta_description"] = data.pop("metaDescription")
        return data
