"""
AutoNews AI Module
==================

AI rewrite step: provider interface, Groq implementation and the service
that applies rewrites to the content queue and translates articles.
"""

from .providers.base import ContentRewriter, RewriteResult, TranslationResult
from .providers.groq_provider import GroqRewriter
from .rewrite_service import RewriteService

__all__ = ["ContentRewriter", "RewriteResult", "TranslationResult", "GroqRewriter", "RewriteService"]
