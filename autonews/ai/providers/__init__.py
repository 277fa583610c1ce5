"""
AI Providers Module
===================

Content rewriter interface and provider implementations.
"""

from .base import ContentRewriter, RewriteResult, TranslationResult
from .groq_provider import GroqRewriter

__all__ = [
    'ContentRewriter',
    'RewriteResult',
    'TranslationResult',
    'GroqRewriter',
]
