"""Top-level package exports for llm_cloud.

This package holds the LLM infrastructure:
    • provider.py – client configuration and provider routing (Groq, OpenRouter)
    • service.py  – async generation facade used by the chat pipeline
"""

from .service import LLMProviderError, LLMService

__all__ = [
    "LLMService",
    "LLMProviderError",
]
