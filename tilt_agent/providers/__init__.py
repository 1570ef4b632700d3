"""Provider implementations for the conversation engine."""

from .base import LLMProvider
from .openai import OpenAIResponsesProvider

__all__ = ["LLMProvider", "OpenAIResponsesProvider"]
