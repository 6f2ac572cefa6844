"""Categorisation engines and reply drafting."""

from .category import (
    PatternCategorizer,
    RemoteModelCategorizer,
    build_categorizer,
    keyword_fallback,
)
from .drafter import ReplySuggester
from .llm import ChatCompletionClient, LLMClient, LLMError

__all__ = [
    "ChatCompletionClient",
    "LLMClient",
    "LLMError",
    "PatternCategorizer",
    "RemoteModelCategorizer",
    "ReplySuggester",
    "build_categorizer",
    "keyword_fallback",
]
