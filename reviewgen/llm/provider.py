from __future__ import annotations

import math
from abc import ABC, abstractmethod

from reviewgen.llm.models import LLMResponse

# Rough chars-per-token ratio for backends that do not report usage.
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count from character length. Deterministic, not exact."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class LLMProvider(ABC):
    """Abstract interface for LLM providers.

    Implementations raise ``ProviderError`` for transport, auth and quota
    failures and for empty or malformed responses.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        top_p: float = 1.0,
        frequency_penalty: float = 0.0,
        presence_penalty: float = 0.0,
    ) -> LLMResponse: ...

    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @property
    @abstractmethod
    def model_name(self) -> str: ...
