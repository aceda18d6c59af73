from __future__ import annotations

import logging

import openai

from reviewgen.errors import ProviderError
from reviewgen.llm.models import LLMResponse
from reviewgen.llm.provider import LLMProvider, estimate_tokens

logger = logging.getLogger(__name__)

# Models that reject anything but the default sampling settings
_FIXED_TEMPERATURE_PREFIXES = ("o1", "gpt-5-nano")


def max_tokens_param(model: str) -> str:
    """Newer OpenAI models take ``max_completion_tokens`` instead of ``max_tokens``."""
    if "gpt-4o" in model or "gpt-5" in model or model.startswith("o1"):
        return "max_completion_tokens"
    return "max_tokens"


class OpenAIProvider(LLMProvider):
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", base_url: str | None = None) -> None:
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._model = model

    def _sampling_kwargs(
        self,
        temperature: float,
        top_p: float,
        frequency_penalty: float,
        presence_penalty: float,
    ) -> dict:
        if self._model.startswith(_FIXED_TEMPERATURE_PREFIXES):
            return {"temperature": 1}
        return {
            "temperature": temperature,
            "top_p": top_p,
            "frequency_penalty": frequency_penalty,
            "presence_penalty": presence_penalty,
        }

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        top_p: float = 1.0,
        frequency_penalty: float = 0.0,
        presence_penalty: float = 0.0,
    ) -> LLMResponse:
        params = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens_param(self._model): max_tokens,
            **self._sampling_kwargs(temperature, top_p, frequency_penalty, presence_penalty),
        }
        try:
            response = await self._client.chat.completions.create(**params)
        except openai.OpenAIError as e:
            raise ProviderError(str(e), provider="openai", model=self._model) from e

        if not response.choices:
            raise ProviderError("response contained no choices", provider="openai", model=self._model)
        content = response.choices[0].message.content or ""
        if not content.strip():
            raise ProviderError("empty completion", provider="openai", model=self._model)

        usage = response.usage
        if usage is None:
            logger.debug(f"No usage reported by {self._model}, estimating from length")
            return LLMResponse(
                content=content,
                input_tokens=estimate_tokens(system_prompt + user_prompt),
                output_tokens=estimate_tokens(content),
                model=self._model,
                provider="openai",
                estimated=True,
            )
        return LLMResponse(
            content=content,
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.completion_tokens,
            model=self._model,
            provider="openai",
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model
