from __future__ import annotations

import logging

import httpx

from reviewgen.errors import ProviderError
from reviewgen.llm.models import LLMResponse
from reviewgen.llm.provider import LLMProvider, estimate_tokens

logger = logging.getLogger(__name__)

_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(LLMProvider):
    """Gemini over the REST ``generateContent`` endpoint.

    Token usage comes from ``usageMetadata`` when the API returns it and is
    otherwise estimated from character length (approximate).
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport

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
        full_prompt = f"{system_prompt}\n\n{user_prompt}" if system_prompt else user_prompt
        payload = {
            "contents": [{"role": "user", "parts": [{"text": full_prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
                "topP": top_p,
            },
        }
        url = f"{_BASE_URL}/models/{self._model}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, params={"key": self._api_key}, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise ProviderError(str(e), provider="gemini", model=self._model) from e
        except ValueError as e:
            raise ProviderError(f"invalid JSON response: {e}", provider="gemini", model=self._model) from e

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("response contained no candidates", provider="gemini", model=self._model) from e
        if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
            raise ProviderError("malformed content parts", provider="gemini", model=self._model)
        text = "".join(str(p.get("text", "")) for p in parts)
        if not text.strip():
            raise ProviderError("empty completion", provider="gemini", model=self._model)

        usage = data.get("usageMetadata") or {}
        if "promptTokenCount" in usage and "candidatesTokenCount" in usage:
            return LLMResponse(
                content=text,
                input_tokens=usage["promptTokenCount"],
                output_tokens=usage["candidatesTokenCount"],
                model=self._model,
                provider="gemini",
            )

        logger.debug(f"No usageMetadata from {self._model}, estimating from length")
        return LLMResponse(
            content=text,
            input_tokens=estimate_tokens(full_prompt),
            output_tokens=estimate_tokens(text),
            model=self._model,
            provider="gemini",
            estimated=True,
        )

    @property
    def provider_name(self) -> str:
        return "gemini"

    @property
    def model_name(self) -> str:
        return self._model
