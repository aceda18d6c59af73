from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

from reviewgen.config import settings
from reviewgen.errors import AllProvidersFailedError, ConfigurationError, ProviderError
from reviewgen.llm.anthropic_provider import AnthropicProvider
from reviewgen.llm.gemini_provider import GeminiProvider
from reviewgen.llm.models import GenerationResult, TokenUsage
from reviewgen.llm.openai_provider import OpenAIProvider
from reviewgen.llm.profiles import (
    CredentialResolver,
    ProviderFamily,
    ProviderProfile,
    env_credentials,
    mask_api_key,
    select_profiles,
)
from reviewgen.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderProfile, str], LLMProvider]


def create_provider(profile: ProviderProfile, api_key: str) -> LLMProvider:
    """Create the adapter for a profile's backend family."""
    if profile.family is ProviderFamily.ANTHROPIC:
        return AnthropicProvider(api_key=api_key, model=profile.model)
    if profile.family is ProviderFamily.GEMINI:
        return GeminiProvider(api_key=api_key, model=profile.model)
    return OpenAIProvider(api_key=api_key, model=profile.model, base_url=profile.base_url)


@dataclass(frozen=True)
class _Binding:
    profile: ProviderProfile
    provider: LLMProvider

    @property
    def label(self) -> str:
        return f"{self.profile.family.value} ({self.profile.model})"


class ProviderGateway:
    """Primary/fallback failover over provider adapters.

    The gateway holds its own copy of the provider profiles, so one gateway per
    generation session sees a stable selection even if the configuration
    changes while the session runs.
    """

    def __init__(
        self,
        profiles: Iterable[ProviderProfile],
        credentials: CredentialResolver = env_credentials,
        provider_factory: ProviderFactory = create_provider,
        system_prompt: str | None = None,
    ) -> None:
        self._profiles = tuple(profiles)
        self._credentials = credentials
        self._factory = provider_factory
        self._system_prompt = system_prompt if system_prompt is not None else settings.system_prompt
        self._primary: _Binding | None = None
        self._fallback: _Binding | None = None

    @property
    def initialized(self) -> bool:
        return self._primary is not None

    @property
    def primary_profile(self) -> ProviderProfile | None:
        return self._primary.profile if self._primary else None

    @property
    def fallback_profile(self) -> ProviderProfile | None:
        return self._fallback.profile if self._fallback else None

    def initialize(self) -> None:
        primary, fallback = select_profiles(self._profiles)

        api_key = self._credentials(primary)
        if not api_key:
            raise ConfigurationError(
                f"Primary profile {primary.id} has no API key configured"
            )
        self._primary = _Binding(primary, self._factory(primary, api_key))
        logger.info(
            f"Primary AI provider: {self._primary.label} [{primary.id}] key={mask_api_key(api_key)}"
        )

        self._fallback = None
        if fallback:
            fallback_key = self._credentials(fallback)
            if fallback_key:
                self._fallback = _Binding(fallback, self._factory(fallback, fallback_key))
                logger.info(f"Fallback AI provider: {self._fallback.label} [{fallback.id}]")
            else:
                logger.warning(f"Fallback profile {fallback.id} has no API key, running without fallback")

    async def generate_content(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        if not self.initialized:
            self.initialize()

        attempts: list[tuple[str, Exception]] = []
        for role, binding in (("primary", self._primary), ("fallback", self._fallback)):
            if binding is None:
                continue
            if role == "fallback":
                logger.warning(f"Trying fallback provider {binding.label}")
            try:
                return await self._generate_with(binding, prompt, system_prompt, max_tokens)
            except ProviderError as e:
                logger.error(f"{role.capitalize()} provider {binding.label} failed: {e}")
                attempts.append((f"{role} {binding.label}", e))

        raise AllProvidersFailedError(attempts)

    async def _generate_with(
        self,
        binding: _Binding,
        prompt: str,
        system_prompt: str | None,
        max_tokens: int | None,
    ) -> GenerationResult:
        profile = binding.profile
        start = time.monotonic()
        response = await binding.provider.complete(
            system_prompt=system_prompt or self._system_prompt,
            user_prompt=prompt,
            max_tokens=max_tokens or profile.max_output_tokens,
            **profile.sampling.model_dump(),
        )
        duration_ms = int((time.monotonic() - start) * 1000)

        return GenerationResult(
            content=response.content,
            usage=TokenUsage(
                input_tokens=response.input_tokens,
                output_tokens=response.output_tokens,
            ),
            provider_used=profile.family.value,
            model_used=profile.model,
            profile_id=profile.id,
            cost=profile.cost(response.input_tokens, response.output_tokens),
            estimated_usage=response.estimated,
            duration_ms=duration_ms,
        )
