from __future__ import annotations

import os
from enum import Enum
from typing import Callable, Iterable

from pydantic import BaseModel, ConfigDict, Field, model_validator

from reviewgen.config import Settings, settings
from reviewgen.errors import ConfigurationError


class ProviderFamily(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


class SamplingParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(0.7, ge=0, le=2)
    top_p: float = Field(1.0, ge=0, le=1)
    frequency_penalty: float = Field(0.0, ge=-2, le=2)
    presence_penalty: float = Field(0.0, ge=-2, le=2)


class ProviderProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    family: ProviderFamily
    model: str
    input_cost_per_1k: float = Field(ge=0)
    output_cost_per_1k: float = Field(ge=0)
    max_output_tokens: int = Field(2000, ge=1)
    sampling: SamplingParams = SamplingParams()
    active: bool = True
    primary: bool = False
    fallback: bool = False
    api_key_env: str | None = None  # overrides the family's settings field
    base_url: str | None = None

    @model_validator(mode="after")
    def _not_both_roles(self) -> ProviderProfile:
        if self.primary and self.fallback:
            raise ValueError(f"Profile {self.id} cannot be both primary and fallback")
        return self

    def cost(self, input_tokens: int, output_tokens: int) -> float:
        return (input_tokens / 1000 * self.input_cost_per_1k
                + output_tokens / 1000 * self.output_cost_per_1k)


CredentialResolver = Callable[[ProviderProfile], str]


def load_provider_profiles(cfg: Settings | None = None) -> tuple[ProviderProfile, ...]:
    """Read profiles from settings into an immutable snapshot."""
    cfg = cfg or settings
    return tuple(ProviderProfile.model_validate(p) for p in cfg.provider_profiles)


def select_profiles(
    profiles: Iterable[ProviderProfile],
) -> tuple[ProviderProfile, ProviderProfile | None]:
    """Pick the active primary and optional active fallback.

    Raises ConfigurationError when no primary is configured or when more than
    one active profile claims the same role.
    """
    active = [p for p in profiles if p.active]
    primaries = [p for p in active if p.primary]
    fallbacks = [p for p in active if p.fallback]

    if len(primaries) > 1:
        ids = ", ".join(p.id for p in primaries)
        raise ConfigurationError(f"More than one active primary provider profile: {ids}")
    if len(fallbacks) > 1:
        ids = ", ".join(p.id for p in fallbacks)
        raise ConfigurationError(f"More than one active fallback provider profile: {ids}")
    if not primaries:
        raise ConfigurationError(
            "No primary AI provider configured. Mark one active profile as primary in config.yaml."
        )
    return primaries[0], (fallbacks[0] if fallbacks else None)


def env_credentials(profile: ProviderProfile, cfg: Settings | None = None) -> str:
    """Default credential resolver: profile's env var, then the family's settings field."""
    cfg = cfg or settings
    if profile.api_key_env:
        return os.environ.get(profile.api_key_env, "")
    return getattr(cfg, f"{profile.family.value}_api_key", "")


def mask_api_key(key: str) -> str:
    if not key:
        return ""
    if len(key) < 8:
        return "***"
    return f"{key[:7]}...{key[-4:]}"
