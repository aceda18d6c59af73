from __future__ import annotations

from pydantic import BaseModel, computed_field


class LLMResponse(BaseModel):
    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    estimated: bool = False  # token counts derived from character length

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    @computed_field
    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, other: TokenUsage) -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens


class GenerationResult(BaseModel):
    """One gateway call, attributed to the profile that served it."""

    content: str
    usage: TokenUsage
    provider_used: str
    model_used: str
    profile_id: str
    cost: float
    estimated_usage: bool = False
    duration_ms: int = 0
