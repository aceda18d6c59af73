"""
Shared fixtures for the reviewgen test suite.

Provides scripted fake providers, provider profiles, the real prompt
templates and sample documents so that no test talks to an AI backend.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from reviewgen.errors import ProviderError
from reviewgen.llm.gateway import ProviderGateway
from reviewgen.llm.models import LLMResponse, TokenUsage
from reviewgen.llm.profiles import ProviderProfile
from reviewgen.llm.provider import LLMProvider
from reviewgen.pipeline.models import ContentType, GeneratedDocument, ProductRecord, StageCall
from reviewgen.prompts.templates import PromptTemplateStore

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

COMPARISON_REVIEW = """DESCRIPTION: A balanced all-rounder that holds its own against pricier rivals.
PROS:
- Long battery life
- Bright display
- Light build
- Fair price
CONS:
- Average speakers
- Slow charging
ANALYSIS: Best for buyers who want value without compromise."""

INTRO_TEXT = "Opening text for the roundup."
CONCLUSION_TEXT = "Final verdict text."


# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------

class FakeProvider(LLMProvider):
    """Scripted adapter. ``fail_on`` holds 1-based call numbers that raise."""

    def __init__(
        self,
        name: str = "fake",
        model: str = "fake-model",
        respond=None,
        fail_on=(),
        usage: tuple[int, int] = (100, 50),
    ) -> None:
        self.name = name
        self.model = model
        self.respond = respond
        self.fail_on = set(fail_on)
        self.usage = usage
        self.calls: list[dict] = []

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
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        n = len(self.calls)
        if n in self.fail_on:
            raise ProviderError(f"scripted failure on call {n}", provider=self.name, model=self.model)
        content = self.respond(user_prompt) if self.respond else f"{self.name} output {n}"
        return LLMResponse(
            content=content,
            input_tokens=self.usage[0],
            output_tokens=self.usage[1],
            model=self.model,
            provider=self.name,
        )

    @property
    def provider_name(self) -> str:
        return self.name

    @property
    def model_name(self) -> str:
        return self.model


def respond_like_a_reviewer(prompt: str) -> str:
    if "Format your answer" in prompt:
        return COMPARISON_REVIEW
    if "Write a conclusion" in prompt:
        return CONCLUSION_TEXT
    return INTRO_TEXT


# ---------------------------------------------------------------------------
# Profiles and gateways
# ---------------------------------------------------------------------------

@pytest.fixture
def primary_profile():
    return ProviderProfile(
        id="openai-main",
        family="openai",
        model="gpt-4o-mini",
        input_cost_per_1k=0.001,
        output_cost_per_1k=0.002,
        primary=True,
    )


@pytest.fixture
def fallback_profile():
    return ProviderProfile(
        id="claude-backup",
        family="anthropic",
        model="claude-haiku",
        input_cost_per_1k=0.003,
        output_cost_per_1k=0.015,
        fallback=True,
    )


@pytest.fixture
def fake_provider():
    """Factory for scripted providers."""
    return FakeProvider


@pytest.fixture
def make_gateway(primary_profile, fallback_profile):
    """Build a gateway whose adapters are the given fakes, keyed by profile id."""

    def _make(providers: dict[str, LLMProvider], profiles=None, credentials=None) -> ProviderGateway:
        return ProviderGateway(
            profiles if profiles is not None else (primary_profile, fallback_profile),
            credentials=credentials or (lambda profile: "test-key"),
            provider_factory=lambda profile, api_key: providers[profile.id],
            system_prompt="You are a test assistant.",
        )

    return _make


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

@pytest.fixture
def prompt_store():
    return PromptTemplateStore(PROMPTS_DIR).load()


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_document():
    return GeneratedDocument(
        title="Best Budget Laptops",
        content_type=ContentType.PRODUCT_COMPARISON,
        introduction="We tested many laptops. Here are the best.",
        sections=[COMPARISON_REVIEW],
        section_titles=["Acme X200"],
        conclusion="The Acme X200 wins.",
        rendered_document="<article><h1>Best Budget Laptops</h1></article>",
        product_records=[
            ProductRecord(
                name="Acme X200",
                affiliate_link="https://example.com/acme",
                description="A balanced all-rounder.",
                pros=["Long battery life", "Bright display", "Light build", "Fair price"],
                cons=["Average speakers", "Slow charging"],
            )
        ],
        usage=TokenUsage(input_tokens=300, output_tokens=150),
        cost=0.0006,
        provider_used="openai",
        model_used="gpt-4o-mini",
        elapsed_seconds=1.5,
        word_count=42,
        calls=[
            StageCall(stage="Introduction", provider="openai", model="gpt-4o-mini",
                      input_tokens=100, output_tokens=50, cost=0.0002, duration_ms=10),
            StageCall(stage="Review: Acme X200", provider="openai", model="gpt-4o-mini",
                      input_tokens=100, output_tokens=50, cost=0.0002, duration_ms=12),
            StageCall(stage="Conclusion", provider="openai", model="gpt-4o-mini",
                      input_tokens=100, output_tokens=50, cost=0.0002, duration_ms=9),
        ],
    )
