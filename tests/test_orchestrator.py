"""Tests for stage planning and end-to-end generation sessions."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from reviewgen.errors import AllProvidersFailedError, ConfigurationError, SessionAbortError
from reviewgen.pipeline.models import ContentType, GenerationRequest
from reviewgen.pipeline.orchestrator import (
    NO_SECTION_DESCRIPTION,
    GenerationOrchestrator,
    StageKind,
    plan_stages,
)
from reviewgen.prompts.templates import PromptTemplate, PromptTemplateStore

from conftest import CONCLUSION_TEXT, INTRO_TEXT, respond_like_a_reviewer


def _comparison(n: int = 3, **overrides) -> GenerationRequest:
    data = {
        "title": "Best Budget Laptops",
        "content_type": "product_comparison",
        "products": [
            {"name": f"Laptop {i}", "affiliate_link": f"https://example.com/{i}"}
            for i in range(1, n + 1)
        ],
    }
    data.update(overrides)
    return GenerationRequest.model_validate(data)


def _article() -> GenerationRequest:
    return GenerationRequest.model_validate({
        "title": "How to Brew Tea",
        "content_type": "informational",
        "outline": [
            {"title": "Choosing leaves", "body": "Loose leaf versus bags"},
            {"title": "Water temperature"},
        ],
    })


@pytest.fixture
def providers(fake_provider):
    return {
        "openai-main": fake_provider(name="openai", model="gpt-4o-mini", respond=respond_like_a_reviewer),
        "claude-backup": fake_provider(name="anthropic", model="claude-haiku", respond=respond_like_a_reviewer),
    }


@pytest.fixture
def orchestrator(prompt_store, make_gateway, providers):
    return GenerationOrchestrator(prompt_store, lambda: make_gateway(providers))


class TestRequestValidation:

    def test_product_type_requires_products(self):
        with pytest.raises(ValidationError, match="at least one product"):
            _comparison(n=0)

    def test_informational_requires_outline(self):
        with pytest.raises(ValidationError, match="outline"):
            GenerationRequest(title="Tea", content_type=ContentType.INFORMATIONAL)

    def test_blank_product_name_rejected(self):
        with pytest.raises(ValidationError):
            _comparison(products=[{"name": ""}])


class TestPlanStages:

    def test_comparison_order(self):
        stages = plan_stages(_comparison(n=2))
        assert [s.kind for s in stages] == [
            StageKind.INTRODUCTION, StageKind.PRODUCT_REVIEW, StageKind.PRODUCT_REVIEW, StageKind.CONCLUSION,
        ]
        assert [s.label for s in stages] == ["Introduction", "Review: Laptop 1", "Review: Laptop 2", "Conclusion"]
        assert (stages[2].position, stages[2].total) == (2, 2)

    def test_article_order(self):
        stages = plan_stages(_article())
        assert [s.label for s in stages] == ["Introduction", "Choosing leaves", "Water temperature", "Conclusion"]

    def test_informational_ignores_products(self):
        request = _article().model_copy(update={"products": _comparison(n=2).products})
        assert all(s.kind is not StageKind.PRODUCT_REVIEW for s in plan_stages(request))

    def test_outline_sections_precede_product_reviews(self):
        request = _comparison(n=1, outline=[{"title": "How we tested"}])
        kinds = [s.kind for s in plan_stages(request)]
        assert kinds == [
            StageKind.INTRODUCTION, StageKind.OUTLINE_SECTION, StageKind.PRODUCT_REVIEW, StageKind.CONCLUSION,
        ]


class TestComparisonSession:

    async def test_all_stages_on_primary(self, orchestrator, providers):
        document = await orchestrator.generate(_comparison(n=3))

        primary = providers["openai-main"]
        assert len(primary.calls) == 5
        assert providers["claude-backup"].calls == []

        assert document.introduction == INTRO_TEXT
        assert document.conclusion == CONCLUSION_TEXT
        assert len(document.sections) == 3
        assert document.section_titles == ["Laptop 1", "Laptop 2", "Laptop 3"]
        for record in document.product_records:
            assert len(record.pros) == 4
            assert len(record.cons) == 2
        assert document.product_records[0].affiliate_link == "https://example.com/1"

        assert document.usage.input_tokens == 500
        assert document.usage.output_tokens == 250
        assert document.cost == pytest.approx(5 * (0.1 * 0.001 + 0.05 * 0.002))
        assert document.provider_used == "openai"
        assert document.model_used == "gpt-4o-mini"
        assert document.parse_shortfalls == 0
        assert [c.stage for c in document.calls] == [
            "Introduction", "Review: Laptop 1", "Review: Laptop 2", "Review: Laptop 3", "Conclusion",
        ]
        assert "Laptop 2" in document.rendered_document
        assert document.word_count > 0

    async def test_prompts_carry_context(self, orchestrator, providers):
        await orchestrator.generate(_comparison(n=3))
        prompts = [c["user_prompt"] for c in providers["openai-main"].calls]

        assert "3 BEST products" in prompts[0]
        assert "product 1 of 3" in prompts[1]
        assert INTRO_TEXT in prompts[1]
        assert INTRO_TEXT in prompts[2]
        # window holds only the two most recent outputs
        assert INTRO_TEXT not in prompts[3]
        assert "## Introduction" in prompts[4]
        assert "## Review: Laptop 3" in prompts[4]
        assert "Laptop 1, Laptop 2, Laptop 3" in prompts[4]

    async def test_fallback_mid_session(self, prompt_store, make_gateway, fake_provider):
        primary = fake_provider(name="openai", model="gpt-4o-mini", respond=respond_like_a_reviewer, fail_on={3})
        backup = fake_provider(name="anthropic", model="claude-haiku", respond=respond_like_a_reviewer)
        orchestrator = GenerationOrchestrator(
            prompt_store, lambda: make_gateway({"openai-main": primary, "claude-backup": backup})
        )

        document = await orchestrator.generate(_comparison(n=3))

        assert len(backup.calls) == 1
        assert document.calls[2].provider == "anthropic"
        assert document.calls[3].provider == "openai"
        assert document.provider_used == "openai, anthropic"
        assert document.model_used == "gpt-4o-mini, claude-haiku"
        expected = 4 * (0.1 * 0.001 + 0.05 * 0.002) + (0.1 * 0.003 + 0.05 * 0.015)
        assert document.cost == pytest.approx(expected)

    async def test_fallback_serves_whole_session(self, prompt_store, make_gateway, fake_provider):
        primary = fake_provider(name="openai", model="gpt-4o-mini", respond=respond_like_a_reviewer,
                                fail_on=range(1, 50))
        backup = fake_provider(name="anthropic", model="claude-haiku", respond=respond_like_a_reviewer)
        orchestrator = GenerationOrchestrator(
            prompt_store, lambda: make_gateway({"openai-main": primary, "claude-backup": backup})
        )

        document = await orchestrator.generate(_comparison(n=3))

        assert document.provider_used == "anthropic"
        assert document.model_used == "claude-haiku"
        assert len(backup.calls) == 5
        assert len(document.product_records) == 3
        for record in document.product_records:
            assert len(record.pros) == 4
            assert len(record.cons) == 2
        assert document.usage.total_tokens == document.usage.input_tokens + document.usage.output_tokens
        assert document.usage.total_tokens == 750
        assert document.cost == pytest.approx(5 * (0.1 * 0.003 + 0.05 * 0.015))

    async def test_abort_when_both_providers_fail(self, prompt_store, make_gateway, fake_provider):
        primary = fake_provider(name="openai", respond=respond_like_a_reviewer, fail_on=range(2, 10))
        backup = fake_provider(name="anthropic", respond=respond_like_a_reviewer, fail_on=range(1, 10))
        orchestrator = GenerationOrchestrator(
            prompt_store, lambda: make_gateway({"openai-main": primary, "claude-backup": backup})
        )

        with pytest.raises(SessionAbortError) as exc:
            await orchestrator.generate(_comparison(n=3))

        assert exc.value.stage == "Review: Laptop 1"
        assert isinstance(exc.value.__cause__, AllProvidersFailedError)
        assert "primary" in str(exc.value)
        assert "fallback" in str(exc.value)
        # nothing after the failing stage is attempted
        assert len(primary.calls) == 2

    async def test_malformed_review_padded(self, prompt_store, make_gateway, fake_provider):
        provider = fake_provider(respond=lambda prompt: "No structure here.")
        orchestrator = GenerationOrchestrator(
            prompt_store, lambda: make_gateway({"openai-main": provider, "claude-backup": provider})
        )
        document = await orchestrator.generate(_comparison(n=2))

        assert document.parse_shortfalls == 2
        assert document.product_records[0].pros[0] == "Additional benefit 1"
        assert len(document.product_records[1].cons) == 2


class TestDeepDiveSession:

    async def test_six_pros_three_cons(self, orchestrator):
        request = GenerationRequest.model_validate({
            "title": "Acme X200 Review",
            "content_type": "deep_dive",
            "products": [{"name": "Acme X200"}],
        })
        document = await orchestrator.generate(request)
        record = document.product_records[0]
        assert len(record.pros) == 6
        assert len(record.cons) == 3
        # the fake answers in comparison format: 4 real pros + 2 filler, 2 real cons + 1 filler
        assert record.pros[4:] == ["Additional benefit 5", "Additional benefit 6"]
        assert document.parse_shortfalls == 1


class TestInformationalSession:

    async def test_sections_from_outline(self, orchestrator, providers):
        document = await orchestrator.generate(_article())
        prompts = [c["user_prompt"] for c in providers["openai-main"].calls]

        assert len(prompts) == 4
        assert "Loose leaf versus bags" in prompts[1]
        assert NO_SECTION_DESCRIPTION in prompts[2]
        assert "section 2 of 2" in prompts[2]
        assert "Choosing leaves, Water temperature" in prompts[0]
        assert document.section_titles == ["Choosing leaves", "Water temperature"]
        assert len(document.sections) == 2
        assert document.product_records == []
        assert "Choosing leaves" in document.rendered_document


class TestConfigurationFailures:

    async def test_missing_template_fails_before_any_call(self, make_gateway, fake_provider):
        provider = fake_provider()
        store = PromptTemplateStore.from_templates([
            PromptTemplate(code="comparison_intro", content="Intro {title}", content_type="product_comparison"),
        ])
        orchestrator = GenerationOrchestrator(store, lambda: make_gateway({"openai-main": provider}))

        with pytest.raises(ConfigurationError):
            await orchestrator.generate(_comparison(n=1))
        assert provider.calls == []

    async def test_missing_primary_key_fails_before_any_call(self, prompt_store, make_gateway, fake_provider):
        provider = fake_provider()
        orchestrator = GenerationOrchestrator(
            prompt_store,
            lambda: make_gateway({"openai-main": provider}, credentials=lambda profile: ""),
        )
        with pytest.raises(ConfigurationError):
            await orchestrator.generate(_comparison(n=1))
        assert provider.calls == []

    async def test_sessions_share_no_state(self, orchestrator, providers):
        first = await orchestrator.generate(_comparison(n=1))
        second = await orchestrator.generate(_comparison(n=1))
        assert first.usage.total_tokens == second.usage.total_tokens == 450
        assert len(second.calls) == 3
