from __future__ import annotations

import asyncio
import logging
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from reviewgen.config import Settings, settings
from reviewgen.errors import SessionAbortError
from reviewgen.export.html import count_words, render_document
from reviewgen.llm.gateway import ProviderGateway
from reviewgen.llm.models import GenerationResult, TokenUsage
from reviewgen.llm.profiles import load_provider_profiles
from reviewgen.pipeline.context import ContextAccumulator
from reviewgen.pipeline.models import (
    GeneratedDocument,
    GenerationRequest,
    OutlineItem,
    ParsedSection,
    Product,
    ProductRecord,
    StageCall,
)
from reviewgen.pipeline.parser import PaddingPolicy, pad_with_filler, parse_review
from reviewgen.prompts.templates import PromptTemplate, PromptTemplateStore, StageTemplates

logger = logging.getLogger(__name__)

NO_PREVIOUS_CONTEXT = "No previous context"
NO_SECTION_DESCRIPTION = "No specific description provided"

GatewayFactory = Callable[[], ProviderGateway]


class StageKind(str, Enum):
    INTRODUCTION = "introduction"
    OUTLINE_SECTION = "outline_section"
    PRODUCT_REVIEW = "product_review"
    CONCLUSION = "conclusion"


@dataclass(frozen=True)
class Stage:
    kind: StageKind
    label: str
    position: int = 0
    total: int = 0
    product: Product | None = None
    outline_item: OutlineItem | None = None


def plan_stages(request: GenerationRequest) -> list[Stage]:
    """Introduction, outline sections, product reviews (product types only), conclusion."""
    stages = [Stage(StageKind.INTRODUCTION, "Introduction")]

    outline = request.outline
    for i, item in enumerate(outline, start=1):
        stages.append(Stage(StageKind.OUTLINE_SECTION, item.title, i, len(outline), outline_item=item))

    if request.content_type.is_product_review:
        products = request.products
        for i, product in enumerate(products, start=1):
            stages.append(
                Stage(StageKind.PRODUCT_REVIEW, f"Review: {product.name}", i, len(products), product=product)
            )

    stages.append(Stage(StageKind.CONCLUSION, "Conclusion"))
    return stages


@dataclass
class GenerationSession:
    """Mutable state of one request. Never shared between requests."""

    request: GenerationRequest
    templates: StageTemplates
    gateway: ProviderGateway
    context: ContextAccumulator
    usage: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0
    providers: list[str] = field(default_factory=list)
    models: list[str] = field(default_factory=list)
    introduction: str = ""
    outline_sections: list[str] = field(default_factory=list)
    review_texts: list[str] = field(default_factory=list)
    parsed_reviews: list[ParsedSection] = field(default_factory=list)
    conclusion: str = ""
    parse_shortfalls: int = 0
    calls: list[StageCall] = field(default_factory=list)
    started: float = field(default_factory=time.monotonic)

    def record(self, stage: Stage, result: GenerationResult) -> None:
        self.usage.add(result.usage)
        self.cost += result.cost
        if result.provider_used not in self.providers:
            self.providers.append(result.provider_used)
        if result.model_used not in self.models:
            self.models.append(result.model_used)
        self.calls.append(
            StageCall(
                stage=stage.label,
                provider=result.provider_used,
                model=result.model_used,
                input_tokens=result.usage.input_tokens,
                output_tokens=result.usage.output_tokens,
                cost=result.cost,
                duration_ms=result.duration_ms,
                estimated_usage=result.estimated_usage,
            )
        )


class GenerationOrchestrator:
    """Runs one request through its stages and assembles the document.

    Each ``generate()`` call builds a fresh gateway (its own profile snapshot)
    and a fresh context accumulator, so concurrent calls share nothing mutable.
    """

    def __init__(
        self,
        template_store: PromptTemplateStore,
        gateway_factory: GatewayFactory,
        cfg: Settings | None = None,
        pad: PaddingPolicy = pad_with_filler,
    ) -> None:
        self._store = template_store
        self._gateway_factory = gateway_factory
        self._cfg = cfg or settings
        self._pad = pad

    async def generate(self, request: GenerationRequest) -> GeneratedDocument:
        logger.info(f"Starting content generation: '{request.title}' ({request.content_type.value})")

        # Configuration problems surface before any provider call
        templates = self._store.stage_templates(request.content_type, with_outline=bool(request.outline))
        gateway = self._gateway_factory()
        gateway.initialize()

        session = GenerationSession(
            request=request,
            templates=templates,
            gateway=gateway,
            context=ContextAccumulator(
                window_size=self._cfg.sliding_window_size,
                entry_chars=self._cfg.sliding_entry_chars,
                full_chars=self._cfg.full_context_chars,
            ),
        )

        for stage in plan_stages(request):
            try:
                await self._run_stage(session, stage)
            except Exception as e:
                logger.error(f"Aborting '{request.title}' at stage '{stage.label}': {e}")
                raise SessionAbortError(stage.label, e) from e

        document = self._assemble(session)
        logger.info(
            f"Generated '{document.title}' in {document.elapsed_seconds:.1f}s with "
            f"{document.provider_used} ({document.model_used}): "
            f"{document.usage.total_tokens} tokens (in={document.usage.input_tokens}, "
            f"out={document.usage.output_tokens}), ${document.cost:.4f}"
        )
        return document

    async def _run_stage(self, session: GenerationSession, stage: Stage) -> None:
        template = self._template_for(session, stage)
        prompt = template.compile(self._variables(session, stage))

        result = await session.gateway.generate_content(prompt)
        session.record(stage, result)
        session.context.push(stage.label, result.content)
        logger.info(
            f"[{stage.label}] {len(result.content)} chars via {result.provider_used} ({result.model_used}), "
            f"tokens in={result.usage.input_tokens} out={result.usage.output_tokens}, ${result.cost:.4f}"
        )

        if stage.kind is StageKind.INTRODUCTION:
            session.introduction = result.content
        elif stage.kind is StageKind.OUTLINE_SECTION:
            session.outline_sections.append(result.content)
        elif stage.kind is StageKind.PRODUCT_REVIEW:
            parsed = parse_review(result.content, session.request.content_type, self._pad)
            if parsed.shortfall:
                session.parse_shortfalls += 1
                logger.warning(
                    f"[{stage.label}] parser padded {parsed.padded_pros} pros and "
                    f"{parsed.padded_cons} cons with filler"
                )
            session.review_texts.append(result.content)
            session.parsed_reviews.append(parsed)
        else:
            session.conclusion = result.content

    def _template_for(self, session: GenerationSession, stage: Stage) -> PromptTemplate:
        templates = session.templates
        if stage.kind is StageKind.INTRODUCTION:
            return templates.intro
        if stage.kind is StageKind.CONCLUSION:
            return templates.conclusion
        if stage.kind is StageKind.OUTLINE_SECTION and session.request.content_type.is_product_review:
            return templates.section
        return templates.item

    def _variables(self, session: GenerationSession, stage: Stage) -> dict[str, object]:
        request = session.request
        product_names = ", ".join(p.name for p in request.products)
        outline_topics = ", ".join(item.title for item in request.outline)
        is_product_review = request.content_type.is_product_review

        if stage.kind is StageKind.INTRODUCTION:
            if is_product_review:
                return {"title": request.title, "product_count": len(request.products)}
            return {"title": request.title, "outline_topics": outline_topics}

        if stage.kind is StageKind.CONCLUSION:
            variables: dict[str, object] = {
                "title": request.title,
                "introduction": session.introduction[: self._cfg.intro_excerpt_chars],
                "full_context": session.context.full_context(),
            }
            if is_product_review:
                variables["product_names"] = product_names
                variables["product_count"] = len(request.products)
            else:
                variables["outline_topics"] = outline_topics
            return variables

        variables = {
            "title": request.title,
            "position": stage.position,
            "total": stage.total,
            "sliding_context": session.context.sliding_context() or NO_PREVIOUS_CONTEXT,
        }
        if stage.kind is StageKind.OUTLINE_SECTION:
            variables["section_title"] = stage.outline_item.title
            variables["section_description"] = stage.outline_item.body or NO_SECTION_DESCRIPTION
        else:
            variables["product_name"] = stage.product.name
        return variables

    def _assemble(self, session: GenerationSession) -> GeneratedDocument:
        request = session.request
        records = [
            ProductRecord(
                **product.model_dump(),
                description=parsed.description,
                pros=parsed.pros,
                cons=parsed.cons,
            )
            for product, parsed in zip(request.products, session.parsed_reviews)
        ]
        section_titles = [item.title for item in request.outline]
        rendered = render_document(
            title=request.title,
            introduction=session.introduction,
            conclusion=session.conclusion,
            sections=session.outline_sections,
            section_titles=section_titles,
            product_records=records,
        )
        return GeneratedDocument(
            title=request.title,
            content_type=request.content_type,
            introduction=session.introduction,
            sections=session.outline_sections + session.review_texts,
            section_titles=section_titles + [p.name for p in records],
            conclusion=session.conclusion,
            rendered_document=rendered,
            product_records=records,
            usage=session.usage,
            cost=session.cost,
            provider_used=", ".join(session.providers),
            model_used=", ".join(session.models),
            elapsed_seconds=time.monotonic() - session.started,
            word_count=count_words(rendered),
            parse_shortfalls=session.parse_shortfalls,
            calls=session.calls,
        )


def create_orchestrator(cfg: Settings | None = None) -> GenerationOrchestrator:
    """Orchestrator wired to the configured prompts directory and provider profiles."""
    cfg = cfg or settings
    store = PromptTemplateStore(cfg.prompts_dir).load()

    def gateway_factory() -> ProviderGateway:
        # Re-read per session: each session gets its own immutable snapshot
        return ProviderGateway(load_provider_profiles(cfg), system_prompt=cfg.system_prompt)

    return GenerationOrchestrator(store, gateway_factory, cfg)


if __name__ == "__main__":
    from reviewgen.export.markdown import write_document_note
    from reviewgen.storage.files import load_json, save_json

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    args = sys.argv[1:]
    if not args:
        print("Usage: python -m reviewgen.pipeline.orchestrator <request.json> [--out DIR] [--markdown DIR]")
        sys.exit(1)

    request_path = Path(args[0])
    out_dir = settings.documents_dir
    markdown_dir = settings.markdown_export_path
    i = 1
    while i < len(args):
        if args[i] == "--out" and i + 1 < len(args):
            out_dir = Path(args[i + 1])
            i += 2
        elif args[i] == "--markdown" and i + 1 < len(args):
            markdown_dir = Path(args[i + 1])
            i += 2
        else:
            print(f"Unknown argument: {args[i]}")
            sys.exit(1)

    async def _main():
        request = GenerationRequest.model_validate(load_json(request_path))
        document = await asyncio.wait_for(
            create_orchestrator().generate(request),
            timeout=settings.session_timeout,
        )
        stem = request_path.stem
        save_json(out_dir / f"{stem}.json", document.model_dump(mode="json"))
        (out_dir / f"{stem}.html").write_text(document.rendered_document, encoding="utf-8")
        if markdown_dir:
            write_document_note(document, markdown_dir)
        print(
            f"\nDone: {len(document.sections)} sections, {document.word_count} words, "
            f"{document.usage.total_tokens} tokens, ${document.cost:.4f} "
            f"({document.provider_used} / {document.model_used})"
        )
        print(f"Output: {out_dir / f'{stem}.html'}")

    asyncio.run(_main())
