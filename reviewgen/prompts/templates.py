from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict

from reviewgen.errors import ConfigurationError
from reviewgen.pipeline.models import ContentType

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def placeholders(content: str) -> set[str]:
    return set(_PLACEHOLDER.findall(content))


def compile_prompt(content: str, variables: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` placeholders in one pass.

    Every occurrence of a known name is replaced with ``str(value)``. Unknown
    names are left as literal ``{name}`` text. Substituted values are never
    re-scanned, so a value containing braces is inserted verbatim.
    """

    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if name in variables:
            return str(variables[name])
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, content)


class PromptTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    content: str
    content_type: ContentType
    name: str = ""
    variables: frozenset[str] = frozenset()
    active: bool = True

    def compile(self, variables: Mapping[str, Any]) -> str:
        return compile_prompt(self.content, variables)

    @property
    def undeclared_placeholders(self) -> set[str]:
        return placeholders(self.content) - self.variables


# Codes each content type needs; the section template is also needed by
# product types when the request carries an outline.
SECTION_TEMPLATE = "article_section"
REQUIRED_TEMPLATES: dict[ContentType, tuple[str, str, str]] = {
    ContentType.PRODUCT_COMPARISON: ("comparison_intro", "comparison_product", "comparison_conclusion"),
    ContentType.DEEP_DIVE: ("deep_dive_intro", "deep_dive_product", "deep_dive_conclusion"),
    ContentType.INFORMATIONAL: ("article_intro", SECTION_TEMPLATE, "article_conclusion"),
}


@dataclass(frozen=True)
class StageTemplates:
    intro: PromptTemplate
    item: PromptTemplate  # product review, or outline section for articles
    conclusion: PromptTemplate
    section: PromptTemplate | None = None


class PromptTemplateStore:
    """Read-only view over the YAML prompt templates in a directory."""

    def __init__(self, prompts_dir: Path) -> None:
        self._dir = prompts_dir
        self._templates: dict[str, PromptTemplate] = {}

    @classmethod
    def from_templates(cls, templates: list[PromptTemplate]) -> PromptTemplateStore:
        store = cls(Path("."))
        store._templates = {t.code: t for t in templates}
        return store

    def load(self) -> PromptTemplateStore:
        templates: dict[str, PromptTemplate] = {}
        for path in sorted(self._dir.glob("*.yaml")):
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            data.setdefault("code", path.stem)
            template = PromptTemplate.model_validate(data)
            if template.undeclared_placeholders:
                logger.warning(
                    f"Template {template.code} uses undeclared placeholders: "
                    f"{sorted(template.undeclared_placeholders)}"
                )
            templates[template.code] = template
        self._templates = templates
        logger.info(f"Loaded {len(templates)} prompt templates from {self._dir}")
        return self

    def get(self, code: str) -> PromptTemplate | None:
        template = self._templates.get(code)
        if template is None or not template.active:
            return None
        return template

    def list_templates(self) -> list[PromptTemplate]:
        return sorted(self._templates.values(), key=lambda t: t.code)

    def stage_templates(self, content_type: ContentType, with_outline: bool = False) -> StageTemplates:
        """Resolve every template a session will need, failing fast on gaps."""
        intro_code, item_code, conclusion_code = REQUIRED_TEMPLATES[content_type]
        codes = [intro_code, item_code, conclusion_code]
        needs_section = with_outline and content_type.is_product_review
        if needs_section:
            codes.append(SECTION_TEMPLATE)

        missing = [code for code in codes if self.get(code) is None]
        if missing:
            raise ConfigurationError(
                f"Required prompts for {content_type.value} not found: {', '.join(missing)}. "
                f"Add active templates to {self._dir}."
            )

        return StageTemplates(
            intro=self.get(intro_code),
            item=self.get(item_code),
            conclusion=self.get(conclusion_code),
            section=self.get(SECTION_TEMPLATE) if needs_section else None,
        )
