from __future__ import annotations

import logging
from pathlib import Path

import frontmatter

from reviewgen.pipeline.models import GeneratedDocument
from reviewgen.storage.database import slugify

logger = logging.getLogger(__name__)


def build_document_note(document: GeneratedDocument) -> frontmatter.Post:
    """Markdown body plus YAML front matter for a generated document."""
    meta = {
        "title": document.title,
        "content_type": document.content_type.value,
        "provider": document.provider_used,
        "model": document.model_used,
        "total_tokens": document.usage.total_tokens,
        "cost_usd": round(document.cost, 6),
        "word_count": document.word_count,
        "generated_at": document.generated_at.isoformat(),
        "products": [p.name for p in document.product_records],
    }
    meta = {k: v for k, v in meta.items() if v}

    lines = [f"# {document.title}\n", "## Introduction\n", document.introduction.strip() + "\n"]

    outline_count = len(document.sections) - len(document.product_records)
    for title, body in zip(document.section_titles[:outline_count], document.sections[:outline_count]):
        lines.append(f"## {title}\n")
        lines.append(body.strip() + "\n")

    for product in document.product_records:
        lines.append(f"## {product.name}\n")
        if product.image_url:
            lines.append(f"![{product.name}]({product.image_url})\n")
        if product.description:
            lines.append(product.description + "\n")
        lines.append("**Pros**\n")
        lines.extend(f"- {pro}" for pro in product.pros)
        lines.append("")
        lines.append("**Cons**\n")
        lines.extend(f"- {con}" for con in product.cons)
        lines.append("")
        if product.affiliate_link:
            lines.append(f"[See offer]({product.affiliate_link})\n")

    lines.append("## Conclusion\n")
    lines.append(document.conclusion.strip() + "\n")

    return frontmatter.Post("\n".join(lines), **meta)


def write_document_note(document: GeneratedDocument, out_dir: Path) -> Path:
    post = build_document_note(document)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{slugify(document.title) or 'untitled'}.md"
    out_path.write_text(frontmatter.dumps(post), encoding="utf-8")

    logger.info(f"Exported: {out_path}")
    return out_path
