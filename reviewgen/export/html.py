from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence

from jinja2 import Environment, FileSystemLoader

from reviewgen.pipeline.models import ProductRecord

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATES_DIR)),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)

# Words ending in "." that do not end a sentence
_ABBREVIATIONS = {
    "dr", "mr", "mrs", "ms", "prof", "sr", "jr", "st", "vs", "etc",
    "e.g", "i.e", "inc", "ltd", "approx", "fig",
}
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")
_TAG = re.compile(r"<[^>]*>")


def clean_markdown(text: str) -> str:
    """Strip markdown headings and bold/italic markers from model output."""
    if not text:
        return ""
    text = re.sub(r"^#{1,6}\s+[^\n]*\n?", "", text, flags=re.MULTILINE)
    text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
    text = re.sub(r"\*([^*]+)\*", r"\1", text)
    text = re.sub(r"\n\s*\n", "\n\n", text)
    return text.strip()


def _ends_with_abbreviation(sentence: str) -> bool:
    last = sentence.rsplit(None, 1)[-1].lower()
    return last.endswith(".") and last.rstrip(".") in _ABBREVIATIONS


def split_sentences(text: str) -> list[str]:
    sentences: list[str] = []
    for piece in _SENTENCE_END.split(text.strip()):
        if sentences and _ends_with_abbreviation(sentences[-1]):
            sentences[-1] = f"{sentences[-1]} {piece}"
        elif piece:
            sentences.append(piece)
    return sentences


def format_paragraphs(text: str, max_sentences: int = 2) -> list[str]:
    """Regroup text into short paragraphs of at most ``max_sentences`` sentences."""
    paragraphs: list[str] = []
    for block in re.split(r"\n\s*\n", clean_markdown(text)):
        sentences = split_sentences(" ".join(block.split()))
        for i in range(0, len(sentences), max_sentences):
            paragraphs.append(" ".join(sentences[i:i + max_sentences]))
    return [p for p in paragraphs if p]


def count_words(html: str) -> int:
    return len(_TAG.sub(" ", html).split())


def render_document(
    title: str,
    introduction: str,
    conclusion: str,
    sections: Sequence[str] = (),
    section_titles: Sequence[str] = (),
    product_records: Sequence[ProductRecord] = (),
) -> str:
    """Assemble the final HTML article. Pure and deterministic."""
    titles = list(section_titles) + [""] * (len(sections) - len(section_titles))
    template = _env.get_template("article.html")
    return template.render(
        title=title,
        introduction=format_paragraphs(introduction),
        sections=[
            {"title": t, "paragraphs": format_paragraphs(body)}
            for t, body in zip(titles, sections)
        ],
        products=[
            {
                "name": p.name,
                "image_url": p.image_url,
                "affiliate_link": p.affiliate_link,
                "description": format_paragraphs(p.description),
                "pros": [x for x in p.pros if x.strip()],
                "cons": [x for x in p.cons if x.strip()],
            }
            for p in product_records
        ],
        conclusion=format_paragraphs(conclusion),
    ).strip()
