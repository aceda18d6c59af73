"""Recover description/pros/cons from a model's product review text.

The prompts ask for::

    DESCRIPTION: opening paragraph
    PROS:
    - pro 1
    CONS:
    - con 1
    ANALYSIS: closing analysis

Models drift from that layout, so the scanner accepts ``**PROS:**`` style
markers, ``-``/``*``/``•``/``1.`` bullets and inline text after markers. The
returned lists always have exactly the cardinality of the content type: extra
bullets are dropped in encounter order and shortfalls go through a padding
policy (generic filler by default).
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Callable

from reviewgen.pipeline.models import ContentType, ParsedSection

CARDINALITY: dict[ContentType, tuple[int, int]] = {
    ContentType.PRODUCT_COMPARISON: (4, 2),
    ContentType.DEEP_DIVE: (6, 3),
    # Informational articles have no review stage; this entry only serves
    # ad-hoc parsing of article templates from scripts/try_prompt.py --parse.
    ContentType.INFORMATIONAL: (4, 2),
}

_MARKER = re.compile(
    r"^(?:#{1,6}\s*)?(?:\*\*)?(DESCRIPTION|PROS|CONS|ANALYSIS)(?:\*\*)?\s*:\s*(?:\*\*)?\s*(.*)$",
    re.IGNORECASE,
)
_BULLET = re.compile(r"^(?:[-•]|\*(?!\*)|\d+[.)](?=\s))\s*(.*)$")

_FILLER = {
    "pros": "Additional benefit {n}",
    "cons": "Point to consider {n}",
}


class _Mode(str, Enum):
    NONE = "none"
    DESCRIPTION = "description"
    PROS = "pros"
    CONS = "cons"
    ANALYSIS = "analysis"


PaddingPolicy = Callable[[list[str], int, str], list[str]]


def pad_with_filler(items: list[str], expected: int, kind: str) -> list[str]:
    """Append numbered generic entries until ``expected`` is reached."""
    padded = list(items)
    while len(padded) < expected:
        padded.append(_FILLER[kind].format(n=len(padded) + 1))
    return padded


def no_padding(items: list[str], expected: int, kind: str) -> list[str]:
    return list(items)


def _clean_item(text: str) -> str:
    return text.replace("**", "").strip()


def parse_review(
    raw_text: str,
    content_type: ContentType,
    pad: PaddingPolicy = pad_with_filler,
) -> ParsedSection:
    expected_pros, expected_cons = CARDINALITY[content_type]
    mode = _Mode.NONE
    description: list[str] = []
    analysis: list[str] = []
    preamble: list[str] = []
    pros: list[str] = []
    cons: list[str] = []

    for line in raw_text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue

        marker = _MARKER.match(stripped)
        if marker:
            mode = _Mode(marker.group(1).lower())
            rest = marker.group(2).strip()
            if not rest:
                continue
            stripped = rest
            if mode in (_Mode.PROS, _Mode.CONS):
                # "PROS: long battery" carries its first item inline
                stripped = f"- {rest}"

        if mode in (_Mode.PROS, _Mode.CONS):
            bullet = _BULLET.match(stripped)
            if not bullet:
                continue
            item = _clean_item(bullet.group(1))
            target, cap = (pros, expected_pros) if mode is _Mode.PROS else (cons, expected_cons)
            if item and len(target) < cap:
                target.append(item)
        elif mode is _Mode.DESCRIPTION:
            description.append(stripped)
        elif mode is _Mode.ANALYSIS:
            analysis.append(stripped)
        else:
            preamble.append(stripped)

    text = " ".join(description) or " ".join(preamble)
    if analysis:
        text = f"{text}\n\n{' '.join(analysis)}" if text else " ".join(analysis)

    final_pros = pad(pros, expected_pros, "pros")
    final_cons = pad(cons, expected_cons, "cons")
    return ParsedSection(
        description=text,
        pros=final_pros,
        cons=final_cons,
        padded_pros=len(final_pros) - len(pros),
        padded_cons=len(final_cons) - len(cons),
    )
