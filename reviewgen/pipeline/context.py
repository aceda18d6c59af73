from __future__ import annotations

from collections import deque

SEPARATOR = "\n\n---\n\n"


class ContextAccumulator:
    """Session-scoped record of everything generated so far.

    Two views over the same pushes:

    * ``sliding_context()`` -- the most recent ``window_size`` entries, each
      cut to ``entry_chars``. Passed to the next stage for continuity.
    * ``full_context()`` -- every entry in push order under a ``## label``
      heading, cut at the end to ``full_chars``. Used for the conclusion.

    Neither view is ever rewound; one accumulator serves one session.
    """

    def __init__(self, window_size: int = 2, entry_chars: int = 1000, full_chars: int = 8000) -> None:
        self._window: deque[str] = deque(maxlen=window_size)
        self._entry_chars = entry_chars
        self._full_chars = full_chars
        self._transcript: list[tuple[str, str]] = []

    def push(self, label: str, text: str) -> None:
        self._window.append(text)
        self._transcript.append((label, text))

    def sliding_context(self) -> str:
        return SEPARATOR.join(entry[: self._entry_chars] for entry in self._window)

    def full_context(self) -> str:
        full = SEPARATOR.join(f"## {label}\n{text}" for label, text in self._transcript)
        return full[: self._full_chars]

    @property
    def window(self) -> list[str]:
        return list(self._window)

    @property
    def labels(self) -> list[str]:
        return [label for label, _ in self._transcript]

    def __len__(self) -> int:
        return len(self._transcript)
