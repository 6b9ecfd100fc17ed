"""Keyword-based detection of requests for a human agent."""

from __future__ import annotations

import re
from collections.abc import Iterable


def parse_keywords(raw: str | None) -> list[str]:
    """Split a comma-separated keyword list, dropping blanks."""
    if not raw:
        return []
    return [k.strip() for k in raw.split(",") if k.strip()]


class HandoffIntentClassifier:
    """Matches message text against a fixed keyword set.

    Keywords are compiled once into a single case-insensitive alternation.
    An empty keyword set never matches.
    """

    def __init__(self, keywords: Iterable[str]) -> None:
        cleaned = sorted(
            {k.strip().lower() for k in keywords if k and k.strip()},
            key=lambda k: (-len(k), k),
        )
        self.keywords: tuple[str, ...] = tuple(cleaned)
        self._pattern: re.Pattern[str] | None = None
        if cleaned:
            self._pattern = re.compile(
                "|".join(re.escape(k) for k in cleaned), re.IGNORECASE,
            )

    def is_handoff_intent(self, text: str) -> bool:
        if self._pattern is None or not text:
            return False
        return self._pattern.search(text.lower()) is not None


def is_handoff_intent(text: str, keywords: Iterable[str]) -> bool:
    """One-off check; prefer a shared HandoffIntentClassifier on hot paths."""
    return HandoffIntentClassifier(keywords).is_handoff_intent(text)
