"""Extractor - Phase 1 of the Problem Analyzer.

Finds archetype keywords, deviation trigger phrases and regex detection
patterns in raw problem text.

Keyword matching is case-insensitive substring containment against the
lowercased text, so a short keyword also matches inside longer words.
Patterns run against the original-case text.
"""

import logging
from typing import Iterable, Optional

from knowledge_base.loader import KnowledgeBase

from .errors import InvalidProblemTextError
from .schema import EvidenceSet, KeywordHit, PatternHit

logger = logging.getLogger(__name__)


def ensure_text(text: object) -> str:
    """Return the text, treating None as empty.

    Raises:
        InvalidProblemTextError: If the value is not a string.
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        raise InvalidProblemTextError(text)
    return text


def find_positions(haystack: str, needle: str) -> list[int]:
    """Offsets of every (possibly overlapping) occurrence of needle."""
    positions = []
    start = haystack.find(needle)
    while start != -1:
        positions.append(start)
        start = haystack.find(needle, start + 1)
    return positions


class SignalExtractor:
    """Extracts keyword and pattern evidence from problem text."""

    def __init__(self, kb: KnowledgeBase):
        self.kb = kb

    def extract_signals(self, text: Optional[str]) -> EvidenceSet:
        """Collect archetype keyword hits, deviation trigger hits and strong signals."""
        text = ensure_text(text)
        if not text.strip():
            return EvidenceSet(text_length=len(text))

        lowered = text.lower()
        return EvidenceSet(
            text_length=len(text),
            archetype_hits=self.match_keywords(lowered),
            trigger_hits=self.match_triggers(lowered),
            strong_signals=[s for s in self.kb.strong_signals if s.matches(lowered)],
        )

    def match_keywords(self, lowered: str) -> list[KeywordHit]:
        """Archetype keywords present in already-lowercased text."""
        hits = []
        for keyword, entry in self.kb.keyword_index.items():
            positions = find_positions(lowered, keyword)
            if positions:
                hits.append(KeywordHit(
                    keyword=keyword,
                    weight=entry.weight,
                    archetypes=list(entry.archetypes),
                    positions=positions,
                ))
        return hits

    def match_triggers(self, lowered: str) -> list[KeywordHit]:
        """Deviation trigger phrases present in already-lowercased text."""
        hits = []
        for keyword, entry in self.kb.trigger_index.items():
            positions = find_positions(lowered, keyword)
            if positions:
                hits.append(KeywordHit(
                    keyword=keyword,
                    weight=entry.weight,
                    deviations=list(entry.deviations),
                    positions=positions,
                ))
        return hits

    def match_patterns(self, text: str, codes: Iterable[str]) -> list[PatternHit]:
        """Detection patterns of the given deviations that match the text.

        Each pattern counts once however often it matches.
        """
        hits = []
        for code in codes:
            for pattern in self.kb.compiled_patterns.get(code, []):
                if pattern.search(text):
                    hits.append(PatternHit(deviation_code=code, pattern=pattern.source))
        return hits
