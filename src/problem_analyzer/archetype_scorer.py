"""Archetype Scorer - Phase 2 of the Problem Analyzer.

Ranks archetypes by the summed weight of their matched keywords and
flags hybrid problems that combine several archetypes.
"""

from typing import Optional

from knowledge_base.loader import KnowledgeBase

from .config import ArchetypeScoringConfig, get_config
from .guidance import solving_sequence
from .schema import ArchetypeRanking, ArchetypeScore, EvidenceSet

NO_MATCH_MESSAGE = "No archetype keywords found in the problem text"


class ArchetypeScorer:
    """Scores archetypes from extracted keyword evidence.

    Scoring principles:
    - A keyword contributes its full weight to every archetype it signals
    - Confidence is relative to the best-scoring archetype (0-100)
    - Ties keep registry order
    - Strong-signal combinations are reported but do not change scores
    """

    def __init__(self, kb: KnowledgeBase, config: Optional[ArchetypeScoringConfig] = None):
        self.kb = kb
        self.config = config or get_config().archetypes

    def score(self, evidence: EvidenceSet) -> ArchetypeRanking:
        """Rank archetypes for the evidence of one problem."""
        scores: dict[str, float] = {}
        matched: dict[str, list[str]] = {}

        for hit in evidence.archetype_hits:
            for code in hit.archetypes:
                scores[code] = scores.get(code, 0.0) + hit.weight
                matched.setdefault(code, []).append(hit.keyword)

        if not scores:
            return ArchetypeRanking(
                strong_signals=evidence.strong_signals,
                message=NO_MATCH_MESSAGE,
            )

        max_score = max(scores.values())
        ranked = []
        ratios: dict[str, float] = {}
        for code, score in scores.items():
            ratios[code] = 100.0 * score / max_score
            arch = self.kb.find_archetype(code)
            ranked.append(ArchetypeScore(
                code=code,
                name=arch.name if arch else "",
                score=score,
                confidence=round(ratios[code], 2),
                matched_keywords=matched[code],
            ))

        ranked.sort(key=lambda r: (-r.score, self.kb.archetype_order(r.code), r.code))

        primary = ranked[0]
        # Rounded confidence is for display; the floor applies to the exact ratio
        qualifying = [r for r in ranked if ratios[r.code] > self.config.hybrid_confidence_floor]
        is_hybrid = len(qualifying) > 1

        return ArchetypeRanking(
            archetype=primary.code,
            confidence=primary.confidence,
            primary=primary,
            secondary=ranked[1:1 + self.config.max_secondary],
            ranked=ranked,
            is_hybrid=is_hybrid,
            hybrid_combination=" + ".join(r.code for r in qualifying) if is_hybrid else None,
            solving_sequence=(
                solving_sequence(qualifying[0].code, qualifying[1].code) if is_hybrid else None
            ),
            strong_signals=evidence.strong_signals,
        )
