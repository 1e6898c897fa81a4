"""
Stage 3 — Hybrid ranking.

  final_score = quality_score × 0.3 + personalization_score × 0.7

Candidates missing from the quality mapping score quality 0.0. Sorting is
stable, so ties keep retrieval order.
"""
from dataclasses import dataclass
from typing import Mapping, Sequence

from feedrank.config import settings
from feedrank.feed.candidates import CandidatePost, ScoredCandidate

QUALITY_WEIGHT = 0.3
PERSONALIZATION_WEIGHT = 0.7


@dataclass(frozen=True)
class HybridRanker:
    quality_weight: float = QUALITY_WEIGHT
    personalization_weight: float = PERSONALIZATION_WEIGHT

    @classmethod
    def from_settings(cls) -> "HybridRanker":
        return cls(
            quality_weight=settings.quality_weight,
            personalization_weight=settings.personalization_weight,
        )

    def final_score(self, personalization_score: float, quality_score: float) -> float:
        return (
            quality_score * self.quality_weight
            + personalization_score * self.personalization_weight
        )

    def rank(
        self,
        candidates: Sequence[CandidatePost],
        quality_scores: Mapping[str, float],
    ) -> list[ScoredCandidate]:
        scored = []
        for candidate in candidates:
            quality = float(quality_scores.get(candidate.post_id, 0.0) or 0.0)
            scored.append(
                ScoredCandidate.from_candidate(
                    candidate,
                    quality_score=quality,
                    final_score=self.final_score(candidate.personalization_score, quality),
                )
            )
        return sorted(scored, key=lambda c: c.final_score, reverse=True)
