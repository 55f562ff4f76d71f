"""
Suitability Ranker - heuristic relevance scoring for media candidates.
"""

from typing import List, Sequence, Tuple

from models.schemas import MediaCandidate, MediaKind, MediaProvider

BASE_SCORE = 50
KEYWORD_MATCH_BONUS = 20
KEYWORD_MISS_PENALTY = -10
KIND_BONUS = {
    MediaKind.VIDEO: 15,
    MediaKind.ANIMATED_LOOP: 10,
    MediaKind.IMAGE: 0,
}
TRUSTED_PROVIDER = MediaProvider.PEXELS
TRUSTED_PROVIDER_BONUS = 5


class SuitabilityRanker:
    """
    Scores candidates 0-100 against the script and the keyword they were
    sourced for. Pure function of its inputs, so re-running is safe.
    """

    def score(self, candidate: MediaCandidate, script: str, keyword: str) -> Tuple[int, str]:
        """Return (score, rationale) for one candidate."""
        score = BASE_SCORE

        if keyword.lower() in (script or "").lower():
            score += KEYWORD_MATCH_BONUS
            reasons = [f"Good match: keyword '{keyword}' found in script content"]
        else:
            score += KEYWORD_MISS_PENALTY
            reasons = [f"Partial match: keyword '{keyword}' not directly mentioned in script"]

        score += KIND_BONUS[candidate.kind]
        if candidate.kind == MediaKind.VIDEO:
            reasons.append("video content provides dynamic visual appeal")
        elif candidate.kind == MediaKind.ANIMATED_LOOP:
            reasons.append("animated content adds engagement")

        if candidate.provider == TRUSTED_PROVIDER:
            score += TRUSTED_PROVIDER_BONUS
            reasons.append("high-quality source")

        return max(0, min(100, score)), ". ".join(reasons) + "."

    @staticmethod
    def rank(candidates: Sequence[MediaCandidate]) -> List[MediaCandidate]:
        """Highest score first, unscored last. Advisory only."""
        return sorted(
            candidates,
            key=lambda c: (c.suitability_score is None, -(c.suitability_score or 0))
        )
