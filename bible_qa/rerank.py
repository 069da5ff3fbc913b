"""
Evidence-fused reranking of semantic search candidates.
"""

from enum import Enum
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from .evidence import compute_evidence
from .utils.types import Candidate, RerankResult

# In exact mode trigram similarity is blended into the keyword evidence.
TRIGRAM_EVIDENCE_WEIGHT = 0.4


class Mode(str, Enum):
    """Ranking profile. Each member carries its (semantic, evidence) weights."""

    EXPLORER = "explorer"
    EXACT = "exact"

    @property
    def weights(self) -> Tuple[float, float]:
        return _MODE_WEIGHTS[self]

    @property
    def uses_lexical_similarity(self) -> bool:
        return self is Mode.EXACT

    @classmethod
    def parse(cls, value: Union["Mode", str]) -> "Mode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown rerank mode: {value!r}") from None


_MODE_WEIGHTS = {
    Mode.EXPLORER: (0.75, 0.25),
    Mode.EXACT: (0.55, 0.45),
}


def rerank(
    candidates: Sequence[Candidate],
    query: str,
    mode: Union[Mode, str] = Mode.EXPLORER,
    trigram_scores: Optional[Mapping[str, float]] = None,
) -> List[RerankResult]:
    """
    Rerank candidates by a weighted sum of semantic and evidence scores.

    Args:
        candidates: Hydrated candidates (text filled in) in search order
        query: Original query text
        mode: "explorer" or "exact"
        trigram_scores: Optional chunk_id -> trigram similarity, used in exact mode only

    Returns:
        Results sorted by final_score descending; ties keep candidate order
    """
    mode = Mode.parse(mode)
    semantic_weight, evidence_weight = mode.weights
    lexical = trigram_scores if mode.uses_lexical_similarity and trigram_scores else {}

    results: List[RerankResult] = []
    for c in candidates:
        if not c.chunk_id:
            raise ValueError(f"Candidate without chunk_id: {c!r}")

        evidence = compute_evidence(query, c.text)
        evidence_score = evidence.score

        trgm = float(lexical.get(c.chunk_id) or 0.0)
        if trgm > 0:
            evidence_score = (1 - TRIGRAM_EVIDENCE_WEIGHT) * evidence_score + TRIGRAM_EVIDENCE_WEIGHT * trgm
            evidence.notes.append(f"trigram_sim={trgm:.3f}")

        semantic_score = float(c.semantic_score)
        final_score = semantic_weight * semantic_score + evidence_weight * evidence_score

        results.append(RerankResult(
            chunk_id=c.chunk_id,
            translation=c.translation,
            book_id=c.book_id,
            chapter=c.chapter,
            verse_start=c.verse_start,
            verse_end=c.verse_end,
            ref_start=c.ref_start,
            ref_end=c.ref_end,
            semantic_score=round(semantic_score, 4),
            evidence_score=round(evidence_score, 4),
            final_score=round(final_score, 4),
            evidence=evidence,
            text=c.text,
        ))

    # list.sort is stable, so equal scores keep search order
    results.sort(key=lambda r: r.final_score, reverse=True)
    return results
