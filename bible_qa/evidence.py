"""
Keyword evidence for reranking.

A rule fires when one of its trigger terms (English or Portuguese) appears in
the query; the passage text is then scanned for the rule's hit terms.
"""

import re
from dataclasses import dataclass
from typing import List, Tuple

from .utils.types import Evidence

# Weighted hits are normalized to 0..1 with a soft cap at this many hits.
EVIDENCE_SOFT_CAP = 5.0


@dataclass(frozen=True)
class KeywordRule:
    triggers: Tuple[str, ...]
    hits: Tuple[str, ...]
    weight: float = 1.0


def _rule(en_signals, pt_signals, en_keywords, pt_keywords, weight=1.0) -> KeywordRule:
    return KeywordRule(
        triggers=tuple(pt_signals) + tuple(en_signals),
        hits=tuple(en_keywords) + tuple(pt_keywords),
        weight=weight,
    )


KEYWORD_RULES: Tuple[KeywordRule, ...] = (
    _rule(
        ["beginning", "created", "creation", "create"],
        ["princípio", "criou", "criação", "criar", "início"],
        ["in the beginning", "created", "heavens", "earth", "creation"],
        ["no princípio", "criou", "céus", "terra", "criação"],
    ),
    _rule(
        ["flood", "ark", "noah"],
        ["dilúvio", "arca", "noé"],
        ["flood", "ark", "noah"],
        ["dilúvio", "arca", "noé"],
    ),
    _rule(
        ["exodus", "egypt", "moses", "pharaoh", "plague"],
        ["êxodo", "egito", "moisés", "faraó", "pragas"],
        ["egypt", "moses", "pharaoh", "plague", "exodus", "red sea"],
        ["egito", "moisés", "faraó", "praga", "êxodo", "mar vermelho"],
    ),
    _rule(
        ["commandment", "law", "sinai", "statute"],
        ["mandamento", "lei", "sinai"],
        ["commandment", "law", "sinai", "statute"],
        ["mandamento", "lei", "sinai", "estatuto"],
    ),
    _rule(
        ["love", "loved"],
        ["amor", "amar"],
        ["love", "loved", "lovingkindness"],
        ["amor", "amou", "amado", "benignidade"],
    ),
    _rule(
        ["resurrection", "raised", "risen", "tomb", "grave"],
        ["ressurreição", "ressuscitou", "ressuscitar", "tumba", "sepulcro"],
        ["resurrection", "raised", "risen", "tomb", "grave"],
        ["ressurreição", "ressuscitou", "ressuscitado", "sepulcro", "sepultura"],
    ),
    _rule(
        ["cross", "crucified", "crucifixion"],
        ["cruz", "crucificado", "crucificação"],
        ["cross", "crucified", "crucifixion"],
        ["cruz", "crucificado", "crucificaram"],
    ),
    _rule(
        ["baptize", "baptized", "baptism"],
        ["batismo", "batizar", "batizou"],
        ["baptize", "baptized", "baptism"],
        ["batismo", "batizou", "batizado", "batizar"],
    ),
    _rule(
        ["prayer", "pray", "prayed"],
        ["oração", "orar", "rezar"],
        ["prayer", "pray", "prayed"],
        ["oração", "orar", "orou", "orai"],
    ),
    _rule(
        ["faith", "believe", "believed"],
        ["fé", "acreditar", "crer"],
        ["faith", "believe", "believed"],
        ["fé", "crer", "creu", "crê"],
    ),
    _rule(
        ["sin", "sinned", "iniquity", "transgression"],
        ["pecado", "pecar", "iniquidade"],
        ["sin", "sinned", "iniquity", "transgression"],
        ["pecado", "pecou", "iniquidade", "transgressão"],
    ),
    _rule(
        ["salvation", "save", "saved", "redemption", "redeem"],
        ["salvação", "salvar", "redenção"],
        ["salvation", "save", "saved", "redemption", "redeem"],
        ["salvação", "salvar", "salvou", "redenção", "remiu"],
    ),
    _rule(
        ["spirit", "holy spirit"],
        ["espírito", "espírito santo"],
        ["spirit", "holy spirit"],
        ["espírito", "espírito santo"],
    ),
    _rule(
        ["prophecy", "prophet", "prophesied"],
        ["profecia", "profeta", "profetizar"],
        ["prophecy", "prophet", "prophesied"],
        ["profecia", "profeta", "profetizou"],
    ),
    _rule(
        ["covenant", "promise"],
        ["aliança", "pacto"],
        ["covenant", "promise"],
        ["aliança", "pacto", "concerto"],
    ),
    _rule(
        ["grace", "mercy", "merciful"],
        ["graça", "misericórdia"],
        ["grace", "mercy", "merciful"],
        ["graça", "misericórdia", "misericordioso"],
    ),
)


def _contains_word(text: str, term: str) -> bool:
    return re.search(rf"\b{re.escape(term)}\b", text, flags=re.IGNORECASE) is not None


def compute_evidence(query: str, text: str) -> Evidence:
    """
    Score a passage by the keyword rules the query activates.

    Args:
        query: Original user query (English or Portuguese)
        text: Passage text

    Returns:
        Evidence with score in [0, 1], matched terms and one note per firing rule
    """
    query_lower = (query or "").lower()
    text = text or ""
    keyword_hits: List[str] = []
    notes: List[str] = []
    weighted_hits = 0.0

    for rule in KEYWORD_RULES:
        matched = [t for t in rule.triggers if t in query_lower]
        if not matched:
            continue

        contributed = 0.0
        for term in rule.hits:
            if term in keyword_hits or not _contains_word(text, term):
                continue
            keyword_hits.append(term)
            contributed += rule.weight

        if contributed > 0:
            weighted_hits += contributed
            notes.append(f"Query signal matched: [{', '.join(matched)}] (+{contributed:g})")

    score = min(weighted_hits / EVIDENCE_SOFT_CAP, 1.0)
    return Evidence(keyword_hits=keyword_hits, score=score, notes=notes)
