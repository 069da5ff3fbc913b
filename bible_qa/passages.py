"""
Context assembly: pick the passages handed to the answer generator.

The anchor verse (the reader's current location) comes first, followed by the
best reranked chunks from a semantic search.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Protocol, Sequence, Set, Tuple, Union

import numpy as np

from .rerank import Mode, rerank
from .utils.book_mappings import normalize_book_id
from .utils.loaders import make_ref
from .utils.types import Candidate, Passage, RerankResult

logger = logging.getLogger(__name__)

# Hard ceiling on returned passages, independent of k_passages.
MAX_RELEVANT_PASSAGES = 3
DEFAULT_K_PASSAGES = 10

RangeKey = Tuple[str, int, int, int]


class PassageBackend(Protocol):
    """Storage and model services the selector depends on."""

    async def embed_query(self, text: str) -> np.ndarray: ...

    async def search_candidates(
        self, vector: np.ndarray, limit: int, translations: Optional[Sequence[str]] = None
    ) -> List[Candidate]: ...

    async def fetch_text(self, ids: Sequence[str]) -> Dict[str, str]: ...

    async def lexical_similarity(self, ids: Sequence[str], query: str) -> Dict[str, float]: ...

    async def get_anchor_verse_text(
        self, translation: str, book_id: str, chapter: int, verse: int
    ) -> Optional[str]: ...


def format_ref(result: RerankResult) -> str:
    if result.verse_start == result.verse_end:
        return result.ref_start
    return f"{result.ref_start} - {result.ref_end}"


def _positive_int(value) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _normalize_k(k_passages) -> int:
    try:
        k = int(k_passages or DEFAULT_K_PASSAGES)
    except (TypeError, ValueError):
        k = DEFAULT_K_PASSAGES
    return max(1, k)


class PassageSelector:
    """Builds the ordered, deduplicated passage list for a question."""

    def __init__(self, backend: PassageBackend):
        self.backend = backend

    async def assemble(
        self,
        question: str,
        translation: str,
        book: str,
        chapter: int,
        verse: int,
        k_passages: int = DEFAULT_K_PASSAGES,
        mode: Union[Mode, str] = Mode.EXPLORER,
    ) -> List[Passage]:
        """
        Assemble up to min(k_passages, 3) passages around the reader's location.

        Args:
            question: User question, used for both embedding and keyword evidence
            translation: Translation code (e.g. WEBU); also restricts the search
            book, chapter, verse: Reader location; the anchor verse
            k_passages: Candidates to retrieve and upper bound on passages
            mode: Rerank mode; exact mode also uses trigram similarity

        Returns:
            Passages, anchor first when it resolves
        """
        mode = Mode.parse(mode)
        k = _normalize_k(k_passages)
        limit = min(MAX_RELEVANT_PASSAGES, k)

        anchor, candidates = await asyncio.gather(
            self._resolve_anchor(translation, book, chapter, verse),
            self._search(question, translation, k),
        )

        passages: List[Passage] = []
        seen_ranges: Set[RangeKey] = set()
        if anchor is not None:
            passages.append(anchor)
            seen_ranges.add((anchor.book_id, anchor.chapter, anchor.verse_start, anchor.verse_end))

        if len(passages) >= limit or not candidates:
            return passages[:limit]

        ranked = await self._rerank(candidates, question, mode)

        for row in ranked:
            if len(passages) >= limit:
                break
            range_key = (row.book_id, row.chapter, row.verse_start, row.verse_end)
            if range_key in seen_ranges:
                continue
            seen_ranges.add(range_key)
            passages.append(Passage(
                id=row.chunk_id,
                ref=format_ref(row),
                source="chunk",
                snippet=row.text,
                score=row.final_score,
                book_id=row.book_id,
                chapter=row.chapter,
                verse_start=row.verse_start,
                verse_end=row.verse_end,
                translation=row.translation,
            ))

        return passages

    async def _resolve_anchor(self, translation: str, book: str, chapter, verse) -> Optional[Passage]:
        book_id = normalize_book_id(book)
        chapter_number = _positive_int(chapter)
        verse_number = _positive_int(verse)
        if not book_id or chapter_number is None or verse_number is None:
            return None

        text = await self.backend.get_anchor_verse_text(translation, book_id, chapter_number, verse_number)
        text = (text or "").strip()
        if not text:
            logger.debug("No anchor verse for %s %s %s:%s", translation, book_id, chapter_number, verse_number)
            return None

        return Passage(
            id=f"anchor:{translation}:{book_id}:{chapter_number}:{verse_number}",
            ref=make_ref(book_id, chapter_number, verse_number),
            source="verse",
            snippet=text,
            score=1.0,
            book_id=book_id,
            chapter=chapter_number,
            verse_start=verse_number,
            verse_end=verse_number,
            translation=translation,
        )

    async def _search(self, question: str, translation: str, limit: int) -> List[Candidate]:
        vector = await self.backend.embed_query(question)
        translations = [translation] if translation else None
        return await self.backend.search_candidates(vector, limit, translations)

    async def _rerank(self, candidates: List[Candidate], question: str, mode: Mode) -> List[RerankResult]:
        ids = [c.chunk_id for c in candidates]
        texts = await self.backend.fetch_text(ids)

        lexical: Dict[str, float] = {}
        if mode.uses_lexical_similarity:
            try:
                lexical = await self.backend.lexical_similarity(ids, question)
            except Exception as e:
                logger.warning("Lexical similarity unavailable, ranking without it: %s", e)
                lexical = {}

        hydrated = [
            replace(c, text=texts[c.chunk_id])
            for c in candidates
            if texts.get(c.chunk_id)
        ]
        return rerank(hydrated, question, mode, lexical)
