"""
Local corpus backend for Bible passage retrieval.
Serves verses, chunk text, FAISS semantic search and trigram similarity
from index artifacts built by build_index.
"""

import asyncio
import logging
import os
from collections import defaultdict
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from openai import AsyncOpenAI

from .navigation import list_books
from .rerank import Mode, rerank
from .utils.book_mappings import DEUTERO_BOOKS
from .utils.indexing import FaissVectorIndex
from .utils.loaders import load_chunks, load_verses
from .utils.trigram import similarity
from .utils.types import BookInfo, Candidate, Chunk, SearchResponse, Verse

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-large"
# Free-text search over-fetches so reranking has room to reorder.
SEARCH_CANDIDATE_MULTIPLIER = 3
SEARCH_CANDIDATE_FLOOR = 30

VerseKey = Tuple[str, str, int, int]


class BibleSearch:
    """Search backend over verses, chunks and a FAISS chunk index."""

    def __init__(self, data_dir: Optional[str] = None, openai_client: Optional[AsyncOpenAI] = None):
        """Load all index artifacts from data_dir (default: data/bible)."""
        if data_dir is None:
            data_dir = os.getenv("BIBLE_DATA_DIR") or Path(__file__).parent.parent / "data" / "bible"
        self.data_dir = Path(data_dir)

        self.verses: List[Verse] = []
        self.verse_index: Dict[VerseKey, Verse] = {}
        self.chunks_by_id: Dict[str, Chunk] = {}
        self.faiss_index: Optional[FaissVectorIndex] = None

        self.faiss_index_path = self._resolve_path("BIBLE_FAISS_INDEX_PATH", "index.faiss")
        self.chunk_index_meta_path = self._resolve_path("BIBLE_INDEX_META_PATH", "index_meta.json")
        self.chunks_path = self._resolve_path("BIBLE_CHUNKS_PATH", "chunks.json")
        self.verses_path = self.data_dir / "index" / "verses.json"

        self.embedding_model = os.getenv("EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL)
        self.openai_client = openai_client or AsyncOpenAI(api_key=os.getenv("OPENAI_API_KEY"))

        self._load_data()

    def _resolve_path(self, env_var: str, filename: str) -> Path:
        env_path = os.getenv(env_var)
        if env_path:
            return Path(env_path)
        return self.data_dir / "index" / filename

    def _load_data(self) -> None:
        """Load verses, chunks and the FAISS index (all required)."""
        for path in (self.verses_path, self.chunks_path, self.faiss_index_path, self.chunk_index_meta_path):
            if not path.exists():
                raise FileNotFoundError(f"Index artifact not found at {path}")

        self.verses = load_verses(self.verses_path)
        self.verse_index = {(v.translation, v.book_id, v.chapter, v.verse): v for v in self.verses}
        self.chunks_by_id = {c.chunk_id: c for c in load_chunks(self.chunks_path)}
        self.faiss_index = FaissVectorIndex.load(self.faiss_index_path, self.chunk_index_meta_path)
        logger.info(
            "Loaded %d verses, %d chunks, index dim %d",
            len(self.verses), len(self.chunks_by_id), self.faiss_index.dim,
        )

    # Passage backend

    async def embed_query(self, text: str) -> np.ndarray:
        """Get embedding for text using OpenAI."""
        response = await self.openai_client.embeddings.create(model=self.embedding_model, input=text)
        embedding = np.array(response.data[0].embedding, dtype=np.float32)

        index_dim = self.faiss_index.dim
        if len(embedding) != index_dim:
            raise ValueError(
                f"Embedding dimension mismatch!\n"
                f"  FAISS index expects: {index_dim} dimensions\n"
                f"  Current model '{self.embedding_model}' produces: {len(embedding)} dimensions\n\n"
                f"Set EMBEDDING_MODEL to the model used to build the index."
            )
        return embedding

    async def search_candidates(
        self,
        vector: np.ndarray,
        limit: int,
        translations: Optional[Sequence[str]] = None,
    ) -> List[Candidate]:
        """Nearest chunks to vector, best first, optionally limited to translations."""
        keep = None
        if translations:
            allowed = set(translations)
            keep = lambda cid: cid in self.chunks_by_id and self.chunks_by_id[cid].translation in allowed

        candidates: List[Candidate] = []
        # Flat FAISS search is CPU-bound; keep it off the event loop.
        hits = await asyncio.to_thread(self.faiss_index.search, vector, limit, keep)
        for chunk_id, score in hits:
            chunk = self.chunks_by_id.get(chunk_id)
            if not chunk:
                continue
            candidates.append(Candidate(
                chunk_id=chunk.chunk_id,
                translation=chunk.translation,
                book_id=chunk.book_id,
                chapter=chunk.chapter,
                verse_start=chunk.verse_start,
                verse_end=chunk.verse_end,
                ref_start=chunk.ref_start,
                ref_end=chunk.ref_end,
                semantic_score=score,
            ))
        return candidates

    async def fetch_text(self, ids: Sequence[str]) -> Dict[str, str]:
        return {cid: self.chunks_by_id[cid].text for cid in ids if cid in self.chunks_by_id}

    async def lexical_similarity(self, ids: Sequence[str], query: str) -> Dict[str, float]:
        """Trigram similarity between query and each chunk text."""
        return await asyncio.to_thread(self._trigram_scores, list(ids), query)

    def _trigram_scores(self, ids: List[str], query: str) -> Dict[str, float]:
        return {
            cid: similarity(self.chunks_by_id[cid].text, query)
            for cid in ids
            if cid in self.chunks_by_id
        }

    async def get_anchor_verse_text(self, translation: str, book_id: str, chapter: int, verse: int) -> Optional[str]:
        if translation:
            found = self.verse_index.get((translation, book_id, chapter, verse))
            return found.text if found else None
        matches = self.get_verse_range(None, book_id, chapter, verse, verse)
        return matches[0].text if matches else None

    # Chapter reading

    def _matches(self, v: Verse, translation: Optional[str], book_id: str) -> bool:
        return v.book_id == book_id and (not translation or v.translation == translation)

    def get_chapter(self, translation: Optional[str], book_id: str, chapter: int) -> List[Verse]:
        """All verses of a chapter, in verse order."""
        return [v for v in self.verses if self._matches(v, translation, book_id) and v.chapter == chapter]

    def get_verse_range(
        self, translation: Optional[str], book_id: str, chapter: int, start_verse: int, end_verse: int
    ) -> List[Verse]:
        return [v for v in self.get_chapter(translation, book_id, chapter) if start_verse <= v.verse <= end_verse]

    def max_chapter(self, translation: Optional[str], book_id: str) -> Optional[int]:
        chapters = [v.chapter for v in self.verses if self._matches(v, translation, book_id)]
        return max(chapters) if chapters else None

    def chapter_counts(self, translation: Optional[str] = None) -> Dict[str, int]:
        counts: Dict[str, int] = defaultdict(int)
        for v in self.verses:
            if not translation or v.translation == translation:
                counts[v.book_id] = max(counts[v.book_id], v.chapter)
        return dict(counts)

    def list_books(self, translation: Optional[str] = None) -> List[BookInfo]:
        return list_books(self.chapter_counts(translation))

    # Free-text search

    async def search(
        self,
        query: str,
        top_k: int = 10,
        mode: Union[Mode, str] = Mode.EXPLORER,
        include_deutero: bool = True,
        translations: Optional[List[str]] = None,
    ) -> SearchResponse:
        """
        Semantic search followed by evidence reranking.

        Args:
            query: Free-text query (English or Portuguese)
            top_k: Number of results to return
            mode: "explorer" or "exact"
            include_deutero: Keep deuterocanonical books in the results
            translations: Optional translation filter (e.g. ["WEBU", "PT1911"])

        Returns:
            SearchResponse with the top_k reranked results
        """
        mode = Mode.parse(mode)
        candidate_limit = max(top_k * SEARCH_CANDIDATE_MULTIPLIER, SEARCH_CANDIDATE_FLOOR)

        vector = await self.embed_query(query)
        candidates = await self.search_candidates(vector, candidate_limit, translations)
        if not include_deutero:
            candidates = [c for c in candidates if c.book_id not in DEUTERO_BOOKS]

        ids = [c.chunk_id for c in candidates]
        texts = await self.fetch_text(ids)
        hydrated = [
            replace(c, text=texts[c.chunk_id])
            for c in candidates
            if texts.get(c.chunk_id)
        ]

        trigram_scores = None
        if mode.uses_lexical_similarity:
            trigram_scores = await self.lexical_similarity(ids, query)

        ranked = rerank(hydrated, query, mode, trigram_scores)
        return SearchResponse(
            query=query,
            mode=mode.value,
            include_deutero=include_deutero,
            translations=translations,
            total=len(ranked),
            results=ranked[:top_k],
        )
