"""
Main Agent for Bible Q&A.
Orchestrates search, passage selection, and answer generation.
"""

from dataclasses import asdict
from pathlib import Path
from typing import List, Optional, Union

from .generator import DEFAULT_MODEL, ResponseGenerator, build_ask_prompt
from .navigation import compute_nav
from .passages import DEFAULT_K_PASSAGES, PassageSelector
from .rerank import Mode
from .search import BibleSearch
from .utils.book_mappings import normalize_book_id
from .utils.loaders import append_jsonl
from .utils.types import BookInfo, JsonDict, Passage, SearchResponse

DEFAULT_TRANSLATION = "WEBU"


class BibleAgent:
    """
    Agent that answers questions about the Bible from the reader's location.
    """

    def __init__(
        self,
        data_dir: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        log_dir: Optional[str] = None,
        search: Optional[BibleSearch] = None,
        generator: Optional[ResponseGenerator] = None,
    ):
        """
        Initialize the Bible agent.

        Args:
            data_dir: Path to Bible data directory
            model: OpenAI model to use
            log_dir: Optional directory for per-run JSONL logs
        """
        self.search_backend = search or BibleSearch(data_dir)
        self.selector = PassageSelector(self.search_backend)
        self.generator = generator or ResponseGenerator(model, log_dir=log_dir)
        self.search_log_path = Path(log_dir) / "search_results.jsonl" if log_dir else None

    async def search(
        self,
        query: str,
        top_k: int = 10,
        mode: Union[Mode, str] = Mode.EXPLORER,
        include_deutero: bool = True,
        translations: Optional[List[str]] = None,
    ) -> SearchResponse:
        """Free-text search with evidence reranking."""
        response = await self.search_backend.search(
            query,
            top_k=top_k,
            mode=mode,
            include_deutero=include_deutero,
            translations=translations,
        )
        append_jsonl(self.search_log_path, {
            "query": query,
            "mode": response.mode,
            "translations": translations,
            "results": [
                {
                    "chunk_id": r.chunk_id,
                    "semantic_score": r.semantic_score,
                    "evidence_score": r.evidence_score,
                    "final_score": r.final_score,
                    "keyword_hits": r.evidence.keyword_hits,
                }
                for r in response.results
            ],
        })
        return response

    async def relevant_passages(
        self,
        question: str,
        translation: str = DEFAULT_TRANSLATION,
        book: str = "",
        chapter: int = 0,
        verse: int = 0,
        k_passages: int = DEFAULT_K_PASSAGES,
        mode: Union[Mode, str] = Mode.EXPLORER,
    ) -> List[Passage]:
        return await self.selector.assemble(question, translation, book, chapter, verse, k_passages, mode)

    async def ask(
        self,
        question: str,
        translation: str = DEFAULT_TRANSLATION,
        book: str = "",
        chapter: int = 0,
        verse: int = 0,
        k_passages: int = DEFAULT_K_PASSAGES,
        mode: Union[Mode, str] = Mode.EXPLORER,
    ) -> JsonDict:
        """
        Answer a question asked while reading a given verse.

        Args:
            question: The user's question
            translation, book, chapter, verse: The reader's location
            k_passages: Candidate budget for passage selection

        Returns:
            {"raw_response_text": str, "relevant_passages": [dict, ...]}
        """
        clean_question = (question or "").strip()
        if not clean_question:
            raise ValueError("Question cannot be empty.")

        passages = await self.relevant_passages(
            clean_question, translation, book, chapter, verse, k_passages, mode
        )

        # The selector puts the resolved anchor verse first.
        anchor = passages[0] if passages and passages[0].source == "verse" else None

        prompt = build_ask_prompt(clean_question, translation, book, chapter, verse, anchor_passage=anchor)
        answer = await self.generator.generate(prompt)

        return {
            "raw_response_text": answer,
            "relevant_passages": [asdict(p) for p in passages],
        }

    def read_chapter(self, translation: str, book: str, chapter: int) -> Optional[JsonDict]:
        """
        Read an entire chapter with prev/next navigation.

        Returns:
            Dict with verses, prev and next, or None if the chapter does not exist
        """
        book_id = normalize_book_id(book) or ""
        verses = self.search_backend.get_chapter(translation, book_id, chapter)
        if not verses:
            return None
        nav = compute_nav(book_id, chapter, self.search_backend.max_chapter(translation, book_id))
        return {
            "book_id": book_id,
            "chapter": chapter,
            "translation": translation,
            "verses": [{"verse": v.verse, "text": v.text} for v in verses],
            "prev": asdict(nav.prev) if nav.prev else None,
            "next": asdict(nav.next) if nav.next else None,
        }

    def list_books(self, translation: Optional[str] = None) -> List[BookInfo]:
        """List books present in a translation, in canonical order."""
        return self.search_backend.list_books(translation)


def create_agent(data_dir: Optional[str] = None, model: str = DEFAULT_MODEL, log_dir: Optional[str] = None) -> BibleAgent:
    """
    Factory function to create a Bible agent.

    Args:
        data_dir: Path to Bible data directory
        model: OpenAI model to use

    Returns:
        Configured BibleAgent instance
    """
    return BibleAgent(data_dir, model, log_dir=log_dir)
