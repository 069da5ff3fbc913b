from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

@dataclass
class Verse:
    """A single verse of one translation."""
    id: str
    translation: str
    book_id: str
    chapter: int
    verse: int
    ref: str
    text: str

@dataclass
class Chunk:
    """A window of consecutive verses indexed for semantic search."""
    chunk_id: str
    translation: str
    book_id: str
    chapter: int
    verse_start: int
    verse_end: int
    ref_start: str
    ref_end: str
    verse_ids: List[str]
    text: str

@dataclass(frozen=True)
class Candidate:
    """A chunk returned by the vector search, before reranking."""
    chunk_id: str
    translation: str
    book_id: str
    chapter: int
    verse_start: int
    verse_end: int
    ref_start: str
    ref_end: str
    semantic_score: float
    text: str = ""

@dataclass
class Evidence:
    keyword_hits: List[str] = field(default_factory=list)
    score: float = 0.0
    notes: List[str] = field(default_factory=list)

@dataclass
class RerankResult:
    chunk_id: str
    translation: str
    book_id: str
    chapter: int
    verse_start: int
    verse_end: int
    ref_start: str
    ref_end: str
    semantic_score: float
    evidence_score: float
    final_score: float
    evidence: Evidence
    text: str

@dataclass
class Passage:
    """A passage handed to the answer generator or shown to the reader."""
    ref: str
    source: str  # "verse" or "chunk"
    snippet: str
    book_id: str
    chapter: int
    verse_start: int
    verse_end: int
    id: str = ""
    score: float = 0.0
    translation: Optional[str] = None

@dataclass(frozen=True)
class NavRef:
    book_id: str
    chapter: Optional[int]  # None: resolve the book's last chapter lazily

@dataclass(frozen=True)
class ChapterNav:
    prev: Optional[NavRef]
    next: Optional[NavRef]

@dataclass
class BookInfo:
    book_id: str
    name: str
    chapters: int
    testament: str

@dataclass
class SearchResponse:
    query: str
    mode: str
    include_deutero: bool
    translations: Optional[List[str]]
    total: int
    results: List[RerankResult]

JsonDict = Dict[str, Any]
