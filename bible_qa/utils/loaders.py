from __future__ import annotations

import json
import logging
import re
from collections import defaultdict
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .types import Chunk, Verse

logger = logging.getLogger(__name__)


def make_ref(book_id: str, chapter: int, verse: int) -> str:
    return f"{book_id} {chapter}:{verse}"


def load_verses(path: str | Path) -> List[Verse]:
    """Load a flat list of verses (verses.json)."""
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    verses: List[Verse] = []
    for v in raw:
        book_id = str(v["book_id"]).upper()
        chapter = int(v["chapter"])
        verse = int(v["verse"])
        translation = v.get("translation", "")
        verses.append(
            Verse(
                id=v.get("id") or f"{translation}:{book_id}.{chapter}.{verse}",
                translation=translation,
                book_id=book_id,
                chapter=chapter,
                verse=verse,
                ref=v.get("ref") or make_ref(book_id, chapter, verse),
                text=v["text"],
            )
        )
    verses.sort(key=lambda x: (x.translation, x.book_id, x.chapter, x.verse))
    return verses


def _chunk_from_window(window: Sequence[Verse]) -> Chunk:
    first = window[0]
    last = window[-1]
    text = re.sub(r"\s+", " ", " ".join(v.text for v in window)).strip()
    return Chunk(
        chunk_id=f"{first.translation}:{first.book_id}.{first.chapter}.{first.verse}-{last.chapter}.{last.verse}",
        translation=first.translation,
        book_id=first.book_id,
        chapter=first.chapter,
        verse_start=first.verse,
        verse_end=last.verse,
        ref_start=first.ref,
        ref_end=last.ref,
        verse_ids=[v.id for v in window],
        text=text,
    )


def make_chunks(
    verses: Sequence[Verse],
    verses_per_chunk: int = 3,
    overlap: int = 2,
) -> List[Chunk]:
    """
    Turn verses into overlapping chunks, never crossing a chapter boundary.

    Short windows (3 verses, stride 1) keep chunks close to verse granularity
    so a hit can be cited precisely. Chapters shorter than the window become
    a single chunk.
    """
    if verses_per_chunk < 1:
        raise ValueError("verses_per_chunk must be >= 1")
    if overlap < 0 or overlap >= verses_per_chunk:
        raise ValueError("overlap must be in [0, verses_per_chunk-1]")

    by_chapter: Dict[Tuple[str, str, int], List[Verse]] = defaultdict(list)
    for v in verses:
        by_chapter[(v.translation, v.book_id, v.chapter)].append(v)

    chunks: List[Chunk] = []
    step = verses_per_chunk - overlap

    for _, lst in sorted(by_chapter.items(), key=lambda x: x[0]):
        lst = sorted(lst, key=lambda x: x.verse)
        last_start = max(len(lst) - verses_per_chunk, 0)
        for start in range(0, last_start + 1, step):
            chunks.append(_chunk_from_window(lst[start : start + verses_per_chunk]))
        # Cover the chapter tail when the stride skips past it.
        if last_start % step:
            chunks.append(_chunk_from_window(lst[last_start:]))

    return chunks


def save_chunks(chunks: Sequence[Chunk], path: str | Path) -> None:
    p = Path(path)
    data = [asdict(c) for c in chunks]
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def load_chunks(path: str | Path) -> List[Chunk]:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    chunks: List[Chunk] = []
    for c in raw:
        chunks.append(
            Chunk(
                chunk_id=c["chunk_id"],
                translation=c.get("translation", ""),
                book_id=c["book_id"],
                chapter=int(c["chapter"]),
                verse_start=int(c["verse_start"]),
                verse_end=int(c["verse_end"]),
                ref_start=c["ref_start"],
                ref_end=c["ref_end"],
                verse_ids=list(c.get("verse_ids") or []),
                text=c.get("text") or "",
            )
        )
    return chunks


def save_verses(verses: Sequence[Verse], path: str | Path) -> None:
    p = Path(path)
    data = [asdict(v) for v in verses]
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def append_jsonl(path: Optional[Path], payload: dict) -> None:
    """Append one record to a JSONL log; a None path disables logging."""
    if not path:
        return
    try:
        with Path(path).open("a", encoding="utf-8") as f:
            # JSONL requires a single line per record.
            f.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    except OSError as e:
        logger.warning("Failed to write log entry: %s", e)
