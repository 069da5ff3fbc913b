"""
Chapter navigation and book listing over the canonical book order.
"""

from typing import Dict, List, Mapping, Optional

from .utils.book_mappings import BOOK_INDEX, BOOK_ORDER, EXTRA_BOOK_NAMES
from .utils.types import BookInfo, ChapterNav, NavRef


def compute_nav(book_id: str, chapter: int, max_chapter: Optional[int]) -> ChapterNav:
    """
    Compute prev/next links for a chapter.

    Crossing a book boundary yields a NavRef with chapter=None; the caller
    resolves the neighbouring book's chapter. The first chapter of the first
    book has no prev, the last chapter of the last book has no next.
    """
    idx = BOOK_INDEX.get(book_id)

    prev: Optional[NavRef] = None
    if chapter > 1:
        prev = NavRef(book_id, chapter - 1)
    elif idx is not None and idx > 0:
        prev = NavRef(BOOK_ORDER[idx - 1].book_id, None)

    next_: Optional[NavRef] = None
    if max_chapter is not None and chapter < max_chapter:
        next_ = NavRef(book_id, chapter + 1)
    elif idx is not None and idx < len(BOOK_ORDER) - 1:
        next_ = NavRef(BOOK_ORDER[idx + 1].book_id, None)

    return ChapterNav(prev=prev, next=next_)


def list_books(chapter_counts: Mapping[str, int]) -> List[BookInfo]:
    """
    List books present in a translation.

    Canonical books come first in canonical order, then any extra books
    (deuterocanonical and the like) sorted by ID.
    """
    books = [
        BookInfo(book_id=b.book_id, name=b.name, chapters=int(chapter_counts[b.book_id]), testament=b.testament)
        for b in BOOK_ORDER
        if chapter_counts.get(b.book_id) is not None
    ]
    extras: Dict[str, int] = {k: v for k, v in chapter_counts.items() if k not in BOOK_INDEX}
    for book_id in sorted(extras):
        books.append(BookInfo(
            book_id=book_id,
            name=EXTRA_BOOK_NAMES.get(book_id, book_id),
            chapters=int(extras[book_id]),
            testament="DC",
        ))
    return books
