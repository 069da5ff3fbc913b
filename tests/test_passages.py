"""
Tests for passage selection around the reader's location.
"""

import sys
import unittest
from dataclasses import replace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import numpy as np

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bible_qa.passages import PassageSelector
from bible_qa.utils.types import Candidate

ANCHOR_TEXT = "In the beginning, God created the heavens and the earth."


def chunk(verse_start, verse_end, score, book_id="GEN", chapter=1):
    return Candidate(
        chunk_id=f"WEBU:{book_id}.{chapter}.{verse_start}-{chapter}.{verse_end}",
        translation="WEBU",
        book_id=book_id,
        chapter=chapter,
        verse_start=verse_start,
        verse_end=verse_end,
        ref_start=f"{book_id} {chapter}:{verse_start}",
        ref_end=f"{book_id} {chapter}:{verse_end}",
        semantic_score=score,
    )


def make_backend(candidates, anchor_text=ANCHOR_TEXT, texts=None):
    backend = MagicMock()
    backend.embed_query = AsyncMock(return_value=np.ones(4, dtype=np.float32))
    backend.search_candidates = AsyncMock(return_value=candidates)
    if texts is None:
        texts = {c.chunk_id: f"text of {c.chunk_id}" for c in candidates}
    backend.fetch_text = AsyncMock(return_value=texts)
    backend.lexical_similarity = AsyncMock(return_value={})
    backend.get_anchor_verse_text = AsyncMock(return_value=anchor_text)
    return backend


class TestPassageSelector(unittest.IsolatedAsyncioTestCase):

    async def test_anchor_first_and_capped_at_three(self):
        candidates = [chunk(4, 6, 0.9), chunk(7, 9, 0.8), chunk(10, 12, 0.7), chunk(13, 15, 0.6)]
        backend = make_backend(candidates)

        passages = await PassageSelector(backend).assemble("what happened here", "WEBU", "GEN", 1, 1, 10)

        self.assertEqual(len(passages), 3)
        self.assertEqual(passages[0].source, "verse")
        self.assertEqual(passages[0].ref, "GEN 1:1")
        self.assertEqual(passages[0].snippet, ANCHOR_TEXT)
        self.assertEqual(passages[0].score, 1.0)
        self.assertEqual([p.ref for p in passages[1:]], ["GEN 1:4 - GEN 1:6", "GEN 1:7 - GEN 1:9"])
        self.assertTrue(all(p.source == "chunk" for p in passages[1:]))
        backend.search_candidates.assert_awaited_once_with(backend.embed_query.return_value, 10, ["WEBU"])

    async def test_single_verse_chunk_duplicating_anchor_is_skipped(self):
        candidates = [chunk(1, 1, 0.95), chunk(1, 3, 0.9), chunk(2, 4, 0.8)]
        backend = make_backend(candidates)

        passages = await PassageSelector(backend).assemble("question", "WEBU", "GEN", 1, 1, 10)

        # A chunk that merely overlaps the anchor is kept
        self.assertEqual([p.ref for p in passages], ["GEN 1:1", "GEN 1:1 - GEN 1:3", "GEN 1:2 - GEN 1:4"])

    async def test_identical_ranges_deduplicated(self):
        duplicate = replace(chunk(2, 4, 0.85), chunk_id="PT1911:GEN.1.2-1.4", translation="PT1911")
        candidates = [chunk(2, 4, 0.9), duplicate, chunk(5, 7, 0.5)]
        backend = make_backend(candidates, anchor_text=None)

        passages = await PassageSelector(backend).assemble("question", "WEBU", "GEN", 1, 1, 10)

        self.assertEqual([p.id for p in passages], ["WEBU:GEN.1.2-1.4", "WEBU:GEN.1.5-1.7"])

    async def test_single_verse_chunk_ref(self):
        backend = make_backend([chunk(5, 5, 0.9)], anchor_text=None)

        passages = await PassageSelector(backend).assemble("question", "WEBU", "GEN", 1, 1)

        self.assertEqual(passages[0].ref, "GEN 1:5")

    async def test_missing_location_skips_anchor(self):
        backend = make_backend([chunk(2, 4, 0.9)])

        passages = await PassageSelector(backend).assemble("question", "WEBU", "", 0, 0)

        self.assertEqual([p.source for p in passages], ["chunk"])
        backend.get_anchor_verse_text.assert_not_awaited()

    async def test_book_name_normalized(self):
        backend = make_backend([])

        passages = await PassageSelector(backend).assemble("question", "WEBU", "genesis", 1, 1)

        backend.get_anchor_verse_text.assert_awaited_once_with("WEBU", "GEN", 1, 1)
        self.assertEqual(len(passages), 1)
        self.assertEqual(passages[0].book_id, "GEN")

    async def test_k_of_one_returns_only_anchor(self):
        backend = make_backend([chunk(2, 4, 0.9)])

        passages = await PassageSelector(backend).assemble("question", "WEBU", "GEN", 1, 1, 1)

        self.assertEqual([p.source for p in passages], ["verse"])
        backend.fetch_text.assert_not_awaited()

    async def test_candidates_without_text_are_dropped(self):
        candidates = [chunk(2, 4, 0.9), chunk(5, 7, 0.8)]
        backend = make_backend(candidates, anchor_text=None, texts={candidates[1].chunk_id: "some text"})

        passages = await PassageSelector(backend).assemble("question", "WEBU", "GEN", 1, 1)

        self.assertEqual([p.id for p in passages], [candidates[1].chunk_id])
        self.assertEqual(passages[0].snippet, "some text")

    async def test_evidence_reorders_chunks(self):
        candidates = [chunk(2, 4, 0.80), chunk(5, 7, 0.78)]
        texts = {
            candidates[0].chunk_id: "And the evening and the morning were the third day.",
            candidates[1].chunk_id: "God created man in his own image; God created them.",
        }
        backend = make_backend(candidates, anchor_text=None, texts=texts)

        passages = await PassageSelector(backend).assemble("who created man", "WEBU", "GEN", 1, 1)

        self.assertEqual(passages[0].id, candidates[1].chunk_id)

    async def test_lexical_failure_in_exact_mode_is_tolerated(self):
        backend = make_backend([chunk(2, 4, 0.9)], anchor_text=None)
        backend.lexical_similarity.side_effect = RuntimeError("trigram index offline")

        with self.assertLogs("bible_qa.passages", level="WARNING"):
            passages = await PassageSelector(backend).assemble("question", "WEBU", "GEN", 1, 1, mode="exact")

        self.assertEqual(len(passages), 1)

    async def test_lexical_similarity_not_used_in_explorer_mode(self):
        backend = make_backend([chunk(2, 4, 0.9)], anchor_text=None)

        await PassageSelector(backend).assemble("question", "WEBU", "GEN", 1, 1, mode="explorer")

        backend.lexical_similarity.assert_not_awaited()

    async def test_search_failure_propagates(self):
        backend = make_backend([])
        backend.embed_query.side_effect = RuntimeError("embedding service down")

        with self.assertRaises(RuntimeError):
            await PassageSelector(backend).assemble("question", "WEBU", "GEN", 1, 1)

    async def test_no_candidates(self):
        backend = make_backend([], anchor_text=None)

        passages = await PassageSelector(backend).assemble("question", "WEBU", "GEN", 1, 1)

        self.assertEqual(passages, [])


if __name__ == "__main__":
    unittest.main()
