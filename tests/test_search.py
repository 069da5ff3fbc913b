"""
Tests for the local corpus backend, using a tiny FAISS index on disk.
"""

import asyncio
import os
import sys
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bible_qa.search import BibleSearch
from bible_qa.utils.indexing import FaissVectorIndex
from bible_qa.utils.loaders import make_chunks, make_ref, save_chunks, save_verses
from bible_qa.utils.types import Verse

PATH_ENV_VARS = ("BIBLE_DATA_DIR", "BIBLE_FAISS_INDEX_PATH", "BIBLE_INDEX_META_PATH", "BIBLE_CHUNKS_PATH", "EMBEDDING_MODEL")

CHAPTERS = {
    ("WEBU", "GEN", 1): [
        "In the beginning, God created the heavens and the earth.",
        "The earth was formless and empty.",
        "God said, \"Let there be light,\" and there was light.",
    ],
    ("WEBU", "GEN", 2): [
        "The heavens, the earth, and all their vast array were finished.",
        "On the seventh day God finished his work.",
        "God blessed the seventh day, and made it holy.",
    ],
    ("WEBU", "TOB", 1): [
        "The book of the words of Tobit.",
        "In the days of Enemessar king of the Assyrians.",
        "I Tobit walked all the days of my life in the ways of truth.",
    ],
    ("PT1911", "GEN", 1): [
        "No princípio criou Deus os céus e a terra.",
        "E a terra era sem forma e vazia.",
        "E disse Deus: Haja luz. E houve luz.",
    ],
}

# One chunk per chapter; vectors chosen so the query ranks them in this order.
CHUNK_VECTORS = {
    "WEBU:GEN.1.1-1.3": [1.0, 0.0, 0.0, 0.0],
    "WEBU:TOB.1.1-1.3": [0.9, 0.3, 0.0, 0.0],
    "PT1911:GEN.1.1-1.3": [0.8, 0.0, 0.6, 0.0],
    "WEBU:GEN.2.1-2.3": [0.0, 0.0, 0.0, 1.0],
}
QUERY_VECTOR = [1.0, 0.0, 0.0, 0.0]


def build_verses():
    verses = []
    for (translation, book_id, chapter), texts in CHAPTERS.items():
        for number, text in enumerate(texts, start=1):
            verses.append(Verse(
                id=f"{translation}:{book_id}.{chapter}.{number}",
                translation=translation,
                book_id=book_id,
                chapter=chapter,
                verse=number,
                ref=make_ref(book_id, chapter, number),
                text=text,
            ))
    return verses


def write_artifacts(data_dir: Path):
    index_dir = data_dir / "index"
    index_dir.mkdir(parents=True)
    verses = build_verses()
    chunks = make_chunks(verses)
    embeddings = np.array([CHUNK_VECTORS[c.chunk_id] for c in chunks], dtype=np.float32)
    FaissVectorIndex.build(embeddings, [c.chunk_id for c in chunks]).save(
        index_dir / "index.faiss", index_dir / "index_meta.json"
    )
    save_chunks(chunks, index_dir / "chunks.json")
    save_verses(verses, index_dir / "verses.json")


def make_openai_client(vector):
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        return_value=SimpleNamespace(data=[SimpleNamespace(embedding=list(vector))])
    )
    return client


class BibleSearchTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        env = patch.dict(os.environ, {})
        env.start()
        self.addCleanup(env.stop)
        for name in PATH_ENV_VARS:
            os.environ.pop(name, None)

        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.data_dir = Path(tmp.name)
        write_artifacts(self.data_dir)
        self.client = make_openai_client(QUERY_VECTOR)
        self.search = BibleSearch(str(self.data_dir), openai_client=self.client)


class TestBibleSearchData(BibleSearchTestCase):

    def test_load_data(self):
        self.assertEqual(len(self.search.verses), 12)
        self.assertEqual(len(self.search.chunks_by_id), 4)
        self.assertEqual(self.search.faiss_index.dim, 4)

    def test_missing_artifacts(self):
        (self.data_dir / "index" / "chunks.json").unlink()
        with self.assertRaises(FileNotFoundError):
            BibleSearch(str(self.data_dir), openai_client=self.client)

    def test_get_chapter(self):
        verses = self.search.get_chapter("WEBU", "GEN", 1)
        self.assertEqual([v.verse for v in verses], [1, 2, 3])
        self.assertTrue(all(v.translation == "WEBU" for v in verses))

    def test_get_verse_range(self):
        verses = self.search.get_verse_range("PT1911", "GEN", 1, 2, 3)
        self.assertEqual([v.ref for v in verses], ["GEN 1:2", "GEN 1:3"])

    def test_max_chapter(self):
        self.assertEqual(self.search.max_chapter("WEBU", "GEN"), 2)
        self.assertEqual(self.search.max_chapter("PT1911", "GEN"), 1)
        self.assertIsNone(self.search.max_chapter("WEBU", "EXO"))

    def test_list_books(self):
        books = self.search.list_books("WEBU")
        self.assertEqual([(b.book_id, b.chapters) for b in books], [("GEN", 2), ("TOB", 1)])
        self.assertEqual(books[1].testament, "DC")


class TestBibleSearchBackend(BibleSearchTestCase):

    async def test_anchor_verse_text(self):
        text = await self.search.get_anchor_verse_text("PT1911", "GEN", 1, 1)
        self.assertEqual(text, "No princípio criou Deus os céus e a terra.")
        self.assertIsNone(await self.search.get_anchor_verse_text("WEBU", "GEN", 9, 9))

    async def test_search_candidates_translation_filter(self):
        vector = await self.search.embed_query("creation")
        candidates = await self.search.search_candidates(vector, 10, ["PT1911"])
        self.assertEqual([c.chunk_id for c in candidates], ["PT1911:GEN.1.1-1.3"])
        self.assertEqual(candidates[0].text, "")

    async def test_search_candidates_order_and_limit(self):
        vector = await self.search.embed_query("creation")
        candidates = await self.search.search_candidates(vector, 2)
        self.assertEqual([c.chunk_id for c in candidates], ["WEBU:GEN.1.1-1.3", "WEBU:TOB.1.1-1.3"])
        self.assertAlmostEqual(candidates[0].semantic_score, 1.0, places=5)

    async def test_fetch_text_skips_unknown_ids(self):
        texts = await self.search.fetch_text(["WEBU:GEN.2.1-2.3", "WEBU:NOPE.1.1-1.1"])
        self.assertEqual(list(texts), ["WEBU:GEN.2.1-2.3"])
        self.assertTrue(texts["WEBU:GEN.2.1-2.3"].startswith("The heavens, the earth"))

    async def test_index_work_runs_off_the_event_loop(self):
        vector = await self.search.embed_query("creation")
        with patch("bible_qa.search.asyncio.to_thread", wraps=asyncio.to_thread) as to_thread:
            candidates = await self.search.search_candidates(vector, 2)
            scores = await self.search.lexical_similarity([c.chunk_id for c in candidates], "light")

        self.assertEqual(to_thread.call_count, 2)
        self.assertEqual(len(candidates), 2)
        self.assertEqual(set(scores), {c.chunk_id for c in candidates})

    async def test_lexical_similarity(self):
        scores = await self.search.lexical_similarity(["WEBU:GEN.1.1-1.3", "WEBU:TOB.1.1-1.3"], "let there be light")
        self.assertGreater(scores["WEBU:GEN.1.1-1.3"], scores["WEBU:TOB.1.1-1.3"])

    async def test_embedding_dimension_mismatch(self):
        self.search.openai_client = make_openai_client([1.0, 0.0])
        with self.assertRaises(ValueError):
            await self.search.embed_query("creation")


class TestBibleSearchFreeText(BibleSearchTestCase):

    async def test_search_returns_reranked_results(self):
        response = await self.search.search("light", top_k=2)
        self.assertEqual(response.mode, "explorer")
        self.assertEqual(response.total, 4)
        self.assertEqual(len(response.results), 2)
        self.assertEqual(response.results[0].chunk_id, "WEBU:GEN.1.1-1.3")
        self.client.embeddings.create.assert_awaited_once()

    async def test_exclude_deuterocanonical(self):
        response = await self.search.search("light", top_k=10, include_deutero=False)
        self.assertNotIn("TOB", {r.book_id for r in response.results})
        self.assertEqual(response.total, 3)
        self.assertFalse(response.include_deutero)

    async def test_translation_filter(self):
        response = await self.search.search("light", translations=["PT1911"])
        self.assertEqual([r.translation for r in response.results], ["PT1911"])
        self.assertEqual(response.translations, ["PT1911"])

    async def test_exact_mode_adds_trigram_note(self):
        response = await self.search.search("Let there be light", mode="exact", translations=["WEBU"])
        top = response.results[0]
        self.assertEqual(response.mode, "exact")
        self.assertEqual(top.chunk_id, "WEBU:GEN.1.1-1.3")
        self.assertTrue(any(n.startswith("trigram_sim=") for n in top.evidence.notes))

    async def test_keyword_evidence_in_results(self):
        response = await self.search.search("creation of the world", translations=["WEBU"])
        top = response.results[0]
        self.assertIn("created", top.evidence.keyword_hits)
        self.assertGreater(top.evidence_score, 0.0)


if __name__ == "__main__":
    unittest.main()
