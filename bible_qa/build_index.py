from __future__ import annotations

import argparse
import logging
import os
import random
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import openai
from dotenv import load_dotenv
from openai import OpenAI
from tqdm import tqdm

from .utils.indexing import FaissVectorIndex
from .utils.loaders import load_verses, make_chunks, save_chunks, save_verses
from .utils.types import Verse

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
)


def _sleep_backoff(attempt: int) -> None:
    # Exponential backoff with jitter.
    base = min(2 ** attempt, 30)
    time.sleep(base + random.random())


def embed_texts(
    client: OpenAI,
    texts: Sequence[str],
    model: str,
    *,
    dimensions: Optional[int] = None,
    max_retries: int = 6,
) -> np.ndarray:
    """
    Embed a batch of texts. Returns float32 matrix shape (n, d).
    Rate limits, timeouts and 5xx errors are retried with backoff.
    """
    if not texts:
        return np.zeros((0, 0), dtype=np.float32)

    kwargs: Dict[str, Any] = {"model": model, "input": list(texts)}
    if dimensions is not None:
        kwargs["dimensions"] = dimensions

    for attempt in range(max_retries):
        try:
            resp = client.embeddings.create(**kwargs)
            # `resp.data` order matches input order.
            return np.vstack([np.array(item.embedding, dtype=np.float32) for item in resp.data])
        except RETRYABLE_ERRORS as e:
            if attempt >= max_retries - 1:
                raise
            logger.warning("Embedding batch failed (attempt %d/%d): %s", attempt + 1, max_retries, e)
            _sleep_backoff(attempt)
    raise RuntimeError("unreachable")


def build_embeddings(
    client: OpenAI,
    texts: List[str],
    model: str,
    *,
    batch_size: int = 64,
    dimensions: Optional[int] = None,
) -> np.ndarray:
    embs: List[np.ndarray] = []
    for i in tqdm(range(0, len(texts), batch_size), desc="Embedding chunks"):
        embs.append(embed_texts(client, texts[i : i + batch_size], model=model, dimensions=dimensions))
    if not embs:
        return np.zeros((0, 0), dtype=np.float32)
    return np.vstack(embs).astype(np.float32, copy=False)


def build_index_artifacts(
    client: OpenAI,
    verses: Sequence[Verse],
    out_dir: Path,
    *,
    embedding_model: str,
    verses_per_chunk: int = 3,
    overlap: int = 2,
    batch_size: int = 64,
) -> Dict[str, Path]:
    """
    Chunk verses, embed the chunks and write every artifact BibleSearch loads.

    Returns:
        Mapping of artifact name to written path
    """
    out_dir.mkdir(parents=True, exist_ok=True)

    chunks = make_chunks(verses, verses_per_chunk=verses_per_chunk, overlap=overlap)
    if not chunks:
        raise ValueError("No chunks produced; is the verses file empty?")

    embeddings = build_embeddings(
        client,
        [c.text for c in chunks],
        model=embedding_model,
        batch_size=batch_size,
    )
    index = FaissVectorIndex.build(embeddings, chunk_ids=[c.chunk_id for c in chunks])

    paths = {
        "index": out_dir / "index.faiss",
        "index_meta": out_dir / "index_meta.json",
        "chunks": out_dir / "chunks.json",
        "verses": out_dir / "verses.json",
    }
    index.save(index_path=paths["index"], meta_path=paths["index_meta"])
    save_chunks(chunks, paths["chunks"])
    save_verses(verses, paths["verses"])
    return paths


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    ap = argparse.ArgumentParser(description="Build a local FAISS chunk index for Bible passage retrieval.")
    ap.add_argument("--verses", required=True, help="Path to verses.json (flat list).")
    ap.add_argument("--out_dir", required=True, help="Output directory for index artifacts.")
    ap.add_argument("--translation", action="append", help="Only index these translations (repeatable).")
    ap.add_argument("--embedding_model", default=os.getenv("EMBEDDING_MODEL", "text-embedding-3-large"))
    ap.add_argument("--verses_per_chunk", type=int, default=3)
    ap.add_argument("--overlap", type=int, default=2)
    ap.add_argument("--batch_size", type=int, default=64)
    args = ap.parse_args()

    client = OpenAI(api_key=os.getenv("OPENAI_API_KEY"))

    verses = load_verses(args.verses)
    if args.translation:
        verses = [v for v in verses if v.translation in set(args.translation)]

    paths = build_index_artifacts(
        client,
        verses,
        Path(args.out_dir),
        embedding_model=args.embedding_model,
        verses_per_chunk=args.verses_per_chunk,
        overlap=args.overlap,
        batch_size=args.batch_size,
    )

    print("Built index artifacts successfully:")
    for path in paths.values():
        print(f"- {path}")


if __name__ == "__main__":
    main()
