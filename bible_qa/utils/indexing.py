from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import faiss
import numpy as np


def _unit_rows(x: np.ndarray) -> np.ndarray:
    """Float32, C-contiguous copy of x with L2-normalized rows (2D)."""
    rows = np.array(x, dtype=np.float32, order="C", ndmin=2, copy=True)
    faiss.normalize_L2(rows)
    return rows


class FaissVectorIndex:
    """
    Cosine-similarity index over chunk embeddings.

    Rows are unit-normalized and searched by inner product, so scores are
    cosine similarities. Row i of the index belongs to chunk_ids[i].
    """

    def __init__(self, index: "faiss.Index", chunk_ids: Sequence[str]):
        if index.ntotal != len(chunk_ids):
            raise ValueError(f"index holds {index.ntotal} vectors but {len(chunk_ids)} chunk ids were given")
        self.index = index
        self.chunk_ids: List[str] = list(chunk_ids)

    def __len__(self) -> int:
        return len(self.chunk_ids)

    @property
    def dim(self) -> int:
        return self.index.d

    @classmethod
    def build(cls, embeddings: np.ndarray, chunk_ids: Sequence[str]) -> "FaissVectorIndex":
        if embeddings.ndim != 2:
            raise ValueError("embeddings must be a 2D array")
        if embeddings.shape[0] != len(chunk_ids):
            raise ValueError("embeddings rows must match len(chunk_ids)")

        rows = _unit_rows(embeddings)
        index = faiss.IndexFlatIP(rows.shape[1])
        index.add(rows)
        return cls(index, chunk_ids)

    def search(
        self,
        query_embedding: np.ndarray,
        top_k: int = 30,
        keep: Optional[Callable[[str], bool]] = None,
    ) -> List[Tuple[str, float]]:
        """
        Return up to top_k (chunk_id, cosine score) pairs, best first.

        `keep` filters chunk ids after the vector search. A flat index scans
        every vector anyway, so a filtered search ranks the whole index.
        """
        if top_k <= 0 or not self.chunk_ids:
            return []

        fetch_k = len(self) if keep is not None else min(top_k, len(self))
        scores, rows = self.index.search(_unit_rows(query_embedding), fetch_k)

        hits: List[Tuple[str, float]] = []
        for score, row in zip(scores[0].tolist(), rows[0].tolist()):
            # faiss pads missing results with -1
            if row < 0:
                continue
            chunk_id = self.chunk_ids[row]
            if keep is None or keep(chunk_id):
                hits.append((chunk_id, float(score)))
            if len(hits) == top_k:
                break
        return hits

    def save(self, index_path: str | Path, meta_path: str | Path) -> None:
        faiss.write_index(self.index, str(index_path))
        meta = {"dim": self.dim, "count": len(self), "chunk_ids": self.chunk_ids}
        Path(meta_path).write_text(json.dumps(meta, ensure_ascii=False, indent=2), encoding="utf-8")

    @classmethod
    def load(cls, index_path: str | Path, meta_path: str | Path) -> "FaissVectorIndex":
        index = faiss.read_index(str(index_path))
        meta = json.loads(Path(meta_path).read_text(encoding="utf-8"))
        if int(meta["dim"]) != index.d:
            raise ValueError(f"{meta_path} says dim {meta['dim']} but {index_path} has dim {index.d}")
        return cls(index, meta["chunk_ids"])
