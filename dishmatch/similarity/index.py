"""
Content-similarity index over dish descriptions.

``train`` vectorises every document with TF-IDF, computes pairwise cosine
similarity once and keeps, per document, the neighbours scoring at least
``min_score``.  The fitted state is immutable and published with a single
attribute assignment, so ``nearest`` never sees a half-built model.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from .config import DEFAULT_SIMILARITY_CONFIG, SimilarityConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarityDocument:
    document_id: str
    content: str


@dataclass(frozen=True)
class SimilarNeighbor:
    document_id: str
    score: float


@dataclass(frozen=True)
class _TrainedState:
    document_ids: tuple[str, ...]
    neighbors: dict[str, tuple[SimilarNeighbor, ...]]


class SimilarityIndex:
    def __init__(self, config: SimilarityConfig = DEFAULT_SIMILARITY_CONFIG) -> None:
        self.config = config
        self._state: _TrainedState | None = None

    @property
    def is_trained(self) -> bool:
        return self._state is not None

    @property
    def document_count(self) -> int:
        state = self._state
        return len(state.document_ids) if state else 0

    def train(self, documents: Sequence[SimilarityDocument]) -> None:
        """Rebuild the index from scratch; earlier training is discarded."""
        seen: set[str] = set()
        unique: list[SimilarityDocument] = []
        for doc in documents:
            if doc.document_id in seen:
                continue
            seen.add(doc.document_id)
            unique.append(doc)

        ids = tuple(doc.document_id for doc in unique)
        self._state = _TrainedState(document_ids=ids, neighbors=self._build_neighbors(unique))

    def _build_neighbors(
        self, documents: list[SimilarityDocument]
    ) -> dict[str, tuple[SimilarNeighbor, ...]]:
        if len(documents) < 2:
            return {doc.document_id: () for doc in documents}

        vectorizer = TfidfVectorizer(
            stop_words=self.config.stop_words,
            ngram_range=self.config.ngram_range,
        )
        try:
            matrix = vectorizer.fit_transform([doc.content or "" for doc in documents])
        except ValueError:
            # Raised when no document contributes a single term
            logger.info("No usable vocabulary in %d documents", len(documents))
            return {doc.document_id: () for doc in documents}

        sims = cosine_similarity(matrix)
        np.fill_diagonal(sims, -np.inf)
        positions = np.arange(len(documents))

        neighbors: dict[str, tuple[SimilarNeighbor, ...]] = {}
        for i, doc in enumerate(documents):
            row = sims[i]
            keep = row >= self.config.min_score
            candidates = positions[keep]
            scores = row[keep]
            # Descending score, ties resolved by training order
            order = np.lexsort((candidates, -scores))[: self.config.max_similar_documents]
            neighbors[doc.document_id] = tuple(
                SimilarNeighbor(documents[candidates[j]].document_id, float(scores[j]))
                for j in order
            )
        return neighbors

    def nearest(self, document_id: str, offset: int = 0, count: int = 10) -> list[SimilarNeighbor]:
        """Return up to *count* neighbours of *document_id*, skipping *offset*.

        Untrained indexes and unknown ids yield an empty list.
        """
        return _lookup(self._state, document_id, offset, count)

    def snapshot(self) -> Callable[[str, int, int], list[SimilarNeighbor]]:
        """A ``nearest`` bound to the current model; later training does not reach it."""
        state = self._state

        def nearest(document_id: str, offset: int = 0, count: int = 10) -> list[SimilarNeighbor]:
            return _lookup(state, document_id, offset, count)

        return nearest


def _lookup(
    state: _TrainedState | None,
    document_id: str,
    offset: int,
    count: int,
) -> list[SimilarNeighbor]:
    if state is None:
        return []
    found = state.neighbors.get(document_id)
    if not found:
        return []
    return list(found[offset : offset + count])
