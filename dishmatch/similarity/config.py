from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SimilarityConfig:
    min_score: float = field(default_factory=lambda: float(os.getenv("DISH_MIN_SIMILARITY", "0.1")))
    max_similar_documents: int = field(
        default_factory=lambda: int(os.getenv("DISH_MAX_SIMILAR_DOCUMENTS", "100"))
    )
    ngram_range: tuple[int, int] = (1, 2)
    stop_words: str | None = "english"


DEFAULT_SIMILARITY_CONFIG = SimilarityConfig()
