"""Type definitions and constants for the similarity-search module."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class SearchBackendType(str, Enum):
    """Similarity-search backends a deployment can be configured with."""

    FAISS = "faiss"
    ANNOY = "annoy"
    NONE = "none"


class IndexState(str, Enum):
    """Lifecycle state of a repository's search index."""

    UNINITIALIZED = "uninitialized"
    CREATED = "created"
    BUILT = "built"


class IndexTuning(BaseModel):
    """Backend tuning parameters supplied when an index is created.

    Every field is optional: only supplied values override the backend's
    defaults, and each backend ignores the fields it has no use for.

    Attributes:
        index_type: FAISS index factory string (e.g. "IVF256,PQ16").
        ondisk: Keep the FAISS index memory-mapped instead of in RAM.
        nprobe: Inverted lists probed per query (IVF indexes).
        train_samples: Maximum vectors used to train a FAISS index.
        index_gpu: Place the FAISS index on GPU.
        index_gpuid: GPU device ids; supplying any implies index_gpu.
        preload: Prefault the Annoy index pages when opening it.
    """

    index_type: str | None = None
    ondisk: bool | None = None
    nprobe: int | None = None
    train_samples: int | None = None
    index_gpu: bool | None = None
    index_gpuid: list[int] | None = None
    preload: bool | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("index_gpuid", mode="before")
    @classmethod
    def _single_gpuid(cls, value):
        if isinstance(value, int):
            return [value]
        return value


@dataclass
class SearchResult:
    """Result from a vector similarity search.

    Attributes:
        id: Original item identifier.
        score: Similarity score (higher is more similar).
        rank: Position in results (0-indexed).
    """

    id: str
    score: float
    rank: int


# Artifact names inside the repository
FAISS_INDEX_FILENAME = "index.faiss"
ANNOY_INDEX_FILENAME = "index.ann"
INDEX_META_FILENAME = "index.meta.json"

# FAISS defaults
DEFAULT_FAISS_INDEX_KEY = "Flat"
DEFAULT_TRAIN_SAMPLES = 100000
DEFAULT_NPROBE = 2

# Annoy defaults
DEFAULT_ANNOY_TREES = 100
DEFAULT_ANNOY_METRIC = "angular"


__all__ = [
    # Enums
    "SearchBackendType",
    "IndexState",
    # Models
    "IndexTuning",
    "SearchResult",
    # Constants
    "FAISS_INDEX_FILENAME",
    "ANNOY_INDEX_FILENAME",
    "INDEX_META_FILENAME",
    "DEFAULT_FAISS_INDEX_KEY",
    "DEFAULT_TRAIN_SAMPLES",
    "DEFAULT_NPROBE",
    "DEFAULT_ANNOY_TREES",
    "DEFAULT_ANNOY_METRIC",
]
