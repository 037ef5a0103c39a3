"""Attachment points for translation and embedding collaborators.

The pipeline never generates translations or vectors itself. A caller hands in
a ``Translator`` or ``EmbeddingModel`` and gets back clauses with
``title_translated`` / ``body_translated`` / ``embedding`` filled.

Vectors travel as ``bytes`` (little-endian float32) between a model and this
module, and are stored on the Clause as a float tuple so JSON export stays
plain. The DuckDB exporter packs them back to bytes.
"""
from __future__ import annotations

import hashlib
import math
import struct
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import replace
from typing import TypeVar

from ubbl.corpus_types import Clause

# ---------------------------------------------------------------------------
# Vector utilities
# ---------------------------------------------------------------------------


def floats_to_bytes(floats: Sequence[float]) -> bytes:
    """Serialize a float sequence to little-endian float32 bytes."""
    return struct.pack(f"<{len(floats)}f", *floats)


def bytes_to_floats(data: bytes) -> list[float]:
    """Deserialize little-endian float32 bytes to a float list."""
    if len(data) == 0:
        raise ValueError("Empty embedding vector")
    if len(data) % 4 != 0:
        raise ValueError(f"Byte length {len(data)} is not a multiple of 4")
    n = len(data) // 4
    return list(struct.unpack(f"<{n}f", data))


def embedding_text(clause: Clause) -> str:
    return f"{clause.title}\n{clause.body}".strip()


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


class Translator(ABC):
    """Machine-translation collaborator."""

    @abstractmethod
    def translate(self, texts: list[str]) -> list[str]:
        """Translate a batch; one output per input, same order."""

    @abstractmethod
    def target_language(self) -> str:
        """ISO code of the output language (e.g. 'ms')."""


class EmbeddingModel(ABC):
    """Abstract interface for generating text embeddings."""

    @abstractmethod
    def embed(self, texts: list[str]) -> list[bytes]:
        """Generate embeddings for a batch of texts.

        Parameters
        ----------
        texts:
            List of text strings to embed.

        Returns
        -------
        list[bytes]
            One float32 byte vector per input text, all same dimension.
        """

    @abstractmethod
    def model_version(self) -> str:
        """Return the model version string."""

    @abstractmethod
    def dimensions(self) -> int:
        """Return the embedding dimension."""


class MockEmbeddingModel(EmbeddingModel):
    """Deterministic hash-seeded model for tests and offline runs."""

    def __init__(self, dim: int = 32, version: str = "mock-v1") -> None:
        self._dim = dim
        self._version = version

    def embed(self, texts: list[str]) -> list[bytes]:
        results: list[bytes] = []
        for t in texts:
            h = hashlib.sha256(t.encode("utf-8")).digest()
            floats = [(h[i % len(h)] / 127.5) - 1.0 for i in range(self._dim)]
            norm = math.sqrt(sum(x * x for x in floats))
            if norm > 1e-10:
                floats = [x / norm for x in floats]
            results.append(floats_to_bytes(floats))
        return results

    def model_version(self) -> str:
        return self._version

    def dimensions(self) -> int:
        return self._dim


# ---------------------------------------------------------------------------
# Attachment
# ---------------------------------------------------------------------------


T = TypeVar("T")


def _batched(items: Sequence[T], size: int) -> list[Sequence[T]]:
    step = max(1, size)
    return [items[i:i + step] for i in range(0, len(items), step)]


def attach_translations(
    clauses: Sequence[Clause],
    translator: Translator,
    *,
    batch_size: int = 50,
) -> tuple[Clause, ...]:
    """Fill ``title_translated`` and ``body_translated`` for every clause."""
    out: list[Clause] = []
    for batch in _batched(clauses, batch_size):
        titles = translator.translate([c.title for c in batch])
        bodies = translator.translate([c.body for c in batch])
        if len(titles) != len(batch) or len(bodies) != len(batch):
            raise ValueError(
                f"Translator returned {len(titles)}/{len(bodies)} results for {len(batch)} clauses"
            )
        out.extend(
            replace(c, title_translated=t, body_translated=b)
            for c, t, b in zip(batch, titles, bodies)
        )
    return tuple(out)


def attach_embeddings(
    clauses: Sequence[Clause],
    model: EmbeddingModel,
    *,
    batch_size: int = 100,
) -> tuple[Clause, ...]:
    """Fill ``embedding`` from ``title + body`` for every clause."""
    dim = model.dimensions()
    out: list[Clause] = []
    for batch in _batched(clauses, batch_size):
        vectors = model.embed([embedding_text(c) for c in batch])
        if len(vectors) != len(batch):
            raise ValueError(f"Model returned {len(vectors)} vectors for {len(batch)} clauses")
        for clause, vec in zip(batch, vectors):
            floats = bytes_to_floats(vec)
            if len(floats) != dim:
                raise ValueError(
                    f"Model {model.model_version()} returned {len(floats)} dims, expected {dim}"
                )
            out.append(replace(clause, embedding=tuple(floats)))
    return tuple(out)
