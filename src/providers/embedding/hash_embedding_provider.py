"""Deterministic hash-based embedding provider.

Maps each lower-cased alphanumeric token to a bucket via SHA-256, counts
bucket hits and L2-normalises the result.  Texts sharing vocabulary get
high cosine similarity, which is enough for offline development, demos
and tests.  No network access and no credentials.

Text without alphanumeric tokens (punctuation-only overlap tails, "???")
is hashed whole after stripping whitespace, so every input maps to a
non-empty unit vector.
"""

from __future__ import annotations

import hashlib
import re

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.vectors import l2_normalize

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class HashEmbeddingProvider(IEmbeddingProvider):
    """Token-hashing embedder with a fixed output dimension."""

    def __init__(self, dimension: int = 256) -> None:
        if dimension < 1:
            raise ValueError("dimension must be >= 1")
        self._dimension = dimension

    async def get_embedding(self, text: str) -> list[float]:
        tokens = _TOKEN_RE.findall(text.lower()) or [text.strip()]
        vector = [0.0] * self._dimension
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % self._dimension] += 1.0
        return l2_normalize(vector)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "hash_embedding"

    def is_available(self) -> bool:
        return True
