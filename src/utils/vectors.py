"""Vector helpers shared by the in-memory stores and the Redis cache."""

from __future__ import annotations

import numpy as np


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Return the cosine similarity of *a* and *b*, or ``0.0`` if either is zero."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimension mismatch: {va.shape[0]} != {vb.shape[0]}")
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    # Clip float noise so scores stay inside [-1, 1].
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


def l2_normalize(vector: list[float]) -> list[float]:
    """Scale *vector* to unit length; zero vectors are returned unchanged."""
    arr = np.asarray(vector, dtype=np.float64)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        return arr.tolist()
    return (arr / norm).tolist()


def to_float32_bytes(vector: list[float]) -> bytes:
    """Serialise *vector* as little-endian float32, the layout RediSearch expects."""
    return np.asarray(vector, dtype="<f4").tobytes()
