"""Vector math shared by the datastore implementations."""

from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

import numpy as np

_T = TypeVar("_T")


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``1 - cos(a, b)``; 0 means identical direction, 2 opposite.

    A zero-norm operand has no direction, so it is treated as maximally
    dissimilar-but-orthogonal (distance 1.0).
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape[0]} != {vb.shape[0]}")
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 1.0
    return 1.0 - float(np.dot(va, vb)) / denom


def rank_by_distance(
    query: Sequence[float],
    candidates: Iterable[tuple[str, Sequence[float], _T]],
    limit: int,
) -> list[tuple[float, _T]]:
    """Rank ``(id, vector, payload)`` triples by ascending cosine distance.

    Ties are broken by id so results are reproducible.  Candidates whose
    vector dimension does not match the query are skipped.
    """
    q = np.asarray(query, dtype=np.float64)
    q_norm = float(np.linalg.norm(q))
    scored: list[tuple[float, str, _T]] = []
    for item_id, vector, payload in candidates:
        v = np.asarray(vector, dtype=np.float64)
        if v.shape != q.shape:
            continue
        denom = q_norm * float(np.linalg.norm(v))
        distance = 1.0 if denom == 0.0 else 1.0 - float(np.dot(q, v)) / denom
        scored.append((distance, item_id, payload))

    scored.sort(key=lambda entry: (entry[0], entry[1]))
    return [(distance, payload) for distance, _id, payload in scored[:limit]]
