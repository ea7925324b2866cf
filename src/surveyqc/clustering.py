"""
Hamming-distance k-modes clustering of answer vectors.

Points are integer vectors (see SurveyResponse.point). Centres are
per-coordinate modes, which keeps them valid answer vectors.
"""
from __future__ import annotations

import logging
from typing import Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


def hamming_distance(a: Sequence[int], b: Sequence[int]) -> int:
    """Number of coordinates where ``a`` and ``b`` differ."""
    a, b = np.asarray(a), np.asarray(b)
    if a.shape != b.shape:
        raise ValueError(f"Cannot compare vectors of shapes {a.shape} and {b.shape}")
    return int(np.count_nonzero(a != b))


def _distances(points: np.ndarray, centres: np.ndarray) -> np.ndarray:
    # (n_points, n_centres)
    return (points[:, None, :] != centres[None, :, :]).sum(axis=2)


def _seed_centres(points: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """k-means++ seeding with squared Hamming distance weights."""
    n = len(points)
    chosen = [int(rng.integers(n))]
    for _ in range(1, k):
        d = _distances(points, points[chosen]).min(axis=1).astype(float) ** 2
        total = d.sum()
        if total == 0:
            chosen.append(int(rng.integers(n)))
        else:
            chosen.append(int(rng.choice(n, p=d / total)))
    return points[chosen].copy()


def _modes(members: np.ndarray) -> np.ndarray:
    return np.array([np.bincount(col).argmax() for col in members.T], dtype=members.dtype)


def kmodes(points: Sequence[Sequence[int]],
           k: int,
           max_iterations: int = 50,
           rng: np.random.Generator = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Partition ``points`` into at most ``k`` clusters.

    Args:
        points: Non-negative integer vectors of equal length
        k: Number of clusters; clamped to the number of points
        max_iterations: Upper bound on assignment/update rounds
        rng: Random source for seeding

    Returns:
        (labels, centres): cluster index per point, and one centre per row
    """
    rng = rng if rng is not None else np.random.default_rng()
    data = np.asarray(points, dtype=np.int64)
    if data.ndim != 2 or len(data) == 0:
        return np.zeros(0, dtype=np.int64), np.zeros((0, 0), dtype=np.int64)
    if k < 1:
        raise ValueError("k must be positive")
    k = min(k, len(data))

    centres = _seed_centres(data, k, rng)
    labels = np.full(len(data), -1, dtype=np.int64)

    for iteration in range(max_iterations):
        dist = _distances(data, centres)
        new_labels = dist.argmin(axis=1)
        if np.array_equal(new_labels, labels):
            logger.debug("k-modes converged after %d iterations", iteration)
            break
        labels = new_labels

        for c in range(k):
            members = data[labels == c]
            if len(members) == 0:
                # reseed from the point farthest from its own centre
                far = int(dist[np.arange(len(data)), labels].argmax())
                centres[c] = data[far]
                labels[far] = c
            else:
                centres[c] = _modes(members)

    return labels, centres
