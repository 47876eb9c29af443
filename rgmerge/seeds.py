"""
Seed coordinate generators.
"""

from typing import Iterable, List, Optional, Tuple

import numpy as np

Point = Tuple[int, int]


def validate_seeds(seeds: Iterable, shape: Tuple[int, int]) -> List[Point]:
    """Normalise seeds to ``(row, col)`` int tuples inside ``shape``."""
    height, width = shape[:2]
    out = []
    for s in seeds:
        if len(s) != 2:
            raise ValueError(f"Seeds must be (row, col) pairs, got {s!r}")
        r, c = int(s[0]), int(s[1])
        if not (0 <= r < height and 0 <= c < width):
            raise ValueError(f"Seed {(r, c)} is outside image bounds ({height}x{width})")
        out.append((r, c))
    return out


def random_seeds(shape: Tuple[int, int], count: int,
                 rng: Optional[np.random.Generator] = None) -> List[Point]:
    """Draw ``count`` uniformly random seed points, duplicates removed.

    Pass a seeded ``np.random.Generator`` (or an int) for reproducible runs.
    """
    if count < 0:
        raise ValueError(f"Seed count must be >= 0, got {count}")
    height, width = shape[:2]
    rng = np.random.default_rng(rng)
    rows = rng.integers(0, height, size=count)
    cols = rng.integers(0, width, size=count)
    # dict keeps the draw order
    return list(dict.fromkeys(zip(rows.tolist(), cols.tolist())))


def grid_seeds(shape: Tuple[int, int], spacing: int) -> List[Point]:
    """One seed at the centre of every ``spacing x spacing`` cell."""
    if spacing <= 0:
        raise ValueError(f"Grid spacing must be positive, got {spacing}")
    height, width = shape[:2]
    half = spacing // 2
    return [(min(r + half, height - 1), min(c + half, width - 1))
            for r in range(0, height, spacing)
            for c in range(0, width, spacing)]
