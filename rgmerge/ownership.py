"""
Pixel ownership table shared by every region of a segmentation.

Each pixel of the image maps to the id of the region that owns it, or to
``UNASSIGNED``. Region ids are positive integers, so the grid doubles as a
label map (0 = unlabeled) once growth is complete.
"""

from typing import Iterator, Tuple

import numpy as np

UNASSIGNED = 0

Point = Tuple[int, int]


class OwnershipTable:
    """Dense ``H x W`` grid of region ids.

    The table does no locking. Growth is sequential: a region checks
    ownership with ``is_free`` (or ``claim``) before any other region can
    touch the pixel.
    """

    def __init__(self, shape: Tuple[int, int]):
        if len(shape) < 2 or shape[0] <= 0 or shape[1] <= 0:
            raise ValueError(f"Ownership table needs a positive 2D shape, got {shape}")
        self.height, self.width = int(shape[0]), int(shape[1])
        self._grid = np.full((self.height, self.width), UNASSIGNED, dtype=np.int32)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    def __len__(self) -> int:
        return self.height * self.width

    def in_bounds(self, p: Point) -> bool:
        r, c = p
        return 0 <= r < self.height and 0 <= c < self.width

    def flat_index(self, p: Point) -> int:
        """Composite key of a coordinate: ``row * width + col``."""
        self._check(p)
        return p[0] * self.width + p[1]

    def get(self, p: Point) -> int:
        self._check(p)
        return int(self._grid[p[0], p[1]])

    def set(self, p: Point, region_id: int) -> None:
        self._check(p)
        if region_id <= UNASSIGNED:
            raise ValueError(f"Region ids must be positive, got {region_id}")
        self._grid[p[0], p[1]] = region_id

    def unset(self, p: Point) -> None:
        self._check(p)
        self._grid[p[0], p[1]] = UNASSIGNED

    def is_free(self, p: Point) -> bool:
        """True iff ``p`` lies on the grid and nobody owns it."""
        return self.in_bounds(p) and self._grid[p[0], p[1]] == UNASSIGNED

    def claim(self, p: Point, region_id: int) -> bool:
        """Take ``p`` for ``region_id`` if it is free; the loser gets False."""
        if not self.is_free(p):
            return False
        self.set(p, region_id)
        return True

    def count(self, region_id: int) -> int:
        return int(np.count_nonzero(self._grid == region_id))

    def free_points(self) -> Iterator[Point]:
        """Row-major iterator over pixels that are unassigned when reached."""
        for idx in np.flatnonzero(self._grid == UNASSIGNED):
            r, c = divmod(int(idx), self.width)
            if self._grid[r, c] == UNASSIGNED:
                yield r, c

    def labels(self) -> np.ndarray:
        """Copy of the grid as an ``int32`` label map."""
        return self._grid.copy()

    def _check(self, p: Point) -> None:
        if not self.in_bounds(p):
            raise IndexError(f"Point {p} is outside the {self.height}x{self.width} grid")
