"""
Seeded region with an adaptive color acceptance window.

A region starts from one seed pixel and grows ring by ring: every call to
``grow`` examines the 8-neighbourhood of the frontier snapshot taken at call
entry and admits free neighbours whose color lies inside the acceptance
window. The window is centred on the region's mean color with a half-width of

    min(threshold + growth_coef * log1p(n), threshold_cap * growth_coef_cap)

for ``n`` sampled colors. ``increase_threshold`` widens it one step at a time
when growth stalls, until both parameters hit their caps and the region is
saturated; from then on the half-width stays fixed.

Regions are merged with ``absorb`` (or ``a += b``) once ``verify_fusion``
agrees in both directions. The absorbed region is dissolved and refuses any
further mutation.
"""

import logging
import math
from collections import deque
from functools import total_ordering
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .ownership import UNASSIGNED, OwnershipTable, Point

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 5
DEFAULT_GROWTH_COEF = 1.0
DEFAULT_THRESHOLD_CAP = 10
DEFAULT_GROWTH_COEF_CAP = 1.5

THRESHOLD_STEP = 1
GROWTH_COEF_STEP = 0.1

NEIGHBOR_OFFSETS = [(-1, -1), (-1, 0), (-1, 1), (0, -1),
                    (0, 1), (1, -1), (1, 0), (1, 1)]

Color = Tuple


class DissolvedRegionError(RuntimeError):
    """Raised when a region is used after it was absorbed by another."""


class IncompatibleMergeError(ValueError):
    """Raised by a strict merge of two regions whose windows disagree."""


def _channel_bounds(dtype: np.dtype) -> Tuple[float, float]:
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return float(info.min), float(info.max)
    return -math.inf, math.inf


@total_ordering
class Region:
    """A growing image region.

    Parameters
    ----------
    region_id : int
        Positive id written into the ownership table.
    seed : tuple of int
        ``(row, col)`` of the first pixel; it must be free.
    table : OwnershipTable
        Grid shared by all regions of the segmentation.
    image : np.ndarray
        ``H x W`` or ``H x W x C`` image. Only read, never copied.
    threshold, growth_coef : float
        Base half-width and the coefficient of the sample-count term.
    threshold_cap, growth_coef_cap : float
        Limits reached by ``increase_threshold``; their product caps the
        half-width.
    """

    def __init__(self, region_id: int, seed: Point, table: OwnershipTable, image: np.ndarray,
                 threshold: float = DEFAULT_THRESHOLD,
                 growth_coef: float = DEFAULT_GROWTH_COEF,
                 threshold_cap: float = DEFAULT_THRESHOLD_CAP,
                 growth_coef_cap: float = DEFAULT_GROWTH_COEF_CAP):
        if region_id <= 0:
            raise ValueError(f"Region ids must be positive, got {region_id}")
        if threshold < 0 or growth_coef < 0:
            raise ValueError(f"Threshold and growth coefficient must be >= 0, got {threshold}, {growth_coef}")
        if threshold_cap < threshold or growth_coef_cap < growth_coef:
            raise ValueError(
                f"Caps must not be below their base values, got threshold {threshold} / cap {threshold_cap}, "
                f"coef {growth_coef} / cap {growth_coef_cap}"
            )
        if tuple(image.shape[:2]) != table.shape:
            raise ValueError(f"Image and ownership table must have same shape, got {image.shape[:2]} vs {table.shape}")

        seed = (int(seed[0]), int(seed[1]))
        if not table.is_free(seed):
            raise ValueError(f"Seed {seed} is outside the image or already owned")

        self._id = int(region_id)
        self._table = table
        self._image = image
        self._channels = 1 if image.ndim == 2 else image.shape[2]
        self._lo_bound, self._hi_bound = _channel_bounds(image.dtype)

        self.threshold = threshold
        self.growth_coef = growth_coef
        self.threshold_cap = threshold_cap
        self.growth_coef_cap = growth_coef_cap
        self._is_growing = True
        self._saturated_width: Optional[float] = None

        self._frontier = deque()
        self._accepted: Dict[Point, Color] = {}
        self._sum = np.zeros(self._channels, dtype=np.float64)
        self._sq_sum = np.zeros(self._channels, dtype=np.float64)
        self._mean = np.zeros(self._channels, dtype=np.float64)
        self._low = np.zeros(self._channels, dtype=np.float64)
        self._high = np.zeros(self._channels, dtype=np.float64)
        self._crit_merge: Optional[float] = None
        self._dissolved = False

        self.add_point(seed)
        self._frontier.append(seed)
        self.average_color()

    # ------------------------------------------------------------------ growth

    def grow(self) -> int:
        """Process one ring: the frontier entries present at call entry.

        Returns the number of pixels admitted. An empty frontier is a no-op.
        """
        self._check_alive()
        ring = len(self._frontier)
        admitted = 0
        for _ in range(ring):
            r, c = self._frontier.popleft()
            for dr, dc in NEIGHBOR_OFFSETS:
                p = (r + dr, c + dc)
                if not self.verify_point(p):
                    continue
                if self._verify_color(self._sample(p)):
                    self.add_point(p)
                    self._frontier.append(p)
                    admitted += 1
        if admitted:
            self.average_color()
        logger.debug(f"region {self._id}: ring of {ring} admitted {admitted}, size {len(self._accepted)}")
        return admitted

    def verify_point(self, p: Point) -> bool:
        """True iff ``p`` is inside the image and unassigned."""
        return self._table.is_free(p)

    def boundary_points(self) -> List[Point]:
        """Accepted pixels that still touch at least one unassigned pixel."""
        out = []
        for r, c in self._accepted:
            for dr, dc in NEIGHBOR_OFFSETS:
                if self._table.is_free((r + dr, c + dc)):
                    out.append((r, c))
                    break
        return out

    def increase_threshold(self) -> bool:
        """Widen the window by one step. Returns False once saturated."""
        self._check_alive()
        if not self._is_growing:
            return False
        self.threshold = min(self.threshold + THRESHOLD_STEP, self.threshold_cap)
        self.growth_coef = min(self.growth_coef + GROWTH_COEF_STEP, self.growth_coef_cap)
        if self.threshold >= self.threshold_cap and self.growth_coef >= self.growth_coef_cap:
            self._saturated_width = self.half_width()
            self._is_growing = False
            logger.debug(f"region {self._id}: window saturated")
        self.average_color_threshold()
        return True

    def half_width(self) -> float:
        """Current half-width; frozen once the region is saturated."""
        if self._saturated_width is not None:
            return self._saturated_width
        hw = self.threshold + self.growth_coef * math.log1p(len(self._accepted))
        return min(hw, self.threshold_cap * self.growth_coef_cap)

    def average_color(self) -> None:
        """Recompute the mean color from the samples, then the window."""
        n = len(self._accepted)
        if n:
            self._mean = self._sum / n
        self._crit_merge = None
        self.average_color_threshold()

    def average_color_threshold(self) -> None:
        """Recompute the acceptance window around the current mean."""
        hw = self.half_width()
        self._low = np.maximum(self._mean - hw, self._lo_bound)
        self._high = np.minimum(self._mean + hw, self._hi_bound)

    # ------------------------------------------------------------ bookkeeping

    def add_point(self, p: Point) -> None:
        """Accept ``p``, sample its color and claim it in the table."""
        self._check_alive()
        p = (int(p[0]), int(p[1]))
        owner = self._table.get(p)
        if owner not in (UNASSIGNED, self._id):
            raise ValueError(f"Point {p} is owned by region {owner}")
        color = self._sample(p)
        self._table.set(p, self._id)
        if p in self._accepted:
            self._discount(self._accepted[p])
        self._accepted[p] = color
        self._count(color)

    def remove_point(self, p: Point) -> bool:
        """Drop ``p`` and its color sample.

        Returns True when the region has nothing left (no accepted pixel and
        an empty frontier); the caller must then discard it.
        """
        self._check_alive()
        p = (int(p[0]), int(p[1]))
        color = self._accepted.pop(p, None)
        if color is not None:
            self._discount(color)
            if self._table.in_bounds(p) and self._table.get(p) == self._id:
                self._table.unset(p)
        if p in self._frontier:
            self._frontier.remove(p)
        if self._accepted:
            self.average_color()
        else:
            # An empty region has no color
            self._mean = np.zeros(self._channels, dtype=np.float64)
            self._low = np.zeros(self._channels, dtype=np.float64)
            self._high = np.zeros(self._channels, dtype=np.float64)
            self._crit_merge = None
        return not self._accepted and not self._frontier

    # ----------------------------------------------------------------- fusion

    def verify_fusion_color(self, color: Sequence) -> bool:
        """True iff a single color lies inside this region's window."""
        self._check_alive()
        return self._verify_color(color)

    def verify_fusion(self, other: "Region") -> bool:
        """True iff each region's mean lies inside the other's window."""
        self._check_alive()
        other._check_alive()
        return self._verify_color(other._mean) and other._verify_color(self._mean)

    def compute_crit_merge(self) -> float:
        """Cache and return the mean per-channel standard deviation."""
        n = len(self._accepted)
        if n == 0:
            self._crit_merge = 0.0
        else:
            var = np.maximum(self._sq_sum / n - (self._sum / n) ** 2, 0.0)
            self._crit_merge = float(np.mean(np.sqrt(var)))
        return self._crit_merge

    @property
    def crit_merge(self) -> float:
        if self._crit_merge is None:
            return self.compute_crit_merge()
        return self._crit_merge

    def absorb(self, other: "Region", strict: bool = False) -> "Region":
        """Take over every pixel, color and frontier entry of ``other``.

        ``other`` is dissolved afterwards. Callers are expected to have
        checked ``verify_fusion``; an incompatible merge is logged, or raises
        ``IncompatibleMergeError`` when ``strict`` is set.
        """
        self._check_alive()
        other._check_alive()
        if other is self:
            raise ValueError(f"Region {self._id} cannot absorb itself")
        if not self.verify_fusion(other):
            if strict:
                raise IncompatibleMergeError(f"Regions {self._id} and {other._id} are not compatible")
            logger.warning(f"merging incompatible regions {self._id} <- {other._id}")

        for p, color in other._accepted.items():
            if p in self._accepted:
                logger.warning(f"region {self._id}: pixel {p} owned twice while absorbing {other._id}")
                self._discount(self._accepted[p])
            self._accepted[p] = color
            self._count(color)
            self._table.set(p, self._id)
        self._frontier.extend(other._frontier)

        other._accepted = {}
        other._frontier = deque()
        other._sum[:] = 0
        other._sq_sum[:] = 0
        other._dissolved = True

        self.average_color()
        return self

    def __iadd__(self, other: "Region") -> "Region":
        return self.absorb(other)

    # -------------------------------------------------------------- accessors

    @property
    def id(self) -> int:
        return self._id

    def set_id(self, region_id: int) -> None:
        """Rename the region and rewrite its pixels in the ownership table."""
        self._check_alive()
        if region_id <= 0:
            raise ValueError(f"Region ids must be positive, got {region_id}")
        self._id = int(region_id)
        for p in self._accepted:
            self._table.set(p, self._id)

    @property
    def frontier(self) -> List[Point]:
        return list(self._frontier)

    def set_frontier(self, points: Iterable[Point]) -> None:
        self._check_alive()
        self._frontier = deque((int(r), int(c)) for r, c in points)

    @property
    def accepted(self) -> List[Point]:
        """Accepted pixels in admission order."""
        return list(self._accepted)

    def accepted_set(self):
        return set(self._accepted)

    def set_accepted(self, points: Iterable[Point]) -> None:
        """Replace the accepted pixels, re-sampling their colors.

        Pixels dropped are released in the table; new ones must be free or
        already owned by this region.
        """
        self._check_alive()
        points = [(int(r), int(c)) for r, c in points]
        for p in points:
            if not self._table.is_free(p) and self._table.get(p) != self._id:
                raise ValueError(f"Point {p} is owned by region {self._table.get(p)}")
        keep = set(points)
        for p in self._accepted:
            if p not in keep:
                self._table.unset(p)
        self._accepted = {}
        self._sum[:] = 0
        self._sq_sum[:] = 0
        for p in points:
            self.add_point(p)
        self.average_color()

    @property
    def colors(self) -> List[Color]:
        """Color samples, one per accepted pixel, in admission order."""
        return list(self._accepted.values())

    def set_colors(self, colors: Sequence[Sequence]) -> None:
        self._check_alive()
        if len(colors) != len(self._accepted):
            raise ValueError(f"Expected {len(self._accepted)} colors, got {len(colors)}")
        self._sum[:] = 0
        self._sq_sum[:] = 0
        for p, color in zip(list(self._accepted), colors):
            color = tuple(color)
            self._accepted[p] = color
            self._count(color)
        self.average_color()

    @property
    def mean_color(self) -> np.ndarray:
        return self._mean.copy()

    @property
    def window(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._low.copy(), self._high.copy()

    @property
    def is_growing(self) -> bool:
        return self._is_growing

    @property
    def dissolved(self) -> bool:
        return self._dissolved

    def __len__(self) -> int:
        return len(self._accepted)

    def __eq__(self, other):
        if not isinstance(other, Region):
            return NotImplemented
        return self._id == other._id

    def __lt__(self, other):
        if not isinstance(other, Region):
            return NotImplemented
        return self._id < other._id

    def __hash__(self):
        return hash(self._id)

    def __repr__(self):
        state = "dissolved" if self._dissolved else ("growing" if self._is_growing else "saturated")
        return f"Region(id={self._id}, size={len(self._accepted)}, mean={self._mean.round(1).tolist()}, {state})"

    # ---------------------------------------------------------------- private

    def _sample(self, p: Point) -> Color:
        value = self._image[p[0], p[1]]
        if np.ndim(value) == 0:
            return (value.item(),)
        return tuple(value.tolist())

    def _verify_color(self, color) -> bool:
        color = np.asarray(color, dtype=np.float64)
        return bool(np.all(color >= self._low) and np.all(color <= self._high))

    def _count(self, color: Color) -> None:
        c = np.asarray(color, dtype=np.float64)
        self._sum += c
        self._sq_sum += c * c

    def _discount(self, color: Color) -> None:
        c = np.asarray(color, dtype=np.float64)
        self._sum -= c
        self._sq_sum -= c * c

    def _check_alive(self) -> None:
        if self._dissolved:
            raise DissolvedRegionError(f"Region {self._id} was absorbed and can no longer be used")


def merge_affinity(a: Region, b: Region) -> float:
    """Score of a candidate merge; smaller values merge first."""
    gap = float(np.max(np.abs(a.mean_color - b.mean_color)))
    return gap + 0.5 * (a.crit_merge + b.crit_merge)
