"""
Core functionality for seeded region growing with adaptive merging.
"""

import logging
from itertools import combinations
from typing import Iterable, List, Optional, Set, Tuple

import numpy as np
from PIL import Image

from .ownership import UNASSIGNED, OwnershipTable
from .region import Region, merge_affinity
from .seeds import random_seeds, validate_seeds

logger = logging.getLogger(__name__)


def _prepare_image(image: np.ndarray) -> np.ndarray:
    image = np.asarray(image)
    if image.ndim == 2:
        image = image[:, :, np.newaxis]
    if image.ndim != 3:
        raise ValueError(f"Expected an H x W or H x W x C image, got shape {image.shape}")
    if image.shape[0] == 0 or image.shape[1] == 0 or image.shape[2] == 0:
        raise ValueError(f"Image must not be empty, got shape {image.shape}")
    # Regions only read the image
    view = image.view()
    view.flags.writeable = False
    return view


def grow_regions(image: np.ndarray, seeds: Iterable, fill_unassigned: bool = True,
                 **params) -> Tuple[List[Region], OwnershipTable]:
    """
    Grow one region per seed until every frontier is exhausted.

    Parameters:
    ----------
    image : np.ndarray
        Input image, H x W or H x W x C
    seeds : iterable of (row, col)
        Seed points, in creation order. Seeds landing on a pixel already
        owned by an earlier region are skipped.
    fill_unassigned : bool, optional
        Seed new regions on pixels nobody claimed, until the image is covered
    **params
        Growth parameters forwarded to ``Region``

    Returns:
    -------
    (list of Region, OwnershipTable)
    """
    image = _prepare_image(image)
    seeds = validate_seeds(seeds, image.shape)
    table = OwnershipTable(image.shape[:2])

    regions = []
    for seed in seeds:
        if not table.is_free(seed):
            logger.debug(f"seed {seed} already owned by region {table.get(seed)}, skipping")
            continue
        regions.append(Region(len(regions) + 1, seed, table, image, **params))
    _grow_all(regions)

    if fill_unassigned:
        for p in table.free_points():
            region = Region(len(regions) + 1, p, table, image, **params)
            regions.append(region)
            _grow_all([region])

    logger.debug(f"grew {len(regions)} regions on a {table.height}x{table.width} image")
    return regions, table


def _grow_all(regions: List[Region]) -> None:
    # Round-robin: one ring per region per sweep
    active = list(regions)
    while active:
        still = []
        for region in active:
            if region.grow():
                still.append(region)
                continue
            # Stalled: reopen the boundary under a wider window
            if not region.is_growing:
                continue
            boundary = region.boundary_points()
            if not boundary:
                continue
            region.increase_threshold()
            region.set_frontier(boundary)
            still.append(region)
        active = still


def adjacent_pairs(labels: np.ndarray) -> Set[Tuple[int, int]]:
    """Pairs ``(a, b)`` with ``a < b`` of labels touching in 8-connectivity."""
    pairs = set()
    shifts = (
        (labels[:, :-1], labels[:, 1:]),
        (labels[:-1, :], labels[1:, :]),
        (labels[:-1, :-1], labels[1:, 1:]),
        (labels[:-1, 1:], labels[1:, :-1]),
    )
    for a, b in shifts:
        mask = (a != b) & (a != UNASSIGNED) & (b != UNASSIGNED)
        lo = np.minimum(a[mask], b[mask])
        hi = np.maximum(a[mask], b[mask])
        pairs.update(zip(lo.tolist(), hi.tolist()))
    return pairs


def merge_regions(regions: List[Region], table: OwnershipTable, max_passes: int = 10,
                  adjacent_only: bool = True) -> List[Region]:
    """
    Merge mutually compatible regions, closest pairs first.

    Each pass ranks every candidate pair passing ``verify_fusion`` by
    ``merge_affinity`` and absorbs the higher id into the lower one. A pair is
    re-checked right before merging since earlier merges of the pass move the
    windows. Stops after a pass without merges or after ``max_passes``.

    Returns:
    -------
    list of Region
        Surviving regions, sorted by id
    """
    regions = sorted(r for r in regions if not r.dissolved)
    for n_pass in range(max_passes):
        by_id = {r.id: r for r in regions}
        if adjacent_only:
            candidates = [(by_id[a], by_id[b]) for a, b in adjacent_pairs(table.labels())
                          if a in by_id and b in by_id]
        else:
            candidates = list(combinations(regions, 2))

        ranked = sorted(
            (merge_affinity(a, b), a.id, b.id, a, b)
            for a, b in candidates if a.verify_fusion(b)
        )
        merged = 0
        for _, _, _, a, b in ranked:
            if a.dissolved or b.dissolved or not a.verify_fusion(b):
                continue
            a.absorb(b)
            merged += 1

        regions = [r for r in regions if not r.dissolved]
        logger.debug(f"merge pass {n_pass + 1}: {merged} merges, {len(regions)} regions left")
        if not merged:
            break
    return regions


def renumber(regions: List[Region]) -> List[Region]:
    """Rename regions to consecutive ids 1..K, keeping their order."""
    regions = sorted(regions)
    for new_id, region in enumerate(regions, start=1):
        if region.id != new_id:
            region.set_id(new_id)
    return regions


def segment_regions(image: np.ndarray, seeds: Optional[Iterable] = None, n_seeds: int = 64,
                    rng=None, merge: bool = True, max_passes: int = 10,
                    fill_unassigned: bool = True,
                    **params) -> Tuple[List[Region], OwnershipTable]:
    """
    Full pipeline: seed, grow, merge and renumber.

    Parameters:
    ----------
    image : np.ndarray
        Input image, H x W or H x W x C
    seeds : iterable of (row, col), optional
        Explicit seeds; ``n_seeds`` random seeds drawn with ``rng`` otherwise
    merge : bool, optional
        Run merge passes after growth
    max_passes : int, optional
        Upper bound on merge passes
    **params
        Growth parameters forwarded to ``Region``

    Returns:
    -------
    (list of Region, OwnershipTable)
        Surviving regions numbered 1..K and the table holding their labels
    """
    image = _prepare_image(image)
    if seeds is None:
        seeds = random_seeds(image.shape[:2], n_seeds, rng)

    regions, table = grow_regions(image, seeds, fill_unassigned=fill_unassigned, **params)
    grown = len(regions)
    if merge:
        regions = merge_regions(regions, table, max_passes=max_passes)
    regions = renumber(regions)
    logger.debug(f"segmentation: {grown} grown, {len(regions)} after merging")
    return regions, table


def segment_image(image: np.ndarray, seeds: Optional[Iterable] = None, **kwargs) -> np.ndarray:
    """
    Segment an image into flat-colored regions.

    Returns:
    -------
    np.ndarray
        int32 label map, 1..K for regions and 0 for pixels left unassigned
        (only possible with ``fill_unassigned=False``)
    """
    _, table = segment_regions(image, seeds, **kwargs)
    return table.labels()


def load_image_rgb(path: str) -> np.ndarray:
    """Load an image file as a uint8 H x W x 3 array."""
    img = Image.open(path)
    if img.mode != "RGB":
        img = img.convert("RGB")
    return np.ascontiguousarray(np.asarray(img, dtype=np.uint8))


def process_image_file(image_path: str, seeds: Optional[Iterable] = None, **kwargs) -> np.ndarray:
    """
    Load an image file and segment it.

    Returns:
    -------
    np.ndarray
        Label map from segmentation
    """
    return segment_image(load_image_rgb(image_path), seeds, **kwargs)
