"""
Seeded Region Growing with Adaptive Merging
-------------------------------------------
Regions grow outward from seed pixels, absorbing neighbours whose color falls
inside an adaptive window around the region's mean color. Fully grown regions
are merged pairwise when their windows agree, giving a partition of the image
into flat-colored segments.

Example:
    >>> import numpy as np
    >>> from rgmerge import segment_regions, paint_mean_colors
    >>>
    >>> image = ...  # uint8 H x W x 3 array
    >>>
    >>> # Explicit seeds, or n_seeds random ones when omitted
    >>> regions, table = segment_regions(image, seeds=[(10, 10), (40, 40)])
    >>> labels = table.labels()
    >>> flat = paint_mean_colors(regions, image)
"""

from .core import (
    grow_regions,
    load_image_rgb,
    merge_regions,
    process_image_file,
    renumber,
    segment_image,
    segment_regions,
)
from .ownership import UNASSIGNED, OwnershipTable
from .region import DissolvedRegionError, IncompatibleMergeError, Region, merge_affinity
from .render import paint_mean_colors, render_region, save_image, save_indexed_png
from .seeds import grid_seeds, random_seeds

__version__ = "0.1.0"
__all__ = [
    "segment_image", "segment_regions", "grow_regions", "merge_regions", "renumber",
    "process_image_file", "load_image_rgb",
    "OwnershipTable", "UNASSIGNED",
    "Region", "merge_affinity", "DissolvedRegionError", "IncompatibleMergeError",
    "paint_mean_colors", "render_region", "save_image", "save_indexed_png",
    "grid_seeds", "random_seeds",
]
