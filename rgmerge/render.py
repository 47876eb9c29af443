"""
Output rasterisation: flat-colored segment images and palette label maps.
"""

from pathlib import Path
from typing import Iterable, Optional

import numpy as np
from PIL import Image

from .region import Region


def voc_colormap(N: int = 256, normalized: bool = False) -> np.ndarray:
    """VOC-style palette of N colors; region label k is drawn with entry k mod N.

    Bits of the index are spread over the high bits of R, G and B so that
    consecutive region ids get clearly different colors.
    """
    def bitget(byteval, idx):
        return (byteval & (1 << idx)) != 0

    dtype = np.float32 if normalized else np.uint8
    colormap = np.zeros((N, 3), dtype=dtype)
    for i in range(N):
        r = g = b = 0
        c = i
        for j in range(8):
            r |= (int(bitget(c, 0)) << (7 - j))
            g |= (int(bitget(c, 1)) << (7 - j))
            b |= (int(bitget(c, 2)) << (7 - j))
            c >>= 3
        colormap[i] = [r, g, b]
    if normalized:
        colormap = colormap / 255.0
    return colormap


def _blank_like(image: np.ndarray) -> np.ndarray:
    image = np.asarray(image)
    if image.ndim == 2:
        return np.zeros(image.shape + (1,), dtype=image.dtype)
    return np.zeros_like(image)


def _mean_pixel(region: Region, dtype) -> np.ndarray:
    mean = region.mean_color
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return np.clip(np.rint(mean), info.min, info.max).astype(dtype)
    return mean.astype(dtype)


def paint_mean_colors(regions: Iterable[Region], image: np.ndarray) -> np.ndarray:
    """
    Paint each surviving region's pixels with its mean color.

    Parameters:
    ----------
    regions : iterable of Region
        Regions to paint; dissolved regions have no pixels and paint nothing
    image : np.ndarray
        Source image, only used for its shape and dtype

    Returns:
    -------
    np.ndarray
        Image of the same shape and dtype, pixels of no region left at 0
    """
    out = _blank_like(image)
    for region in regions:
        points = region.accepted
        if not points:
            continue
        rows, cols = zip(*points)
        out[list(rows), list(cols)] = _mean_pixel(region, out.dtype)
    return out.reshape(np.shape(image))


def render_region(region: Region, image: np.ndarray, average: bool = False) -> np.ndarray:
    """Debug view of one region: its raw colors, or its mean color."""
    out = _blank_like(image)
    points = region.accepted
    if not points:
        return out.reshape(np.shape(image))
    rows, cols = zip(*points)
    rows, cols = list(rows), list(cols)
    if average:
        out[rows, cols] = _mean_pixel(region, out.dtype)
    else:
        out[rows, cols] = np.asarray(region.colors, dtype=out.dtype)
    return out.reshape(np.shape(image))


def colorize_labels(labels: np.ndarray, palette: Optional[np.ndarray] = None) -> np.ndarray:
    """Map a label map to RGB through a palette, labels taken modulo its size."""
    pal = palette if palette is not None else voc_colormap()
    return pal[np.asarray(labels, dtype=np.int64) % len(pal)].astype(np.uint8)


def save_indexed_png(labels: np.ndarray, out_path: str, palette: Optional[np.ndarray] = None) -> None:
    """
    Save an H x W label map as an indexed PNG.

    Label 0 (unassigned) keeps palette index 0; labels above 255 wrap
    around, so neighbouring ids stay distinguishable but not unique.
    """
    m = np.asarray(labels, dtype=np.int64)
    out = (m % 256).astype(np.uint8)
    im = Image.fromarray(out)
    pal = palette if palette is not None else voc_colormap()
    im.putpalette(pal.astype(np.uint8).flatten().tolist())
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    im.save(out_path, format="PNG")


def save_image(array: np.ndarray, out_path: str) -> None:
    """Save an H x W, H x W x 1 or H x W x 3 uint8 array."""
    arr = np.asarray(array)
    if arr.ndim == 3 and arr.shape[2] == 1:
        arr = arr[:, :, 0]
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(np.ascontiguousarray(arr, dtype=np.uint8)).save(out_path)
