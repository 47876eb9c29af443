"""Tests for the segmentation driver."""

import numpy as np
import pytest
from PIL import Image

from conftest import flat_image, two_tone
from rgmerge import (
    OwnershipTable,
    Region,
    grow_regions,
    merge_regions,
    process_image_file,
    renumber,
    segment_image,
    segment_regions,
)
from rgmerge.core import adjacent_pairs


def _stripes():
    img = np.zeros((4, 9, 3), dtype=np.uint8)
    img[:, 0:3] = 100
    img[:, 6:9] = 100
    return img


def test_two_tone_image_gives_two_segments():
    img = two_tone(8, 8, 20, 230)
    regions, table = segment_regions(img, seeds=[(0, 0), (0, 7)])
    labels = table.labels()
    assert [r.id for r in regions] == [1, 2]
    assert np.all(labels[:, :4] == 1)
    assert np.all(labels[:, 4:] == 2)
    np.testing.assert_array_equal(regions[0].mean_color, [20, 20, 20])
    np.testing.assert_array_equal(regions[1].mean_color, [230, 230, 230])


def test_uniform_regions_merge_into_one():
    img = flat_image(8, 8, 77)
    labels = segment_image(img, seeds=[(0, 0), (7, 7)])
    assert np.all(labels == 1)

    labels = segment_image(img, seeds=[(0, 0), (7, 7)], merge=False)
    assert set(np.unique(labels).tolist()) == {1, 2}


def test_grown_regions_partition_the_image():
    rng = np.random.default_rng(1)
    img = rng.integers(0, 256, size=(10, 10, 3), dtype=np.uint8)
    regions, table = grow_regions(img, [(0, 0), (5, 5), (9, 9)])
    labels = table.labels()
    assert np.all(labels > 0)
    assert sum(len(r) for r in regions) == 100
    seen = set()
    for r in regions:
        pixels = r.accepted_set()
        assert not (pixels & seen)
        seen |= pixels
        for p in pixels:
            assert labels[p] == r.id


def test_without_fill_leftovers_stay_unassigned():
    img = two_tone(4, 8, 20, 230)
    regions, table = grow_regions(img, [(0, 0)], fill_unassigned=False)
    labels = table.labels()
    assert len(regions) == 1
    assert np.all(labels[:, :4] == 1)
    assert np.all(labels[:, 4:] == 0)

    regions, table = grow_regions(img, [(0, 0)])
    assert len(regions) == 2
    assert np.all(table.labels()[:, 4:] == 2)


def test_seed_on_owned_pixel_is_skipped():
    img = flat_image(4, 4, 10)
    regions, _ = grow_regions(img, [(0, 0), (0, 0)])
    assert len(regions) == 1


def test_out_of_bounds_seed_raises():
    with pytest.raises(ValueError):
        segment_image(flat_image(4, 4, 10), seeds=[(4, 0)])


def test_invalid_image_raises():
    with pytest.raises(ValueError):
        segment_image(np.zeros((2, 2, 2, 2), dtype=np.uint8), seeds=[(0, 0)])
    with pytest.raises(ValueError):
        segment_image(np.zeros((0, 3), dtype=np.uint8), seeds=[])


def test_image_is_not_modified():
    img = two_tone(6, 6, 50, 150)
    before = img.copy()
    segment_image(img, seeds=[(0, 0), (5, 5)])
    np.testing.assert_array_equal(img, before)
    assert img.flags.writeable


def test_grayscale_input():
    img = np.zeros((5, 6), dtype=np.uint8)
    img[:, 3:] = 200
    labels = segment_image(img, seeds=[(0, 0), (0, 5)])
    assert labels.shape == (5, 6)
    assert len(np.unique(labels)) == 2


def test_adjacent_pairs():
    labels = np.array([[1, 1, 2],
                       [3, 0, 2],
                       [3, 3, 4]])
    assert adjacent_pairs(labels) == {(1, 2), (1, 3), (2, 4), (3, 4), (2, 3)}


def test_merge_only_adjacent_by_default():
    img = _stripes()
    regions, table = grow_regions(img, [(0, 0), (0, 4), (0, 8)])
    assert len(regions) == 3
    survivors = merge_regions(regions, table)
    assert [r.id for r in survivors] == [1, 2, 3]


def test_merge_all_pairs():
    img = _stripes()
    regions, table = grow_regions(img, [(0, 0), (0, 4), (0, 8)])
    survivors = merge_regions(regions, table, adjacent_only=False)
    assert [r.id for r in survivors] == [1, 2]
    assert len(survivors[0]) == 24
    assert np.all(table.labels()[:, 6:] == 1)
    assert regions[2].dissolved


def test_renumber_gives_consecutive_ids():
    img = _stripes()
    regions, table = grow_regions(img, [(0, 0), (0, 8), (0, 4)])
    survivors = merge_regions(regions, table, adjacent_only=False)
    assert [r.id for r in survivors] == [1, 3]
    survivors = renumber(survivors)
    assert [r.id for r in survivors] == [1, 2]
    assert set(np.unique(table.labels()).tolist()) == {1, 2}
    assert np.all(table.labels()[:, 3:6] == 2)


def test_labels_are_consecutive_after_merging():
    rng = np.random.default_rng(3)
    img = (rng.integers(0, 4, size=(16, 16, 1)) * 60).astype(np.uint8)
    regions, table = segment_regions(img, n_seeds=10, rng=7)
    labels = np.unique(table.labels()).tolist()
    assert labels == list(range(1, len(regions) + 1))


def test_random_seeds_are_reproducible():
    rng = np.random.default_rng(5)
    img = rng.integers(0, 256, size=(12, 12, 3), dtype=np.uint8)
    a = segment_image(img, n_seeds=6, rng=11)
    b = segment_image(img, n_seeds=6, rng=11)
    np.testing.assert_array_equal(a, b)


def test_process_image_file(tmp_path):
    path = tmp_path / "split.png"
    Image.fromarray(two_tone(6, 10, 10, 240)).save(path)
    labels = process_image_file(str(path), seeds=[(0, 0), (5, 9)])
    assert labels.shape == (6, 10)
    assert np.all(labels[:, :5] == 1)
    assert np.all(labels[:, 5:] == 2)


def test_stalled_region_widens_across_a_gradient():
    img = (np.arange(12, dtype=np.uint8) * 7).reshape(1, 12)

    # The starting window stops at the first step of the ramp
    alone = Region(1, (0, 0), OwnershipTable((1, 12)), img[:, :, np.newaxis])
    assert alone.grow() == 0

    regions, table = grow_regions(img, [(0, 0)], fill_unassigned=False)
    labels = table.labels()
    assert len(regions) == 1
    assert np.all(labels[0, :3] == 1)
    assert np.all(labels[0, 3:] == 0)
    region = regions[0]
    assert len(region) == 3
    assert region.threshold == 10
    assert not region.is_growing
