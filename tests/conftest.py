"""Shared test fixtures."""

import numpy as np
import pytest

from rgmerge import OwnershipTable


def flat_image(height, width, value, channels=3):
    return np.full((height, width, channels), value, dtype=np.uint8)


def two_tone(height, width, left, right, channels=3):
    """Left half ``left``, right half ``right``."""
    img = flat_image(height, width, left, channels)
    img[:, width // 2:] = right
    return img


def grow_out(region):
    """Grow a region ring by ring until its frontier is empty."""
    rings = 0
    while region.frontier:
        region.grow()
        rings += 1
    return rings


@pytest.fixture
def gray4():
    return flat_image(4, 4, 128)


@pytest.fixture
def split4x8():
    return two_tone(4, 8, 20, 230)


@pytest.fixture
def table4():
    return OwnershipTable((4, 4))


@pytest.fixture
def table4x8():
    return OwnershipTable((4, 8))
