"""pytest configuration and shared fixtures."""

import os
import random
import sys

import pytest

# make the modules at the project root importable without installing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


def _random_address(rng, size):
    """Return random packed address bytes that are not IPv4-mapped."""
    first = rng.randrange(1, 256) if size == 16 else rng.randrange(256)
    return bytes([first] + [rng.randrange(256) for _ in range(size - 1)])


@pytest.fixture
def rng():
    """A seeded random number generator, for repeatable property tests."""
    return random.Random(0x192002)


@pytest.fixture(params=[4, 16], ids=['IPv4', 'IPv6'])
def random_addresses(request, rng):
    """Make random addresses of one size, e.g. random_addresses(3)."""
    def make(count):
        return [_random_address(rng, request.param) for _ in range(count)]
    return make
