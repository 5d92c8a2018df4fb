"""Shared fixtures for offline tests.

Provides an in-memory key-value store, a root store on top of it and a
repository bound to that store. Tests that need several sessions over the same
bytes build additional ``Repository`` instances from the ``kv`` fixture.
"""

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for module imports
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stockpile.repository import Repository  # noqa: E402
from stockpile.storage import MemoryKeyValueStore, RootStore  # noqa: E402


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def root_store(kv: MemoryKeyValueStore) -> RootStore:
    return RootStore(kv)


@pytest.fixture
def repo(root_store: RootStore) -> Repository:
    return Repository(root_store)


@pytest.fixture
def sample_item() -> dict:
    return {
        "id": "item-water-1",
        "name": "Bottled water",
        "itemType": "bottled-water",
        "categoryId": "water-beverages",
        "quantity": 12,
        "unit": "liters",
        "expirationDate": "2027-05-01",
        "neverExpires": False,
        "createdAt": "2026-01-01T00:00:00Z",
        "updatedAt": "2026-01-01T00:00:00Z",
    }
