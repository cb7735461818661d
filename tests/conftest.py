import copy
import json

import pytest

import patchstore.config as config_module
from patchstore.config import StoreConfig


@pytest.fixture(autouse=True)
def default_config(monkeypatch):
    """Isolate every test from user/local config files and PATCHSTORE_* variables."""
    config = StoreConfig()
    monkeypatch.setattr(config_module, "_config", config)
    return config


@pytest.fixture
def simple_list():
    """Flat items keyed by 'id'."""
    return [
        {"key": 5, "id": "1"},
        {"key": 7, "id": "2"},
        {"key": 4, "id": "3"},
    ]


@pytest.fixture
def nested_list():
    """Items whose 'key' is itself an object."""
    return [
        {"key": {"key2": 5}, "id": "1"},
        {"key": {"key2": 7}, "id": "2"},
        {"key": {"key2": 4}, "id": "3"},
    ]


@pytest.fixture
def list_with_lists():
    """Items holding a list of numbers."""
    return [
        {"list": [1, 2, 3], "id": "1"},
        {"list": [3, 4, 5], "id": "2"},
        {"list": [4, 5, 6], "id": "3"},
    ]


@pytest.fixture
def sample_items():
    """Richer documents for store, parser and CLI tests."""
    return [
        {
            "id": "a1",
            "title": "Python Documentation",
            "tags": ["python", "docs"],
            "meta": {"stars": 5, "archived": False},
            "added": "2023-02-24",
        },
        {
            "id": "b2",
            "title": "GitHub",
            "tags": ["git"],
            "meta": {"stars": 3, "archived": False},
            "added": "2023-03-15",
        },
        {
            "id": "c3",
            "title": "Old Python Blog",
            "tags": ["python", "blog"],
            "meta": {"stars": 1, "archived": True},
            "added": "2021-06-01",
        },
        {
            "id": "d4",
            "title": "Unrated",
            "tags": [],
            "meta": {"archived": False},
            "added": "2024-01-10",
        },
    ]


@pytest.fixture
def items_file(tmp_path, sample_items):
    """sample_items written to a JSON file."""
    path = tmp_path / "items.json"
    path.write_text(json.dumps(sample_items))
    return path


@pytest.fixture
def clone():
    """Deep copy helper for before/after comparisons."""
    return copy.deepcopy
