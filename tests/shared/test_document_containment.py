"""Tests for structural containment between document values."""

from __future__ import annotations

import random
from decimal import Decimal

import pytest

from packages.docstore_shared.documents import contains


def test_object_probe_matches_subset_of_keys() -> None:
    """Every probe key must be present with a containing value."""
    doc = {"cpu": "Apple M2 Max", "ram": "32GB", "ports": ["HDMI", "SD card"]}

    assert contains(doc, {"cpu": "Apple M2 Max"}) is True
    assert contains(doc, {"cpu": "Apple M2 Max", "ram": "16GB"}) is False
    assert contains(doc, {"gpu": "any"}) is False
    assert contains(doc, {}) is True


def test_array_probe_ignores_order_and_multiplicity() -> None:
    """Each probe element needs one containing element, in any position."""
    tags = ["laptop", "apple", "premium"]

    assert contains(tags, ["premium", "laptop"]) is True
    assert contains(tags, ["apple", "apple"]) is True
    assert contains(tags, ["android"]) is False
    assert contains(tags, []) is True


def test_array_of_objects_matches_partial_elements() -> None:
    """Probe objects inside arrays match any element containing them."""
    items = [
        {"name": "Laptop", "price": 2499.99, "quantity": 1},
        {"name": "Headphones", "price": 399.99, "quantity": 1},
    ]

    assert contains(items, [{"name": "Headphones"}]) is True
    assert contains(items, [{"name": "Headphones", "quantity": 2}]) is False


def test_nested_objects_recurse() -> None:
    """Containment should recurse through nested objects and arrays."""
    doc = {"camera": {"main": "200MP", "telephoto": ["10MP", "10MP"]}}

    assert contains(doc, {"camera": {"telephoto": ["10MP"]}}) is True
    assert contains(doc, {"camera": {"main": "12MP"}}) is False


def test_scalars_match_by_structural_equality() -> None:
    """Numbers compare by value; booleans never match numbers."""
    assert contains({"age": 30}, {"age": 30.0}) is True
    assert contains({"age": Decimal("30")}, {"age": 30}) is True
    assert contains({"flag": True}, {"flag": 1}) is False
    assert contains({"value": None}, {"value": None}) is True


def test_kind_mismatch_never_matches() -> None:
    """An object probe never matches an array and vice versa."""
    assert contains(["a"], {"0": "a"}) is False
    assert contains({"a": 1}, ["a"]) is False
    assert contains("laptop", ["laptop"]) is False


def _random_document(rng: random.Random, depth: int = 0) -> object:
    choice = rng.randrange(6 if depth < 3 else 4)
    if choice == 0:
        return None
    if choice == 1:
        return rng.choice([True, False])
    if choice == 2:
        return rng.randrange(4)
    if choice == 3:
        return rng.choice(["a", "b", "c"])
    if choice == 4:
        return [_random_document(rng, depth + 1) for _ in range(rng.randrange(3))]
    return {
        rng.choice("xyz"): _random_document(rng, depth + 1)
        for _ in range(rng.randrange(3))
    }


@pytest.mark.parametrize("seed", range(5))
def test_containment_is_reflexive_and_transitive(seed: int) -> None:
    """Every document contains itself; containment chains compose."""
    rng = random.Random(seed)
    documents = [_random_document(rng) for _ in range(40)]

    for doc in documents:
        assert contains(doc, doc) is True

    for a in documents:
        for b in documents:
            if not contains(a, b):
                continue
            for c in documents:
                if contains(b, c):
                    assert contains(a, c) is True
