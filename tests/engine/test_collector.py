"""Tests for item collection tracking."""

import pytest
from salvo.engine.collector import CollectionStatus, ItemCollector
from salvo.engine.models import Item


def test_miss_on_empty_cell_has_no_item() -> None:
    collector = ItemCollector(5, 5, [Item(0, 0, part=1, item_id=0)])
    result = collector.attempt_collect(4, 4)
    assert result.status is CollectionStatus.NO_ITEM
    assert not result.collected


def test_single_part_item_completes_on_first_collection() -> None:
    collector = ItemCollector(5, 5, [Item(1, 1, part=1, item_id=7)])
    result = collector.attempt_collect(1, 1)
    assert result.collected
    assert result.item_id == 7
    assert result.fully_collected
    assert collector.is_fully_collected(7)
    assert collector.fully_collected_ids() == frozenset({7})


def test_multi_part_item_counts_monotonically() -> None:
    collector = ItemCollector(6, 6, [Item(0, 2, part=3, item_id=0)])

    first = collector.attempt_collect(0, 2)
    assert first.collected and not first.fully_collected
    assert collector.collected_count(0) == 1

    second = collector.attempt_collect(1, 2)
    assert second.collected and not second.fully_collected

    third = collector.attempt_collect(2, 2)
    assert third.fully_collected
    assert collector.collected_count(0) == 3
    assert collector.counts() == {0: 3}


def test_shots_after_full_collection_are_neutral() -> None:
    collector = ItemCollector(5, 5, [Item(0, 0, part=1, item_id=0)])
    collector.attempt_collect(0, 0)

    again = collector.attempt_collect(0, 0)
    assert again.status is CollectionStatus.NEUTRAL
    assert not again.collected
    assert collector.collected_count(0) == 1


def test_identity_defaults_to_index() -> None:
    collector = ItemCollector(5, 5, [Item(0, 0), Item(2, 2)])
    assert collector.attempt_collect(2, 2).item_id == 1
    assert collector.item_at(0, 0) == Item(0, 0)
    assert collector.item_index_at(9, 9) is None


def test_unknown_item_id_raises() -> None:
    collector = ItemCollector(5, 5)
    with pytest.raises(KeyError):
        collector.collected_count(3)


def test_lookup_by_explicit_id_among_many_items() -> None:
    items = [Item(x, y, item_id=100 + y * 10 + x) for y in range(0, 10, 2) for x in range(0, 10, 2)]
    collector = ItemCollector(10, 10, items)

    collector.attempt_collect(8, 8)
    assert collector.collected_count(188) == 1
    assert collector.is_fully_collected(188)
    assert collector.collected_count(100) == 0
    with pytest.raises(KeyError):
        collector.is_fully_collected(0)
