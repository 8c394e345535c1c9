"""Tests for RowStore merge, optimistic apply, confirm and rollback."""

from dataclasses import dataclass

import pytest

from inkbook.errors import InvalidArgument, MutationConflict, RollbackTargetMissing
from inkbook.listcore.row_store import RowStore
from inkbook.listcore.types import (
    ConflictPolicy,
    DataclassRowAdapter,
    InsertPosition,
    MergePosition,
    MutationKind,
    Page,
    PendingMutation,
    SyncState,
)


def _page(rows, cursor=None, next_cursor=None, has_more=False):
    return Page(cursor=cursor, next_cursor=next_cursor, rows=rows, has_more=has_more)


def _update(row_id, row, mutation_id="m-upd"):
    return PendingMutation(mutation_id=mutation_id, kind=MutationKind.UPDATE, target_id=row_id, optimistic_row=row)


def _delete(row_id, mutation_id="m-del"):
    return PendingMutation(mutation_id=mutation_id, kind=MutationKind.DELETE, target_id=row_id)


def _create(row_id, row, mutation_id="m-new"):
    return PendingMutation(mutation_id=mutation_id, kind=MutationKind.CREATE, target_id=row_id, optimistic_row=row)


@pytest.fixture
def abc_store():
    store = RowStore()
    store.merge_page(_page([
        {"id": 1, "name": "A"},
        {"id": 2, "name": "B"},
        {"id": 3, "name": "C"},
    ]), MergePosition.REPLACE)
    return store


class TestMerge:
    def test_append_preserves_concatenation_order(self, rows_factory):
        store = RowStore()
        first = rows_factory(1, 3)
        second = rows_factory(4, 2)
        store.merge_page(_page(first))
        store.merge_page(_page(second))
        assert store.ids() == ["r1", "r2", "r3", "r4", "r5"]

    def test_duplicate_id_updates_in_place(self, rows_factory):
        store = RowStore()
        store.merge_page(_page(rows_factory(1, 3)))
        store.merge_page(_page([{"id": "r2", "name": "renamed"}, {"id": "r9", "name": "new"}]))
        assert store.ids() == ["r1", "r2", "r3", "r9"]
        assert store.get("r2")["name"] == "renamed"

    def test_replace_is_idempotent(self, rows_factory):
        page = _page(rows_factory(1, 5))
        once = RowStore()
        once.merge_page(page, MergePosition.REPLACE)
        twice = RowStore()
        twice.merge_page(page, MergePosition.REPLACE)
        twice.merge_page(page, MergePosition.REPLACE)
        assert once.rows() == twice.rows()
        assert once.ids() == twice.ids()

    def test_replace_discards_previous_rows(self, rows_factory):
        store = RowStore()
        store.merge_page(_page(rows_factory(1, 5)))
        store.merge_page(_page(rows_factory(10, 2)), MergePosition.REPLACE)
        assert store.ids() == ["r10", "r11"]

    def test_page_with_missing_id_leaves_store_untouched(self, rows_factory):
        store = RowStore()
        store.merge_page(_page(rows_factory(1, 3)))
        changes = []
        store.changed.connect(changes.append)
        bad = _page([{"id": "x1", "name": "x"}, {"noid": 1}, {"id": "x2", "name": "y"}])
        with pytest.raises(InvalidArgument):
            store.merge_page(bad, MergePosition.APPEND)
        assert store.ids() == ["r1", "r2", "r3"]
        with pytest.raises(InvalidArgument):
            store.merge_page(bad, MergePosition.REPLACE)
        assert store.ids() == ["r1", "r2", "r3"]
        assert changes == []

    def test_replace_keeps_pending_create(self, rows_factory):
        store = RowStore()
        recorded = store.apply_optimistic(_create("optimistic-1", {"id": "optimistic-1", "name": "new"}))
        store.merge_page(_page(rows_factory(1, 3)), MergePosition.REPLACE)
        assert store.ids() == ["optimistic-1", "r1", "r2", "r3"]
        assert store.is_optimistic("optimistic-1")
        assert store.sync_state("optimistic-1") is SyncState.PENDING
        assert store.confirm(recorded, {"id": "srv-9", "name": "new"}) is True
        assert store.ids() == ["srv-9", "r1", "r2", "r3"]

    def test_replace_keeps_pending_create_at_back(self, rows_factory):
        store = RowStore(insert_position=InsertPosition.BACK)
        store.merge_page(_page(rows_factory(1, 2)))
        recorded = store.apply_optimistic(_create("optimistic-1", {"id": "optimistic-1", "name": "new"}))
        store.merge_page(_page(rows_factory(5, 2)), MergePosition.REPLACE)
        assert store.ids() == ["r5", "r6", "optimistic-1"]
        assert store.rollback(recorded) is True
        assert store.ids() == ["r5", "r6"]

    def test_replace_drops_pending_update(self, abc_store):
        recorded = abc_store.apply_optimistic(_update(2, {"id": 2, "name": "X"}))
        abc_store.merge_page(_page([{"id": 2, "name": "B2"}]), MergePosition.REPLACE)
        assert abc_store.get(2) == {"id": 2, "name": "B2"}
        assert abc_store.pending_for(2) is None
        assert abc_store.confirm(recorded, {"id": 2, "name": "X"}) is False

    def test_two_pages_of_twenty(self, rows_factory):
        store = RowStore()
        store.merge_page(_page(rows_factory(1, 20), next_cursor="c1", has_more=True), MergePosition.REPLACE)
        assert store.ids() == [f"r{i}" for i in range(1, 21)]
        store.merge_page(_page(rows_factory(21, 20), cursor="c1"), MergePosition.APPEND)
        assert len(store) == 40
        assert len(set(store.ids())) == 40
        assert store.ids() == [f"r{i}" for i in range(1, 41)]

    def test_merge_emits_change(self, rows_factory):
        store = RowStore()
        changes = []
        store.changed.connect(changes.append)
        store.merge_page(_page(rows_factory(1, 2)))
        assert changes[-1].operation == "merge_append"
        assert changes[-1].ids == ("r1", "r2")

    def test_removed_row_is_not_resurrected(self, rows_factory):
        store = RowStore()
        store.merge_page(_page(rows_factory(1, 3)))
        assert store.remove("r2") is True
        store.merge_page(_page(rows_factory(2, 1)))
        assert "r2" not in store

    def test_slice_is_inclusive_and_clamped(self, abc_store):
        assert [row["id"] for row in abc_store.slice(1, 10)] == [2, 3]
        assert abc_store.slice(5, 8) == []


class TestOptimisticUpdate:
    def test_failed_update_restores_snapshot(self, abc_store):
        original = dict(abc_store.get(2))
        recorded = abc_store.apply_optimistic(_update(2, {"id": 2, "name": "X"}))
        assert abc_store.get(2)["name"] == "X"
        assert abc_store.sync_state(2) is SyncState.PENDING

        assert abc_store.rollback(recorded) is True
        assert abc_store.get(2) == original
        assert [row["name"] for row in abc_store.rows()] == ["A", "B", "C"]
        assert abc_store.sync_state(2) is SyncState.FAILED

    def test_confirm_adopts_server_row(self, abc_store):
        recorded = abc_store.apply_optimistic(_update(2, {"id": 2, "name": "X"}))
        assert abc_store.confirm(recorded, {"id": 2, "name": "X", "updated": True}) is True
        assert abc_store.get(2)["updated"] is True
        assert abc_store.sync_state(2) is SyncState.CONFIRMED
        assert abc_store.pending_for(2) is None

    def test_second_mutation_conflicts(self, abc_store):
        abc_store.apply_optimistic(_update(2, {"id": 2, "name": "X"}))
        with pytest.raises(MutationConflict):
            abc_store.apply_optimistic(_delete(2))
        assert abc_store.get(2)["name"] == "X"

    def test_supersede_keeps_first_snapshot(self, abc_store):
        abc_store.apply_optimistic(_update(2, {"id": 2, "name": "X"}, "m1"))
        second = abc_store.apply_optimistic(_update(2, {"id": 2, "name": "Y"}, "m2"), supersede=True)
        assert second.snapshot_before == {"id": 2, "name": "B"}
        abc_store.rollback(second)
        assert abc_store.get(2)["name"] == "B"

    def test_update_unknown_row_is_invalid(self, abc_store):
        with pytest.raises(InvalidArgument):
            abc_store.apply_optimistic(_update(99, {"id": 99}))

    def test_client_wins_keeps_optimistic_row_on_merge(self, abc_store):
        recorded = abc_store.apply_optimistic(_update(2, {"id": 2, "name": "X"}))
        abc_store.merge_page(_page([{"id": 2, "name": "B2"}]))
        assert abc_store.get(2)["name"] == "X"
        abc_store.rollback(recorded)
        assert abc_store.get(2)["name"] == "B2"

    def test_server_wins_shows_server_row_on_merge(self):
        store = RowStore(conflict_policy=ConflictPolicy.SERVER_WINS)
        store.merge_page(_page([{"id": 1, "name": "A"}]))
        store.apply_optimistic(_update(1, {"id": 1, "name": "X"}))
        store.merge_page(_page([{"id": 1, "name": "A2"}]))
        assert store.get(1)["name"] == "A2"
        assert store.pending_for(1).snapshot_before == {"id": 1, "name": "A2"}

    def test_failed_row_is_confirmed_by_next_merge(self, abc_store):
        recorded = abc_store.apply_optimistic(_update(2, {"id": 2, "name": "X"}))
        abc_store.rollback(recorded)
        abc_store.merge_page(_page([{"id": 2, "name": "B"}]))
        assert abc_store.sync_state(2) is SyncState.CONFIRMED


class TestOptimisticCreate:
    def test_create_inserts_at_front_by_default(self, abc_store):
        abc_store.apply_optimistic(_create("optimistic-1", {"id": "optimistic-1", "name": "N"}))
        assert abc_store.ids()[0] == "optimistic-1"
        assert abc_store.is_optimistic("optimistic-1")

    def test_create_at_back(self):
        store = RowStore(insert_position=InsertPosition.BACK)
        store.merge_page(_page([{"id": 1}]))
        store.apply_optimistic(_create("optimistic-1", {"id": "optimistic-1"}))
        assert store.ids() == [1, "optimistic-1"]

    def test_confirm_swaps_placeholder_for_server_id(self, abc_store):
        recorded = abc_store.apply_optimistic(_create("optimistic-1", {"id": "optimistic-1", "name": "N"}))
        abc_store.confirm(recorded, {"id": 42, "name": "N"})
        assert "optimistic-1" not in abc_store
        assert abc_store.ids() == [42, 1, 2, 3]
        assert not abc_store.is_optimistic(42)

    def test_confirm_when_server_row_already_merged(self, abc_store):
        recorded = abc_store.apply_optimistic(_create("optimistic-1", {"id": "optimistic-1"}))
        abc_store.merge_page(_page([{"id": 42, "name": "from page"}]))
        abc_store.confirm(recorded, {"id": 42, "name": "from server"})
        assert abc_store.ids().count(42) == 1
        assert abc_store.ids() == [1, 2, 3, 42]
        assert abc_store.get(42)["name"] == "from server"

    def test_rollback_removes_placeholder(self, abc_store):
        recorded = abc_store.apply_optimistic(_create("optimistic-1", {"id": "optimistic-1"}))
        abc_store.rollback(recorded)
        assert abc_store.ids() == [1, 2, 3]

    def test_create_with_existing_id_is_invalid(self, abc_store):
        with pytest.raises(InvalidArgument):
            abc_store.apply_optimistic(_create(1, {"id": 1}))
        assert abc_store.ids() == [1, 2, 3]


class TestOptimisticDelete:
    def test_rollback_restores_original_position(self, abc_store):
        recorded = abc_store.apply_optimistic(_delete(2))
        assert abc_store.ids() == [1, 3]
        assert recorded.snapshot_before == {"id": 2, "name": "B"}
        abc_store.rollback(recorded)
        assert abc_store.ids() == [1, 2, 3]
        assert abc_store.get(2) == {"id": 2, "name": "B"}

    def test_confirm_delete_is_final(self, abc_store):
        recorded = abc_store.apply_optimistic(_delete(2))
        assert abc_store.confirm(recorded) is True
        assert abc_store.ids() == [1, 3]
        abc_store.merge_page(_page([{"id": 2, "name": "B"}]))
        assert 2 not in abc_store

    def test_rollback_after_server_removal_raises(self, abc_store):
        recorded = abc_store.apply_optimistic(_update(2, {"id": 2, "name": "X"}))
        abc_store.remove(2)
        with pytest.raises(RollbackTargetMissing):
            abc_store.rollback(recorded)
        assert 2 not in abc_store


class TestReset:
    def test_clear_drops_pending_creates(self, abc_store):
        recorded = abc_store.apply_optimistic(_create("optimistic-1", {"id": "optimistic-1"}))
        abc_store.clear()
        assert "optimistic-1" not in abc_store
        assert abc_store.confirm(recorded, {"id": "srv-9"}) is False

    def test_clear_forgets_pending_mutations(self, abc_store):
        recorded = abc_store.apply_optimistic(_update(2, {"id": 2, "name": "X"}))
        abc_store.clear()
        assert len(abc_store) == 0
        assert abc_store.rollback(recorded) is False
        assert abc_store.confirm(recorded, {"id": 2}) is False


@dataclass(frozen=True)
class _Customer:
    id: str
    name: str = ""


def test_dataclass_adapter_builds_rows_without_mutating_input():
    store = RowStore(DataclassRowAdapter(_Customer))
    store.merge_page(_page([_Customer("a", "Ann")]))
    original = store.get("a")
    updated = store.adapter.build_updated(original, {"name": "Anna"})
    recorded = store.apply_optimistic(_update("a", updated))
    assert store.get("a").name == "Anna"
    assert original.name == "Ann"
    store.rollback(recorded)
    assert store.get("a") == _Customer("a", "Ann")
