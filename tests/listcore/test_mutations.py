"""Tests for the optimistic mutation coordinator.

Async code is driven with ``asyncio.run`` inside plain tests.
"""

import asyncio
from unittest.mock import Mock

import pytest

from inkbook.errors import InvalidArgument, MutationConflict, MutationFailed, MutationTimeout
from inkbook.errors.handler import ErrorHandler, ErrorSeverity
from inkbook.events.bus import EventBus
from inkbook.events.list_events import MutationConfirmedEvent, MutationRolledBackEvent
from inkbook.listcore.mutations import OptimisticMutationCoordinator
from inkbook.listcore.row_store import RowStore
from inkbook.listcore.types import MergePosition, MutationKind, Page, SyncState, is_placeholder_id
from inkbook.listcore.write_queue import WriteQueue


def _build(source, timeout=5.0, with_bus=False, **kwargs):
    store = RowStore()
    store.merge_page(Page(rows=[
        {"id": 1, "name": "A"},
        {"id": 2, "name": "B"},
        {"id": 3, "name": "C"},
    ]), MergePosition.REPLACE)
    errors = Mock(spec=ErrorHandler)
    bus = EventBus() if with_bus else None
    coordinator = OptimisticMutationCoordinator(
        store, WriteQueue("test"), source,
        error_handler=errors, event_bus=bus, timeout=timeout, list_name="customers", **kwargs,
    )
    return store, coordinator, errors, bus


def test_failed_update_rolls_back_and_reports(source):
    source.fail_mutation = RuntimeError("server said no")
    store, coordinator, errors, _ = _build(source)
    failed = []
    coordinator.failed.connect(failed.append)

    async def _run():
        mutation_id = coordinator.update(2, {"name": "X"})
        assert store.get(2)["name"] == "X"
        return await coordinator.wait(mutation_id)

    outcome = asyncio.run(_run())
    assert outcome.rolled_back
    assert isinstance(outcome.error, MutationFailed)
    assert [row["name"] for row in store.rows()] == ["A", "B", "C"]
    assert store.get(2) == {"id": 2, "name": "B"}
    assert len(coordinator.failures) == 1
    assert coordinator.failures[0].kind is MutationKind.UPDATE
    assert failed and failed[0].mutation_id == outcome.mutation_id
    reported, severity, context = errors.handle.call_args[0]
    assert isinstance(reported, MutationFailed)
    assert severity is ErrorSeverity.ERROR
    assert context["target_id"] == 2


def test_successful_update_confirms_with_server_row(source):
    store, coordinator, errors, bus = _build(source, with_bus=True)
    events = []
    bus.subscribe(MutationConfirmedEvent, events.append)

    async def _run():
        mutation_id = coordinator.update(2, {"name": "X"})
        return await coordinator.wait(mutation_id)

    outcome = asyncio.run(_run())
    assert outcome.confirmed
    assert store.get(2) == {"name": "X", "id": 2, "server": True}
    assert store.sync_state(2) is SyncState.CONFIRMED
    assert events[0].list_name == "customers"
    assert events[0].target_id == 2
    errors.handle.assert_not_called()


def test_create_replaces_placeholder_with_server_id(source):
    store, coordinator, _, _ = _build(source)

    async def _run():
        mutation_id = coordinator.create({"name": "New"})
        placeholder = store.ids()[0]
        assert is_placeholder_id(placeholder)
        assert store.is_optimistic(placeholder)
        outcome = await coordinator.wait(mutation_id)
        return placeholder, outcome

    placeholder, outcome = asyncio.run(_run())
    assert outcome.confirmed
    assert placeholder not in store
    assert store.ids()[0] == "srv-1001"
    assert store.ids() == ["srv-1001", 1, 2, 3]


def test_failed_create_removes_placeholder(source):
    source.fail_mutation = ValueError("duplicate email")
    store, coordinator, _, bus = _build(source, with_bus=True)
    events = []
    bus.subscribe(MutationRolledBackEvent, events.append)

    async def _run():
        await coordinator.wait(coordinator.create({"name": "New"}))

    asyncio.run(_run())
    assert store.ids() == [1, 2, 3]
    assert isinstance(events[0].cause, ValueError)


def test_failed_delete_restores_row_in_place(source):
    source.fail_mutation = RuntimeError("locked")
    store, coordinator, _, _ = _build(source)

    async def _run():
        mutation_id = coordinator.delete(2)
        assert store.ids() == [1, 3]
        await coordinator.wait(mutation_id)

    asyncio.run(_run())
    assert store.ids() == [1, 2, 3]
    assert store.sync_state(2) is SyncState.FAILED


def test_second_mutation_on_pending_row_conflicts(source):
    store, coordinator, _, _ = _build(source)

    async def _run():
        source.mutation_gate = asyncio.Event()
        first = coordinator.update(2, {"name": "X"})
        with pytest.raises(MutationConflict):
            coordinator.update(2, {"name": "Y"})
        with pytest.raises(MutationConflict):
            coordinator.delete(2)
        assert store.get(2)["name"] == "X"
        source.mutation_gate.set()
        return await coordinator.wait(first)

    assert asyncio.run(_run()).confirmed


def test_supersede_cancels_earlier_update(source):
    store, coordinator, _, _ = _build(source)

    async def _run():
        source.mutation_gate = asyncio.Event()
        first = coordinator.update(2, {"name": "X"})
        await asyncio.sleep(0)
        second = coordinator.update(2, {"name": "Y"}, supersede=True)
        assert store.pending_for(2).snapshot_before == {"id": 2, "name": "B"}
        source.mutation_gate.set()
        await coordinator.wait_all()
        return coordinator.outcome(first), coordinator.outcome(second)

    first, second = asyncio.run(_run())
    assert first.superseded and not first.rolled_back
    assert second.confirmed
    assert store.get(2)["name"] == "Y"


def test_timeout_rolls_back(source):
    store, coordinator, errors, _ = _build(source, timeout=0.05)

    async def _run():
        source.mutation_gate = asyncio.Event()
        return await coordinator.wait(coordinator.update(1, {"name": "slow"}))

    outcome = asyncio.run(_run())
    assert outcome.rolled_back
    assert isinstance(outcome.error.cause, MutationTimeout)
    assert store.get(1) == {"id": 1, "name": "A"}
    assert coordinator.pending_ids() == []


def test_rollback_target_missing_is_reported_as_warning(source):
    source.fail_mutation = RuntimeError("boom")
    store, coordinator, errors, _ = _build(source)

    async def _run():
        source.mutation_gate = asyncio.Event()
        mutation_id = coordinator.update(2, {"name": "X"})
        store.remove(2)
        source.mutation_gate.set()
        await coordinator.wait(mutation_id)

    asyncio.run(_run())
    severities = [call.args[1] for call in errors.handle.call_args_list]
    assert severities == [ErrorSeverity.WARNING, ErrorSeverity.ERROR]
    assert 2 not in store


def test_cancel_all_rolls_back_quietly(source):
    store, coordinator, errors, _ = _build(source)

    async def _run():
        source.mutation_gate = asyncio.Event()
        mutation_id = coordinator.update(3, {"name": "Z"})
        assert coordinator.cancel_all() == 1
        await coordinator.wait_all()
        return coordinator.outcome(mutation_id)

    outcome = asyncio.run(_run())
    assert outcome.rolled_back
    assert store.get(3) == {"id": 3, "name": "C"}
    errors.handle.assert_not_called()


def test_update_of_unknown_row_is_invalid(source):
    _, coordinator, _, _ = _build(source)

    async def _run():
        with pytest.raises(InvalidArgument):
            coordinator.update(99, {"name": "ghost"})
        with pytest.raises(InvalidArgument):
            coordinator.dispatch(MutationKind.DELETE, None)

    asyncio.run(_run())


def test_timeout_must_be_positive(source):
    with pytest.raises(InvalidArgument):
        OptimisticMutationCoordinator(RowStore(), WriteQueue(), source, timeout=0)


class _HeldUpdates:
    """Mutator whose update results are released by the test."""

    def __init__(self):
        self.held = []

    def update_row(self, row_id, payload):
        future = asyncio.get_running_loop().create_future()
        self.held.append((future, dict(payload, id=row_id, server=True)))
        return future

    def create_row(self, payload):
        raise NotImplementedError

    def delete_row(self, row_id):
        raise NotImplementedError


def test_superseded_update_ignores_result_landing_with_cancel():
    mutator = _HeldUpdates()
    store, coordinator, errors, bus = _build(mutator, with_bus=True)
    events = []
    bus.subscribe(MutationConfirmedEvent, events.append)
    confirmed = []
    coordinator.confirmed.connect(confirmed.append)

    async def _run():
        first = coordinator.update(2, {"name": "X"})
        while not mutator.held:
            await asyncio.sleep(0)
        # The first result is ready but not yet delivered when it is superseded.
        future, row = mutator.held[0]
        future.set_result(row)
        second = coordinator.update(2, {"name": "Y"}, supersede=True)
        while len(mutator.held) < 2:
            await asyncio.sleep(0)
        future, row = mutator.held[1]
        future.set_result(row)
        await coordinator.wait_all()
        await asyncio.sleep(0)
        return coordinator.outcome(first), coordinator.outcome(second)

    first, second = asyncio.run(_run())
    assert first.superseded and not first.confirmed
    assert second.confirmed
    assert store.get(2) == {"name": "Y", "id": 2, "server": True}
    assert [outcome.mutation_id for outcome in confirmed] == [second.mutation_id]
    assert [event.mutation_id for event in events] == [second.mutation_id]
    errors.handle.assert_not_called()


def test_failure_after_reset_is_not_reported(source):
    source.fail_mutation = RuntimeError("gone")
    store, coordinator, errors, bus = _build(source, with_bus=True)
    events = []
    bus.subscribe(MutationRolledBackEvent, events.append)
    failed = []
    coordinator.failed.connect(failed.append)

    async def _run():
        source.mutation_gate = asyncio.Event()
        mutation_id = coordinator.update(2, {"name": "X"})
        store.clear()
        source.mutation_gate.set()
        return await coordinator.wait(mutation_id)

    outcome = asyncio.run(_run())
    assert not outcome.confirmed
    assert isinstance(outcome.error, MutationFailed)
    assert len(store) == 0
    assert failed == []
    assert events == []
    assert len(coordinator.failures) == 0
    errors.handle.assert_not_called()


def test_confirm_after_reset_publishes_nothing(source):
    store, coordinator, errors, bus = _build(source, with_bus=True)
    events = []
    bus.subscribe(MutationConfirmedEvent, events.append)
    confirmed = []
    coordinator.confirmed.connect(confirmed.append)

    async def _run():
        source.mutation_gate = asyncio.Event()
        mutation_id = coordinator.update(2, {"name": "X"})
        store.clear()
        source.mutation_gate.set()
        return await coordinator.wait(mutation_id)

    outcome = asyncio.run(_run())
    assert outcome.confirmed
    assert len(store) == 0
    assert events == []
    assert confirmed == []


def test_settled_history_keeps_only_the_newest(source):
    source.fail_mutation = RuntimeError("down")
    store, coordinator, errors, _ = _build(source, max_settled=2)

    async def _run():
        ids = []
        for row_id in (1, 2, 3):
            mutation_id = coordinator.update(row_id, {"name": "X"})
            await coordinator.wait(mutation_id)
            ids.append(mutation_id)
        return ids

    ids = asyncio.run(_run())
    assert coordinator.outcome(ids[0]) is None
    assert coordinator.outcome(ids[1]).rolled_back
    assert coordinator.outcome(ids[2]).rolled_back
    assert len(coordinator.failures) == 2
    assert [error.target_id for error in coordinator.failures] == [2, 3]
    assert errors.handle.call_count == 3


def test_max_settled_must_be_positive(source):
    with pytest.raises(InvalidArgument):
        OptimisticMutationCoordinator(RowStore(), WriteQueue(), source, max_settled=0)
