"""ManagedList wired to the SQLite repositories through RepositoryListSource."""

import asyncio

import pytest

from inkbook.application.services.list_sources import RepositoryListSource
from inkbook.domain.models import ListQuery, SortKey
from inkbook.errors import ValidationError
from inkbook.infrastructure.db.pool import ConnectionPool
from inkbook.infrastructure.db.schema import initialise_schema
from inkbook.infrastructure.repositories.sqlite_customer_repository import SQLiteCustomerRepository
from inkbook.listcore.managed_list import ListSettings, ManagedList
from inkbook.listcore.types import SyncState, is_placeholder_id


@pytest.fixture
def repository(tmp_path):
    pool = ConnectionPool(tmp_path / "sources.db")
    initialise_schema(pool)
    repo = SQLiteCustomerRepository(pool)
    for index in range(12):
        repo.create({
            "first_name": f"Client{index:02d}",
            "last_name": "Example",
            "email": f"client{index:02d}@example.com",
        })
    yield repo
    pool.close_all()


def _list(repository, **settings):
    return ManagedList(
        "customers",
        RepositoryListSource.for_customers(repository),
        settings=ListSettings(**{"page_size": 5, "overscan": 0, **settings}),
        query=ListQuery(sort=SortKey.NAME_ASC),
    )


def test_fetch_pages_through_repository(repository):
    async def _run():
        managed = _list(repository)
        assert await managed.ensure_range(0, 11)
        return managed

    managed = asyncio.run(_run())
    names = [row["first_name"] for row in managed.rows()]
    assert names == [f"Client{index:02d}" for index in range(12)]
    assert not managed.has_more


def test_create_confirms_with_server_row(repository):
    async def _run():
        managed = _list(repository)
        await managed.ensure_range(0, 4)
        managed.create({"first_name": "New", "last_name": "Client", "email": "NEW@example.com"})
        placeholder = managed.rows()[0]
        assert is_placeholder_id(placeholder["id"])
        await managed.settle()
        return managed

    managed = asyncio.run(_run())
    first = managed.rows()[0]
    assert not is_placeholder_id(first["id"])
    assert first["email"] == "new@example.com"
    assert managed.store.sync_state(first["id"]) is SyncState.CONFIRMED
    assert repository.get(first["id"]) is not None


def test_invalid_create_rolls_back(repository):
    async def _run():
        managed = _list(repository)
        await managed.ensure_range(0, 4)
        before = [row["id"] for row in managed.rows()]
        mutation_id = managed.create({"first_name": "", "last_name": "X", "email": "x@example.com"})
        outcome = await managed.mutations.wait(mutation_id)
        return managed, before, outcome

    managed, before, outcome = asyncio.run(_run())
    assert outcome.rolled_back
    assert isinstance(outcome.error.cause, ValidationError)
    assert [row["id"] for row in managed.rows()] == before


def test_update_and_delete(repository):
    async def _run():
        managed = _list(repository)
        await managed.ensure_range(0, 4)
        target = managed.rows()[1]["id"]
        managed.update(target, {"notes": "Allergic to latex"})
        await managed.settle()
        victim = managed.rows()[0]["id"]
        managed.delete(victim)
        await managed.settle()
        return managed, target, victim

    managed, target, victim = asyncio.run(_run())
    assert managed.store.get(target)["notes"] == "Allergic to latex"
    assert repository.get(target).notes == "Allergic to latex"
    assert managed.store.get(victim) is None
    assert repository.get(victim) is None
