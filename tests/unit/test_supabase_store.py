from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from bandsync.database.document_store import Transaction, TransactionConflict
from bandsync.database.supabase_store import SupabaseDocumentStore, _text


class FakeQuery:
    """Chainable stand-in for a PostgREST request builder"""

    def __init__(self, table, rows):
        self.table = table
        self.rows = rows
        self.calls = []

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return method

    def execute(self):
        self.table.executed.append(self.calls)
        return SimpleNamespace(data=self.rows.pop(0) if self.rows else [])


class FakeTable:
    def __init__(self, rows):
        self.rows = rows
        self.executed = []

    def query(self):
        return FakeQuery(self, self.rows)


def _store(rows):
    table = FakeTable(rows)
    client = MagicMock()
    client.table.side_effect = lambda name: table.query()
    return SupabaseDocumentStore(client), table


def test_text_values():
    assert _text(True) == "true"
    assert _text(3) == "3"
    assert _text("g1") == "g1"


def test_query_maps_filters_to_json_columns():
    store, table = _store([[{"id": "g1", "data": {"code": "ABC123"}, "version": 2}]])

    documents = store.query("groups", filters=[("code", "==", "ABC123"), ("members", "array_contains", "u1")], limit=1)

    assert documents[0].id == "g1"
    assert documents[0].version == 2
    calls = table.executed[0]
    assert ("eq", ("data->>code", "ABC123"), {}) in calls
    assert ("contains", ("data->members", '["u1"]'), {}) in calls
    assert ("limit", (1,), {}) in calls


def test_commit_uses_version_guard():
    # get (read), then the compare-and-swap update
    store, table = _store([
        [{"id": "g1", "data": {"name": "a"}, "version": 4}],
        [{"id": "g1", "data": {"name": "b"}, "version": 5}],
    ])
    txn = Transaction(store)
    txn.get("groups", "g1")
    txn.update("groups", "g1", {"name": "b"})

    store._commit(txn)

    update_calls = table.executed[1]
    assert ("update", ({"data": {"name": "b"}, "version": 5},), {}) in update_calls
    assert ("eq", ("version", 4), {}) in update_calls


def test_commit_conflicts_when_no_row_matched():
    store, table = _store([
        [{"id": "g1", "data": {"name": "a"}, "version": 4}],
        [],
    ])
    txn = Transaction(store)
    txn.get("groups", "g1")
    txn.update("groups", "g1", {"name": "b"})

    with pytest.raises(TransactionConflict):
        store._commit(txn)


def test_commit_checks_documents_only_read():
    store, table = _store([
        [{"id": "u1", "data": {}, "version": 1}],
        [{"id": "u1", "data": {}, "version": 2}],
    ])
    txn = Transaction(store)
    txn.get("users", "u1")

    with pytest.raises(TransactionConflict):
        store._commit(txn)


def test_commit_delete_conflicts_when_version_moved():
    # get (read at version 4), then the guarded delete matches no row
    store, table = _store([
        [{"id": "g1", "data": {"name": "a"}, "version": 4}],
        [],
    ])
    txn = Transaction(store)
    txn.get("groups", "g1")
    txn.delete("groups", "g1")

    with pytest.raises(TransactionConflict):
        store._commit(txn)
    assert ("eq", ("version", 4), {}) in table.executed[1]


def test_commit_delete_with_matching_version():
    store, table = _store([
        [{"id": "g1", "data": {"name": "a"}, "version": 4}],
        [{"id": "g1", "data": {"name": "a"}, "version": 4}],
    ])
    txn = Transaction(store)
    txn.get("groups", "g1")
    txn.delete("groups", "g1")

    store._commit(txn)

    assert ("delete", (), {}) in table.executed[1]
