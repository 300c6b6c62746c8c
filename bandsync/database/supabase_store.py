"""
Supabase-backed document store.

Expected Supabase table structure (one table per collection: users, groups,
permissions, events, notifications):

- id: text (primary key)
- data: jsonb (not null) - the document fields
- version: integer (not null, default: 1) - bumped on every write
- updated_at: timestamp (default: now())

PostgREST offers no multi-statement transactions, so commits are a sequence of
compare-and-swap updates guarded by ``version``. Services write the group
document first in every membership transaction; a conflict there aborts the
commit before any other document is touched.
"""
import json
import logging
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence

from supabase import Client, PostgrestAPIError

from bandsync.database.document_store import (
    Document, DocumentStore, Filter, ListenerRegistration, Transaction,
    TransactionConflict, WriteOp, apply_changes,
)

logger = logging.getLogger(__name__)

_UNREAD = object()


def _text(value: Any) -> str:
    # data->>field yields text, so filter values are compared as text
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class _PollingListener(threading.Thread):
    def __init__(self, fetch: Callable[[], List[Document]], callback: Callable[[List[Document]], None], interval: float):
        super().__init__(daemon=True)
        self._fetch = fetch
        self._callback = callback
        self._interval = interval
        self._stop_event = threading.Event()
        self._signature = None

    def poll(self) -> None:
        documents = self._fetch()
        signature = sorted((d.id, d.version) for d in documents)
        if signature != self._signature:
            self._signature = signature
            self._callback(documents)

    def run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.poll()
            except Exception as e:
                logger.error(f"Listener poll failed: {e}")

    def stop(self) -> None:
        self._stop_event.set()


class SupabaseDocumentStore(DocumentStore):
    def __init__(self, client: Client, max_transaction_attempts: int = 5, poll_interval: float = 2.0):
        super().__init__(max_transaction_attempts)
        self.client = client
        self.poll_interval = poll_interval

    def _table(self, collection: str):
        return self.client.table(collection)

    @staticmethod
    def _to_document(row: Dict[str, Any]) -> Document:
        return Document(id=row["id"], data=row.get("data") or {}, version=row.get("version") or 0)

    @staticmethod
    def _apply_filters(query, filters: Optional[Sequence[Filter]]):
        for field_name, op, value in filters or []:
            column = "id" if field_name == "id" else f"data->>{field_name}"
            if op == "==":
                query = query.eq(column, _text(value))
            elif op == "in":
                query = query.in_(column, [_text(v) for v in value])
            elif op == "array_contains":
                query = query.contains(f"data->{field_name}", json.dumps([value]))
            else:
                raise ValueError(f"Unsupported filter operator: {op}")
        return query

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        result = self._table(collection)\
            .select("*")\
            .eq("id", doc_id)\
            .limit(1)\
            .execute()
        if not result.data:
            return None
        return self._to_document(result.data[0])

    def query(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        query = self._apply_filters(self._table(collection).select("*"), filters)
        if order_by:
            query = query.order("id" if order_by == "id" else f"data->>{order_by}", desc=descending)
        if limit:
            query = query.limit(limit)
        result = query.execute()
        return [self._to_document(row) for row in result.data or []]

    def add(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> Document:
        doc_id = doc_id or str(uuid.uuid4())
        result = self._table(collection).insert({
            "id": doc_id,
            "data": data,
            "version": 1
        }).execute()
        if not result.data:
            raise RuntimeError(f"Failed to create document in {collection}")
        return self._to_document(result.data[0])

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
        current = self.get(collection, doc_id)
        version = current.version + 1 if current else 1
        result = self._table(collection).upsert({
            "id": doc_id,
            "data": data,
            "version": version
        }).execute()
        if not result.data:
            raise RuntimeError(f"Failed to write document {collection}/{doc_id}")
        return self._to_document(result.data[0])

    def _compare_and_swap(self, collection: str, doc_id: str, expected_version: int, data: Dict[str, Any]) -> bool:
        result = self._table(collection)\
            .update({"data": data, "version": expected_version + 1})\
            .eq("id", doc_id)\
            .eq("version", expected_version)\
            .execute()
        return bool(result.data)

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> Optional[Document]:
        for _ in range(self.max_transaction_attempts):
            current = self.get(collection, doc_id)
            if current is None:
                return None
            data = apply_changes(current.data, changes)
            if self._compare_and_swap(collection, doc_id, current.version, data):
                return Document(id=doc_id, data=data, version=current.version + 1)
            logger.debug(f"Concurrent write on {collection}/{doc_id}, retrying update")
        raise TransactionConflict(f"Could not update {collection}/{doc_id}")

    def delete(self, collection: str, doc_id: str) -> bool:
        result = self._table(collection)\
            .delete()\
            .eq("id", doc_id)\
            .execute()
        return len(result.data) > 0

    def batch_write(self, ops: Sequence[WriteOp]) -> None:
        for op in ops:
            if op.kind == "set":
                self.set(op.collection, op.doc_id, op.data or {})
            elif op.kind == "update":
                self.update(op.collection, op.doc_id, op.data or {})
            elif op.kind == "delete":
                self.delete(op.collection, op.doc_id)
            else:
                raise ValueError(f"Unknown write kind: {op.kind}")

    def _commit(self, txn: Transaction) -> None:
        written = {key for key, _ in txn.writes}
        # Documents only read must still be at the observed version
        for (collection, doc_id), version in txn.reads.items():
            if (collection, doc_id) in written:
                continue
            current = self.get(collection, doc_id)
            if (current.version if current else None) != version:
                raise TransactionConflict(f"{collection}/{doc_id} changed since it was read")

        for (collection, doc_id), data in txn.writes:
            expected = txn.reads.get((collection, doc_id), _UNREAD)
            if data is None:
                query = self._table(collection).delete().eq("id", doc_id)
                if isinstance(expected, int):
                    query = query.eq("version", expected)
                result = query.execute()
                if isinstance(expected, int) and not result.data:
                    raise TransactionConflict(f"{collection}/{doc_id} changed since it was read")
            elif expected is _UNREAD:
                self.set(collection, doc_id, data)
            elif expected is None:
                try:
                    self._table(collection).insert({"id": doc_id, "data": data, "version": 1}).execute()
                except PostgrestAPIError as e:
                    raise TransactionConflict(f"{collection}/{doc_id} was created concurrently: {e}")
            elif not self._compare_and_swap(collection, doc_id, expected, data):
                raise TransactionConflict(f"{collection}/{doc_id} changed since it was read")

    def listen(
        self,
        collection: str,
        callback: Callable[[List[Document]], None],
        doc_id: Optional[str] = None,
        filters: Optional[Sequence[Filter]] = None,
    ) -> ListenerRegistration:
        if doc_id is not None:
            def fetch() -> List[Document]:
                document = self.get(collection, doc_id)
                return [document] if document else []
        else:
            def fetch() -> List[Document]:
                return self.query(collection, filters=filters)

        listener = _PollingListener(fetch, callback, self.poll_interval)
        listener.poll()
        listener.start()
        return ListenerRegistration(listener.stop)
