"""
Document store contract.

Collections hold JSON documents addressed by id. Every stored document carries
an integer ``version`` that is bumped on each write; transactions use it for
optimistic compare-and-swap. Concrete stores implement the primitive reads and
writes plus ``_commit`` and ``listen``.
"""
import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

USERS = "users"
GROUPS = "groups"
PERMISSIONS = "permissions"
EVENTS = "events"
NOTIFICATIONS = "notifications"

# (field, operator, value); operators: "==", "in", "array_contains".
# The field "id" addresses the document id.
Filter = Tuple[str, str, Any]

FILTER_OPERATORS = ("==", "in", "array_contains")


class TransactionConflict(Exception):
    """Raised when a document changed between a transaction's read and its commit."""


@dataclass
class Document:
    id: str
    data: Dict[str, Any] = field(default_factory=dict)
    version: int = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.data, "id": self.id}


class ArrayUnion:
    """Field transform: append values not already present."""

    def __init__(self, *values: Any):
        self.values = list(values)


class ArrayRemove:
    """Field transform: drop every occurrence of the values."""

    def __init__(self, *values: Any):
        self.values = list(values)


class _DeleteField:
    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


def apply_changes(data: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``data`` with field values and transforms applied"""
    result = copy.deepcopy(data)
    for key, value in changes.items():
        if value is DELETE_FIELD:
            result.pop(key, None)
        elif isinstance(value, ArrayUnion):
            current = list(result.get(key) or [])
            for item in value.values:
                if item not in current:
                    current.append(item)
            result[key] = current
        elif isinstance(value, ArrayRemove):
            result[key] = [item for item in result.get(key) or [] if item not in value.values]
        else:
            result[key] = copy.deepcopy(value)
    return result


def matches_filters(document: Document, filters: Optional[Sequence[Filter]]) -> bool:
    for field_name, op, value in filters or []:
        actual = document.id if field_name == "id" else document.data.get(field_name)
        if op == "==":
            if actual != value:
                return False
        elif op == "in":
            if actual not in value:
                return False
        elif op == "array_contains":
            if not isinstance(actual, list) or value not in actual:
                return False
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
    return True


@dataclass
class WriteOp:
    kind: str  # set | update | delete
    collection: str
    doc_id: str
    data: Optional[Dict[str, Any]] = None


class ListenerRegistration:
    """Handle returned by ``listen``; ``remove()`` stops delivery."""

    def __init__(self, on_remove: Callable[[], None]):
        self._on_remove = on_remove
        self.active = True

    def remove(self) -> None:
        if self.active:
            self.active = False
            self._on_remove()


class Transaction:
    """
    Buffers writes and records the version of every document it reads.

    Reads after a buffered write see the buffered state. At commit the store
    checks that every read document is still at the recorded version (``None``
    meaning "did not exist") and then applies the final state per document.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self.reads: Dict[Tuple[str, str], Optional[int]] = {}
        self._snapshots: Dict[Tuple[str, str], Optional[Dict[str, Any]]] = {}
        self._pending: Dict[Tuple[str, str], Optional[Dict[str, Any]]] = {}
        self._order: List[Tuple[str, str]] = []

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        key = (collection, doc_id)
        if key in self._pending:
            data = self._pending[key]
            return Document(id=doc_id, data=copy.deepcopy(data)) if data is not None else None
        if key in self._snapshots:
            data = self._snapshots[key]
            if data is None:
                return None
            return Document(id=doc_id, data=copy.deepcopy(data), version=self.reads[key] or 0)
        document = self._store.get(collection, doc_id)
        self.reads[key] = document.version if document else None
        self._snapshots[key] = copy.deepcopy(document.data) if document else None
        return document

    def get_all(self, collection: str, doc_ids: Sequence[str]) -> List[Document]:
        documents = []
        for doc_id in doc_ids:
            document = self.get(collection, doc_id)
            if document is not None:
                documents.append(document)
        return documents

    def _stage(self, key: Tuple[str, str], data: Optional[Dict[str, Any]]) -> None:
        if key not in self._pending:
            self._order.append(key)
        self._pending[key] = data

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._stage((collection, doc_id), copy.deepcopy(data))

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        current = self.get(collection, doc_id)
        if current is None:
            raise KeyError(f"Document {collection}/{doc_id} does not exist")
        self._stage((collection, doc_id), apply_changes(current.data, changes))

    def delete(self, collection: str, doc_id: str) -> None:
        self._stage((collection, doc_id), None)

    @property
    def writes(self) -> List[Tuple[Tuple[str, str], Optional[Dict[str, Any]]]]:
        return [(key, self._pending[key]) for key in self._order]


class DocumentStore(ABC):
    def __init__(self, max_transaction_attempts: int = 5):
        self.max_transaction_attempts = max_transaction_attempts

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        ...

    @abstractmethod
    def add(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> Document:
        """Create a new document; generates an id when none is given"""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
        """Create or fully replace a document"""

    @abstractmethod
    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> Optional[Document]:
        """Apply field changes/transforms; returns None when the document does not exist"""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        ...

    @abstractmethod
    def batch_write(self, ops: Sequence[WriteOp]) -> None:
        ...

    @abstractmethod
    def listen(
        self,
        collection: str,
        callback: Callable[[List[Document]], None],
        doc_id: Optional[str] = None,
        filters: Optional[Sequence[Filter]] = None,
    ) -> ListenerRegistration:
        """Deliver the matching documents now and again whenever they change"""

    @abstractmethod
    def _commit(self, txn: Transaction) -> None:
        """Apply the transaction's writes or raise TransactionConflict"""

    def get_all(self, collection: str, doc_ids: Sequence[str]) -> List[Document]:
        ids = [doc_id for doc_id in doc_ids if doc_id]
        if not ids:
            return []
        return self.query(collection, filters=[("id", "in", ids)])

    def run_transaction(self, fn: Callable[[Transaction], Any], max_attempts: Optional[int] = None) -> Any:
        """
        Run ``fn`` against a fresh transaction and commit it, retrying on
        conflict. ``fn`` may run several times, so it must not have side
        effects outside the transaction.
        """
        attempts = max_attempts or self.max_transaction_attempts
        for attempt in range(1, attempts + 1):
            txn = Transaction(self)
            result = fn(txn)
            try:
                self._commit(txn)
                return result
            except TransactionConflict as e:
                logger.warning(f"Transaction conflict (attempt {attempt}/{attempts}): {e}")
        raise TransactionConflict(f"Transaction aborted after {attempts} attempts")
