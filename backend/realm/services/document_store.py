"""
Document storage with Firestore transaction semantics.

Every state-machine action runs as one transaction:
- all reads happen before any write (a read after a write is a bug);
- writes are buffered and applied together on commit, or not at all;
- `create` fails if the document already exists, which is what makes the
  per-player active markers unique.

FirestoreDocumentStore maps this onto google-cloud-firestore transactions.
MemoryDocumentStore reproduces the same rules in-process (optimistic
versioning, bounded retries) for local runs and tests.
"""
import copy
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore

from realm.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5


class StorageError(Exception):
    """存储层错误基类"""


class AlreadyExistsError(StorageError):
    """create() on a document that already exists."""


class TransactionConflictError(StorageError):
    """Optimistic transaction kept conflicting until retries ran out."""


class ReadAfterWriteError(StorageError):
    """A transaction tried to read after it had buffered a write."""


class Transaction:
    """Interface handed to transaction bodies."""

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def create(self, path: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError

    def increment(self, path: str, field: str, amount: int, extra: Optional[Dict[str, Any]] = None) -> None:
        """Add `amount` to a numeric field, creating the document if needed."""
        raise NotImplementedError


class DocumentStore:
    """Storage backend interface."""

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> T:
        raise NotImplementedError

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def list(self, collection_path: str) -> List[Tuple[str, Dict[str, Any]]]:
        """(doc_id, data) for every document directly in a collection."""
        raise NotImplementedError


# ============================================
# In-memory backend
# ============================================


class _MemoryTransaction(Transaction):
    def __init__(self, store: "MemoryDocumentStore") -> None:
        self._store = store
        self.reads: Dict[str, int] = {}
        self.writes: List[Tuple[str, str, Any]] = []

    def _check_read_allowed(self) -> None:
        if self.writes:
            raise ReadAfterWriteError("transaction reads must happen before writes")

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        self._check_read_allowed()
        version, data = self._store._read(path)
        self.reads[path] = version
        return data

    def create(self, path: str, data: Dict[str, Any]) -> None:
        self.writes.append(("create", path, copy.deepcopy(data)))

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        self.writes.append(("merge" if merge else "set", path, copy.deepcopy(data)))

    def delete(self, path: str) -> None:
        self.writes.append(("delete", path, None))

    def increment(self, path: str, field: str, amount: int, extra: Optional[Dict[str, Any]] = None) -> None:
        self.writes.append(("increment", path, (field, amount, copy.deepcopy(extra or {}))))


class MemoryDocumentStore(DocumentStore):
    """进程内存储（本地开发 / 测试）"""

    def __init__(self) -> None:
        self._docs: Dict[str, Tuple[int, Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self._version_seq = 0
        # Test hook: called with the pending writes just before they apply.
        self.before_commit: Optional[Callable[[List[Tuple[str, str, Any]]], None]] = None

    def _read(self, path: str) -> Tuple[int, Optional[Dict[str, Any]]]:
        with self._lock:
            version, data = self._docs.get(path, (0, None))
            return version, copy.deepcopy(data)

    def _next_version(self) -> int:
        self._version_seq += 1
        return self._version_seq

    def _commit(self, txn: _MemoryTransaction) -> bool:
        with self._lock:
            for path, version in txn.reads.items():
                if self._docs.get(path, (0, None))[0] != version:
                    return False

            for op, path, _ in txn.writes:
                if op == "create" and path in self._docs:
                    raise AlreadyExistsError(f"document already exists: {path}")

            if self.before_commit is not None:
                self.before_commit(txn.writes)

            staged = dict(self._docs)
            for op, path, payload in txn.writes:
                if op == "delete":
                    staged.pop(path, None)
                elif op in ("create", "set"):
                    staged[path] = (self._next_version(), payload)
                elif op == "merge":
                    current = dict(staged.get(path, (0, {}))[1] or {})
                    current.update(payload)
                    staged[path] = (self._next_version(), current)
                elif op == "increment":
                    field, amount, extra = payload
                    current = dict(staged.get(path, (0, {}))[1] or {})
                    current.update(extra)
                    current[field] = current.get(field, 0) + amount
                    staged[path] = (self._next_version(), current)
            self._docs = staged
            return True

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> T:
        for attempt in range(1, max_attempts + 1):
            txn = _MemoryTransaction(self)
            result = fn(txn)
            if self._commit(txn):
                return result
            logger.warning("Transaction conflict, retrying (attempt %d/%d)", attempt, max_attempts)
        raise TransactionConflictError(f"transaction failed after {max_attempts} attempts")

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        return self._read(path)[1]

    def list(self, collection_path: str) -> List[Tuple[str, Dict[str, Any]]]:
        prefix = collection_path.rstrip("/") + "/"
        with self._lock:
            results = []
            for path, (_, data) in self._docs.items():
                if not path.startswith(prefix):
                    continue
                doc_id = path[len(prefix):]
                if "/" in doc_id:
                    continue
                results.append((doc_id, copy.deepcopy(data)))
        results.sort(key=lambda pair: pair[0])
        return results


# ============================================
# Firestore backend
# ============================================


class _FirestoreTransaction(Transaction):
    def __init__(self, db: firestore.Client, txn: firestore.Transaction) -> None:
        self._db = db
        self._txn = txn
        self._has_writes = False

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        if self._has_writes:
            raise ReadAfterWriteError("transaction reads must happen before writes")
        snapshot = self._db.document(path).get(transaction=self._txn)
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def create(self, path: str, data: Dict[str, Any]) -> None:
        self._has_writes = True
        self._txn.create(self._db.document(path), data)

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._has_writes = True
        self._txn.set(self._db.document(path), data, merge=merge)

    def delete(self, path: str) -> None:
        self._has_writes = True
        self._txn.delete(self._db.document(path))

    def increment(self, path: str, field: str, amount: int, extra: Optional[Dict[str, Any]] = None) -> None:
        self._has_writes = True
        payload = dict(extra or {})
        payload[field] = firestore.Increment(amount)
        self._txn.set(self._db.document(path), payload, merge=True)


class FirestoreDocumentStore(DocumentStore):
    """Firestore-backed store."""

    def __init__(self, firestore_client: Optional[firestore.Client] = None) -> None:
        self.db = firestore_client or firestore.Client(database=settings.firestore_database)

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> T:
        db = self.db

        @firestore.transactional
        def _run(txn: firestore.Transaction) -> T:
            return fn(_FirestoreTransaction(db, txn))

        try:
            return _run(db.transaction(max_attempts=max_attempts))
        except gcp_exceptions.AlreadyExists as exc:
            raise AlreadyExistsError(str(exc)) from exc
        except gcp_exceptions.Aborted as exc:
            raise TransactionConflictError(str(exc)) from exc

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        snapshot = self.db.document(path).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def list(self, collection_path: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(doc.id, doc.to_dict() or {}) for doc in self.db.collection(collection_path).stream()]


def create_document_store() -> DocumentStore:
    if settings.storage_backend == "firestore":
        logger.info("Using Firestore storage (database=%s)", settings.firestore_database)
        return FirestoreDocumentStore()
    logger.info("Using in-memory storage")
    return MemoryDocumentStore()
