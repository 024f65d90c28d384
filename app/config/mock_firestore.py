"""
In-process mock of the Firestore client for local development and tests.

Covers only the subset of the client API the app uses:
collection/document references, filtered queries with limit and count(),
set/create/update/delete, and transactions. Data lives in memory and is
optionally persisted to a JSON file (MOCK_DB_PATH).
"""

import copy
import json
import logging
import os
import random
import string
import threading
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from google.api_core import exceptions as gexc

logger = logging.getLogger(__name__)

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits


def _auto_id() -> str:
    # Same shape as Firestore auto-generated ids (20 alphanumerics)
    return "".join(random.choice(_AUTO_ID_ALPHABET) for _ in range(20))


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "in": lambda a, b: a in b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
}


class MockDocumentSnapshot:
    def __init__(self, reference: "MockDocumentReference", data: Optional[Dict]):
        self.reference = reference
        self._data = data

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict]:
        return copy.deepcopy(self._data)

    def get(self, field: str):
        return (self._data or {}).get(field)


class MockDocumentReference:
    def __init__(self, db: "MockFirestore", collection: str, doc_id: str):
        self._db = db
        self._collection = collection
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self._collection}/{self.id}"

    def get(self, transaction: Optional["MockTransaction"] = None) -> MockDocumentSnapshot:
        if transaction is not None:
            transaction._check_read()
        with self._db._lock:
            data = self._db._data.get(self._collection, {}).get(self.id)
            return MockDocumentSnapshot(self, copy.deepcopy(data))

    def set(self, data: Dict, merge: bool = False) -> None:
        self._db._apply([("set", self, data, merge)])

    def create(self, data: Dict) -> None:
        self._db._apply([("create", self, data, False)])

    def update(self, data: Dict) -> None:
        self._db._apply([("update", self, data, False)])

    def delete(self) -> None:
        self._db._apply([("delete", self, None, False)])


class MockQuery:
    def __init__(self, db: "MockFirestore", collection: str,
                 filters: Tuple = (), limit_count: Optional[int] = None):
        self._db = db
        self._collection = collection
        self._filters = filters
        self._limit = limit_count

    def where(self, field_path: str, op_string: str, value) -> "MockQuery":
        if op_string not in _OPERATORS:
            raise ValueError(f"Unsupported operator in mock Firestore: {op_string}")
        return MockQuery(self._db, self._collection,
                         self._filters + ((field_path, op_string, value),), self._limit)

    def limit(self, count: int) -> "MockQuery":
        return MockQuery(self._db, self._collection, self._filters, count)

    def _matches(self, data: Dict) -> bool:
        for field_path, op_string, value in self._filters:
            if field_path not in data:
                return False
            if not _OPERATORS[op_string](data[field_path], value):
                return False
        return True

    def stream(self, transaction: Optional["MockTransaction"] = None) -> Iterator[MockDocumentSnapshot]:
        if transaction is not None:
            transaction._check_read()
        with self._db._lock:
            docs = self._db._data.get(self._collection, {})
            results = []
            for doc_id in sorted(docs):
                if self._matches(docs[doc_id]):
                    ref = MockDocumentReference(self._db, self._collection, doc_id)
                    results.append(MockDocumentSnapshot(ref, copy.deepcopy(docs[doc_id])))
                    if self._limit is not None and len(results) >= self._limit:
                        break
        return iter(results)

    def get(self, transaction: Optional["MockTransaction"] = None) -> List[MockDocumentSnapshot]:
        return list(self.stream(transaction=transaction))

    def count(self, alias: Optional[str] = None) -> "MockAggregationQuery":
        return MockAggregationQuery(self, alias or "count")


class MockAggregationResult:
    def __init__(self, alias: str, value: int):
        self.alias = alias
        self.value = value


class MockAggregationQuery:
    """count() aggregation; get() returns [[result]] like the real client."""

    def __init__(self, query: MockQuery, alias: str):
        self._query = query
        self._alias = alias

    def get(self, transaction: Optional["MockTransaction"] = None) -> List[List[MockAggregationResult]]:
        matched = sum(1 for _ in self._query.stream(transaction=transaction))
        return [[MockAggregationResult(self._alias, matched)]]


class MockCollectionReference(MockQuery):
    def __init__(self, db: "MockFirestore", name: str):
        super().__init__(db, name)
        self.id = name

    def document(self, document_id: Optional[str] = None) -> MockDocumentReference:
        return MockDocumentReference(self._db, self._collection, document_id or _auto_id())


class MockTransaction:
    """
    Buffers writes until commit. Like Firestore, reads are rejected once
    a write has been queued.
    """

    def __init__(self, db: "MockFirestore"):
        self._db = db
        self._writes: List[Tuple] = []

    def _check_read(self) -> None:
        if self._writes:
            raise ValueError("Attempted read after write in a transaction.")

    def set(self, reference: MockDocumentReference, data: Dict, merge: bool = False) -> None:
        self._writes.append(("set", reference, data, merge))

    def create(self, reference: MockDocumentReference, data: Dict) -> None:
        self._writes.append(("create", reference, data, False))

    def update(self, reference: MockDocumentReference, data: Dict) -> None:
        self._writes.append(("update", reference, data, False))

    def delete(self, reference: MockDocumentReference) -> None:
        self._writes.append(("delete", reference, None, False))


class MockFirestore:
    def __init__(self, path: Optional[str] = None):
        self._path = path
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, Dict]] = {}
        if path and os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                self._data = json.load(f)
            logger.info(f"[MOCK DB] Loaded {sum(len(d) for d in self._data.values())} documents from {path}")

    def collection(self, name: str) -> MockCollectionReference:
        return MockCollectionReference(self, name)

    def collections(self) -> List[MockCollectionReference]:
        with self._lock:
            return [MockCollectionReference(self, name) for name in sorted(self._data)]

    def transaction(self) -> MockTransaction:
        return MockTransaction(self)

    def run_transaction(self, callback: Callable[[MockTransaction], Any]):
        # A single lock serialises transactions; writes apply only on success.
        with self._lock:
            transaction = self.transaction()
            result = callback(transaction)
            self._apply(transaction._writes)
            return result

    def _apply(self, writes: List[Tuple]) -> None:
        with self._lock:
            staged = copy.deepcopy(self._data)
            for op, ref, data, merge in writes:
                docs = staged.setdefault(ref._collection, {})
                if op == "create":
                    if ref.id in docs:
                        raise gexc.AlreadyExists(f"Document already exists: {ref.path}")
                    docs[ref.id] = copy.deepcopy(data)
                elif op == "set":
                    if merge and ref.id in docs:
                        docs[ref.id].update(copy.deepcopy(data))
                    else:
                        docs[ref.id] = copy.deepcopy(data)
                elif op == "update":
                    if ref.id not in docs:
                        raise gexc.NotFound(f"No document to update: {ref.path}")
                    docs[ref.id].update(copy.deepcopy(data))
                elif op == "delete":
                    docs.pop(ref.id, None)
            self._data = staged
            self._persist()

    def _persist(self) -> None:
        if not self._path:
            return
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, default=_json_default, indent=2)


_mock_dbs: Dict[Optional[str], MockFirestore] = {}


def get_mock_db(path: Optional[str] = None) -> MockFirestore:
    if path not in _mock_dbs:
        _mock_dbs[path] = MockFirestore(path)
    return _mock_dbs[path]
