"""Document store port.

A per-collection key/value store of JSON-compatible documents. Single
document updates are atomic; multi-document writes are best-effort. Both
adapters share the change and filter semantics defined here.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class StoreError(Exception):
    """The store could not complete the operation."""


class DocumentNotFound(StoreError):
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} does not exist")
        self.collection = collection
        self.doc_id = doc_id


class ConditionFailed(StoreError):
    """An ``expect`` precondition did not hold; nothing was written."""

    def __init__(self, collection: str, doc_id: str, path: str):
        super().__init__(f"{collection}/{doc_id}: precondition on '{path}' failed")
        self.collection = collection
        self.doc_id = doc_id
        self.path = path


@dataclass(frozen=True)
class Increment:
    delta: int


@dataclass(frozen=True)
class ArrayAppend:
    value: Any


@dataclass(frozen=True)
class NotContains:
    """Expectation: the array at the path does not hold ``value``."""

    value: Any


@dataclass(frozen=True)
class WriteOp:
    """One operation of a ``batch_write``. ``kind`` is ``set`` or ``update``."""

    kind: str
    collection: str
    doc_id: str
    payload: dict = field(default_factory=dict)
    expect: dict | None = None


@dataclass(frozen=True)
class FailedWrite:
    op: WriteOp
    error: StoreError


_MISSING = object()


def read_path(document: dict, path: str, default=None):
    """Read a dotted ``path`` from a nested document."""
    node = document
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def _write_path(document: dict, path: str, value) -> None:
    parts = path.split(".")
    node = document
    for part in parts[:-1]:
        if not isinstance(node.get(part), dict):
            node[part] = {}
        node = node[part]
    node[parts[-1]] = value


def apply_changes(document: dict, changes: dict) -> dict:
    """Return a copy of ``document`` with ``changes`` applied."""
    updated = copy.deepcopy(document)
    for path, change in changes.items():
        if isinstance(change, Increment):
            current = read_path(updated, path, 0) or 0
            _write_path(updated, path, current + change.delta)
        elif isinstance(change, ArrayAppend):
            current = read_path(updated, path, None) or []
            _write_path(updated, path, list(current) + [copy.deepcopy(change.value)])
        else:
            _write_path(updated, path, copy.deepcopy(change))
    return updated


def first_failed_expectation(document: dict, expect: dict | None) -> str | None:
    """Return the first path whose expectation does not hold, or None."""
    for path, expected in (expect or {}).items():
        actual = read_path(document, path, None)
        if isinstance(expected, NotContains):
            if expected.value in (actual or []):
                return path
        elif actual != expected:
            return path
    return None


def matches(document: dict, filters) -> bool:
    """Evaluate ``(path, op, value)`` filters against a document."""
    for path, op, value in filters or ():
        actual = read_path(document, path, _MISSING)
        if op == "==":
            ok = actual is not _MISSING and actual == value
        elif op == "!=":
            ok = actual is _MISSING or actual != value
        elif op == "in":
            ok = actual is not _MISSING and actual in value
        elif op == "contains":
            ok = isinstance(actual, list) and value in actual
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
        if not ok:
            return False
    return True


def _sort_key(value):
    # Missing values sort last
    return (value is None, value)


def sort_and_limit(documents: list[dict], order_by: str | None, limit: int | None) -> list[dict]:
    """Order by a dotted path (prefix ``-`` for descending) and truncate."""
    if order_by:
        descending = order_by.startswith("-")
        path = order_by.lstrip("-")
        documents = sorted(
            documents,
            key=lambda doc: _sort_key(read_path(doc, path)),
            reverse=descending,
        )
    if limit is not None:
        documents = documents[:limit]
    return documents


class DocumentStore(ABC):
    """Port for the document store."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> dict | None:
        """Return a copy of the document, or None."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, document: dict) -> None:
        """Create or replace a document."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, changes: dict, expect: dict | None = None) -> dict:
        """Atomically apply ``changes`` if ``expect`` holds; return the new document.

        Raises DocumentNotFound when the document does not exist and
        ConditionFailed when an expectation does not hold.
        """

    @abstractmethod
    def query(self, collection: str, filters=(), order_by: str | None = None, limit: int | None = None) -> list[dict]:
        """Return documents matching all filters."""

    def batch_write(self, operations: list[WriteOp]) -> list[FailedWrite]:
        """Apply operations one by one; return the ones that failed.

        Not atomic across documents: earlier operations stay applied when a
        later one fails.
        """
        failures = []
        for op in operations:
            try:
                if op.kind == "set":
                    self.set(op.collection, op.doc_id, op.payload)
                elif op.kind == "update":
                    self.update(op.collection, op.doc_id, op.payload, expect=op.expect)
                else:
                    raise ValueError(f"Unknown write kind: {op.kind}")
            except StoreError as exc:
                failures.append(FailedWrite(op=op, error=exc))
        return failures
