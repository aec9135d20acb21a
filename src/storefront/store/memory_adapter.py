"""In-process document store.

Documents are deep-copied on the way in and out so callers never share
mutable state with the store. A single lock makes each update atomic.
"""

import copy
import threading

from storefront.store.port import (
    ConditionFailed,
    DocumentNotFound,
    DocumentStore,
    apply_changes,
    first_failed_expectation,
    matches,
    sort_and_limit,
)


class MemoryDocumentStore(DocumentStore):
    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = {}
        self._lock = threading.Lock()

    def get(self, collection, doc_id):
        with self._lock:
            document = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    def set(self, collection, doc_id, document):
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(document)

    def update(self, collection, doc_id, changes, expect=None):
        with self._lock:
            documents = self._collections.get(collection, {})
            if doc_id not in documents:
                raise DocumentNotFound(collection, doc_id)
            failed = first_failed_expectation(documents[doc_id], expect)
            if failed is not None:
                raise ConditionFailed(collection, doc_id, failed)
            updated = apply_changes(documents[doc_id], changes)
            documents[doc_id] = updated
            return copy.deepcopy(updated)

    def query(self, collection, filters=(), order_by=None, limit=None):
        with self._lock:
            documents = self._collections.get(collection, {}).values()
            found = [copy.deepcopy(doc) for doc in documents if matches(doc, filters)]
        return sort_and_limit(found, order_by, limit)

    def reset(self) -> None:
        with self._lock:
            self._collections.clear()
