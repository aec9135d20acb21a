"""SQLAlchemy-backed document store.

Every document lives in a single ``documents`` table keyed by
``(collection, doc_id)`` with a JSON body. Updates take a row lock inside a
transaction. Works on PostgreSQL (psycopg2) and SQLite.
"""

import structlog
from sqlalchemy import JSON, Column, MetaData, String, Table, create_engine, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from storefront.store.port import (
    ConditionFailed,
    DocumentNotFound,
    DocumentStore,
    StoreError,
    apply_changes,
    first_failed_expectation,
    matches,
    sort_and_limit,
)

logger = structlog.get_logger(__name__)

metadata = MetaData()

documents = Table(
    "documents",
    metadata,
    Column("collection", String(64), primary_key=True),
    Column("doc_id", String(128), primary_key=True),
    Column("body", JSON, nullable=False),
)


def build_engine(database_url: str):
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # Share one connection so every session sees the same in-memory database
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


class SqlAlchemyDocumentStore(DocumentStore):
    def __init__(self, database_url: str = "sqlite://", engine=None):
        self.engine = engine if engine is not None else build_engine(database_url)

    def create_tables(self) -> None:
        metadata.create_all(self.engine)
        logger.info("document_tables_created", url=str(self.engine.url))

    def drop_tables(self) -> None:
        metadata.drop_all(self.engine)

    def _key(self, collection, doc_id):
        return (documents.c.collection == collection) & (documents.c.doc_id == doc_id)

    def get(self, collection, doc_id):
        try:
            with self.engine.connect() as conn:
                row = conn.execute(select(documents.c.body).where(self._key(collection, doc_id))).first()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return dict(row.body) if row is not None else None

    def set(self, collection, doc_id, document):
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(documents).where(self._key(collection, doc_id)))
                conn.execute(insert(documents).values(collection=collection, doc_id=doc_id, body=document))
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def update(self, collection, doc_id, changes, expect=None):
        try:
            with self.engine.begin() as conn:
                row = conn.execute(
                    select(documents.c.body).where(self._key(collection, doc_id)).with_for_update()
                ).first()
                if row is None:
                    raise DocumentNotFound(collection, doc_id)
                failed = first_failed_expectation(row.body, expect)
                if failed is not None:
                    raise ConditionFailed(collection, doc_id, failed)
                updated = apply_changes(row.body, changes)
                conn.execute(update(documents).where(self._key(collection, doc_id)).values(body=updated))
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return updated

    def query(self, collection, filters=(), order_by=None, limit=None):
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(select(documents.c.body).where(documents.c.collection == collection)).all()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        found = [dict(row.body) for row in rows if matches(row.body, filters)]
        return sort_and_limit(found, order_by, limit)
