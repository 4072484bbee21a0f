from __future__ import annotations

import json
from typing import Any, Iterable, Optional

import asyncpg

from partyledger.db.models import Party, document_type, dump_document, load_document
from partyledger.db.store import MemoryDocumentStore
from partyledger.logging import get_logger, sql_logger


class Database:
    def __init__(self, dsn: str) -> None:
        self._dsn = dsn
        self._pool: asyncpg.Pool | None = None
        self._log = get_logger(__name__)

    async def connect(self) -> None:
        if self._pool is None:
            # asyncpg wants a plain postgresql:// scheme, without "+asyncpg"
            dsn = self._dsn.replace("+asyncpg", "")
            self._pool = await asyncpg.create_pool(dsn)
            self._log.info("db.pool.created")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            self._log.info("db.pool.closed")

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.fetch", query=query, args=args)
        return await self._pool.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.fetchrow", query=query, args=args)
        return await self._pool.fetchrow(query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.execute", query=query, args=args)
        return await self._pool.execute(query, *args)

    async def executemany(self, command: str, args: Iterable[Iterable[Any]]) -> None:
        await self._ensure_pool()
        assert self._pool
        sql_logger.info("sql.executemany", query=command)
        await self._pool.executemany(command, args)

    async def _ensure_pool(self) -> None:
        if self._pool is None:
            await self.connect()


UPSERT_DOCUMENT = """
    INSERT INTO documents (id, doc_type, party_id, body)
    VALUES ($1, $2, $3, $4::jsonb)
    ON CONFLICT (id) DO UPDATE
        SET body = EXCLUDED.body,
            updated_at = now()
"""


class DocumentRepository:
    """Stores party, chunk and chunk-balance documents as JSONB rows."""

    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def _row_args(doc: Any) -> tuple[str, str, str, str]:
        party_id = doc.id if isinstance(doc, Party) else doc.party_id
        return doc.id, document_type(doc), party_id, json.dumps(dump_document(doc))

    async def save(self, doc: Any) -> None:
        await self.db.execute(UPSERT_DOCUMENT, *self._row_args(doc))

    async def save_many(self, docs: Iterable[Any]) -> int:
        rows = [self._row_args(doc) for doc in docs]
        if rows:
            await self.db.executemany(UPSERT_DOCUMENT, rows)
        return len(rows)

    async def load(self, doc_id: str) -> Optional[Any]:
        row = await self.db.fetchrow("SELECT doc_type, body FROM documents WHERE id = $1", doc_id)
        if row is None:
            return None
        return load_document(row["doc_type"], json.loads(row["body"]))

    async def load_party_documents(self, party_id: str) -> list[Any]:
        rows = await self.db.fetch(
            """
            SELECT doc_type, body
            FROM documents
            WHERE party_id = $1
            ORDER BY id
            """,
            party_id,
        )
        return [load_document(row["doc_type"], json.loads(row["body"])) for row in rows]

    async def hydrate(self, store: MemoryDocumentStore, party_id: str) -> Optional[Party]:
        docs = await self.load_party_documents(party_id)
        party: Optional[Party] = None
        for doc in docs:
            store.load(doc)
            if isinstance(doc, Party):
                party = doc
        return party

    async def persist(self, store: MemoryDocumentStore) -> int:
        saved = await self.save_many(store.dirty())
        store.mark_clean()
        return saved
