"""
Knowledge Store with PostgreSQL + pgvector

Holds embedded legal-text passages and answers cosine-similarity searches
filtered by legal area, jurisdiction and (optionally) dispute type.
``InMemoryVectorStore`` implements the same interface on numpy for local
development and tests.
"""

import os
import time
import logging
from typing import Optional
from datetime import datetime
from dataclasses import dataclass
from contextlib import contextmanager

import numpy as np

from .models import KnowledgeBaseStats, KnowledgeChunk, StoreMatch

try:
    import psycopg2
    import psycopg2.extras
    import psycopg2.pool
except ImportError:
    psycopg2 = None  # Will be caught at connect() time

logger = logging.getLogger(__name__)


@dataclass
class VectorStoreConfig:
    """Configuration for vector store."""
    connection_string: Optional[str] = None
    table_name: str = "knowledge_chunks"
    embedding_dimensions: int = 1536
    pool_min_connections: int = 1
    pool_max_connections: int = 10
    max_retries: int = 2
    retry_backoff: float = 0.5  # seconds, doubled on each retry


# Columns returned alongside the similarity score
_METADATA_COLUMNS = (
    "document_id", "title", "section", "legal_area", "jurisdiction",
    "authority", "url", "source_type", "dispute_type", "last_updated",
)


def _build_filters(filters: Optional[dict]) -> tuple[list[str], list]:
    clauses, params = [], []
    filters = filters or {}
    if filters.get("legal_area"):
        clauses.append("legal_area = %s")
        params.append(filters["legal_area"])
    if filters.get("jurisdiction"):
        clauses.append("jurisdiction = %s")
        params.append(filters["jurisdiction"])
    if filters.get("dispute_type"):
        # Passages without a dispute type apply to every dispute
        clauses.append("(dispute_type IS NULL OR dispute_type = %s)")
        params.append(filters["dispute_type"])
    return clauses, params


class VectorStore:
    """
    PostgreSQL knowledge store with pgvector.

    Features:
    - Cosine similarity search with a minimum-similarity threshold
    - Metadata filtering (legal area, jurisdiction, dispute type)
    - Batch upsert of embedded chunks
    - Bounded retry with exponential backoff on stale connections
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        """
        Initialize vector store.

        Args:
            config: Optional configuration. Uses env vars if not provided.
        """
        self.config = config or VectorStoreConfig()
        self._pool = None
        self._connection_string = (
            self.config.connection_string or
            os.getenv("POSTGRES_URL") or
            os.getenv("DATABASE_URL") or
            "postgresql://localhost:5432/legal_consult"
        )

    def connect(self) -> None:
        """Create the connection pool and make sure pgvector is available."""
        if psycopg2 is None:
            raise ImportError(
                "psycopg2 not installed. Run: pip install psycopg2-binary"
            )
        try:
            from psycopg2.extras import RealDictCursor

            if self._pool:
                self._pool.closeall()
            self._pool = psycopg2.pool.ThreadedConnectionPool(
                minconn=self.config.pool_min_connections,
                maxconn=self.config.pool_max_connections,
                dsn=self._connection_string,
                cursor_factory=RealDictCursor,
            )

            conn = self._pool.getconn()
            try:
                with conn.cursor() as cur:
                    cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                conn.commit()
            finally:
                self._pool.putconn(conn)

            logger.info(
                f"Connection pool initialized (min={self.config.pool_min_connections}, "
                f"max={self.config.pool_max_connections})"
            )
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            raise

    def _ensure_connection(self):
        """Get a pooled connection, connecting first if needed."""
        if not self._pool:
            self.connect()
        return self._pool.getconn()

    def _release_connection(self, conn):
        """Release a connection back to the pool."""
        if self._pool and conn:
            self._pool.putconn(conn)

    def _safe_rollback(self, conn) -> None:
        """Rollback a connection, ignoring errors if the connection is dead."""
        try:
            conn.rollback()
        except (psycopg2.InterfaceError, psycopg2.OperationalError):
            pass

    @contextmanager
    def get_connection(self):
        """
        Context manager for getting a database connection.

        Usage:
            with store.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        conn = self._ensure_connection()
        try:
            yield conn
        finally:
            self._release_connection(conn)

    def _execute_with_retry(self, operation, label="db_operation"):
        """Execute a DB operation, retrying stale connections with backoff.

        Args:
            operation: Callable(conn) that performs the DB work and returns a result.
            label: Human-readable name for logging.

        Returns:
            Whatever ``operation`` returns.
        """
        attempts = self.config.max_retries + 1
        for attempt in range(attempts):
            conn = self._ensure_connection()
            try:
                result = operation(conn)
                self._release_connection(conn)
                return result
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                self._safe_rollback(conn)
                self._pool.putconn(conn, close=True)
                if attempt < attempts - 1:
                    delay = self.config.retry_backoff * (2 ** attempt)
                    logger.warning(
                        f"{label}: stale conn, reconnecting in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{attempts}): {e}"
                    )
                    time.sleep(delay)
                    self.connect()
                    continue
                logger.error(f"{label}: giving up after {attempts} attempts: {e}")
                raise
            except Exception:
                self._safe_rollback(conn)
                self._release_connection(conn)
                raise

    def close(self) -> None:
        """Close all pooled connections."""
        if self._pool:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")

    # =========================================================================
    # Schema
    # =========================================================================

    def initialize_schema(self) -> None:
        """Create the chunk table and indexes if they don't exist."""
        table = self.config.table_name
        schema_sql = f"""
        CREATE TABLE IF NOT EXISTS {table} (
            id TEXT PRIMARY KEY,
            document_id TEXT NOT NULL,
            content TEXT NOT NULL,
            embedding VECTOR({self.config.embedding_dimensions}),
            title TEXT,
            section TEXT,
            legal_area TEXT NOT NULL,
            jurisdiction TEXT NOT NULL DEFAULT 'russia',
            authority TEXT DEFAULT 'unknown',
            url TEXT,
            source_type TEXT DEFAULT 'law',
            dispute_type TEXT,
            last_updated TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_{table}_document
            ON {table}(document_id);
        CREATE INDEX IF NOT EXISTS idx_{table}_area_jurisdiction
            ON {table}(legal_area, jurisdiction);
        CREATE INDEX IF NOT EXISTS idx_{table}_embedding
            ON {table} USING hnsw (embedding vector_cosine_ops);
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()
            logger.info("Schema initialized successfully")

        self._execute_with_retry(_op, "initialize_schema")

    # =========================================================================
    # Knowledge Store interface
    # =========================================================================

    def upsert(self, chunks: list[KnowledgeChunk]) -> None:
        """Insert chunks, replacing any existing chunk with the same id."""
        if not chunks:
            return

        from psycopg2.extras import execute_values

        sql = f"""
        INSERT INTO {self.config.table_name}
            (id, document_id, content, embedding, title, section, legal_area,
             jurisdiction, authority, url, source_type, dispute_type, last_updated)
        VALUES %s
        ON CONFLICT (id) DO UPDATE SET
            content = EXCLUDED.content,
            embedding = EXCLUDED.embedding,
            title = EXCLUDED.title,
            section = EXCLUDED.section,
            legal_area = EXCLUDED.legal_area,
            jurisdiction = EXCLUDED.jurisdiction,
            authority = EXCLUDED.authority,
            url = EXCLUDED.url,
            source_type = EXCLUDED.source_type,
            dispute_type = EXCLUDED.dispute_type,
            last_updated = EXCLUDED.last_updated
        """

        values = [
            (
                chunk.id,
                chunk.document_id,
                chunk.content,
                list(chunk.embedding),
                chunk.title,
                chunk.section,
                chunk.legal_area,
                chunk.jurisdiction,
                chunk.authority,
                chunk.url,
                chunk.source_type,
                chunk.dispute_type,
                chunk.last_updated,
            )
            for chunk in chunks
        ]

        def _op(conn):
            with conn.cursor() as cur:
                execute_values(
                    cur,
                    sql,
                    values,
                    template="(%s, %s, %s, %s::vector, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
                    page_size=500,
                )
            conn.commit()
            logger.info(f"Upserted {len(chunks)} chunks")

        self._execute_with_retry(_op, "upsert")

    def similarity_search(
        self,
        embedding: list[float],
        limit: int = 10,
        threshold: float = 0.0,
        filters: Optional[dict] = None,
    ) -> list[StoreMatch]:
        """
        Cosine-similarity search.

        Args:
            embedding: Query embedding vector
            limit: Maximum number of matches
            threshold: Minimum similarity (0-1)
            filters: Optional legal_area / jurisdiction / dispute_type

        Returns:
            Matches ordered by descending similarity
        """
        clauses, filter_params = _build_filters(filters)
        clauses.append("1 - (embedding <=> %s::vector) >= %s")
        where_clause = f"WHERE {' AND '.join(clauses)}"

        sql = f"""
        SELECT
            id,
            content,
            {', '.join(_METADATA_COLUMNS)},
            1 - (embedding <=> %s::vector) AS similarity
        FROM {self.config.table_name}
        {where_clause}
        ORDER BY embedding <=> %s::vector
        LIMIT %s
        """
        params = [embedding] + filter_params + [embedding, threshold, embedding, limit]

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            return [
                StoreMatch(
                    id=str(row["id"]),
                    content=row["content"],
                    similarity=float(row["similarity"]),
                    metadata={col: row[col] for col in _METADATA_COLUMNS},
                )
                for row in rows
            ]

        return self._execute_with_retry(_op, "similarity_search")

    def delete_document(self, document_id: str) -> int:
        """
        Delete every chunk of a document.

        Returns:
            Number of chunks removed
        """
        sql = f"DELETE FROM {self.config.table_name} WHERE document_id = %s"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (document_id,))
                deleted = cur.rowcount
            conn.commit()
            if deleted:
                logger.info(f"Deleted {deleted} chunks of document {document_id}")
            else:
                logger.warning(f"Document {document_id} not found")
            return deleted

        return self._execute_with_retry(_op, "delete_document")

    def stats(self) -> KnowledgeBaseStats:
        """Document, chunk and per-area document counts."""
        table = self.config.table_name

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(f"""
                    SELECT COUNT(DISTINCT document_id) AS total_documents,
                           COUNT(*) AS total_chunks,
                           MAX(last_updated) AS last_updated
                    FROM {table}
                """)
                totals = cur.fetchone()
                cur.execute(f"""
                    SELECT legal_area, COUNT(DISTINCT document_id) AS documents
                    FROM {table}
                    GROUP BY legal_area
                """)
                areas = cur.fetchall()
            return KnowledgeBaseStats(
                total_documents=int(totals["total_documents"] or 0),
                total_chunks=int(totals["total_chunks"] or 0),
                legal_areas={row["legal_area"]: int(row["documents"]) for row in areas},
                last_updated=totals["last_updated"] or datetime.now(),
            )

        return self._execute_with_retry(_op, "stats")


class InMemoryVectorStore:
    """
    Process-local knowledge store with the same interface as VectorStore.

    Good for development and tests; contents are lost on exit.
    """

    def __init__(self):
        self._chunks: dict[str, KnowledgeChunk] = {}

    def upsert(self, chunks: list[KnowledgeChunk]) -> None:
        for chunk in chunks:
            self._chunks[chunk.id] = chunk
        logger.info(f"Upserted {len(chunks)} chunks (in-memory)")

    def similarity_search(
        self,
        embedding: list[float],
        limit: int = 10,
        threshold: float = 0.0,
        filters: Optional[dict] = None,
    ) -> list[StoreMatch]:
        filters = filters or {}
        query = np.asarray(embedding, dtype=float)
        query_norm = np.linalg.norm(query)

        matches = []
        for chunk in self._chunks.values():
            if filters.get("legal_area") and chunk.legal_area != filters["legal_area"]:
                continue
            if filters.get("jurisdiction") and chunk.jurisdiction != filters["jurisdiction"]:
                continue
            dispute_type = filters.get("dispute_type")
            if dispute_type and chunk.dispute_type not in (None, dispute_type):
                continue

            vector = np.asarray(chunk.embedding, dtype=float)
            denom = query_norm * np.linalg.norm(vector)
            similarity = float(np.dot(query, vector) / denom) if denom else 0.0
            if similarity >= threshold:
                matches.append(StoreMatch(
                    id=chunk.id,
                    content=chunk.content,
                    similarity=similarity,
                    metadata=chunk.metadata(),
                ))

        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    def delete_document(self, document_id: str) -> int:
        stale = [cid for cid, c in self._chunks.items() if c.document_id == document_id]
        for chunk_id in stale:
            del self._chunks[chunk_id]
        return len(stale)

    def stats(self) -> KnowledgeBaseStats:
        documents: dict[str, str] = {}
        for chunk in self._chunks.values():
            documents[chunk.document_id] = chunk.legal_area
        areas: dict[str, int] = {}
        for area in documents.values():
            areas[area] = areas.get(area, 0) + 1
        last_updated = max(
            (c.last_updated for c in self._chunks.values()),
            default=datetime.now(),
        )
        return KnowledgeBaseStats(
            total_documents=len(documents),
            total_chunks=len(self._chunks),
            legal_areas=areas,
            last_updated=last_updated,
        )

    def close(self) -> None:
        self._chunks.clear()


def get_vector_store(config=None):
    """
    Factory function for the configured knowledge store.

    Args:
        config: ConsultConfig; ``knowledge_store`` selects "postgres" or "memory".
    """
    if config is not None and config.knowledge_store == "memory":
        logger.info("Using in-memory knowledge store")
        return InMemoryVectorStore()

    store_config = VectorStoreConfig()
    if config is not None:
        store_config = VectorStoreConfig(
            connection_string=config.database_url,
            embedding_dimensions=config.embedding_dimensions,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff,
        )
    return VectorStore(store_config)


# CLI for testing
if __name__ == "__main__":
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    store = VectorStore()
    store.connect()
    store.initialize_schema()
    print(store.stats())
    store.close()
