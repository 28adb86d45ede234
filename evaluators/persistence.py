"""
Memory stores - durable homes for accepted records.

MemoryStore is the boundary the pipeline depends on. Two implementations:
- InMemoryMemoryStore: process-local, used for tests and local runs
- PostgresMemoryStore: psycopg2-backed table with JSONB metadata
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
from uuid import uuid4

import psycopg2
from psycopg2.extras import Json

from evaluators.models import CandidateRecord, MemoryEntry
from utils.database_session_manager import DatabaseSessionManager
from utils.timezone_utils import format_utc_iso, utc_now

logger = logging.getLogger(__name__)


class MemoryStoreError(Exception):
    """Raised when a memory entry could not be written or read."""


@runtime_checkable
class MemoryStore(Protocol):
    """Persistence boundary used by every evaluator."""

    def store(
        self,
        content: str,
        metadata: Dict[str, Any],
        room_id: str,
        entity_id: str
    ) -> Optional[MemoryEntry]:
        """Persist one entry; raise or return None on failure."""
        ...

    def list_contents(
        self,
        memory_type: str,
        room_id: Optional[str] = None,
        limit: int = 50
    ) -> List[str]:
        """Most recent stored contents of a memory type, newest first."""
        ...


def build_metadata(record: CandidateRecord, memory_type: str, source: str) -> Dict[str, Any]:
    """
    Provenance metadata for a persisted record.

    extracted_at is stamped when this is called, i.e. just before storing.
    """
    metadata: Dict[str, Any] = {
        "type": memory_type,
        "category": record.category,
        "confidence": record.confidence,
        "outcome": record.outcome,
        "project": record.project,
        "source": source,
        "extracted_at": format_utc_iso(utc_now()),
    }
    if record.task_id:
        metadata["task_id"] = record.task_id
    return metadata


class InMemoryMemoryStore:
    """Thread-safe process-local memory store."""

    def __init__(self):
        self._entries: List[MemoryEntry] = []
        self._lock = threading.Lock()

    def store(
        self,
        content: str,
        metadata: Dict[str, Any],
        room_id: str,
        entity_id: str
    ) -> MemoryEntry:
        entry = MemoryEntry(
            id=str(uuid4()),
            content=content,
            metadata=dict(metadata),
            room_id=room_id,
            entity_id=entity_id,
            created_at=format_utc_iso(utc_now()),
        )
        with self._lock:
            self._entries.append(entry)
        return entry

    def list_contents(
        self,
        memory_type: str,
        room_id: Optional[str] = None,
        limit: int = 50
    ) -> List[str]:
        with self._lock:
            entries = list(self._entries)
        matches = [
            e.content for e in reversed(entries)
            if e.metadata.get("type") == memory_type and (room_id is None or e.room_id == room_id)
        ]
        return matches[:limit]

    @property
    def entries(self) -> List[MemoryEntry]:
        with self._lock:
            return list(self._entries)


class PostgresMemoryStore:
    """
    Postgres-backed memory store.

    Each store() is its own short transaction; entries are independent rows
    with no cross-entry consistency requirement.
    """

    def __init__(self, session_manager: DatabaseSessionManager, table: str = "extracted_memories"):
        if not table.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table!r}")
        self.session_manager = session_manager
        self.table = table

    def ensure_schema(self) -> None:
        """Create the memories table and its indexes if missing."""
        with self.session_manager.get_session() as session:
            session.execute_update(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    id UUID PRIMARY KEY,
                    content TEXT NOT NULL,
                    metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                    room_id TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
            session.execute_update(
                f"CREATE INDEX IF NOT EXISTS idx_{self.table}_type "
                f"ON {self.table} ((metadata->>'type'), created_at DESC)"
            )
            session.execute_update(
                f"CREATE INDEX IF NOT EXISTS idx_{self.table}_room ON {self.table} (room_id)"
            )
        logger.info(f"Ensured schema for table {self.table}")

    def store(
        self,
        content: str,
        metadata: Dict[str, Any],
        room_id: str,
        entity_id: str
    ) -> MemoryEntry:
        """
        Insert one entry.

        Raises:
            MemoryStoreError: If the insert fails
        """
        try:
            with self.session_manager.get_session() as session:
                row = session.execute_single(
                    f"""
                    INSERT INTO {self.table} (id, content, metadata, room_id, entity_id)
                    VALUES (%(id)s, %(content)s, %(metadata)s, %(room_id)s, %(entity_id)s)
                    RETURNING id, content, metadata, room_id, entity_id, created_at
                    """,
                    {
                        "id": uuid4(),
                        "content": content,
                        "metadata": Json(metadata),
                        "room_id": room_id,
                        "entity_id": entity_id,
                    }
                )
        except (psycopg2.Error, ValueError) as e:
            raise MemoryStoreError(f"Failed to store memory: {e}") from e

        if row is None:
            raise MemoryStoreError("Insert returned no row")
        return self._row_to_entry(row)

    def list_contents(
        self,
        memory_type: str,
        room_id: Optional[str] = None,
        limit: int = 50
    ) -> List[str]:
        """
        Raises:
            MemoryStoreError: If the query fails
        """
        query = f"SELECT content FROM {self.table} WHERE metadata->>'type' = %(memory_type)s"
        params: Dict[str, Any] = {"memory_type": memory_type, "limit": limit}
        if room_id is not None:
            query += " AND room_id = %(room_id)s"
            params["room_id"] = room_id
        query += " ORDER BY created_at DESC LIMIT %(limit)s"

        try:
            with self.session_manager.get_session() as session:
                rows = session.execute_query(query, params)
        except (psycopg2.Error, ValueError) as e:
            raise MemoryStoreError(f"Failed to list memories: {e}") from e

        return [row["content"] for row in rows]

    @staticmethod
    def _row_to_entry(row: Dict[str, Any]) -> MemoryEntry:
        created_at = row.get("created_at")
        return MemoryEntry(
            id=str(row["id"]),
            content=row["content"],
            metadata=row.get("metadata") or {},
            room_id=row["room_id"],
            entity_id=row["entity_id"],
            created_at=format_utc_iso(created_at) if hasattr(created_at, "isoformat") else str(created_at),
        )
