"""
Analysis store: canonical records in SQLite with an advisory vector overlay.

Records are persisted as store-vocabulary JSON documents. Filter columns are
duplicated beside the document so scans and k-NN candidate selection happen in
SQL before any ranking.
"""

import json
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np

from .db import get_db, init_db
from .errors import InvalidArgumentError, StoreError
from .mapping import record_from_document, record_to_document
from .models import AnalysisRecord, Bookmark, SearchFilters, UserPreferences, UserProfile
from dysapp.util.logging import logger
from dysapp.vector.index import IVectorStore, SimpleInMemoryVectorStore
from dysapp.vector.types import VectorRecord


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IAnalysisStore(ABC):
    """Generic store: key lookup, filtered scan and k-nearest-neighbour query."""

    @abstractmethod
    def put(self, record: AnalysisRecord) -> str:
        pass

    @abstractmethod
    def get(self, record_id: str) -> Optional[AnalysisRecord]:
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        pass

    @abstractmethod
    def scan(self, filters: SearchFilters = None, limit: Optional[int] = None, offset: int = 0,
             require_ocr_text: bool = False) -> List[AnalysisRecord]:
        """Records matching filters, newest first."""
        pass

    @abstractmethod
    def count(self, filters: SearchFilters = None) -> int:
        pass

    @abstractmethod
    def nearest(self, vector: List[float], k: int,
                filters: SearchFilters = None) -> List[Tuple[AnalysisRecord, float]]:
        """Up to k (record, cosine distance) pairs, ascending by distance."""
        pass

    @abstractmethod
    def get_many(self, record_ids: List[str]) -> Dict[str, AnalysisRecord]:
        pass

    @abstractmethod
    def increment_analysis_count(self, user_id: str, delta: int = 1) -> None:
        pass

    @abstractmethod
    def get_user_profile(self, user_id: str) -> UserProfile:
        pass

    @abstractmethod
    def update_user_profile(self, user_id: str, display_name: Optional[str] = None,
                            preferences: Optional[UserPreferences] = None) -> UserProfile:
        """Set the given profile fields; None leaves a field unchanged."""
        pass

    @abstractmethod
    def add_bookmark(self, user_id: str, analysis_id: str) -> Tuple[Bookmark, bool]:
        pass

    @abstractmethod
    def get_bookmark(self, bookmark_id: str) -> Optional[Bookmark]:
        pass

    @abstractmethod
    def list_bookmarks(self, user_id: str, limit: int, start_after: Optional[str] = None) -> List[Bookmark]:
        pass

    @abstractmethod
    def delete_bookmark(self, bookmark_id: str) -> bool:
        pass


def _where(filters: Optional[SearchFilters], extra: Iterable[str] = ()) -> Tuple[str, List[Any]]:
    clauses = list(extra)
    params: List[Any] = []
    if filters is not None:
        if filters.user_id is not None:
            clauses.append("user_id = ?")
            params.append(filters.user_id)
        if filters.format_prediction is not None:
            clauses.append("format_prediction = ?")
            params.append(filters.format_prediction.value)
        if filters.fix_scope is not None:
            clauses.append("fix_scope = ?")
            params.append(filters.fix_scope.value)
        if filters.min_score is not None:
            clauses.append("overall_score >= ?")
            params.append(filters.min_score)
    sql = (" WHERE " + " AND ".join(clauses)) if clauses else ""
    return sql, params


class SQLiteAnalysisStore(IAnalysisStore):
    """SQLite-backed analysis store with an IVectorStore overlay for k-NN."""

    def __init__(self, db_path: str = None, vector_store: IVectorStore = None):
        self.db_path = db_path
        self.vector_store = vector_store if vector_store is not None else SimpleInMemoryVectorStore()
        self._vector_lock = threading.Lock()
        init_db(db_path)
        self.rebuild_vector_index()

    # Analyses

    def put(self, record: AnalysisRecord) -> str:
        document = record_to_document(record)
        try:
            with get_db(self.db_path) as conn:
                conn.execute(
                    """INSERT INTO analyses (id, user_id, format_prediction, fix_scope, overall_score,
                                             has_embedding, has_ocr_text, created_at, document)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        record.id,
                        record.user_id,
                        record.format_prediction.value,
                        record.fix_scope.value,
                        record.overall_score,
                        record.has_embedding,
                        bool(record.ocr_text and record.ocr_text.strip()),
                        record.created_at.isoformat(),
                        json.dumps(document),
                    ),
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.log_store_operation("put", record.id, "failed", {"error": str(e)})
            raise StoreError(f"Failed to persist analysis {record.id}") from e

        logger.log_store_operation("put", record.id, details={"has_embedding": record.has_embedding})

        if record.has_embedding:
            # Vector operations should never break SQLite functionality
            try:
                self._index_record(record)
            except Exception as e:
                logger.warning(f"Vector overlay add failed for {record.id}: {e}")

        return record.id

    def get(self, record_id: str) -> Optional[AnalysisRecord]:
        try:
            with get_db(self.db_path) as conn:
                row = conn.execute("SELECT id, document FROM analyses WHERE id = ?", (record_id,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read analysis {record_id}") from e

        if row is None:
            return None
        return record_from_document(row["id"], json.loads(row["document"]))

    def get_many(self, record_ids: List[str]) -> Dict[str, AnalysisRecord]:
        if not record_ids:
            return {}
        placeholders = ",".join("?" for _ in record_ids)
        try:
            with get_db(self.db_path) as conn:
                rows = conn.execute(
                    f"SELECT id, document FROM analyses WHERE id IN ({placeholders})", list(record_ids)
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError("Failed to read analyses") from e
        return {row["id"]: record_from_document(row["id"], json.loads(row["document"])) for row in rows}

    def delete(self, record_id: str) -> bool:
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM analyses WHERE id = ?", (record_id,))
                conn.execute("DELETE FROM bookmarks WHERE analysis_id = ?", (record_id,))
                conn.commit()
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.log_store_operation("delete", record_id, "failed", {"error": str(e)})
            raise StoreError(f"Failed to delete analysis {record_id}") from e

        try:
            with self._vector_lock:
                self.vector_store.delete(record_id)
        except Exception as e:
            logger.warning(f"Vector overlay delete failed for {record_id}: {e}")

        logger.log_store_operation("delete", record_id, details={"deleted": deleted})
        return deleted

    def scan(self, filters: SearchFilters = None, limit: Optional[int] = None, offset: int = 0,
             require_ocr_text: bool = False) -> List[AnalysisRecord]:
        where, params = _where(filters, ["has_ocr_text = 1"] if require_ocr_text else [])
        sql = f"SELECT id, document FROM analyses{where} ORDER BY created_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        try:
            with get_db(self.db_path) as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError("Failed to scan analyses") from e
        return [record_from_document(row["id"], json.loads(row["document"])) for row in rows]

    def count(self, filters: SearchFilters = None) -> int:
        where, params = _where(filters)
        try:
            with get_db(self.db_path) as conn:
                return conn.execute(f"SELECT COUNT(*) FROM analyses{where}", params).fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError("Failed to count analyses") from e

    def nearest(self, vector: List[float], k: int,
                filters: SearchFilters = None) -> List[Tuple[AnalysisRecord, float]]:
        where, params = _where(filters, ["has_embedding = 1"])
        try:
            with get_db(self.db_path) as conn:
                candidate_ids = [row["id"] for row in conn.execute(f"SELECT id FROM analyses{where}", params)]
        except sqlite3.Error as e:
            raise StoreError("Failed to select similarity candidates") from e

        if not candidate_ids:
            return []

        with self._vector_lock:
            hits = self.vector_store.search(np.asarray(vector, dtype=np.float32), top_k=k,
                                            candidate_ids=candidate_ids)

        records = self.get_many([hit.id for hit in hits])
        return [(records[hit.id], 1.0 - hit.score) for hit in hits if hit.id in records]

    # Vector overlay

    def _index_record(self, record: AnalysisRecord) -> None:
        with self._vector_lock:
            self.vector_store.add(VectorRecord(
                id=record.id,
                vector=np.asarray(record.embedding, dtype=np.float32),
                metadata={"user_id": record.user_id},
            ))

    def rebuild_vector_index(self) -> int:
        """Reload the vector overlay from canonical SQLite rows."""
        with get_db(self.db_path) as conn:
            rows = conn.execute("SELECT id, document FROM analyses WHERE has_embedding = 1").fetchall()

        vectors = []
        for row in rows:
            embedding = json.loads(row["document"]).get("imageEmbedding")
            if embedding:
                vectors.append(VectorRecord(id=row["id"], vector=np.asarray(embedding, dtype=np.float32)))

        with self._vector_lock:
            self.vector_store.clear()
            try:
                self.vector_store.batch_add(vectors)
            except Exception as e:
                logger.warning(f"Vector overlay rebuild failed: {e}")
                return 0

        if vectors:
            logger.log_operation("vector.rebuild", "success", {"count": len(vectors)})
        return len(vectors)

    # User profiles

    def increment_analysis_count(self, user_id: str, delta: int = 1) -> None:
        """Atomic counter update; never drops below zero."""
        now = utcnow().isoformat()
        try:
            with get_db(self.db_path) as conn:
                conn.execute(
                    """INSERT INTO user_profiles (user_id, analysis_count, updated_at) VALUES (?, ?, ?)
                       ON CONFLICT(user_id) DO UPDATE SET
                           analysis_count = MAX(0, analysis_count + ?),
                           updated_at = excluded.updated_at""",
                    (user_id, max(0, delta), now, delta),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to update usage counter for {user_id}") from e

    @staticmethod
    def _preferences_to_json(preferences: UserPreferences) -> str:
        return json.dumps({
            "preferredFormats": list(preferences.preferred_formats),
            "preferredColors": list(preferences.preferred_colors),
            "language": preferences.language,
        })

    @staticmethod
    def _preferences_from_json(raw: Optional[str]) -> UserPreferences:
        if not raw:
            return UserPreferences()
        doc = json.loads(raw)
        return UserPreferences(
            preferred_formats=list(doc.get("preferredFormats") or []),
            preferred_colors=list(doc.get("preferredColors") or []),
            language=doc.get("language"),
        )

    def get_user_profile(self, user_id: str) -> UserProfile:
        try:
            with get_db(self.db_path) as conn:
                row = conn.execute(
                    """SELECT user_id, analysis_count, display_name, preferences, updated_at
                       FROM user_profiles WHERE user_id = ?""",
                    (user_id,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read profile for {user_id}") from e

        if row is None:
            return UserProfile(user_id=user_id, analysis_count=0)
        return UserProfile(
            user_id=row["user_id"],
            analysis_count=row["analysis_count"],
            display_name=row["display_name"],
            preferences=self._preferences_from_json(row["preferences"]),
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )

    def update_user_profile(self, user_id: str, display_name: Optional[str] = None,
                            preferences: Optional[UserPreferences] = None) -> UserProfile:
        encoded = self._preferences_to_json(preferences) if preferences is not None else None
        try:
            with get_db(self.db_path) as conn:
                conn.execute(
                    """INSERT INTO user_profiles (user_id, analysis_count, display_name, preferences, updated_at)
                       VALUES (?, 0, ?, ?, ?)
                       ON CONFLICT(user_id) DO UPDATE SET
                           display_name = COALESCE(excluded.display_name, user_profiles.display_name),
                           preferences = COALESCE(excluded.preferences, user_profiles.preferences),
                           updated_at = excluded.updated_at""",
                    (user_id, display_name, encoded, utcnow().isoformat()),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to update profile for {user_id}") from e

        logger.log_store_operation("profile.update", user_id, details={
            "display_name": display_name is not None,
            "preferences": preferences is not None,
        })
        return self.get_user_profile(user_id)

    # Bookmarks

    @staticmethod
    def _bookmark(row) -> Bookmark:
        return Bookmark(
            id=row["id"],
            user_id=row["user_id"],
            analysis_id=row["analysis_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def find_bookmark(self, user_id: str, analysis_id: str) -> Optional[Bookmark]:
        try:
            with get_db(self.db_path) as conn:
                row = conn.execute(
                    "SELECT * FROM bookmarks WHERE user_id = ? AND analysis_id = ?", (user_id, analysis_id)
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError("Failed to read bookmark") from e
        return self._bookmark(row) if row else None

    def add_bookmark(self, user_id: str, analysis_id: str) -> Tuple[Bookmark, bool]:
        """Insert a bookmark once. Returns (bookmark, created)."""
        bookmark_id = uuid.uuid4().hex
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO bookmarks (id, user_id, analysis_id, created_at) VALUES (?, ?, ?, ?)",
                    (bookmark_id, user_id, analysis_id, utcnow().isoformat()),
                )
                conn.commit()
                created = cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StoreError("Failed to save bookmark") from e
        return self.find_bookmark(user_id, analysis_id), created

    def get_bookmark(self, bookmark_id: str) -> Optional[Bookmark]:
        try:
            with get_db(self.db_path) as conn:
                row = conn.execute("SELECT * FROM bookmarks WHERE id = ?", (bookmark_id,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError("Failed to read bookmark") from e
        return self._bookmark(row) if row else None

    def list_bookmarks(self, user_id: str, limit: int, start_after: Optional[str] = None) -> List[Bookmark]:
        """Bookmarks newest first; start_after is the id of the last bookmark already seen."""
        sql = "SELECT * FROM bookmarks WHERE user_id = ?"
        params: List[Any] = [user_id]
        if start_after:
            cursor_row = self.get_bookmark(start_after)
            if cursor_row is None or cursor_row.user_id != user_id:
                raise InvalidArgumentError("Invalid pagination cursor", details={"start_after": start_after})
            sql += " AND (created_at < ? OR (created_at = ? AND id < ?))"
            created = cursor_row.created_at.isoformat()
            params.extend([created, created, cursor_row.id])
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)
        try:
            with get_db(self.db_path) as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError("Failed to list bookmarks") from e
        return [self._bookmark(row) for row in rows]

    def delete_bookmark(self, bookmark_id: str) -> bool:
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM bookmarks WHERE id = ?", (bookmark_id,))
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise StoreError("Failed to delete bookmark") from e
