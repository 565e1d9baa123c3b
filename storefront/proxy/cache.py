"""Persisted cache entries for the fetch-or-generate proxies."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from storefront.data.database.cache_models import ProxyCacheEntry

logger = logging.getLogger(__name__)


class CacheStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CacheEntry:
    """Snapshot of one cache row."""
    key: str
    status: CacheStatus
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: ProxyCacheEntry) -> "CacheEntry":
        return cls(
            key=row.key,
            status=CacheStatus(row.status),
            result=row.result if row.status == CacheStatus.COMPLETED.value else None,
            error=row.error,
            updated_at=row.updated_at,
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLCacheStore:
    """
    Cache table access for one proxy variant.

    Every method opens its own short-lived session, so a store can be shared by
    concurrent request handlers and called from worker threads.
    """

    def __init__(self, session_factory: sessionmaker, namespace: str):
        """
        Args:
            session_factory: SQLAlchemy session factory
            namespace: Proxy variant name, part of the row identity
        """
        self.session_factory = session_factory
        self.namespace = namespace

    def _row(self, db: Session, key: str) -> Optional[ProxyCacheEntry]:
        return db.get(ProxyCacheEntry, (self.namespace, key))

    def get(self, key: str) -> Optional[CacheEntry]:
        """Exact-key lookup."""
        db = self.session_factory()
        try:
            row = self._row(db, key)
            return CacheEntry.from_row(row) if row else None
        finally:
            db.close()

    def claim(self, key: str, reclaim_failed: bool = True) -> bool:
        """
        Atomically mark ``key`` as processing.

        An absent key is claimed with a plain INSERT; the primary key turns a
        concurrent insert into an IntegrityError, which means someone else owns
        it. A failed row is reclaimed with a conditional UPDATE, and only the
        caller whose UPDATE matched the row owns it.

        Args:
            key: Cache key
            reclaim_failed: Whether a failed row may be taken over

        Returns:
            True if this caller now owns the key
        """
        db = self.session_factory()
        try:
            db.add(ProxyCacheEntry(
                namespace=self.namespace,
                key=key,
                status=CacheStatus.PROCESSING.value,
                updated_at=_now(),
            ))
            try:
                db.commit()
                return True
            except IntegrityError:
                db.rollback()

            if not reclaim_failed:
                return False

            outcome = db.execute(
                update(ProxyCacheEntry)
                .where(
                    ProxyCacheEntry.namespace == self.namespace,
                    ProxyCacheEntry.key == key,
                    ProxyCacheEntry.status == CacheStatus.FAILED.value,
                )
                .values(status=CacheStatus.PROCESSING.value, error=None, updated_at=_now())
            )
            db.commit()
            return outcome.rowcount == 1
        finally:
            db.close()

    def complete(self, key: str, result: Dict[str, Any]) -> None:
        """Persist a finished result."""
        self._set_status(key, CacheStatus.COMPLETED, result=result, error=None)

    def fail(self, key: str, error: str) -> None:
        """Mark the key failed, dropping any partial result."""
        self._set_status(key, CacheStatus.FAILED, result=None, error=error[:2000])

    def _set_status(self, key: str, status: CacheStatus, **values) -> None:
        db = self.session_factory()
        try:
            row = self._row(db, key)
            if row is None:
                row = ProxyCacheEntry(namespace=self.namespace, key=key)
                db.add(row)
            row.status = status.value
            row.updated_at = _now()
            for field, value in values.items():
                setattr(row, field, value)
            db.commit()
        finally:
            db.close()

    def list(self, status: Optional[CacheStatus] = None) -> List[CacheEntry]:
        """All rows of this variant, optionally filtered by status, newest first."""
        db = self.session_factory()
        try:
            query = db.query(ProxyCacheEntry).filter(ProxyCacheEntry.namespace == self.namespace)
            if status is not None:
                query = query.filter(ProxyCacheEntry.status == status.value)
            rows = query.order_by(ProxyCacheEntry.updated_at.desc()).all()
            return [CacheEntry.from_row(row) for row in rows]
        finally:
            db.close()

    def delete(self, key: str) -> bool:
        """Remove a row so the key can be regenerated. Returns whether it existed."""
        db = self.session_factory()
        try:
            row = self._row(db, key)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            logger.info("Deleted %s cache entry %s", self.namespace, key)
            return True
        finally:
            db.close()
