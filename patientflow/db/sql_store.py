"""
SQLAlchemy-backed Queue Entry Store.
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from patientflow.core.errors import StoreUnavailable
from patientflow.db.models import QueueEntryRow, QueueEventRow
from patientflow.models.events import QueueEvent
from patientflow.models.queue import QueueEntry, QueueStatus
from patientflow.queue.store import QueueStore

logger = logging.getLogger(__name__)


def _is_sqlite(session_factory: sessionmaker) -> bool:
    bind = session_factory.kw.get("bind")
    return bind is not None and bind.dialect.name == "sqlite"


class SqlQueueStore(QueueStore):
    """
    Queue store over the `queues` table.

    Each commit() is a single transaction: it is either applied in full or
    rolled back. Database failures surface as StoreUnavailable.

    Blocking database work runs in the threadpool, except on SQLite where
    every session shares one connection and calls stay on the event loop.
    """

    def __init__(self, session_factory: sessionmaker, offload: Optional[bool] = None):
        """
        Args:
            session_factory: Bound sessionmaker
            offload: Run database calls in the threadpool; defaults to
                True for every backend except SQLite
        """
        self._session_factory = session_factory
        self.offload = not _is_sqlite(session_factory) if offload is None else offload
        logger.info(f"SqlQueueStore initialized (offload={self.offload})")

    async def _run(self, func: Callable[..., Any], *args) -> Any:
        if self.offload:
            return await run_in_threadpool(func, *args)
        return func(*args)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Queue store failure: {e}")
            raise StoreUnavailable("Queue store is unavailable", {"reason": str(e)}) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================
    # Blocking implementations
    # ========================

    def _get(self, entry_id: str) -> Optional[QueueEntry]:
        with self._session() as session:
            row = session.get(QueueEntryRow, entry_id)
            return row.to_entry() if row else None

    def _list_lane(self, department: str, status: QueueStatus) -> List[QueueEntry]:
        with self._session() as session:
            rows = (
                session.query(QueueEntryRow)
                .filter(QueueEntryRow.department == department, QueueEntryRow.status == status.value)
                .order_by(QueueEntryRow.position.asc())
                .all()
            )
            return [row.to_entry() for row in rows]

    def _list_department(self, department: str) -> List[QueueEntry]:
        with self._session() as session:
            rows = (
                session.query(QueueEntryRow)
                .filter(QueueEntryRow.department == department)
                .all()
            )
            return [row.to_entry() for row in rows]

    def _commit(self, upserts: List[QueueEntry], deletes: List[str]) -> None:
        with self._session() as session:
            for entry in upserts:
                session.merge(QueueEntryRow.from_entry(entry))
            if deletes:
                (
                    session.query(QueueEntryRow)
                    .filter(QueueEntryRow.id.in_(deletes))
                    .delete(synchronize_session=False)
                )

    def _record_event(self, event: QueueEvent) -> None:
        row = QueueEventRow.from_event(event)
        row.recorded_ns = time.time_ns()
        with self._session() as session:
            session.add(row)

    def _list_events(self, entry_id: str, limit: Optional[int]) -> List[QueueEvent]:
        with self._session() as session:
            query = (
                session.query(QueueEventRow)
                .filter(QueueEventRow.entry_id == entry_id)
                .order_by(QueueEventRow.created_at.desc(), QueueEventRow.recorded_ns.desc())
            )
            if limit is not None:
                query = query.limit(limit)
            return [row.to_event() for row in query.all()]

    # ========================
    # QueueStore
    # ========================

    async def get(self, entry_id: str) -> Optional[QueueEntry]:
        return await self._run(self._get, entry_id)

    async def list_lane(self, department: str, status: QueueStatus) -> List[QueueEntry]:
        return await self._run(self._list_lane, department, QueueStatus(status))

    async def list_department(self, department: str) -> List[QueueEntry]:
        return await self._run(self._list_department, department)

    async def commit(
        self,
        upserts: Iterable[QueueEntry] = (),
        deletes: Iterable[str] = ()
    ) -> None:
        upserts = list(upserts)
        deletes = list(deletes)
        await self._run(self._commit, upserts, deletes)
        logger.debug(f"Committed {len(upserts)} upserts, {len(deletes)} deletes")

    # ========================
    # Event log
    # ========================

    async def record_event(self, event: QueueEvent) -> None:
        """Event bus subscriber persisting the transition log."""
        await self._run(self._record_event, event)

    async def list_events(self, entry_id: str, limit: Optional[int] = None) -> List[QueueEvent]:
        """Persisted events for one entry, most recent first."""
        return await self._run(self._list_events, entry_id, limit)

    async def close(self) -> None:
        bind = self._session_factory.kw.get("bind")
        if bind is not None:
            bind.dispose()
