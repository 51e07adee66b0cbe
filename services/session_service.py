import copy
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import SESSION_BACKEND, SESSION_MAX_AGE
from database import SessionLocal
from logger import get_logger
from models.session_db_model import SessionDB
from models.session_models import FieldMap, SessionRecord
from services.exceptions import SessionOperationError

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(ABC):
    """
    Per-session accumulation of extracted field maps, keyed by session id.
    Records idle for longer than `max_age` seconds are treated as absent,
    and every ensure/put sweeps them out of the backing storage.

    The request handlers only need put/get/destroy: a record comes into
    existence with its first field map. `ensure` completes the store
    contract for callers that want an empty record up front.
    """

    def __init__(self, max_age: int = SESSION_MAX_AGE, clock: Callable[[], datetime] = _utcnow):
        self.max_age = timedelta(seconds=max_age)
        self.clock = clock

    def _expired(self, updated_at: datetime) -> bool:
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        return self.clock() - updated_at > self.max_age

    @abstractmethod
    def ensure(self, session_id: str) -> SessionRecord:
        ...

    @abstractmethod
    def put(self, session_id: str, doc_type: str, field_map: FieldMap) -> None:
        ...

    @abstractmethod
    def get(self, session_id: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    def destroy(self, session_id: str) -> None:
        ...


class InMemorySessionStore(SessionStore):
    def __init__(self, max_age: int = SESSION_MAX_AGE, clock: Callable[[], datetime] = _utcnow):
        super().__init__(max_age=max_age, clock=clock)
        self._lock = threading.Lock()
        self._sessions: Dict[str, Tuple[SessionRecord, datetime]] = {}

    def _live_record(self, session_id: str) -> Optional[SessionRecord]:
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        record, updated_at = entry
        if self._expired(updated_at):
            logger.info("Session %s expired", session_id)
            del self._sessions[session_id]
            return None
        return record

    def _sweep(self) -> None:
        expired = [
            sid for sid, (_, updated_at) in list(self._sessions.items()) if self._expired(updated_at)
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Dropped %d expired session(s)", len(expired))

    def ensure(self, session_id: str) -> SessionRecord:
        with self._lock:
            self._sweep()
            record = self._live_record(session_id)
            if record is None:
                record = {}
                logger.info("Created session %s", session_id)
            self._sessions[session_id] = (record, self.clock())
            return copy.deepcopy(record)

    def put(self, session_id: str, doc_type: str, field_map: FieldMap) -> None:
        with self._lock:
            self._sweep()
            record = self._live_record(session_id)
            if record is None:
                record = {}
                logger.info("Created session %s", session_id)
            elif doc_type in record:
                logger.info("Replacing %s in session %s", doc_type, session_id)
            record[doc_type] = dict(field_map)
            self._sessions[session_id] = (record, self.clock())

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            record = self._live_record(session_id)
            return copy.deepcopy(record) if record is not None else None

    def destroy(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is not None:
                logger.info("Destroyed session %s", session_id)


class SqlSessionStore(SessionStore):
    """Session records in a SQL table, shared by every worker on the same database."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        max_age: int = SESSION_MAX_AGE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        super().__init__(max_age=max_age, clock=clock)
        self.session_factory = session_factory

    def _load(self, db: Session, session_id: str) -> Optional[SessionDB]:
        row = db.query(SessionDB).filter(SessionDB.session_id == session_id).first()
        if row is not None and self._expired(row.updated_at):
            logger.info("Session %s expired", session_id)
            db.delete(row)
            db.commit()
            return None
        return row

    def _sweep(self, db: Session) -> None:
        cutoff = self.clock() - self.max_age
        dropped = (
            db.query(SessionDB)
            .filter(SessionDB.updated_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
        if dropped:
            logger.info("Dropped %d expired session(s)", dropped)

    def _ensure_row(self, db: Session, session_id: str) -> SessionDB:
        row = self._load(db, session_id)
        if row is None:
            row = SessionDB(session_id=session_id, documents={}, updated_at=self.clock())
            db.add(row)
            logger.info("Created session %s", session_id)
        else:
            row.updated_at = self.clock()
        db.commit()
        return row

    def _put_row(self, db: Session, session_id: str, doc_type: str, field_map: FieldMap) -> None:
        row = self._load(db, session_id)
        if row is None:
            row = SessionDB(session_id=session_id, documents={})
            db.add(row)
            logger.info("Created session %s", session_id)
        elif doc_type in (row.documents or {}):
            logger.info("Replacing %s in session %s", doc_type, session_id)
        # reassign so the JSON column is flagged dirty
        documents = dict(row.documents or {})
        documents[doc_type] = dict(field_map)
        row.documents = documents
        row.updated_at = self.clock()
        db.commit()

    def ensure(self, session_id: str) -> SessionRecord:
        db = self.session_factory()
        try:
            self._sweep(db)
            try:
                row = self._ensure_row(db, session_id)
            except IntegrityError:
                # a concurrent request inserted the same id first
                db.rollback()
                row = self._ensure_row(db, session_id)
            return copy.deepcopy(row.documents or {})
        except SQLAlchemyError as e:
            db.rollback()
            raise SessionOperationError(f"Could not load session {session_id}") from e
        finally:
            db.close()

    def put(self, session_id: str, doc_type: str, field_map: FieldMap) -> None:
        db = self.session_factory()
        try:
            self._sweep(db)
            try:
                self._put_row(db, session_id, doc_type, field_map)
            except IntegrityError:
                # a concurrent request inserted the same id first; write on top of it
                db.rollback()
                logger.info("Session %s was created concurrently, retrying as update", session_id)
                self._put_row(db, session_id, doc_type, field_map)
        except SQLAlchemyError as e:
            db.rollback()
            raise SessionOperationError(f"Could not update session {session_id}") from e
        finally:
            db.close()

    def get(self, session_id: str) -> Optional[SessionRecord]:
        db = self.session_factory()
        try:
            row = self._load(db, session_id)
            if row is None:
                return None
            return copy.deepcopy(row.documents or {})
        except SQLAlchemyError as e:
            db.rollback()
            raise SessionOperationError(f"Could not read session {session_id}") from e
        finally:
            db.close()

    def destroy(self, session_id: str) -> None:
        db = self.session_factory()
        try:
            deleted = db.query(SessionDB).filter(SessionDB.session_id == session_id).delete()
            db.commit()
            if deleted:
                logger.info("Destroyed session %s", session_id)
        except SQLAlchemyError as e:
            db.rollback()
            raise SessionOperationError(f"Could not destroy session {session_id}") from e
        finally:
            db.close()


def build_session_store(backend: str = SESSION_BACKEND) -> SessionStore:
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "sql":
        return SqlSessionStore(SessionLocal)
    raise ValueError(f"Unknown SESSION_BACKEND '{backend}' (expected 'memory' or 'sql').")
