"""
Repository layer abstracting storage (SQLAlchemy vs Firebase Firestore).

Documents are plain dicts in both backends. Writes that must not lose
concurrent updates go through ``mutate``, which applies a function to the
freshest copy of a document atomically: a Firestore transaction, or a
version compare-and-swap with retries on SQL.
"""

from __future__ import annotations

import copy
import logging
import random
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from google.api_core.exceptions import GoogleAPICallError
from firebase_admin import firestore
from sqlalchemy import delete, select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    ConcurrencyConflictError,
    DependencyFailureError,
    FrameItError,
    NotFoundError,
)
from app.models import EventRecord, UserRecord
from app.services.firebase_client import get_firestore_client

logger = logging.getLogger(__name__)


def use_firestore() -> bool:
    return settings.USE_FIREBASE is True


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_valid_doc_id(doc_id: Optional[str]) -> bool:
    """Ids must name a single document: non-empty and without path separators"""
    return bool(doc_id and doc_id.strip()) and "/" not in doc_id


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate driver errors into DependencyFailureError"""
    try:
        yield
    except FrameItError:
        raise
    except (SQLAlchemyError, GoogleAPICallError) as exc:
        logger.error(f"Document store failure during {operation}: {exc}")
        raise DependencyFailureError(f"Document store unavailable ({operation})") from exc


class DocumentRepo:
    """Shared document operations for one collection"""

    collection: str = ""
    resource: str = "Document"
    model: Any = None

    @classmethod
    def _extra_columns(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    # -------- dispatch --------

    @classmethod
    def new_id(cls) -> str:
        if use_firestore():
            return get_firestore_client().collection(cls.collection).document().id
        return uuid.uuid4().hex

    @classmethod
    def get(cls, db: Session, doc_id: str) -> Optional[Dict[str, Any]]:
        if not is_valid_doc_id(doc_id):
            return None
        with store_errors(f"get {cls.collection}"):
            if use_firestore():
                return cls.get_fs(doc_id)
            return cls.get_sql(db, doc_id)

    @classmethod
    def require(cls, db: Session, doc_id: str) -> Dict[str, Any]:
        data = cls.get(db, doc_id)
        if data is None:
            raise NotFoundError(cls.resource, doc_id)
        return data

    @classmethod
    def create(cls, db: Session, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        data = {**data, "id": doc_id}
        with store_errors(f"create {cls.collection}"):
            if use_firestore():
                cls.create_fs(doc_id, data)
            else:
                cls.create_sql(db, doc_id, data)
        return data

    @classmethod
    def delete(cls, db: Session, doc_id: str) -> None:
        if not is_valid_doc_id(doc_id):
            raise NotFoundError(cls.resource, doc_id)
        with store_errors(f"delete {cls.collection}"):
            if use_firestore():
                cls.delete_fs(doc_id)
            else:
                cls.delete_sql(db, doc_id)

    @classmethod
    def mutate(cls, db: Session, doc_id: str, fn: Callable[[Dict[str, Any]], Any]) -> Any:
        """Apply ``fn`` to the current document in place and persist it atomically.

        ``fn`` may run more than once, so it must only touch the dict it is given.
        Returns whatever ``fn`` returned on the committed attempt.
        """
        if not is_valid_doc_id(doc_id):
            raise NotFoundError(cls.resource, doc_id)
        with store_errors(f"update {cls.collection}"):
            if use_firestore():
                return cls.mutate_fs(doc_id, fn)
            return cls.mutate_sql(db, doc_id, fn)

    # -------- SQL --------

    @classmethod
    def get_sql(cls, db: Session, doc_id: str) -> Optional[Dict[str, Any]]:
        row = db.execute(select(cls.model.data).where(cls.model.id == doc_id)).first()
        return copy.deepcopy(row.data) if row else None

    @classmethod
    def create_sql(cls, db: Session, doc_id: str, data: Dict[str, Any]) -> None:
        db.add(cls.model(id=doc_id, data=data, version=1, **cls._extra_columns(data)))
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @classmethod
    def delete_sql(cls, db: Session, doc_id: str) -> None:
        db.execute(delete(cls.model).where(cls.model.id == doc_id))
        db.commit()

    @classmethod
    def mutate_sql(cls, db: Session, doc_id: str, fn: Callable[[Dict[str, Any]], Any]) -> Any:
        model = cls.model
        for attempt in range(1, settings.MAX_WRITE_RETRIES + 1):
            row = db.execute(select(model.data, model.version).where(model.id == doc_id)).first()
            if row is None:
                db.rollback()
                raise NotFoundError(cls.resource, doc_id)

            data = copy.deepcopy(row.data)
            try:
                result = fn(data)
            except FrameItError:
                db.rollback()
                raise

            try:
                outcome = db.execute(
                    update(model)
                    .where(model.id == doc_id, model.version == row.version)
                    .values(data=data, version=row.version + 1, **cls._extra_columns(data))
                    .execution_options(synchronize_session=False)
                )
                if outcome.rowcount == 1:
                    db.commit()
                    return result
                db.rollback()
            except OperationalError as exc:
                # sqlite reports a competing writer as a locked database
                db.rollback()
                if "locked" not in str(exc).lower():
                    raise

            logger.debug(f"Write conflict on {cls.collection}/{doc_id}, attempt {attempt}")
            time.sleep(random.uniform(0, 0.005 * attempt))

        raise ConcurrencyConflictError(
            f"Could not update {cls.resource.lower()} after {settings.MAX_WRITE_RETRIES} attempts",
            details={"id": doc_id},
        )

    # -------- Firestore --------

    @classmethod
    def get_fs(cls, doc_id: str) -> Optional[Dict[str, Any]]:
        fs = get_firestore_client()
        doc = fs.collection(cls.collection).document(doc_id).get()
        return doc.to_dict() if doc.exists else None

    @classmethod
    def create_fs(cls, doc_id: str, data: Dict[str, Any]) -> None:
        fs = get_firestore_client()
        fs.collection(cls.collection).document(doc_id).set(data)

    @classmethod
    def delete_fs(cls, doc_id: str) -> None:
        fs = get_firestore_client()
        fs.collection(cls.collection).document(doc_id).delete()

    @classmethod
    def mutate_fs(cls, doc_id: str, fn: Callable[[Dict[str, Any]], Any]) -> Any:
        fs = get_firestore_client()
        ref = fs.collection(cls.collection).document(doc_id)
        transaction = fs.transaction(max_attempts=settings.MAX_WRITE_RETRIES)

        @firestore.transactional
        def apply(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(cls.resource, doc_id)
            data = snapshot.to_dict()
            result = fn(data)
            transaction.set(ref, data)
            return result

        try:
            return apply(transaction)
        except ValueError as exc:
            # raised by the transaction runner once max_attempts is spent
            raise ConcurrencyConflictError(
                f"Could not update {cls.resource.lower()}: {exc}",
                details={"id": doc_id},
            ) from exc


# -------- Event repository --------

class EventRepo(DocumentRepo):
    collection = "events"
    resource = "Event"
    model = EventRecord

    @classmethod
    def _extra_columns(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {"creator_id": data["creator_id"]}

    @classmethod
    def list_by_creator(cls, db: Session, creator_id: str) -> List[Dict[str, Any]]:
        with store_errors("list events"):
            if use_firestore():
                return cls.list_by_creator_fs(creator_id)
            return cls.list_by_creator_sql(db, creator_id)

    @classmethod
    def list_by_creator_sql(cls, db: Session, creator_id: str) -> List[Dict[str, Any]]:
        rows = db.execute(
            select(EventRecord.data)
            .where(EventRecord.creator_id == creator_id)
            .order_by(EventRecord.created_at)
        ).all()
        return [copy.deepcopy(row.data) for row in rows]

    @classmethod
    def list_by_creator_fs(cls, creator_id: str) -> List[Dict[str, Any]]:
        fs = get_firestore_client()
        docs = fs.collection(cls.collection).where("creator_id", "==", creator_id).get()
        return [d.to_dict() for d in docs]


# -------- User repository --------

class UserRepo(DocumentRepo):
    collection = "users"
    resource = "User"
    model = UserRecord
