# repository.py
import logging
import threading
from contextlib import contextmanager
from typing import Callable, List, Optional

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPICallError, RetryError
from google.auth.exceptions import TransportError
from google.cloud.firestore_v1.base_query import FieldFilter

from errors import BackendUnavailable, NotFound, ValidationError
from models import (
    CATEGORIES,
    STATUS_RESOLVED,
    URGENCIES,
    new_complaint_record,
    now_iso,
    record_from_doc,
)

logger = logging.getLogger(__name__)

BACKEND_ERRORS = (GoogleAPICallError, RetryError, TransportError)

FEED_MINE = "mine"
FEED_ALL = "all"


@contextmanager
def backend_call(action: str):
    """Translate Firestore/transport failures into BackendUnavailable."""
    try:
        yield
    except BACKEND_ERRORS as e:
        logger.warning("%s failed: %s", action, e)
        raise BackendUnavailable() from e


class Subscription:
    """
    Handle for one live feed. Every delivery is the complete current list.
    Once cancelled, later deliveries from the SDK thread are dropped.
    """

    def __init__(self, name: str, on_snapshot: Callable[[List[dict]], None],
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.name = name
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._watch = None
        self._lock = threading.Lock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def attach(self, watch):
        with self._lock:
            if self._active:
                self._watch = watch
                return
        # cancelled while the watch was being opened
        watch.unsubscribe()

    def deliver(self, docs, changes=None, read_time=None):
        if not self._active:
            return
        try:
            records = [record_from_doc(d) for d in docs]
            self._on_snapshot(records)
        except Exception as e:
            logger.exception("Snapshot handler for %s feed failed", self.name)
            if self._on_error:
                self._on_error(e)

    def cancel(self):
        with self._lock:
            if not self._active:
                return
            self._active = False
            watch, self._watch = self._watch, None
        if watch is not None:
            watch.unsubscribe()
        logger.debug("Cancelled %s feed", self.name)


# -------------------------------------------------------
# USERS
# -------------------------------------------------------
class UserRepository:
    COLLECTION = "users"

    def __init__(self, db):
        self.db = db

    def _col(self):
        return self.db.collection(self.COLLECTION)

    def create(self, record: dict) -> str:
        with backend_call("Saving user record"):
            _, ref = self._col().add(record)
        logger.info("User record %s created for uid %s", ref.id, record.get("uid"))
        return ref.id

    def find_by_uid(self, uid: str) -> Optional[dict]:
        query = self._col().where(filter=FieldFilter("uid", "==", uid)).limit(1)
        with backend_call("Looking up user record"):
            docs = list(query.stream())
        return record_from_doc(docs[0]) if docs else None

    def count(self) -> int:
        with backend_call("Counting users"):
            return len(list(self._col().stream()))


@firestore.transactional
def _resolve_pending(transaction, ref, admin_uid: str) -> bool:
    # first resolve wins; a concurrent one is retried, sees resolved and writes nothing
    snap = ref.get(transaction=transaction)
    if not snap.exists:
        raise NotFound("Complaint not found.")
    if (snap.to_dict() or {}).get("status") == STATUS_RESOLVED:
        return False
    transaction.update(ref, {
        "status": STATUS_RESOLVED,
        "resolvedAt": now_iso(),
        "resolvedBy": admin_uid,
    })
    return True


# -------------------------------------------------------
# COMPLAINTS
# -------------------------------------------------------
class ComplaintRepository:
    COLLECTION = "complaints"

    def __init__(self, db):
        self.db = db
        self._feeds = {}
        self._lock = threading.Lock()

    def _col(self):
        return self.db.collection(self.COLLECTION)

    def submit(self, session, category: str, location: str, description: str,
               urgency: str) -> str:
        user = session.require_user()
        location = (location or "").strip()
        description = (description or "").strip()
        if category not in CATEGORIES:
            raise ValidationError("Please choose a category.")
        if urgency not in URGENCIES:
            raise ValidationError("Please choose an urgency level.")
        if not location or not description:
            raise ValidationError("Location and description are required.")

        record = new_complaint_record(user, category, location, description, urgency)
        with backend_call("Submitting complaint"):
            _, ref = self._col().add(record)
        logger.info("Complaint %s submitted by %s", ref.id, user.get("uid"))
        return ref.id

    def resolve(self, session, complaint_id: str) -> bool:
        """
        Mark a pending complaint resolved. Only administrators may do this.
        Returns False when the complaint was already resolved (nothing written).
        """
        admin = session.require_admin()
        ref = self._col().document(complaint_id)
        with backend_call("Resolving complaint"):
            changed = _resolve_pending(self.db.transaction(), ref, admin.get("uid"))
        if changed:
            logger.info("Complaint %s resolved by %s", complaint_id, admin.get("uid"))
        return changed

    def fetch_all_once(self) -> List[dict]:
        with backend_call("Loading complaints"):
            return [record_from_doc(d) for d in self._col().stream()]

    def count_users(self) -> int:
        return UserRepository(self.db).count()

    # ---------- live feeds ----------
    def subscribe_mine(self, user_id: str, on_snapshot, on_error=None) -> Subscription:
        query = (
            self._col()
            .where(filter=FieldFilter("userId", "==", user_id))
            .order_by("submittedAt", direction=firestore.Query.DESCENDING)
        )
        return self._subscribe(FEED_MINE, query, on_snapshot, on_error)

    def subscribe_all(self, on_snapshot, on_error=None) -> Subscription:
        query = self._col().order_by("submittedAt", direction=firestore.Query.DESCENDING)
        return self._subscribe(FEED_ALL, query, on_snapshot, on_error)

    def _subscribe(self, name, query, on_snapshot, on_error) -> Subscription:
        self.cancel(name)
        sub = Subscription(name, on_snapshot, on_error)
        with self._lock:
            self._feeds[name] = sub
        try:
            with backend_call(f"Opening {name} feed"):
                watch = query.on_snapshot(sub.deliver)
        except BackendUnavailable:
            self.cancel(name)
            raise
        sub.attach(watch)
        logger.debug("Opened %s feed", name)
        return sub

    def active_feed(self, name: str) -> Optional[Subscription]:
        with self._lock:
            return self._feeds.get(name)

    def cancel(self, name: str):
        with self._lock:
            sub = self._feeds.pop(name, None)
        if sub is not None:
            sub.cancel()

    def cancel_all(self):
        for name in (FEED_MINE, FEED_ALL):
            self.cancel(name)
