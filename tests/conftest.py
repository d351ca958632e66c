import itertools
import os
import sys

import pytest
from cryptography.fernet import Fernet
from google.api_core import exceptions as gexc

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config import get_settings  # noqa: E402
from errors import AuthError  # noqa: E402
from models import new_user_record  # noqa: E402
from repository import ComplaintRepository, UserRepository  # noqa: E402
from session import SessionContext, SessionStore  # noqa: E402


# -----------------------
# In-memory Firestore
# -----------------------
class FakeDoc:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocRef:
    def __init__(self, db, collection, doc_id):
        self.db = db
        self.collection = collection
        self.id = doc_id

    def get(self, transaction=None):
        self.db.check()
        return FakeDoc(self.id, self.db.data[self.collection].get(self.id))

    def update(self, values):
        self.db.check()
        docs = self.db.data[self.collection]
        if self.id not in docs:
            raise gexc.NotFound(f"No document to update: {self.id}")
        docs[self.id].update(values)
        self.db.writes.append((self.collection, self.id, dict(values)))
        self.db.changed(self.collection)


class FakeWatch:
    def __init__(self, query, callback):
        self.query = query
        self.callback = callback
        self.active = True
        self.deliveries = 0

    def fire(self):
        if self.active:
            self.deliveries += 1
            self.callback(self.query.results(), [], None)

    def unsubscribe(self):
        self.active = False
        if self in self.query.db.watches:
            self.query.db.watches.remove(self)


class FakeQuery:
    def __init__(self, db, collection, filters=(), order=None, max_results=None):
        self.db = db
        self.collection = collection
        self.filters = filters
        self.order = order
        self.max_results = max_results

    def _copy(self, **changes):
        args = {
            "filters": self.filters,
            "order": self.order,
            "max_results": self.max_results,
        }
        args.update(changes)
        return FakeQuery(self.db, self.collection, **args)

    def where(self, filter=None):
        return self._copy(filters=self.filters + (filter,))

    def order_by(self, field, direction="ASCENDING"):
        return self._copy(order=(field, direction))

    def limit(self, count):
        return self._copy(max_results=count)

    def results(self):
        docs = [FakeDoc(k, dict(v)) for k, v in self.db.data[self.collection].items()]
        for f in self.filters:
            assert f.op_string == "=="
            docs = [d for d in docs if d.to_dict().get(f.field_path) == f.value]
        if self.order:
            field, direction = self.order
            docs.sort(key=lambda d: d.to_dict().get(field) or "", reverse=direction == "DESCENDING")
        if self.max_results is not None:
            docs = docs[: self.max_results]
        return docs

    def stream(self):
        self.db.check()
        return iter(self.results())

    def on_snapshot(self, callback):
        self.db.check()
        watch = FakeWatch(self, callback)
        self.db.watches.append(watch)
        watch.fire()
        return watch


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        super().__init__(db, name)

    def add(self, data):
        self.db.check()
        doc_id = f"{self.collection}-{next(self.db.ids)}"
        self.db.data[self.collection][doc_id] = dict(data)
        self.db.changed(self.collection)
        return None, FakeDocRef(self.db, self.collection, doc_id)

    def document(self, doc_id):
        return FakeDocRef(self.db, self.collection, doc_id)


class FakeTransaction:
    """Enough of the SDK Transaction for @firestore.transactional: writes are buffered until commit."""

    def __init__(self, db, max_attempts=5):
        self.db = db
        self._max_attempts = max_attempts
        self._read_only = False
        self._id = None
        self._pending = []
        self.attempts = 0

    def _clean_up(self):
        self._pending = []
        self._id = None

    def _begin(self, retry_id=None):
        self.db.check()
        self.attempts += 1
        self._id = f"tx-{self.attempts}".encode()

    def update(self, ref, values):
        self._pending.append((ref, values))

    def _commit(self):
        if self.db.before_commit is not None:
            hook, self.db.before_commit = self.db.before_commit, None
            hook()
            raise gexc.Aborted("contention")
        for ref, values in self._pending:
            ref.update(values)
        self._clean_up()
        return []

    def _rollback(self):
        self._clean_up()


class FakeFirestore:
    def __init__(self):
        self.data = {"users": {}, "complaints": {}}
        self.watches = []
        self.writes = []
        self.ids = itertools.count(1)
        self.offline = False
        # runs once, just before the next transaction commit, which then aborts
        self.before_commit = None

    def check(self):
        if self.offline:
            raise gexc.ServiceUnavailable("backend offline")

    def transaction(self):
        return FakeTransaction(self)

    def collection(self, name):
        self.data.setdefault(name, {})
        return FakeCollection(self, name)

    def changed(self, collection):
        for watch in list(self.watches):
            if watch.query.collection == collection:
                watch.fire()


# -----------------------
# Fake REST auth
# -----------------------
class FakeAuth:
    def __init__(self):
        self.accounts = {}
        self.calls = []
        self.offline = False
        self._uids = itertools.count(1)

    def _tokens(self, uid):
        return {"localId": uid, "idToken": f"id-{uid}", "refreshToken": f"refresh-{uid}"}

    def signup_with_email_password(self, email, password):
        self.calls.append(("signup", email))
        if email in self.accounts:
            raise AuthError("Email already registered!", "EMAIL_EXISTS")
        if len(password) < 6:
            raise AuthError("Password should be at least 6 characters!", "WEAK_PASSWORD")
        uid = f"uid-{next(self._uids)}"
        self.accounts[email] = (uid, password)
        return self._tokens(uid)

    def signin_with_email_password(self, email, password):
        self.calls.append(("signin", email))
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise AuthError("Invalid email or password!", "INVALID_LOGIN_CREDENTIALS")
        return self._tokens(account[0])

    def refresh_id_token(self, refresh_token):
        from errors import BackendUnavailable

        self.calls.append(("refresh", refresh_token))
        if self.offline:
            raise BackendUnavailable()
        for uid, _ in self.accounts.values():
            if refresh_token == f"refresh-{uid}":
                return self._tokens(uid)
        raise AuthError("Your session has expired. Please login again.", "INVALID_REFRESH_TOKEN")


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def session_key():
    return Fernet.generate_key()


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def users(db):
    return UserRepository(db)


@pytest.fixture
def complaints(db):
    return ComplaintRepository(db)


@pytest.fixture
def store(tmp_path, session_key):
    return SessionStore(str(tmp_path / "session.json"), session_key)


@pytest.fixture
def session(auth, users, complaints, store):
    return SessionContext(auth, users, complaints, store)


@pytest.fixture
def make_account(auth, users):
    """Create an auth account plus its user record; returns the uid."""

    def make(email, password="secret123", name="Student", student_id="S001",
             department="Computer Science", is_admin=False, with_record=True):
        uid = auth.signup_with_email_password(email, password)["localId"]
        if with_record:
            users.create(new_user_record(uid, name, student_id, email, department, is_admin=is_admin))
        return uid

    return make


@pytest.fixture
def student(session, make_account):
    make_account("asha@campus.edu", name="Asha", student_id="CS-101")
    session.login("asha@campus.edu", "secret123")
    return session


@pytest.fixture
def admin_session(auth, users, complaints, make_account):
    make_account("admin@campus.edu", name="Admin", student_id="ADMIN001",
                 department="Administration", is_admin=True)
    ctx = SessionContext(auth, users, complaints)
    ctx.login("admin@campus.edu", "secret123", as_admin=True)
    return ctx
