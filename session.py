# session.py
import json
import logging
import os
import threading
from pathlib import Path
from typing import Callable, List, Optional

from cryptography.fernet import Fernet, InvalidToken

from errors import (
    AuthError,
    BackendUnavailable,
    ComplaintTrackerError,
    NotFound,
    PermissionDenied,
    RoleMismatch,
    Unauthenticated,
    ValidationError,
)
from models import new_user_record

logger = logging.getLogger(__name__)


def looks_like_email(email: str) -> bool:
    return "@" in email and "." in email.split("@")[-1]


class SessionStore:
    """
    Keeps the refresh token between runs so a restart stays signed in.
    The token is Fernet-encrypted and the file is readable by its owner only.
    """

    def __init__(self, path: str, key: bytes):
        self.path = Path(path).expanduser()
        self._cipher = Fernet(key)

    def load(self) -> Optional[dict]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return None
        if not isinstance(data, dict) or not data.get("refreshToken"):
            return None
        try:
            token = self._cipher.decrypt(data["refreshToken"].encode()).decode()
        except (InvalidToken, AttributeError):
            logger.warning("Ignoring session file %s; it was not written with this key", self.path)
            return None
        return {"uid": data.get("uid"), "refreshToken": token}

    def save(self, uid: str, refresh_token: str):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({
            "uid": uid,
            "refreshToken": self._cipher.encrypt(refresh_token.encode()).decode(),
        })
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        os.chmod(self.path, 0o600)

    def clear(self):
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class SessionContext:
    """
    Who is signed in, and as what.

    auth: object exposing signup_with_email_password, signin_with_email_password
          and refresh_id_token (see firebase_client).
    users: UserRepository
    complaints: ComplaintRepository whose live feeds are cancelled on logout
    store: optional SessionStore for restoring the sign-in on start-up
    """

    def __init__(self, auth, users, complaints=None, store: Optional[SessionStore] = None):
        self.auth = auth
        self.users = users
        self.complaints = complaints
        self.store = store
        self._lock = threading.RLock()
        self._user: Optional[dict] = None
        self._is_admin = False
        self._tokens: Optional[dict] = None
        self._listeners: List[Callable[[Optional[dict]], None]] = []

    # ---------- state ----------
    @property
    def user(self) -> Optional[dict]:
        with self._lock:
            return dict(self._user) if self._user else None

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def is_admin(self) -> bool:
        return self._user is not None and self._is_admin

    @property
    def uid(self) -> Optional[str]:
        user = self.user
        return user.get("uid") if user else None

    @property
    def id_token(self) -> Optional[str]:
        with self._lock:
            return self._tokens.get("idToken") if self._tokens else None

    def require_user(self) -> dict:
        user = self.user
        if user is None:
            raise Unauthenticated()
        return user

    def require_admin(self) -> dict:
        user = self.require_user()
        if not self._is_admin:
            raise PermissionDenied()
        return user

    # ---------- observers ----------
    def add_listener(self, callback: Callable[[Optional[dict]], None]) -> Callable[[], None]:
        """Register an auth state observer. Returns a function that removes it."""
        with self._lock:
            self._listeners.append(callback)

        def remove():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return remove

    def _notify(self):
        user = self.user
        with self._lock:
            listeners = list(self._listeners)
        for cb in listeners:
            try:
                cb(user)
            except Exception:
                logger.exception("Auth state listener failed")

    # ---------- flows ----------
    def register(self, name: str, student_id: str, email: str, password: str,
                 confirm: str, department: str) -> str:
        name = (name or "").strip()
        student_id = (student_id or "").strip()
        email = (email or "").strip()
        department = (department or "").strip()

        if not all((name, student_id, email, password, department)):
            raise ValidationError("All fields are required.")
        if not looks_like_email(email):
            raise ValidationError("Please enter a valid email address.")
        if password != confirm:
            raise ValidationError("Passwords do not match!")

        res = self.auth.signup_with_email_password(email, password)
        uid = res.get("localId")
        logger.info("Auth account created for %s", uid)
        try:
            doc_id = self.users.create(
                new_user_record(uid, name, student_id, email, department, is_admin=False)
            )
        finally:
            # registration never leaves anyone signed in
            self._terminate()
        return doc_id

    def login(self, email: str, password: str, as_admin: bool = False) -> dict:
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Email and password are required.")

        res = self.auth.signin_with_email_password(email, password)
        uid = res.get("localId")
        try:
            record = self.users.find_by_uid(uid)
            if record is None:
                raise NotFound("Admin data not found!" if as_admin else "User data not found!")
            if bool(record.get("isAdmin")) != as_admin:
                raise RoleMismatch("Not an admin account!" if as_admin else "Please use admin login")
        except ComplaintTrackerError as e:
            logger.info("Login for %s refused: %s", uid, e)
            self._terminate()
            raise

        self._establish(record, res, email)
        return self.user

    def logout(self):
        if not self._terminate():
            # nobody signed in; still drop leftover feeds and a stale persisted sign-in
            self._drop_session_artifacts()

    def restore(self) -> Optional[dict]:
        """
        Resume a persisted sign-in. Mirrors what the auth state observer does on
        start-up: the role comes from the stored record, there is no login surface.
        """
        if self.store is None:
            return None
        saved = self.store.load()
        if not saved:
            return None
        try:
            res = self.auth.refresh_id_token(saved["refreshToken"])
            record = self.users.find_by_uid(res.get("localId"))
        except AuthError as e:
            logger.info("Persisted sign-in rejected: %s", e)
            self.store.clear()
            return None
        except BackendUnavailable:
            logger.warning("Could not restore sign-in; backend unavailable")
            return None
        if record is None:
            self.store.clear()
            return None
        self._establish(record, res, record.get("email"))
        return self.user

    # ---------- internals ----------
    def _establish(self, record: dict, auth_result: dict, email: Optional[str]):
        uid = auth_result.get("localId")
        with self._lock:
            self._user = {**record, "uid": uid, "email": record.get("email") or email}
            self._is_admin = bool(record.get("isAdmin"))
            self._tokens = {
                "idToken": auth_result.get("idToken"),
                "refreshToken": auth_result.get("refreshToken"),
            }
        if self.store is not None and auth_result.get("refreshToken"):
            try:
                self.store.save(uid, auth_result["refreshToken"])
            except OSError as e:
                logger.warning("Could not persist sign-in: %s", e)
        logger.info("Signed in %s (admin=%s)", uid, self._is_admin)
        self._notify()

    def _terminate(self) -> bool:
        """
        End the auth session. When someone was signed in this is a full sign-out:
        feeds cancelled, persisted sign-in deleted, observers told. Returns
        whether anyone was signed in.
        """
        # The REST API is stateless: dropping the tokens ends the auth session.
        with self._lock:
            was_signed_in = self._user is not None
            self._user = None
            self._is_admin = False
            self._tokens = None
        if not was_signed_in:
            return False
        self._drop_session_artifacts()
        logger.info("Signed out")
        self._notify()
        return True

    def _drop_session_artifacts(self):
        if self.complaints is not None:
            self.complaints.cancel_all()
        if self.store is not None:
            self.store.clear()
