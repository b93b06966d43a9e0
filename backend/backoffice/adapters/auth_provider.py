import hashlib
import hmac
import logging
import secrets
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from backoffice.config import settings
from backoffice.db import SessionLocal
from backoffice.models.auth_account import AuthAccount

log = logging.getLogger(__name__)

SIGNED_IN = "signed_in"
SIGNED_OUT = "signed_out"
EXPIRED = "expired"


class AuthError(Exception):
    pass


class InvalidCredentials(AuthError):
    pass


@dataclass(frozen=True)
class AuthIdentity:
    uid: str
    email: str
    display_name: str = ""


@dataclass
class _AuthSession:
    identity: AuthIdentity
    last_seen: float


AuthListener = Callable[[str, AuthIdentity], None]


class LocalAuthProvider:
    """
    Email/password identity provider.

    Accounts are stored in the ``auth_accounts`` table; sessions are bearer
    tokens held in memory and dropped after ``session_ttl_seconds`` without
    use. Listeners registered with ``on_auth_state_changed`` are told about
    every sign-in, sign-out and expiry.
    """

    def __init__(
        self,
        session_factory=SessionLocal,
        secret_key: Optional[str] = None,
        session_ttl_seconds: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.secret_key = secret_key or settings.SECRET_KEY
        self.session_ttl_seconds = session_ttl_seconds or settings.SESSION_TTL_SECONDS
        self._sessions: Dict[str, _AuthSession] = {}
        self._listeners: List[AuthListener] = []
        self._lock = threading.Lock()

    def hash_password(self, password: str) -> str:
        return hmac.new(self.secret_key.encode(), password.encode(), hashlib.sha256).hexdigest()

    def verify_password(self, password: str, password_hash: str) -> bool:
        return hmac.compare_digest(self.hash_password(password), password_hash)

    def create_account(self, email: str, password: str, display_name: str = "") -> AuthIdentity:
        email = email.strip().lower()
        if not email or not password:
            raise AuthError("Email and password are required")
        uid = uuid.uuid4().hex
        try:
            with self.session_factory() as s:
                s.add(
                    AuthAccount(
                        uid=uid,
                        email=email,
                        display_name=display_name,
                        password_hash=self.hash_password(password),
                    )
                )
                s.commit()
        except IntegrityError:
            raise AuthError("Email already registered")
        return AuthIdentity(uid=uid, email=email, display_name=display_name)

    def delete_account(self, uid: str) -> bool:
        """Remove an account and drop any sessions it holds."""
        with self.session_factory() as s:
            deleted = s.query(AuthAccount).filter(AuthAccount.uid == uid).delete()
            s.commit()
        with self._lock:
            for token in [t for t, sess in self._sessions.items() if sess.identity.uid == uid]:
                del self._sessions[token]
        return bool(deleted)

    def sign_in(self, email: str, password: str) -> Tuple[str, AuthIdentity]:
        with self.session_factory() as s:
            account = (
                s.query(AuthAccount)
                .filter(AuthAccount.email == email.strip().lower())
                .first()
            )
            if not account or not self.verify_password(password, account.password_hash):
                raise InvalidCredentials("Invalid credentials")
            identity = AuthIdentity(
                uid=account.uid, email=account.email, display_name=account.display_name or ""
            )
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = _AuthSession(identity=identity, last_seen=time.monotonic())
        self._emit(SIGNED_IN, identity)
        return token, identity

    def sign_out(self, token: str) -> bool:
        with self._lock:
            sess = self._sessions.pop(token, None)
        if sess is None:
            return False
        self._emit(SIGNED_OUT, sess.identity)
        return True

    def resolve(self, token: str) -> Optional[AuthIdentity]:
        """Identity behind ``token``, refreshing its idle timer; None if unknown or expired."""
        now = time.monotonic()
        with self._lock:
            sess = self._sessions.get(token)
            if sess is None:
                return None
            if now - sess.last_seen > self.session_ttl_seconds:
                del self._sessions[token]
                expired = sess.identity
            else:
                sess.last_seen = now
                return sess.identity
        self._emit(EXPIRED, expired)
        return None

    def expire_idle(self, now: Optional[float] = None) -> List[str]:
        now = time.monotonic() if now is None else now
        with self._lock:
            stale = [
                tok
                for tok, sess in self._sessions.items()
                if now - sess.last_seen > self.session_ttl_seconds
            ]
            dropped = [self._sessions.pop(tok).identity for tok in stale]
        for identity in dropped:
            self._emit(EXPIRED, identity)
        return [i.uid for i in dropped]

    def active_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

    def on_auth_state_changed(self, callback: AuthListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def close(self):
        with self._lock:
            self._sessions.clear()
            self._listeners.clear()

    def _emit(self, event: str, identity: AuthIdentity):
        with self._lock:
            listeners = list(self._listeners)
        for cb in listeners:
            try:
                cb(event, identity)
            except Exception:
                log.exception("auth listener failed on %s for %s", event, identity.uid)
