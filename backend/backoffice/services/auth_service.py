import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from backoffice.adapters.auth_provider import AuthError, InvalidCredentials, LocalAuthProvider
from backoffice.models.document import USERS
from backoffice.repositories.document_repo import DocumentRepository
from backoffice.services.user_service import UserService

log = logging.getLogger(__name__)

# login portals and the role each one admits
PORTAL_ROLES = {
    "admin": "admin",
    "super admin": "super admin",
}


class AuthException(Exception):
    pass


class NotAuthenticated(AuthException):
    pass


class AccessDenied(AuthException):
    pass


@dataclass(frozen=True)
class SessionContext:
    """The signed-in staff member a request acts for."""

    uid: str
    name: str
    email: str
    role: str
    token: Optional[str] = None

    def has_role(self, *roles: str) -> bool:
        return self.role in roles


def normalize_portal(portal: str) -> str:
    # "super%20admin", "super-admin" and "Super Admin" all mean the same portal
    return " ".join(portal.replace("%20", " ").replace("-", " ").split()).lower()


class AuthService:
    def __init__(self, db: Session, provider: LocalAuthProvider):
        self.db = db
        self.provider = provider
        self.repo = DocumentRepository(db)

    def register(self, email: str, password: str, name: str = "") -> dict:
        try:
            identity = self.provider.create_account(email, password, display_name=name)
        except AuthError as e:
            raise AuthException(str(e))
        try:
            return UserService(self.db).create_user(
                identity.uid, name or identity.email, identity.email, role="user"
            )
        except Exception:
            # every account keeps a matching user record
            log.exception("user record for %s failed; removing account", identity.email)
            self.provider.delete_account(identity.uid)
            raise

    def login(self, email: str, password: str, portal: str) -> Tuple[str, SessionContext]:
        role = PORTAL_ROLES.get(normalize_portal(portal))
        if role is None:
            raise AuthException(f"Unknown login portal {portal!r}")
        try:
            token, identity = self.provider.sign_in(email, password)
        except InvalidCredentials:
            raise NotAuthenticated("Invalid credentials")
        try:
            ctx = self._context(token, identity.uid, identity.email, identity.display_name)
        except AccessDenied:
            self.provider.sign_out(token)
            raise
        if ctx.role != role:
            self.provider.sign_out(token)
            raise AccessDenied(f"{portal} access denied")
        return token, ctx

    def logout(self, token: str) -> bool:
        return self.provider.sign_out(token)

    def context_for(self, token: Optional[str]) -> SessionContext:
        if not token:
            raise NotAuthenticated("Not signed in")
        identity = self.provider.resolve(token)
        if identity is None:
            raise NotAuthenticated("Session expired or invalid")
        return self._context(token, identity.uid, identity.email, identity.display_name)

    def _context(self, token: str, uid: str, email: str, display_name: str) -> SessionContext:
        user = self.repo.get(USERS, uid)
        if user is None:
            raise AccessDenied("Invalid user")
        return SessionContext(
            uid=uid,
            name=user.get("name") or display_name,
            email=user.get("email") or email,
            role=user.get("role") or "user",
            token=token,
        )
