import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from backoffice.models.document import USERS
from backoffice.repositories.document_repo import DocumentNotFound, DocumentRepository
from backoffice.utils.transactions import atomic

log = logging.getLogger(__name__)

ROLES = ("admin", "super admin", "cashier", "user", "kiosk")


class UserException(Exception):
    pass


class UserNotFound(UserException):
    pass


class UserService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = DocumentRepository(db)

    def list_users(self, q: Optional[str] = None, role: Optional[str] = None) -> List[dict]:
        users = self.repo.list(USERS)
        if q:
            needle = q.lower()
            users = [
                u
                for u in users
                if needle in (u.get("name") or "").lower()
                or needle in (u.get("email") or "").lower()
            ]
        if role:
            users = [u for u in users if u.get("role") == role]
        return users

    def get_user(self, user_id: str) -> dict:
        user = self.repo.get(USERS, user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return user

    def create_user(self, user_id: str, name: str, email: str, role: str = "user") -> dict:
        if role not in ROLES:
            raise UserException(f"Unknown role {role!r}")
        data = {
            "name": name,
            "email": email,
            "role": role,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }
        with atomic(self.db):
            self.repo.set(USERS, user_id, data)
        return {**data, "id": user_id}

    def change_role(self, user_id: str, role: str, actor: Optional[str] = None) -> dict:
        if role not in ROLES:
            raise UserException(f"Unknown role {role!r}")
        fields = {"role": role, "updatedAt": datetime.now(timezone.utc).isoformat()}
        try:
            with atomic(self.db):
                self.repo.update(USERS, user_id, fields)
        except DocumentNotFound:
            raise UserNotFound(f"User {user_id} not found")
        log.info("user %s role -> %s (by %s)", user_id, role, actor or "system")
        return self.get_user(user_id)
