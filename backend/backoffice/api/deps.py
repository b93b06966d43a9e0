from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from backoffice.adapters.auth_provider import LocalAuthProvider
from backoffice.adapters.blob_storage import LocalBlobStorage
from backoffice.db import get_db
from backoffice.services.auth_service import (
    AccessDenied,
    AuthService,
    NotAuthenticated,
    SessionContext,
)


def get_auth_provider(request: Request) -> LocalAuthProvider:
    provider = getattr(request.app.state, "auth_provider", None)
    if provider is None:
        raise HTTPException(status_code=503, detail="Auth provider not started")
    return provider


def get_blob_storage(request: Request) -> LocalBlobStorage:
    storage = getattr(request.app.state, "blob_storage", None)
    return storage or LocalBlobStorage()


def get_bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def get_auth_service(
    db: Session = Depends(get_db),
    provider: LocalAuthProvider = Depends(get_auth_provider),
) -> AuthService:
    return AuthService(db, provider)


def get_session_context(
    token: Optional[str] = Depends(get_bearer_token),
    auth: AuthService = Depends(get_auth_service),
) -> SessionContext:
    try:
        return auth.context_for(token)
    except NotAuthenticated as e:
        raise HTTPException(status_code=401, detail=str(e))
    except AccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))


def require_role(*roles: str):
    """Dependency admitting only sessions whose role is one of ``roles``."""

    def dependency(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
        if not ctx.has_role(*roles):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return ctx

    return dependency


require_admin = require_role("admin")
require_super_admin = require_role("super admin")
