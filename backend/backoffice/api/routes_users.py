from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from backoffice.api.deps import require_admin
from backoffice.api.streaming import snapshot_response
from backoffice.db import get_db
from backoffice.models.document import USERS
from backoffice.repositories.document_repo import watch
from backoffice.schemas.user_schema import RoleChangeIn
from backoffice.services.auth_service import SessionContext
from backoffice.services.user_service import UserException, UserNotFound, UserService

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", summary="List users")
def list_users(
    q: Optional[str] = Query(None, description="name or email"),
    role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    users = UserService(db).list_users(q=q, role=role)
    return {"items": users, "total": len(users)}


@router.get("/stream", summary="Live user snapshots (Server-Sent Events)")
def stream_users(
    request: Request,
    limit: Optional[int] = Query(None, ge=1),
    ctx: SessionContext = Depends(require_admin),
):
    return snapshot_response(watch(USERS), request=request, limit=limit)


@router.patch("/{user_id}/role", summary="Change a user's role")
def change_role(
    user_id: str,
    payload: RoleChangeIn,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    try:
        return UserService(db).change_role(user_id, payload.role, actor=ctx.uid)
    except UserNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except UserException as e:
        raise HTTPException(status_code=400, detail=str(e))
