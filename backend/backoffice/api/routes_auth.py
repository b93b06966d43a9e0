from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from backoffice.api.deps import get_auth_service, get_bearer_token, get_session_context
from backoffice.schemas.user_schema import LoginIn, RegisterIn
from backoffice.services.auth_service import (
    AccessDenied,
    AuthException,
    AuthService,
    NotAuthenticated,
    SessionContext,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _public(ctx: SessionContext) -> dict:
    data = asdict(ctx)
    data.pop("token", None)
    return data


@router.post("/register", summary="Create an account (role: user)")
def register(payload: RegisterIn, auth: AuthService = Depends(get_auth_service)):
    try:
        user = auth.register(payload.email, payload.password, name=payload.name or "")
    except AuthException as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"uid": user["id"], "name": user["name"], "email": user["email"], "role": user["role"]}


@router.post("/{portal}/login", summary="Sign in to the admin or super admin portal")
def login(portal: str, payload: LoginIn, auth: AuthService = Depends(get_auth_service)):
    try:
        token, ctx = auth.login(payload.email, payload.password, portal)
    except NotAuthenticated as e:
        raise HTTPException(status_code=401, detail=str(e))
    except AccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except AuthException as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"token": token, "user": _public(ctx)}


@router.post("/logout", summary="Sign out")
def logout(
    token: Optional[str] = Depends(get_bearer_token),
    auth: AuthService = Depends(get_auth_service),
):
    if not token:
        raise HTTPException(status_code=401, detail="Not signed in")
    return {"ok": auth.logout(token)}


@router.get("/me", summary="Current session")
def me(ctx: SessionContext = Depends(get_session_context)):
    return _public(ctx)
