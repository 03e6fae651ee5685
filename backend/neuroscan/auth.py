# backend/neuroscan/auth.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as fb_auth
from pydantic import BaseModel
from sqlalchemy.orm import Session

from . import queries
from .db import get_db
from .errors import DataAccessError
from .firebase_admin_init import init_admin
from .models import Profile
from .schemas import ProfileOut

router = APIRouter(tags=["auth"])
log = logging.getLogger("uvicorn.error")

bearer_scheme = HTTPBearer(auto_error=False)


class AuthUser(BaseModel):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None


class FirebaseLoginIn(BaseModel):
    id_token: str


class LogoutIn(BaseModel):
    session_id: str


class MeOut(BaseModel):
    user_id: str
    greeting: str
    profile: Optional[ProfileOut] = None


def verify_token(id_token: str) -> dict:
    """Verify a Firebase ID token and return its decoded claims."""
    try:
        init_admin()
        return fb_auth.verify_id_token(id_token)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid Firebase token: {e}",
        )


def user_from_claims(decoded: dict) -> AuthUser:
    uid = decoded.get("uid") or decoded.get("sub")
    if not uid:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token missing uid")
    return AuthUser(
        uid=uid,
        email=decoded.get("email"),
        name=decoded.get("name"),
        phone=decoded.get("phone_number"),
    )


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthUser:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user_from_claims(verify_token(creds.credentials))


def display_name(user: Optional[AuthUser], profile: Optional[Profile] = None) -> str:
    if profile is not None and profile.full_name:
        return profile.full_name
    if user is not None and user.name:
        return user.name
    return "User"


def get_client_ip(request: Request) -> str:
    xfwd = request.headers.get("x-forwarded-for")
    if xfwd:
        return xfwd.split(",")[0].strip()
    return request.client.host if request.client else ""


def handle_login(payload: FirebaseLoginIn, request: Request, db: Session):
    decoded = verify_token(payload.id_token)
    user = user_from_claims(decoded)

    if not (user.email or user.phone):
        raise HTTPException(
            status_code=400,
            detail="Token missing email/phone. Enable the provider in Firebase.",
        )

    try:
        profile = queries.upsert_profile(
            db, user_id=user.uid, email=user.email, phone=user.phone, full_name=user.name
        )
    except DataAccessError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        sess = queries.open_session(
            db,
            user_id=user.uid,
            login_method=(decoded.get("firebase") or {}).get("sign_in_provider"),
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except DataAccessError as e:
        raise HTTPException(status_code=502, detail=str(e))
    log.info("login: user=%s session=%s", user.uid, sess.id)

    return {
        "token": payload.id_token,
        "user_id": user.uid,
        "full_name": display_name(user, profile),
        "role": profile.role,
        "session_id": sess.id,
    }


@router.post("/auth/firebase/login")
def firebase_login(payload: FirebaseLoginIn, request: Request, db: Session = Depends(get_db)):
    return handle_login(payload, request, db)


@router.post("/auth/firebase-login")
def firebase_login_alias(payload: FirebaseLoginIn, request: Request, db: Session = Depends(get_db)):
    return handle_login(payload, request, db)


@router.post("/auth/logout")
def logout(
    payload: LogoutIn,
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        sess = queries.close_session(db, session_id=payload.session_id, user_id=user.uid)
    except DataAccessError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if sess is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True, "session_end": sess.session_end.isoformat()}


@router.get("/me", response_model=MeOut)
def me(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        profile = queries.get_profile(db, user.uid)
    except DataAccessError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return MeOut(
        user_id=user.uid,
        greeting=f"Welcome back, {display_name(user, profile)}",
        profile=ProfileOut.model_validate(profile) if profile else None,
    )
