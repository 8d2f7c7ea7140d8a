from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.auth_session import AuthSession
from app.models.doctor import Doctor
from app.models.user import User

ADMIN_SUBJECT = "admin"


def _get_auth_context(token: str, db: Session, role: str):
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Not Authorized Login Again")

    subject = payload.get("sub")
    jti = payload.get("jti")
    if not subject or not jti or payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token payload")
    if payload.get("role") != role:
        raise HTTPException(status_code=403, detail="Not Authorized Login Again")

    session = db.query(AuthSession).filter(
        AuthSession.jti == jti,
        AuthSession.role == role,
        AuthSession.is_active == True
    ).first()

    if not session:
        raise HTTPException(status_code=401, detail="Session expired or logged out")

    return {"subject": subject, "session": session, "payload": payload}


def _load_subject(model, subject: str, db: Session):
    try:
        subject_id = int(subject)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    record = db.query(model).filter(model.id == subject_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Account not found")
    return record


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(settings.bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    context = _get_auth_context(credentials.credentials, db, "user")
    return _load_subject(User, context["subject"], db)


def get_current_doctor(
    credentials: HTTPAuthorizationCredentials = Depends(settings.bearer_scheme),
    db: Session = Depends(get_db)
) -> Doctor:
    context = _get_auth_context(credentials.credentials, db, "doctor")
    return _load_subject(Doctor, context["subject"], db)


def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(settings.bearer_scheme),
    db: Session = Depends(get_db)
) -> str:
    context = _get_auth_context(credentials.credentials, db, "admin")
    if context["subject"] != ADMIN_SUBJECT:
        raise HTTPException(status_code=403, detail="Admin access required")
    return ADMIN_SUBJECT


def session_dependency(role: str):
    """Build a dependency returning the caller's session context for ``role``."""

    def get_current_session(
        credentials: HTTPAuthorizationCredentials = Depends(settings.bearer_scheme),
        db: Session = Depends(get_db)
    ):
        context = _get_auth_context(credentials.credentials, db, role)
        context["db"] = db
        return context

    return get_current_session
