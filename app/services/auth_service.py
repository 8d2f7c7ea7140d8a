import logging
import uuid
from datetime import datetime, timedelta

from jose import jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.config import settings
from app.models.auth_session import AuthSession

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        logger.warning("Stored password hash could not be parsed")
        return False


def create_access_token(data: dict, expires_minutes: int | None = None) -> str:
    if not settings.JWT_SECRET:
        raise RuntimeError("JWT_SECRET is not configured")
    payload = dict(data)
    expire = datetime.utcnow() + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload.update({"exp": expire, "type": "access"})
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def issue_session_token(db: Session, role: str, subject_id) -> str:
    """Create a signed token for ``role``/``subject_id`` and record its session."""
    jti = str(uuid.uuid4())
    subject = str(subject_id)
    token = create_access_token({"sub": subject, "role": role, "jti": jti})
    db.add(AuthSession(role=role, subject_id=subject, jti=jti, token=token))
    db.commit()
    logger.info("Issued %s session for %s", role, subject)
    return token


def revoke_session(db: Session, session: AuthSession) -> None:
    session.is_active = False
    session.revoked_at = datetime.utcnow()
    session.token = None
    db.commit()
