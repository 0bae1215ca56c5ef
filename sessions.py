import secrets
from datetime import datetime, timedelta
from typing import Optional

from itsdangerous import BadSignature, URLSafeSerializer
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from config import get_settings
from models import UserSession


def _serializer() -> URLSafeSerializer:
    settings = get_settings()
    return URLSafeSerializer(settings.session_secret, salt="session-cookie")


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def sign_session_id(session_id: str) -> str:
    return _serializer().dumps({"sid": session_id})


def unsign_session_id(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    try:
        data = _serializer().loads(token)
    except BadSignature:
        return None
    if not isinstance(data, dict):
        return None
    session_id = data.get("sid")
    return session_id if isinstance(session_id, str) and session_id else None


class SessionStore:
    """Server-side session entries mapping an opaque id to a user id."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def set(self, session_id: str, user_id: str, ttl: timedelta) -> None:
        expires_at = datetime.utcnow() + ttl
        entry = self.session.get(UserSession, session_id)
        if entry is None:
            entry = UserSession(id=session_id, user_id=user_id, expires_at=expires_at)
            self.session.add(entry)
        else:
            entry.user_id = user_id
            entry.expires_at = expires_at
        self.session.commit()

    def get(self, session_id: str) -> Optional[str]:
        entry = self.session.get(UserSession, session_id)
        if entry is None:
            return None
        if entry.expires_at <= datetime.utcnow():
            self.session.delete(entry)
            self.session.commit()
            return None
        return entry.user_id

    def delete(self, session_id: str) -> None:
        self.session.execute(delete(UserSession).where(UserSession.id == session_id))
        self.session.commit()

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        cutoff = now or datetime.utcnow()
        expired = self.session.scalars(
            select(UserSession.id).where(UserSession.expires_at <= cutoff)
        ).all()
        if expired:
            self.session.execute(
                delete(UserSession).where(UserSession.id.in_(expired))
            )
        self.session.commit()
        return len(expired)
