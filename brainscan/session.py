import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError

from brainscan import config
from brainscan.database import User, UserSession
from brainscan.exceptions import AuthError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class CurrentUser:
    id: int
    email: str


def get_password_hash(password):
    return pwd_context.hash(password)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def _as_utc(value):
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SessionService:
    """Email/password accounts with opaque bearer tokens that expire."""

    def __init__(self, session_factory, expire_minutes=None):
        self.session_factory = session_factory
        self.expire_minutes = expire_minutes or config.ACCESS_TOKEN_EXPIRE_MINUTES

    def _cutoff(self):
        return datetime.now(timezone.utc) - timedelta(minutes=self.expire_minutes)

    def sign_up(self, email, password):
        email = (email or "").strip().lower()
        if "@" not in email:
            raise AuthError("Invalid email address")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        with self.session_factory() as db:
            user = User(email=email, hashed_password=get_password_hash(password))
            db.add(user)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise AuthError("An account with this email already exists")
            db.refresh(user)
            logger.info("Registered user %s", user.id)
            return CurrentUser(id=user.id, email=user.email)

    def sign_in(self, email, password):
        email = (email or "").strip().lower()
        with self.session_factory() as db:
            user = db.query(User).filter(User.email == email).first()
            if user is None or not verify_password(password or "", user.hashed_password):
                raise AuthError("Invalid email or password")

            # Drop this user's stale sessions while we are here
            db.query(UserSession).filter(
                UserSession.user_id == user.id, UserSession.created_at < self._cutoff()
            ).delete(synchronize_session=False)

            token = secrets.token_urlsafe(32)
            db.add(UserSession(token=token, user_id=user.id))
            db.commit()
            return token

    def sign_out(self, token):
        with self.session_factory() as db:
            deleted = db.query(UserSession).filter(UserSession.token == token).delete()
            db.commit()
        if not deleted:
            raise AuthError("Not signed in")

    def current_user(self, token):
        """Resolve a bearer token. Expired sessions are deleted and resolve to None."""
        if not token:
            return None
        with self.session_factory() as db:
            session = db.query(UserSession).filter(UserSession.token == token).first()
            if session is None:
                return None

            if _as_utc(session.created_at) < self._cutoff():
                logger.info("Session for user %s expired", session.user_id)
                db.delete(session)
                db.commit()
                return None

            user = db.get(User, session.user_id)
            if user is None:
                return None
            return CurrentUser(id=user.id, email=user.email)
