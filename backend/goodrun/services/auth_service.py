import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, text
from sqlalchemy.orm import Session

from goodrun.config import settings
from goodrun.models.user import User
from goodrun.utils.hashing import sha256_text
from goodrun.utils.security import generate_token, hash_password, verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """The identity a request acts as, re-read from the users table."""

    id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_volunteer(self) -> bool:
        return self.role == "volunteer"


class AuthService:
    """Password login and database-backed bearer sessions.

    Only the SHA-256 digest of a token is persisted, so a leaked database does
    not yield usable tokens. Sessions expire after ``session_ttl_seconds`` of
    inactivity.
    """

    def login(self, db: Session, email: str, password: str, throttle_key: str = "login") -> dict | None:
        delay = self._get_throttle_delay(db, throttle_key)
        if delay > 0:
            return {"error": "too_many_attempts", "retry_after_seconds": delay}

        user = db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
        verified = verify_password(user.password_hash, password) if user else False
        if not verified:
            logger.warning("Failed login for %s", email)
            self._record_failed_attempt(db, throttle_key)
            return None

        self._reset_failed_attempts(db, throttle_key)
        token = generate_token()
        db.execute(
            text(
                "INSERT INTO auth_sessions (token_hash, user_id, expires_at) "
                "VALUES (:token_hash, :user_id, :expires_at)"
            ),
            {
                "token_hash": sha256_text(token),
                "user_id": user.id,
                "expires_at": time.time() + settings.session_ttl_seconds,
            },
        )
        db.commit()
        return {
            "token": token,
            "expires_in_seconds": settings.session_ttl_seconds,
            "user_id": user.id,
            "role": user.role,
        }

    def logout(self, db: Session, token: str):
        db.execute(
            text("DELETE FROM auth_sessions WHERE token_hash = :token_hash"),
            {"token_hash": sha256_text(token)},
        )
        db.commit()

    def resolve(self, db: Session, token: str) -> User | None:
        token_hash = sha256_text(token)
        row = db.execute(
            text("SELECT user_id, expires_at FROM auth_sessions WHERE token_hash = :token_hash"),
            {"token_hash": token_hash},
        ).fetchone()
        if not row:
            return None
        now = time.time()
        if float(row.expires_at) <= now:
            self.logout(db, token)
            return None

        user = db.get(User, row.user_id)
        if user is None:
            return None
        db.execute(
            text("UPDATE auth_sessions SET expires_at = :expires_at WHERE token_hash = :token_hash"),
            {"expires_at": now + settings.session_ttl_seconds, "token_hash": token_hash},
        )
        db.commit()
        return user

    def revoke_user_sessions(self, db: Session, user_id: int, keep_token: str | None = None):
        params = {"user_id": user_id, "keep": sha256_text(keep_token) if keep_token else ""}
        db.execute(
            text("DELETE FROM auth_sessions WHERE user_id = :user_id AND token_hash != :keep"),
            params,
        )

    def change_password(self, db: Session, user: User, old_password: str, new_password: str,
                        current_token: str | None = None) -> bool:
        if not verify_password(user.password_hash, old_password):
            return False
        user.password_hash = hash_password(new_password)
        user.updated_at = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        self.revoke_user_sessions(db, user.id, keep_token=current_token)
        db.commit()
        return True

    def bootstrap_admin(self, db: Session) -> User | None:
        if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
            return None
        if db.query(func.count(User.id)).scalar():
            return None
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        admin = User(
            name=settings.bootstrap_admin_name,
            email=settings.bootstrap_admin_email.strip().lower(),
            role="admin",
            password_hash=hash_password(settings.bootstrap_admin_password),
            created_at=now,
            updated_at=now,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        logger.info("Created bootstrap admin %s", admin.email)
        return admin

    def _get_throttle_delay(self, db: Session, key: str) -> float:
        row = db.execute(
            text("SELECT failed_attempts, last_failed_at FROM auth_throttle WHERE key = :key"),
            {"key": key},
        ).fetchone()
        if not row:
            return 0
        failed_attempts = int(row[0])
        last_failed_at = float(row[1])

        if failed_attempts < 3:
            return 0
        if failed_attempts < 5:
            delay = 5.0
        elif failed_attempts < 10:
            delay = 30.0
        else:
            delay = 300.0
        elapsed = time.time() - last_failed_at
        remaining = delay - elapsed
        return max(0, remaining)

    def _record_failed_attempt(self, db: Session, key: str):
        now = time.time()
        db.execute(
            text(
                """
                INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                VALUES (:key, 1, :now)
                ON CONFLICT(key) DO UPDATE SET
                    failed_attempts = failed_attempts + 1,
                    last_failed_at = :now
                """
            ),
            {"key": key, "now": now},
        )
        db.commit()

    def _reset_failed_attempts(self, db: Session, key: str):
        db.execute(
            text(
                """
                INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                VALUES (:key, 0, :now)
                ON CONFLICT(key) DO UPDATE SET
                    failed_attempts = 0,
                    last_failed_at = :now
                """
            ),
            {"key": key, "now": time.time()},
        )
        db.commit()


auth_service = AuthService()
