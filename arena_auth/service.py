"""
Registration and login against the user store.

Expected outcomes (duplicate identifiers, bad credentials) are raised as
ApiError subclasses. Store failures are logged with their traceback and
converted to InternalError, or ServiceUnavailableError when no pooled
connection could be acquired in time. Nothing is retried.
"""
import logging
import traceback
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from .auth import PasswordHasher, TokenIssuer
from .errors import ConflictError, InternalError, InvalidCredentialsError, ServiceUnavailableError
from .models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisterPayload:
    username: str
    email: str
    password: str


@dataclass(frozen=True)
class LoginPayload:
    email: str
    password: str


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str


class AuthService:
    def __init__(self, db: Session, hasher: PasswordHasher, tokens: TokenIssuer):
        self.db = db
        self.hasher = hasher
        self.tokens = tokens

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PoolTimeoutError as exc:
            self.db.rollback()
            logger.error("No database connection available during %s: %s", operation, exc)
            raise ServiceUnavailableError() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Database error during %s", operation)
            raise InternalError(
                f"An error occurred during {operation}",
                detail=str(exc),
                stack=traceback.format_exc(),
            ) from exc

    def register(self, payload: RegisterPayload) -> AuthResult:
        with self._store_errors("registration"):
            existing = (
                self.db.query(User.id)
                .filter(or_(User.username == payload.username, User.email == payload.email))
                .first()
            )
            if existing is not None:
                logger.info("Registration rejected: username or email taken (username=%s)", payload.username)
                raise ConflictError()

            user = User(
                username=payload.username,
                email=payload.email,
                password_hash=self.hasher.hash(payload.password),
            )
            self.db.add(user)
            try:
                self.db.commit()
            except IntegrityError as exc:
                # A concurrent registration won the race between check and insert
                self.db.rollback()
                logger.info("Registration lost uniqueness race (username=%s)", payload.username)
                raise ConflictError() from exc
            self.db.refresh(user)

        token = self.tokens.issue(user)
        logger.info("User registered: user_id=%s username=%s", user.id, user.username)
        return AuthResult(user=user, token=token)

    def login(self, payload: LoginPayload) -> AuthResult:
        with self._store_errors("login"):
            user = self.db.query(User).filter(User.email == payload.email).first()

        # Same error for unknown email and wrong password
        if user is None:
            # Both failure paths run bcrypt once
            self.hasher.verify(payload.password, self.hasher.dummy_hash)
            logger.info("Login failed: unknown email")
            raise InvalidCredentialsError()

        if not self.hasher.verify(payload.password, user.password_hash):
            logger.info("Login failed: bad password for user_id=%s", user.id)
            raise InvalidCredentialsError()

        token = self.tokens.issue(user)
        logger.info("Successful login: user_id=%s username=%s", user.id, user.username)
        return AuthResult(user=user, token=token)
