import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext
from passlib.exc import PasswordValueError

from .config import Settings
from .errors import ConfigurationError, InvalidTokenError

logger = logging.getLogger(__name__)

INSECURE_DEFAULT_SECRET = "insecure-development-secret-change-me"
DEFAULT_BCRYPT_ROUNDS = 12


class PasswordHasher:
    """Salted bcrypt hashing for stored passwords."""

    def __init__(self, rounds: int = DEFAULT_BCRYPT_ROUNDS):
        self.rounds = rounds
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        self._dummy_hash: Optional[str] = None

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        """
        Check ``password`` against ``hashed``.

        A wrong password returns False, as does one bcrypt refuses to hash
        (NUL bytes). A digest that is not a recognizable hash raises ValueError.
        """
        try:
            return self._context.verify(password, hashed)
        except PasswordValueError:
            return False

    @property
    def dummy_hash(self) -> str:
        """Digest of a random secret, for spending the same work on unknown users."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(secrets.token_hex(16))
        return self._dummy_hash


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    username: str
    issued_at: datetime
    expires_at: datetime
    token_id: str


class TokenIssuer:
    """Issues and validates HS256 JWTs carrying ``userId`` and ``username``."""

    def __init__(self, secret: str, algorithm: str = "HS256",
                 expires_in: timedelta = timedelta(hours=24)):
        if not secret:
            raise ConfigurationError("Token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in

    def issue(self, user) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "userId": user.id,
            "username": user.username,
            "iat": now,
            "exp": now + self.expires_in,
            # iat has one-second resolution; jti keeps every token distinct
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def decode(self, token: str) -> TokenClaims:
        try:
            data = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat", "userId", "username"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise InvalidTokenError("Token has expired") from exc
        except jwt.PyJWTError as exc:
            raise InvalidTokenError() from exc

        return TokenClaims(
            user_id=data["userId"],
            username=data["username"],
            issued_at=datetime.fromtimestamp(data["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(data["exp"], tz=timezone.utc),
            token_id=data.get("jti", ""),
        )


def resolve_signing_secret(settings: Settings) -> str:
    """
    Return the configured JWT secret.

    A missing or placeholder secret aborts startup in production. Other postures
    fall back to an insecure default with a warning.
    """
    secret: Optional[str] = settings.JWT_SECRET
    if secret and secret != INSECURE_DEFAULT_SECRET:
        return secret

    if settings.is_production:
        logger.critical("JWT_SECRET must be set to a secure value in production")
        raise ConfigurationError("JWT_SECRET is not configured for production")

    logger.warning(
        "JWT_SECRET is not configured; using an INSECURE default secret (environment=%s). "
        "Set JWT_SECRET before deploying to production.", settings.ENVIRONMENT.value
    )
    return INSECURE_DEFAULT_SECRET


def build_token_issuer(settings: Settings) -> TokenIssuer:
    return TokenIssuer(
        resolve_signing_secret(settings),
        algorithm=settings.JWT_ALGORITHM,
        expires_in=timedelta(hours=settings.JWT_EXPIRES_HOURS),
    )
