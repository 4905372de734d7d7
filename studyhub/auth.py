"""Authentication: password hashing, session tokens and accounts.

Passwords are hashed with bcrypt. Sessions are HS256 JWTs carrying the user
id in ``sub``; the API sets them in an httpOnly ``token`` cookie and also
accepts them as ``Authorization: Bearer <token>``.

Example:
    >>> users = UserService(db)
    >>> user = users.register("alice", "alice@example.com", "s3cret!")
    >>> token = issue_token(user.id)
    >>> resolver = JWTIdentityResolver(db)
    >>> resolver.resolve_identity(request).username
    'alice'
"""

from datetime import timedelta

import bcrypt
import jwt
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from starlette.requests import Request

from studyhub.config import Settings, settings
from studyhub.database import DatabaseManager
from studyhub.errors import UnauthorizedError, ValidationError
from studyhub.logging import logger
from studyhub.models import MAX_PASSWORD_BYTES, UserIdentity, UserRole, UserRow
from studyhub.utils import utc_now

TOKEN_COOKIE = "token"
JWT_ALGORITHM = "HS256"
INVALID_CREDENTIALS = "Invalid username or password"


# =============================================================================
# Passwords
# =============================================================================


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash a password with bcrypt.

    Args:
        password: Plain-text password
        rounds: bcrypt cost factor (defaults to settings.bcrypt_rounds)

    Returns:
        bcrypt hash as text
    """
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain-text password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# =============================================================================
# Tokens
# =============================================================================


def issue_token(user_id: str, config: Settings | None = None) -> str:
    """Sign a session token for ``user_id``.

    Args:
        user_id: Subject of the token
        config: Settings providing the secret and lifetime (defaults to global)

    Returns:
        Encoded JWT
    """
    config = config or settings
    now = utc_now()
    claims = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(hours=config.token_ttl_hours),
    }
    return jwt.encode(claims, config.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str, config: Settings | None = None) -> str:
    """Verify a session token and return its subject.

    Raises:
        UnauthorizedError: If the token is malformed, tampered with or expired
    """
    config = config or settings
    try:
        claims = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Session expired") from None
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token") from None
    return str(claims["sub"])


def token_from_request(request: Request) -> str | None:
    """Extract a session token from the ``token`` cookie or a Bearer header."""
    token = request.cookies.get(TOKEN_COOKIE)
    if token:
        return token

    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


# =============================================================================
# Identity Resolution
# =============================================================================


class JWTIdentityResolver:
    """Resolve the caller from a session token.

    The token must verify and its user must still exist.

    Args:
        db: Initialized database manager
        config: Settings providing the signing secret (defaults to global)
    """

    def __init__(self, db: DatabaseManager, config: Settings | None = None):
        self.db = db
        self.config = config or settings

    def resolve_identity(self, request: Request) -> UserIdentity:
        token = token_from_request(request)
        if not token:
            raise UnauthorizedError()

        user_id = decode_token(token, self.config)
        with self.db.session() as session:
            user = session.get(UserRow, user_id)
            if user is None:
                logger.warning(f"Token for unknown user {user_id}")
                raise UnauthorizedError()
            return UserIdentity(user_id=user.id, username=user.username, role=UserRole(user.role))


# =============================================================================
# Accounts
# =============================================================================


class UserService:
    """Account registration and login.

    Args:
        db: Initialized database manager
        config: Settings providing the bcrypt cost (defaults to global)
    """

    def __init__(self, db: DatabaseManager, config: Settings | None = None):
        self.db = db
        self.config = config or settings

    def register(
        self,
        username: str,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
    ) -> UserRow:
        """Create an account; the profile name defaults to the username.

        Raises:
            ValidationError: If the username or email is already taken, or
                the password is longer than bcrypt accepts
        """
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
                details=[{"field": "password"}],
            )
        email = email.strip().lower()
        with self.db.session() as session:
            stmt = select(UserRow).where(or_(UserRow.username == username, UserRow.email == email))
            taken = session.exec(stmt).first()
            if taken is not None:
                field = "username" if taken.username == username else "email"
                raise ValidationError(
                    f"{field.capitalize()} is already in use",
                    details=[{"field": field}],
                )

            user = UserRow(
                username=username,
                email=email,
                password_hash=hash_password(password, self.config.bcrypt_rounds),
                role=UserRole(role).value,
                profile_name=username,
            )
            session.add(user)
            try:
                session.commit()
            except IntegrityError:
                raise ValidationError("Username or email is already in use") from None
            session.refresh(user)

        logger.info(f"👤 Registered user {user.username} ({user.id})")
        return user

    def login(self, username: str, password: str) -> UserRow:
        """Check credentials.

        Raises:
            UnauthorizedError: With one generic message for an unknown user
                or a wrong password
        """
        with self.db.session() as session:
            user = session.exec(select(UserRow).where(UserRow.username == username)).first()

        if user is None or not verify_password(password, user.password_hash):
            logger.info(f"Failed login for {username!r}")
            raise UnauthorizedError(INVALID_CREDENTIALS)

        logger.debug(f"User {user.username} logged in")
        return user


__all__ = [
    "TOKEN_COOKIE",
    "hash_password",
    "verify_password",
    "issue_token",
    "decode_token",
    "token_from_request",
    "JWTIdentityResolver",
    "UserService",
]
