"""Password hashing and JWT issuance / verification."""
import hashlib
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from blog_api.config import settings
from blog_api.exceptions import UnauthorizedError
from blog_api.models import User

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def hash_token(token: str) -> str:
    """Digest stored in place of the raw refresh token."""
    return hashlib.sha256(token.encode()).hexdigest()


def _create_token(user: User, token_type: str, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {
        "sub": str(user.id),
        "role": user.role.value,
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user: User) -> str:
    return _create_token(
        user, ACCESS_TOKEN_TYPE, timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )


def create_refresh_token(user: User) -> str:
    return _create_token(
        user, REFRESH_TOKEN_TYPE, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    )


def decode_token(token: str, expected_type: str = ACCESS_TOKEN_TYPE) -> int:
    """
    Verify *token* and return the user id it was issued for.

    Raises ``UnauthorizedError`` for bad signatures, expired tokens, a
    missing subject or a token of the wrong type.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise UnauthorizedError()
    subject = payload.get("sub")
    if subject is None or payload.get("type") != expected_type:
        raise UnauthorizedError()
    try:
        return int(subject)
    except ValueError:
        raise UnauthorizedError()
