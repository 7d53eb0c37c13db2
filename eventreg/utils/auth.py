from datetime import timedelta
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from eventreg.config import settings
from eventreg.database import get_db
from eventreg.exceptions import Forbidden, InvalidToken, InvalidTokenType
from eventreg.models.user import User, UserRole
from eventreg.utils.timeutils import utcnow

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

ACCESS = "access"
REFRESH = "refresh"


def sign_token(claims: dict, ttl: timedelta) -> str:
    to_encode = claims.copy()
    to_encode.update({"exp": utcnow() + ttl})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    """Decode a bearer token; bad signature, expiry and garbage all raise InvalidToken."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise InvalidToken("Invalid or expired token")


def verify_token_of_type(token: str, expected_type: str) -> dict:
    payload = verify_token(token)
    if payload.get("type") != expected_type:
        raise InvalidTokenType()
    return payload


def _claims_for(user: User, token_type: str) -> dict:
    return {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "type": token_type,
    }


def create_access_token(user: User) -> str:
    return sign_token(
        _claims_for(user, ACCESS),
        timedelta(minutes=settings.JWT_ACCESS_EXPIRATION_MINUTES),
    )


def create_refresh_token(user: User) -> str:
    return sign_token(
        _claims_for(user, REFRESH),
        timedelta(days=settings.JWT_REFRESH_EXPIRATION_DAYS),
    )


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    payload = verify_token_of_type(token, ACCESS)

    sub: Optional[str] = payload.get("sub")
    if sub is None or not str(sub).isdigit():
        raise InvalidToken("Invalid authentication token")

    user = db.query(User).filter(User.id == int(sub)).first()
    if not user:
        raise InvalidToken("User no longer exists")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ADMIN:
        raise Forbidden()
    return user
