from passlib.context import CryptContext

from eventreg.config import settings
from eventreg.exceptions import BadRequest

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.PASSWORD_HASH_ROUNDS,
)


def _check_bcrypt_len(password: str):
    if len(password.encode("utf-8")) > 72:
        raise BadRequest("Password too long (bcrypt max 72 bytes)")


def hash_password(password: str) -> str:
    _check_bcrypt_len(password)
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    # an over-long password can never have been stored, so it simply doesn't match
    if len(plain_password.encode("utf-8")) > 72:
        return False
    return pwd_context.verify(plain_password, hashed_password)
