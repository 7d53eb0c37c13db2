import hashlib
import secrets
import uuid


def generate_reset_token() -> str:
    # plain token, only ever shown to the user in the reset link
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # the DB keeps the hash so a leaked table can't be replayed
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_verification_token() -> str:
    return str(uuid.uuid4())
