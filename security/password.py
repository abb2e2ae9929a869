import secrets
import string

import bcrypt

_GENERATED_ALPHABET = string.ascii_letters + string.digits


def hash_password(plain_password: str, rounds: int = 12) -> str:
    if not isinstance(plain_password, str) or not plain_password.strip():
        raise ValueError("Password must be a non-empty string")

    # bcrypt expects bytes and ignores everything past 72 of them
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8")[:72], salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        # malformed/legacy hash in the users table
        return False


def generate_password(length: int = 12) -> str:
    """One-time password handed out when an admin resets a teacher login."""
    return "".join(secrets.choice(_GENERATED_ALPHABET) for _ in range(length))
