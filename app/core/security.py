"""Password hashing and verification, plus input limits shared by schemas and services."""

from functools import lru_cache

import bcrypt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Min/max lengths for input validation.
EMAIL_MAX_LEN = 255
NAME_MAX_LEN = 100
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

# Fixed input used to build the dummy hash for unknown-account logins.
_DUMMY_PASSWORD = "homeledger-dummy-password"


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash. Malformed hashes verify as False."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


@lru_cache
def dummy_password_hash(rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash with the same cost as real credentials, computed once per cost."""
    return hash_password(_DUMMY_PASSWORD, rounds=rounds)


def verify_against_dummy(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> bool:
    """
    Spend the same bcrypt work as a real verification and always return False.

    Called on the login path when the email is unknown so response timing does not
    reveal whether an account exists.
    """
    verify_password(plain_password, dummy_password_hash(rounds))
    return False
