"""DPI validation and password hashing."""

import re

import bcrypt

DPI_LENGTH = 13

# Bytes beyond this are ignored by bcrypt, so longer passwords are refused
MAX_PASSWORD_BYTES = 72

_DPI_PATTERN = re.compile(rf"\d{{{DPI_LENGTH}}}")


def is_valid_dpi(dpi: str) -> bool:
    """A DPI is exactly 13 ASCII digits."""
    return bool(dpi) and dpi.isascii() and _DPI_PATTERN.fullmatch(dpi) is not None


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long password
        return False
