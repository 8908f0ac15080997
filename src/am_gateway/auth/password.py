"""Password hashing with the ``bcrypt`` library (>=4.0), no passlib wrapper."""

import bcrypt


def hash_password(plain: str) -> str:
    """Hash a plain-text password. Returns the bcrypt hash as a utf-8 string."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
