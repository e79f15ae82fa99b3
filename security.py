import hashlib

from config import PASSWORD_SALT


def hash_password(password: str) -> str:
    """Salted SHA-256 digest stored in users.password_hash"""
    return hashlib.sha256(f"{password}{PASSWORD_SALT}".encode()).hexdigest()
