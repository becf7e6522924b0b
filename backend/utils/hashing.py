# backend/utils/hashing.py
from passlib.context import CryptContext

# New hashes use PBKDF2-SHA256; bcrypt hashes imported from older databases still verify
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(plain_password, password_hash)
    except (ValueError, TypeError):
        # Unknown or malformed hash
        return False
