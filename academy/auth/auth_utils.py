import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

from jose import jwt, JWTError

from academy import config
from academy.errors import Unauthenticated

PBKDF2_ITERATIONS = 260000


def create_access_token(user_id: str, role: str) -> str:
    expires_at = datetime.utcnow() + timedelta(days=config.JWT_EXPIRES_DAYS)
    payload = {"sub": user_id, "role": role, "exp": expires_at}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        # Decodes and checks expiration/signature
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid or expired token")


def hash_password(password: str) -> str:
    """Salted PBKDF2-SHA256, stored as pbkdf2_sha256$<iterations>$<salt>$<hash>"""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        algorithm, iterations, salt, expected = stored.split("$")
    except (AttributeError, ValueError):
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)
