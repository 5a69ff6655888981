"""Password hashing and signed session tokens."""
import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

import jwt

PBKDF2_ALGO = "pbkdf2_sha256"
PBKDF2_ITERATIONS = 120_000
JWT_ALGORITHM = "HS256"


# -----------------------------
# Credential codec
# -----------------------------

def _pbkdf2(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()


def hash_password(password: str) -> str:
    """Hash password with a fresh random salt."""
    salt = secrets.token_hex(16)
    digest = _pbkdf2(password, salt, PBKDF2_ITERATIONS)
    return f"{PBKDF2_ALGO}${PBKDF2_ITERATIONS}${salt}${digest}"


def verify_password(password: str, hashed: str) -> bool:
    try:
        algo, iterations, salt, digest = hashed.split("$")
        rounds = int(iterations)
    except ValueError:
        return False
    if algo != PBKDF2_ALGO:
        return False
    return hmac.compare_digest(_pbkdf2(password, salt, rounds), digest)


# -----------------------------
# Session tokens
# -----------------------------

class InvalidToken(Exception):
    """Token is malformed, tampered with, expired or carries no identity."""


class TokenIssuer:
    """
    Signs and verifies compact identity tokens.

    The secret is fixed for the lifetime of the issuer; build one at startup
    from settings and hand it to whatever needs it.
    """

    def __init__(self, secret: str, ttl: timedelta):
        self._secret = secret
        self.ttl = ttl

    def issue(self, claim: dict) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "user": claim,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def verify(self, token: str) -> dict:
        """
        Decode a token and return its identity claim.

        Raises:
            InvalidToken: bad signature, malformed token, expired, or no claim
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[JWT_ALGORITHM])
        except jwt.InvalidTokenError as e:
            raise InvalidToken(str(e)) from e
        claim = payload.get("user")
        if not isinstance(claim, dict) or not claim.get("id"):
            raise InvalidToken("Token carries no user identity")
        return claim
