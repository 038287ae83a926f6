"""Credential verifier: password digests (passlib/bcrypt) and signed bearer tokens (PyJWT)."""
from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from cms.config import Settings
from cms.errors import InvalidSession


def _prepare_password(password: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer passwords with SHA256."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return password


class CredentialVerifier:
    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expire_minutes: int = 60 * 24 * 7,
        bcrypt_rounds: int = 12,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire = timedelta(minutes=expire_minutes)
        self._pwd_context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialVerifier:
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
            bcrypt_rounds=settings.BCRYPT_ROUNDS,
        )

    # -- passwords ---------------------------------------------------------

    def hash_password(self, password: str) -> str:
        return self._pwd_context.hash(_prepare_password(password))

    def verify_password(self, password: str, digest: str) -> bool:
        try:
            return self._pwd_context.verify(_prepare_password(password), digest)
        except ValueError:
            # Unrecognised or corrupt digest
            return False

    # -- tokens ------------------------------------------------------------

    def create_access_token(self, user_id: int, role: str) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            # PyJWT requires "sub" to be a string.
            "sub": str(user_id),
            "role": role,
            "iat": now,
            "exp": now + self._expire,
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def decode_token(self, token: str) -> dict:
        """Return the verified claims, or raise ``InvalidSession`` (bad signature, expired, garbage)."""
        try:
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidSession() from exc

    def subject_of(self, token: str) -> int:
        claims = self.decode_token(token)
        try:
            return int(claims["sub"])
        except (TypeError, ValueError) as exc:
            raise InvalidSession() from exc
