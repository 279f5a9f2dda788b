from __future__ import annotations

import hashlib
import hmac
import os

from sqlalchemy.orm import Session

from autoapply.core.errors import DuplicateUserError, InvalidCredentialsError
from autoapply.db.models import User
from autoapply.db.repositories import Repository

_ALGORITHM = "pbkdf2_sha256"
_ITERATIONS = 260_000


def hash_password(password: str, *, salt: bytes | None = None, iterations: int = _ITERATIONS) -> str:
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"{_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt_hex, digest_hex = encoded.split("$")
    except ValueError:
        return False
    if algorithm != _ALGORITHM:
        return False
    candidate = hash_password(password, salt=bytes.fromhex(salt_hex), iterations=int(iterations))
    return hmac.compare_digest(candidate.split("$")[-1], digest_hex)


class UserService:
    def __init__(self, session: Session):
        self.repo = Repository(session)

    def register(
        self,
        *,
        email: str,
        username: str,
        password: str,
        name: str | None = None,
        plan: str = "free",
    ) -> User:
        if self.repo.get_user_by_email(email) or self.repo.get_user_by_username(username):
            raise DuplicateUserError()
        return self.repo.create_user(
            email=email,
            username=username,
            password_hash=hash_password(password),
            name=name,
            plan=plan,
        )

    def login(self, *, email: str, password: str) -> User:
        user = self.repo.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid credentials")
        return user
