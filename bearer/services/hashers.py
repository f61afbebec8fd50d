"""
Token Hashers - one-way hashing of secrets for storage.

Digest hashers (sha256, sha512) are deterministic, so a raw secret can be
looked up by its hash. The argon2 hasher salts every hash; tokens hashed with
it can only be found through the `{id}|{secret}` composite form.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from bearer.registry import Registry


class TokenHasher(ABC):
    """Contract for secret hashers: verify(s, hash(s)) is always True."""

    deterministic: bool = True

    @abstractmethod
    def hash(self, token: str) -> str: ...

    @abstractmethod
    def verify(self, token: str, hashed: str) -> bool: ...


class DigestTokenHasher(TokenHasher):
    """hashlib digest rendered as hex, compared in constant time."""

    algorithm = "sha256"

    def hash(self, token: str) -> str:
        return hashlib.new(self.algorithm, token.encode("utf-8")).hexdigest()

    def verify(self, token: str, hashed: str) -> bool:
        return hmac.compare_digest(hashed, self.hash(token))


class Sha256TokenHasher(DigestTokenHasher):
    algorithm = "sha256"


class Sha512TokenHasher(DigestTokenHasher):
    algorithm = "sha512"


class Argon2TokenHasher(TokenHasher):
    """Argon2id hashing (salted; see module docstring for lookup implications)."""

    deterministic = False

    def __init__(self, password_hasher: PasswordHasher | None = None) -> None:
        self.password_hasher = password_hasher or PasswordHasher()

    def hash(self, token: str) -> str:
        return self.password_hasher.hash(token)

    def verify(self, token: str, hashed: str) -> bool:
        try:
            return self.password_hasher.verify(hashed, token)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False


def build_hasher_registry(default: str | None = None) -> Registry[TokenHasher]:
    registry: Registry[TokenHasher] = Registry("token hasher", default=default)
    registry.register("sha256", Sha256TokenHasher())
    registry.register("sha512", Sha512TokenHasher())
    registry.register("argon2", Argon2TokenHasher())
    return registry
