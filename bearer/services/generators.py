"""
Token Generators - produce opaque `{prefix}_{environment}_{random}` secrets.

All random material comes from the `secrets` module.
"""

import secrets
import string
import zlib
from abc import ABC, abstractmethod
from uuid import UUID, uuid4

from bearer.models.domain import TokenComponents
from bearer.registry import Registry

SEPARATOR = "_"


def check_environment(environment: str) -> str:
    """Environment tags sit between two separators, so they cannot contain one."""
    if not environment or SEPARATOR in environment:
        raise ValueError(
            f"Environment tag must be non-empty and cannot contain '{SEPARATOR}': {environment!r}"
        )
    return environment


def _split(token: str) -> TokenComponents | None:
    """Split a secret into exactly three non-empty components."""
    parts = token.split(SEPARATOR)
    if len(parts) != 3:
        return None
    prefix, environment, secret = parts
    if not prefix or not environment or not secret:
        return None
    return TokenComponents(
        prefix=prefix,
        environment=environment,
        secret=secret,
        full_token=token,
    )


class TokenGenerator(ABC):
    """Contract for secret generators."""

    @abstractmethod
    def generate(self, prefix: str, environment: str) -> str: ...

    def parse(self, token: str) -> TokenComponents | None:
        """Best-effort decomposition; None when the token is not in this format."""
        return _split(token)

    @staticmethod
    def format(prefix: str, environment: str, secret: str) -> str:
        return f"{prefix}{SEPARATOR}{environment}{SEPARATOR}{secret}"


class SeamTokenGenerator(TokenGenerator):
    """Base58 secrets, e.g. sk_test_5Hd3...; readable and copy/paste safe."""

    BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
    SECRET_LENGTH = 24

    def generate(self, prefix: str, environment: str) -> str:
        secret = "".join(secrets.choice(self.BASE58_ALPHABET) for _ in range(self.SECRET_LENGTH))
        return self.format(prefix, environment, secret)

    def parse(self, token: str) -> TokenComponents | None:
        components = _split(token)
        if components is None:
            return None
        if any(c not in self.BASE58_ALPHABET for c in components.secret):
            return None
        return components


class UuidTokenGenerator(TokenGenerator):
    """UUID4 secrets, e.g. pk_live_0b8f...-..."""

    def generate(self, prefix: str, environment: str) -> str:
        return self.format(prefix, environment, str(uuid4()))

    def parse(self, token: str) -> TokenComponents | None:
        components = _split(token)
        if components is None:
            return None
        try:
            UUID(components.secret)
        except ValueError:
            return None
        return components


class RandomTokenGenerator(TokenGenerator):
    """40 alphanumeric characters followed by an 8-hex CRC32 checksum."""

    ENTROPY_LENGTH = 40
    ALPHABET = string.ascii_letters + string.digits

    @staticmethod
    def checksum(entropy: str) -> str:
        return format(zlib.crc32(entropy.encode()) & 0xFFFFFFFF, "08x")

    def generate(self, prefix: str, environment: str) -> str:
        entropy = "".join(secrets.choice(self.ALPHABET) for _ in range(self.ENTROPY_LENGTH))
        return self.format(prefix, environment, entropy + self.checksum(entropy))

    def parse(self, token: str) -> TokenComponents | None:
        components = _split(token)
        if components is None:
            return None
        if len(components.secret) != self.ENTROPY_LENGTH + 8:
            return None
        entropy, check = (
            components.secret[: self.ENTROPY_LENGTH],
            components.secret[self.ENTROPY_LENGTH :],
        )
        if self.checksum(entropy) != check:
            return None
        return components


def build_generator_registry(default: str | None = None) -> Registry[TokenGenerator]:
    registry: Registry[TokenGenerator] = Registry("token generator", default=default)
    registry.register("seam", SeamTokenGenerator())
    registry.register("uuid", UuidTokenGenerator())
    registry.register("random", RandomTokenGenerator())
    return registry
