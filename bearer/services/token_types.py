"""
Token Types - prefix and capability flags per credential class.

Built-in types (sk/pk/rk) come from Settings.token_types as declarative maps;
custom types subclass TokenType directly.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from bearer.config import Settings
from bearer.exceptions import InvalidConfigurationError
from bearer.registry import Registry


class TokenType(ABC):
    """Contract for a class of credential (secret, publishable, restricted...)."""

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def prefix(self) -> str: ...

    @abstractmethod
    def default_abilities(self) -> list[str]: ...

    @abstractmethod
    def default_expiration(self) -> int | None:
        """Default lifetime in minutes (None = never expires)."""

    @abstractmethod
    def default_rate_limit(self) -> int | None: ...

    @abstractmethod
    def is_server_side_only(self) -> bool: ...

    def is_client_side(self) -> bool:
        return not self.is_server_side_only()

    def allows_domain_restriction(self) -> bool:
        """Domain allow-lists only make sense for credentials exposed to browsers."""
        return self.is_client_side()


class AbstractTokenType(TokenType):
    """Token type backed by constructor values."""

    def __init__(
        self,
        name: str,
        prefix: str,
        default_abilities: list[str] | None = None,
        default_expiration: int | None = None,
        default_rate_limit: int | None = None,
        server_side_only: bool = False,
        domain_restrictable: bool | None = None,
    ) -> None:
        self._name = name
        self._prefix = prefix
        self._default_abilities = (
            list(default_abilities) if default_abilities is not None else ["*"]
        )
        self._default_expiration = default_expiration
        self._default_rate_limit = default_rate_limit
        self._server_side_only = server_side_only
        self._domain_restrictable = domain_restrictable

    def name(self) -> str:
        return self._name

    def prefix(self) -> str:
        return self._prefix

    def default_abilities(self) -> list[str]:
        return list(self._default_abilities)

    def default_expiration(self) -> int | None:
        return self._default_expiration

    def default_rate_limit(self) -> int | None:
        return self._default_rate_limit

    def is_server_side_only(self) -> bool:
        return self._server_side_only

    def allows_domain_restriction(self) -> bool:
        if self._domain_restrictable is not None:
            return self._domain_restrictable
        return super().allows_domain_restriction()

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(name={self._name}, prefix={self._prefix})>"


def _optional_non_negative_int(config: Mapping[str, Any], key: str) -> int | None:
    value = config.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidConfigurationError(f"'{key}' must be a non-negative integer or null")
    return value


class ConfigurableTokenType(AbstractTokenType):
    """Token type built from a declarative map (no custom code required)."""

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ConfigurableTokenType":
        """
        Build a token type from a map.

        Required keys: name, prefix. Optional: abilities (list of str),
        expiration (minutes), rate_limit, server_side_only (bool),
        domain_restrictable (bool).

        Raises:
            InvalidConfigurationError: on a missing or mistyped key.
        """
        name = config.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidConfigurationError("token type requires a non-empty 'name'")

        prefix = config.get("prefix")
        if not isinstance(prefix, str) or not prefix:
            raise InvalidConfigurationError("token type requires a non-empty 'prefix'")
        if "_" in prefix:
            raise InvalidConfigurationError("token type 'prefix' cannot contain '_'")

        abilities = config.get("abilities", ["*"])
        if not isinstance(abilities, (list, tuple)):
            raise InvalidConfigurationError("'abilities' must be a list")

        server_side_only = config.get("server_side_only", False)
        if not isinstance(server_side_only, bool):
            raise InvalidConfigurationError("'server_side_only' must be a boolean")

        domain_restrictable = config.get("domain_restrictable")
        if domain_restrictable is not None and not isinstance(domain_restrictable, bool):
            raise InvalidConfigurationError("'domain_restrictable' must be a boolean or null")

        return cls(
            name=name,
            prefix=prefix,
            default_abilities=[a for a in abilities if isinstance(a, str)],
            default_expiration=_optional_non_negative_int(config, "expiration"),
            default_rate_limit=_optional_non_negative_int(config, "rate_limit"),
            server_side_only=server_side_only,
            domain_restrictable=domain_restrictable,
        )


def build_token_type_registry(settings: Settings) -> Registry[TokenType]:
    """Registry of the configured token types, keyed by type key (sk, pk, rk...)."""
    registry: Registry[TokenType] = Registry("token type")
    for key, definition in settings.token_type_maps().items():
        registry.register(key, ConfigurableTokenType.from_config(definition))
    return registry
