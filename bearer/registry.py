"""
Named-component registry shared by every pluggable family.

Token types, generators, hashers, audit drivers, revocation strategies and
rotation strategies are all looked up through a Registry.
"""

from typing import Generic, TypeVar

from bearer.exceptions import NotRegisteredError

T = TypeVar("T")


class Registry(Generic[T]):
    """
    Name -> implementation map with an explicit default rule.

    Args:
        kind: Human-readable component family, used in error messages.
        default: Name to treat as default once it is registered.
        promote_first: When no default is set, the first registered
            implementation becomes the default.
    """

    def __init__(self, kind: str, default: str | None = None, promote_first: bool = True) -> None:
        self.kind = kind
        self._items: dict[str, T] = {}
        self._default: str | None = default
        self._promote_first = promote_first

    def register(self, name: str, impl: T) -> None:
        self._items[name] = impl
        if self._default is None and self._promote_first:
            self._default = name

    def get(self, name: str) -> T:
        if name not in self._items:
            raise NotRegisteredError(self.kind, name)
        return self._items[name]

    def has(self, name: str) -> bool:
        return name in self._items

    def default(self) -> T:
        if self._default is None or self._default not in self._items:
            raise NotRegisteredError(self.kind, None)
        return self._items[self._default]

    @property
    def default_name(self) -> str | None:
        return self._default

    def set_default(self, name: str) -> None:
        if name not in self._items:
            raise NotRegisteredError(self.kind, name)
        self._default = name

    def names(self) -> list[str]:
        return list(self._items)

    def resolve(self, name: str | None = None, configured: str | None = None) -> T:
        """
        Resolve an implementation.

        Order: explicit name -> configured default name -> registry default.
        A name that is given but not registered fails with NotRegisteredError.
        """
        chosen = name if name is not None else configured
        if chosen is not None:
            return self.get(chosen)
        return self.default()

    def resolve_name(self, name: str | None = None, configured: str | None = None) -> str:
        """Same resolution order as resolve(), returning the chosen name."""
        chosen = name if name is not None else configured
        if chosen is not None:
            self.get(chosen)
            return chosen
        self.default()
        assert self._default is not None
        return self._default

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __len__(self) -> int:
        return len(self._items)
