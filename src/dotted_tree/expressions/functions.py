"""Resolver registry for dotted-tree expressions.

Resolvers are host-supplied callables invoked from computed expressions
(``upper(${name})``, ``api.users.get(${id})``). Namespaces are given as
nested mappings and flattened once into dotted names. Non-callable leaves
are kept as named constants.

Each Document owns its registry; nothing is shared between instances.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping


@dataclass(frozen=True)
class ResolverDefinition:
    """A flattened registry entry.

    Attributes:
        name: Dotted name as used in expressions
        implementation: The callable, or the constant value for non-callables

    Properties:
        is_callable: False for named constants
        is_async: Whether the implementation is a coroutine function
    """

    name: str
    implementation: Any

    @property
    def is_callable(self) -> bool:
        return callable(self.implementation)

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.implementation)


def flatten_resolvers(tree: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested resolver namespaces into ``{"a.b.c": fn}``.

    Example:
        flatten_resolvers({"api": {"users": {"get": fetch}}, "upper": str.upper})
        # {"api.users.get": fetch, "upper": str.upper}
    """
    flat: dict[str, Any] = {}
    for key, value in tree.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_resolvers(value, name))
        else:
            flat[name] = value
    return flat


class ResolverRegistry:
    """Flattened registry of resolver functions and constants.

    Example:
        registry = ResolverRegistry({"math": {"double": lambda x: x * 2}})
        registry.get("math.double").implementation(4)   # 8
    """

    def __init__(self, resolvers: Mapping[str, Any] | None = None):
        self._entries: dict[str, ResolverDefinition] = {}
        if resolvers:
            for name, value in flatten_resolvers(resolvers).items():
                self.register(name, value)

    def register(self, name: str, implementation: Any) -> None:
        """Register or replace an entry by dotted name."""
        self._entries[name] = ResolverDefinition(name, implementation)

    def get(self, name: str) -> ResolverDefinition:
        """Get an entry by name.

        Raises:
            KeyError: If nothing is registered under ``name``
        """
        return self._entries[name]

    def is_registered(self, name: str) -> bool:
        return name in self._entries

    def list_registered(self) -> list[str]:
        """List all registered names."""
        return sorted(self._entries)

    def functions(self) -> dict[str, Any]:
        """Name to implementation mapping, for building an execution scope."""
        return {name: entry.implementation for name, entry in self._entries.items()}

    def wrap(self, wrapper: Callable[[str, Any], Any]) -> "ResolverRegistry":
        """Return a copy whose callables are replaced by ``wrapper(name, fn)``."""
        wrapped = ResolverRegistry()
        for name, entry in self._entries.items():
            implementation = entry.implementation
            if callable(implementation):
                implementation = wrapper(name, implementation)
            wrapped.register(name, implementation)
        return wrapped

    def __iter__(self) -> Iterator[ResolverDefinition]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries
