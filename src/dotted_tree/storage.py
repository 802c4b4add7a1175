"""Storage collaborator contract.

A storage provider maps a base name plus Variant Context to a stored tree.
Stored names use the canonical variant serialization
(``strings:es:formal``), so any provider can pick the best-matching variant
with the same scoring the Document uses for properties.
"""

import copy
from typing import Any, Iterable, Mapping, Protocol

from dotted_tree.exceptions import StorageError
from dotted_tree.variants import normalize_context, resolve_variant_path, serialize_variant_path

_FORBIDDEN_SEQUENCES = ("/", "\\", "..", "\x00")


class StorageProvider(Protocol):
    """Loads and saves document trees by base name and variants."""

    async def load(self, base_name: str, variants: Mapping[str, str] | None = None) -> dict[str, Any]:
        ...

    async def save(
        self,
        base_name: str,
        tree: dict[str, Any],
        variants: Mapping[str, str] | None = None,
    ) -> None:
        ...

    async def exists(self, base_name: str, variants: Mapping[str, str] | None = None) -> bool:
        ...


def check_name(value: str, what: str = "name") -> str:
    """Reject names that could escape a storage root.

    Raises:
        StorageError: If ``value`` is empty or contains a path separator, ``..`` or NUL
    """
    if not value or any(seq in value for seq in _FORBIDDEN_SEQUENCES):
        raise StorageError(f"Invalid {what} '{value}'")
    return value


def storage_key(base_name: str, variants: Mapping[str, str] | None = None) -> str:
    """Canonical stored name for a base name and Variant Context."""
    check_name(base_name, "base name")
    context = normalize_context(variants)
    for value in context.values():
        check_name(value, "variant value")
    return serialize_variant_path(base_name, context)


def select_variant(
    base_name: str,
    variants: Mapping[str, str] | None,
    stored_names: Iterable[str],
) -> str:
    """Best stored name for ``variants``; the bare base name when nothing scores."""
    storage_key(base_name, variants)
    return resolve_variant_path(base_name, normalize_context(variants), stored_names)


class InMemoryStorage:
    """Dict-backed provider; trees are deep-copied in and out."""

    def __init__(self) -> None:
        self._store: dict[str, dict[str, Any]] = {}

    async def load(self, base_name: str, variants: Mapping[str, str] | None = None) -> dict[str, Any]:
        name = select_variant(base_name, variants, self._store)
        if name not in self._store:
            raise StorageError(f"Not found: {name}")
        return copy.deepcopy(self._store[name])

    async def save(
        self,
        base_name: str,
        tree: dict[str, Any],
        variants: Mapping[str, str] | None = None,
    ) -> None:
        self._store[storage_key(base_name, variants)] = copy.deepcopy(tree)

    async def exists(self, base_name: str, variants: Mapping[str, str] | None = None) -> bool:
        return storage_key(base_name, variants) in self._store

    def names(self) -> list[str]:
        return list(self._store)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
