"""Scoped variable lookup inside a document tree.

Reference forms:
- ``name.path``  scoped lookup relative to the current container, then absolute
- ``.name``      tree-walking lookup: nearest enclosing container defining it
- ``..name``     parent reference: N dots climb N-1 levels, then resolve there
"""

import re
from typing import Any

from dotted_tree.exceptions import ParentReferenceError
from dotted_tree.paths import MISSING, get_in, split_path

_LEADING_DOTS = re.compile(r"^\.+")


class ScopeResolver:
    """Resolves variable references against ``data`` from a Scope Path.

    Usage:
        resolver = ScopeResolver(data, ["company", "employees", "alice"])
        resolver.resolve("..department")
    """

    def __init__(self, data: dict[str, Any], scope: list[str] | None = None):
        self.data = data
        self.scope = list(scope or [])

    def resolve(self, reference: str) -> Any:
        """Resolve a reference, returning None when nothing is defined.

        Raises:
            ParentReferenceError: If a parent reference climbs above the root
        """
        value = self.lookup(reference)
        return None if value is MISSING else value

    def lookup(self, reference: str) -> Any:
        """Like resolve(), but returns MISSING for misses."""
        reference = reference.strip()
        match = _LEADING_DOTS.match(reference)
        leading_dots = len(match.group()) if match else 0

        if leading_dots > 1:
            return self._resolve_parent(reference, leading_dots)

        if leading_dots == 1:
            return self.tree_walk(reference[1:])

        segments = split_path(reference)
        if self.scope:
            value = get_in(self.data, self.scope + segments)
            if value is not MISSING:
                return value

        return get_in(self.data, segments)

    def tree_walk(self, prop: str, anchor: list[str] | None = None) -> Any:
        """Find ``prop`` at the deepest container of ``anchor`` (default: scope) that defines it."""
        anchor = self.scope if anchor is None else anchor
        segments = split_path(prop)

        for depth in range(len(anchor), -1, -1):
            value = get_in(self.data, anchor[:depth] + segments)
            if value is not MISSING:
                return value

        return MISSING

    def _resolve_parent(self, reference: str, leading_dots: int) -> Any:
        levels = leading_dots - 1
        if levels > len(self.scope):
            raise ParentReferenceError(reference, self.scope, levels)

        base = self.scope[: len(self.scope) - levels]
        prop_segments = split_path(reference[leading_dots:])

        value = get_in(self.data, base + prop_segments)
        if value is not MISSING:
            return value

        # Single names fall back to tree-walking anchored at the ancestor
        if len(prop_segments) == 1:
            return self.tree_walk(prop_segments[0], anchor=base)

        return MISSING
