"""Document engine: a mutable tree whose expression properties expand on read.

Reads resolve the variant-qualified path, evaluate expression properties,
and cache results by requested path. Any mutation clears the whole cache.

A Document is meant for a single writer on one event loop. It takes no
locks; reads suspended on async resolvers do not block writes. A read that
overlaps a mutation still returns its value but does not cache it.
"""

import copy
import inspect
import logging
import time
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any, Mapping

from dotted_tree.config import DocumentOptions
from dotted_tree.exceptions import EvaluationDepthError, ParentReferenceError
from dotted_tree.expressions import ExpressionEvaluator, ResolverRegistry, looks_like_expression
from dotted_tree.paths import (
    MISSING,
    available_names,
    delete_in,
    get_in,
    join_path,
    merge_initial,
    set_in,
    split_path,
)
from dotted_tree.scope import ScopeResolver
from dotted_tree.variants import VariantContext, VariantMatcher

logger = logging.getLogger(__name__)

# Nesting of get() calls in the current task (fresh() re-enters get)
_evaluation_depth: ContextVar[int] = ContextVar("dotted_tree_evaluation_depth", default=0)


def _detached(value: Any) -> Any:
    """Containers leave the Document as copies; the tree changes only via set/delete."""
    return copy.deepcopy(value) if isinstance(value, (dict, list)) else value


@dataclass
class CacheEntry:
    """A cached read result."""

    value: Any
    timestamp: float


class Document:
    """A lazily evaluated document tree.

    Usage:
        doc = Document(
            {"name": "Ada", ".greeting": "upper(${name})"},
            resolvers={"upper": str.upper},
        )
        await doc.get("greeting")   # "ADA"

    Args:
        schema: Base tree; deep-copied, never mutated
        options: DocumentOptions; keyword arguments override its fields
    """

    def __init__(
        self,
        schema: Mapping[str, Any] | None = None,
        options: DocumentOptions | None = None,
        **kwargs: Any,
    ):
        if options is None:
            options = DocumentOptions(**kwargs)
        elif kwargs:
            options = replace(options, **kwargs)

        self.options = options
        self._data = merge_initial(dict(schema or {}), dict(options.initial or {}))
        self._registry = ResolverRegistry(options.resolvers)
        self._matcher = VariantMatcher(options.dimensions, options.variants)
        self._cache: dict[str, CacheEntry] = {}
        self._generation = 0
        self._available: list[str] = []
        self._reindex()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, path: str, fresh: bool = False, fallback: Any = None) -> Any:
        """Read ``path``, evaluating it if it is an expression property.

        Args:
            path: Dotted path; ``a..b`` addresses the expression-marked key ``.b``
            fresh: Bypass the cache
            fallback: Overrides the configured fallback for this call

        Error policy: parent references beyond the root always raise. Other
        errors go to ``on_error(error, path)`` when configured: ``"throw"``
        re-raises, ``"fallback"`` returns the fallback, anything else is
        returned as the value. Without a hook the fallback is used if one is
        configured, otherwise the error propagates.
        """
        if not path:
            return None

        if not fresh:
            entry = self._cache.get(path)
            if entry is not None:
                logger.debug("Cache hit for %s", path)
                if entry.value is None:
                    return await self._fallback(fallback)
                return _detached(entry.value)

        generation = self._generation
        token = _evaluation_depth.set(_evaluation_depth.get() + 1)
        try:
            value = await self._read(path)
        except ParentReferenceError:
            raise
        except Exception as e:
            return await self._handle_error(e, path, fallback)
        finally:
            _evaluation_depth.reset(token)

        if value is None:
            replacement = await self._fallback(fallback)
            if replacement is not None:
                return replacement

        if generation == self._generation:
            self._cache[path] = CacheEntry(value, time.time())
        else:
            logger.debug("Document changed while reading %s; result not cached", path)

        return _detached(value)

    async def has(self, path: str, fresh: bool = False) -> bool:
        """True when get(path) neither raises nor yields None."""
        try:
            return await self.get(path, fresh=fresh) is not None
        except Exception as e:
            logger.debug("has(%s) is False: %s", path, e)
            return False

    async def _read(self, path: str) -> Any:
        segments = split_path(path)
        container, key = segments[:-1], segments[-1]

        context = self.variant_context(join_path(container))
        resolved = self._matcher.resolve(path, context, self._available)
        value = get_in(self._data, split_path(resolved))

        # Fall back to the expression-marked sibling (.key)
        if value is MISSING and not key.startswith("."):
            marked = join_path([*container, "." + key])
            resolved = self._matcher.resolve(marked, context, self._available)
            value = get_in(self._data, split_path(resolved))

        if value is MISSING:
            logger.debug("No value at %s", path)
            return None

        if looks_like_expression(value):
            depth = _evaluation_depth.get()
            if depth > self.options.max_evaluation_depth:
                raise EvaluationDepthError(path, self.options.max_evaluation_depth)

            logger.debug("Cache miss for %s; evaluating %s", path, resolved)
            evaluator = ExpressionEvaluator(
                self._data,
                self._registry,
                scope=split_path(resolved)[:-1],
                fresh=self._fresh,
                path=path,
            )
            value = await evaluator.evaluate(value)

        # Substitutions like ${user} yield live subtrees
        value = _detached(value)

        if self.options.validate is not None and value is not None:
            value = self.options.validate(path, value)
            if inspect.isawaitable(value):
                value = await value

        return value

    async def _fresh(self, path: str) -> Any:
        return await self.get(path, fresh=True)

    async def _fallback(self, per_call: Any = None) -> Any:
        fallback = per_call if per_call is not None else self.options.fallback
        if callable(fallback):
            fallback = fallback()
            if inspect.isawaitable(fallback):
                fallback = await fallback
        return fallback

    async def _handle_error(self, error: Exception, path: str, fallback: Any) -> Any:
        hook = self.options.on_error

        if hook is None:
            replacement = await self._fallback(fallback)
            if replacement is None:
                raise error
            logger.warning("Using fallback for %s after error: %s", path, error)
            return replacement

        decision = hook(error, path)
        if inspect.isawaitable(decision):
            decision = await decision

        if decision == "throw":
            raise error
        if decision == "fallback":
            logger.warning("Using fallback for %s after error: %s", path, error)
            return await self._fallback(fallback)

        logger.warning("Error hook replaced value for %s after error: %s", path, error)
        return decision

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def set(self, path: str, value: Any) -> None:
        """Assign ``value`` at ``path``, creating containers as needed."""
        segments = split_path(path)
        if not segments:
            raise ValueError("Cannot set an empty path")
        set_in(self._data, segments, value)
        self._invalidate()

    def delete(self, path: str) -> None:
        """Remove the key at ``path`` if present."""
        segments = split_path(path)
        if segments and delete_in(self._data, segments):
            logger.debug("Deleted %s", path)
        self._invalidate()

    def set_variant(self, context: Mapping[str, str] | None) -> None:
        """Replace the explicit Variant Context."""
        self._matcher = VariantMatcher(self.options.dimensions, context)
        self.options = replace(self.options, variants=dict(context or {}))
        self.clear_cache()

    def clear_cache(self) -> None:
        self._cache.clear()
        self._generation += 1

    def _invalidate(self) -> None:
        self.clear_cache()
        self._reindex()

    def _reindex(self) -> None:
        self._available = available_names(self._data)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def variant_context(self, path: str = "") -> VariantContext:
        """The Variant Context in effect for properties inside ``path``."""
        return self._matcher.discover(ScopeResolver(self._data, split_path(path)))

    def all_keys(self, path: str | None = None) -> list[str]:
        """Keys of the container at ``path`` (the root when omitted)."""
        target = get_in(self._data, split_path(path)) if path else self._data
        if isinstance(target, dict):
            return list(target)
        return []

    @property
    def available_names(self) -> list[str]:
        return list(self._available)

    @property
    def resolvers(self) -> ResolverRegistry:
        return self._registry

    def to_dict(self) -> dict[str, Any]:
        """Deep copy of the raw (unevaluated) tree."""
        return copy.deepcopy(self._data)

    def __repr__(self) -> str:
        return f"Document(keys={list(self._data)!r}, cached={len(self._cache)})"


def dotted(schema: Mapping[str, Any] | None = None, **options: Any) -> Document:
    """Create a Document; options may use snake_case or camelCase names.

    Example:
        doc = dotted({"count": 2, ".double": "${count * 2}"})
        await doc.get("double")   # 4
    """
    return Document(schema, DocumentOptions.from_mapping(options))
