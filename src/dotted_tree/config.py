"""Document configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Mapping

from dotted_tree.variants import DEFAULT_CUSTOM_DIMENSIONS

# on_error(error, path) -> "throw" | "fallback" | replacement value
OnErrorHook = Callable[[Exception, str], Any]

# validate(path, value) -> value, raising to reject
ValidateHook = Callable[[str, Any], Any]

DEFAULT_MAX_EVALUATION_DEPTH = 100

_CAMEL_CASE_KEYS = {
    "onError": "on_error",
    "maxEvaluationDepth": "max_evaluation_depth",
}


@dataclass
class DocumentOptions:
    """Options for a Document.

    Attributes:
        resolvers: Nested mapping of resolver functions and constants
        initial: Overrides merged onto the schema at construction
        fallback: Value, or zero-argument (possibly async) callable, used for misses
        on_error: Error policy hook, see Document.get
        validate: Hook applied to every value read from the tree
        variants: Explicit Variant Context; overrides values found in the tree
        dimensions: Custom dimension names discovered from the tree
        max_evaluation_depth: Limit on nested reads through ``fresh()``
    """

    resolvers: Mapping[str, Any] = field(default_factory=dict)
    initial: dict[str, Any] = field(default_factory=dict)
    fallback: Any = None
    on_error: OnErrorHook | None = None
    validate: ValidateHook | None = None
    variants: dict[str, str] = field(default_factory=dict)
    dimensions: tuple[str, ...] = DEFAULT_CUSTOM_DIMENSIONS
    max_evaluation_depth: int = DEFAULT_MAX_EVALUATION_DEPTH

    def __post_init__(self) -> None:
        if self.max_evaluation_depth < 1:
            raise ValueError("max_evaluation_depth must be at least 1")
        self.dimensions = tuple(self.dimensions)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> DocumentOptions:
        """Create options from a plain mapping; camelCase keys are accepted.

        Raises:
            ValueError: On unknown option names
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in options.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown document option: {key}")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_env(cls, **overrides: Any) -> DocumentOptions:
        """Create options from environment variables.

        - DOTTED_TREE_MAX_EVALUATION_DEPTH: integer depth limit
        - DOTTED_TREE_DIMENSIONS: comma-separated custom dimension names
        """
        kwargs: dict[str, Any] = {}

        depth = os.environ.get("DOTTED_TREE_MAX_EVALUATION_DEPTH")
        if depth:
            kwargs["max_evaluation_depth"] = int(depth)

        dimensions = os.environ.get("DOTTED_TREE_DIMENSIONS")
        if dimensions:
            kwargs["dimensions"] = tuple(d.strip() for d in dimensions.split(",") if d.strip())

        kwargs.update(overrides)
        return cls(**kwargs)
