"""dotted-tree: lazy, cacheable expression expansion for JSON-like documents.

This package provides:
- Document / dotted(): the document engine (variant-aware, cached reads)
- ScopeResolver: scoped and parent-relative variable lookup
- Variant helpers: parse, serialize, score and resolve variant names
- Expression language: see dotted_tree.expressions
"""

from dotted_tree.config import DocumentOptions
from dotted_tree.document import CacheEntry, Document, dotted
from dotted_tree.exceptions import (
    DottedError,
    EvaluationDepthError,
    ExpressionSyntaxError,
    LexerError,
    ParentReferenceError,
    ParseError,
    ResolverError,
    StorageError,
    ValidationFailed,
)
from dotted_tree.loaders import FileLoader
from dotted_tree.scope import ScopeResolver
from dotted_tree.storage import InMemoryStorage, StorageProvider
from dotted_tree.variants import (
    CandidatePath,
    VariantMatcher,
    normalize_context,
    parse_variant_path,
    resolve_variant_path,
    score_variant_match,
    serialize_variant_path,
)

__version__ = "0.1.0"

__all__ = [
    # Document
    "CacheEntry",
    "Document",
    "DocumentOptions",
    "dotted",
    # Errors
    "DottedError",
    "EvaluationDepthError",
    "ExpressionSyntaxError",
    "LexerError",
    "ParentReferenceError",
    "ParseError",
    "ResolverError",
    "StorageError",
    "ValidationFailed",
    # Loaders
    "FileLoader",
    # Scope
    "ScopeResolver",
    # Storage
    "InMemoryStorage",
    "StorageProvider",
    # Variants
    "CandidatePath",
    "VariantMatcher",
    "normalize_context",
    "parse_variant_path",
    "resolve_variant_path",
    "score_variant_match",
    "serialize_variant_path",
]
