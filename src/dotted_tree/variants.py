"""Variant resolution for localized and conditional content.

A property may have sibling variants named with colon-separated suffixes::

    greeting            base value
    greeting:es         Spanish
    greeting:es:formal  Spanish, formal register

Well-known dimensions are ``lang`` (ISO 639-1, optional region: ``en-US``),
``gender`` (``m``/``f``/``x``) and ``form`` (formality level). Any other
suffix is a custom dimension whose key is its own value.

Scoring weights: lang 1000, gender 100, form 50, each custom match 10.
Ties go to the candidate with the fewest dimensions that do not match the
context, then to document order.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from dotted_tree.paths import MISSING

logger = logging.getLogger(__name__)

VariantContext = dict[str, str]

WELL_KNOWN_DIMENSIONS = ("lang", "gender", "form")

DEFAULT_CUSTOM_DIMENSIONS = (
    "region",
    "theme",
    "platform",
    "device",
    "style",
    "context",
    "environment",
    "tone",
    "dialect",
    "source",
)

GENDERS = ("m", "f", "x")

FORMS = ("casual", "informal", "neutral", "polite", "formal", "honorific")

_LANG_PATTERN = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")
_GENDER_PATTERN = re.compile(r"^[mfx]$")
_FORM_PATTERN = re.compile(r"^(" + "|".join(FORMS) + r")$")

SCORE_LANG = 1000
SCORE_GENDER = 100
SCORE_FORM = 50
SCORE_CUSTOM = 10


@dataclass(frozen=True)
class CandidatePath:
    """A property name split into its base and variant signature."""

    base: str
    variants: VariantContext = field(default_factory=dict)

    @property
    def name(self) -> str:
        return serialize_variant_path(self.base, self.variants)


def parse_variant_path(name: str) -> CandidatePath:
    """Parse ``greeting:es:formal`` into base and variants.

    Example:
        parse_variant_path(".bio:es:f:surfer")
        # CandidatePath(base=".bio", variants={"lang": "es", "gender": "f", "surfer": "surfer"})
    """
    parts = name.split(":")
    variants: VariantContext = {}

    for part in parts[1:]:
        if not part:
            continue
        if _LANG_PATTERN.match(part):
            variants["lang"] = part
        elif _GENDER_PATTERN.match(part):
            variants["gender"] = part
        elif _FORM_PATTERN.match(part):
            variants["form"] = part
        else:
            variants[part] = part

    return CandidatePath(parts[0], variants)


def serialize_variant_path(base: str, variants: Mapping[str, str] | None = None) -> str:
    """Build the canonical name: lang, gender, form, then custom values alphabetically."""
    parts = [base]
    variants = variants or {}

    for dimension in WELL_KNOWN_DIMENSIONS:
        if variants.get(dimension):
            parts.append(variants[dimension])

    for key in sorted(k for k in variants if k not in WELL_KNOWN_DIMENSIONS):
        value = variants[key]
        if isinstance(value, str) and value:
            parts.append(value)

    return ":".join(parts)


def normalize_context(context: Mapping[str, Any] | None) -> VariantContext:
    """Bring a caller-supplied context into the shape parsed names have.

    Custom dimensions are re-keyed by value (``{"region": "us"}`` becomes
    ``{"us": "us"}``), non-string and empty values are dropped, and a gender
    outside m/f/x is ignored.
    """
    normalized: VariantContext = {}
    if not context:
        return normalized

    for key, value in context.items():
        if not isinstance(value, str) or not value:
            continue
        if key == "gender":
            if value in GENDERS:
                normalized["gender"] = value
        elif key in WELL_KNOWN_DIMENSIONS:
            normalized[key] = value
        else:
            normalized[value] = value

    return normalized


def score_variant_match(path_variants: Mapping[str, str], context: Mapping[str, str]) -> int:
    """Score how well a candidate's variants match the context. Pure."""
    score = 0

    if path_variants.get("lang") and path_variants.get("lang") == context.get("lang"):
        score += SCORE_LANG
    if path_variants.get("gender") and path_variants.get("gender") == context.get("gender"):
        score += SCORE_GENDER
    if path_variants.get("form") and path_variants.get("form") == context.get("form"):
        score += SCORE_FORM

    for key, value in path_variants.items():
        if key not in WELL_KNOWN_DIMENSIONS and context.get(key) == value:
            score += SCORE_CUSTOM

    return score


def count_extra_variants(path_variants: Mapping[str, str], context: Mapping[str, str]) -> int:
    """Count candidate dimensions that are absent from, or differ from, the context."""
    return sum(1 for key, value in path_variants.items() if context.get(key) != value)


def resolve_variant_path(
    base_path: str,
    context: Mapping[str, str] | None,
    available_names: Iterable[str],
) -> str:
    """Pick the best-matching variant of ``base_path`` among ``available_names``.

    Returns ``base_path`` unchanged when the context is empty or no
    candidate scores above zero.

    Example:
        resolve_variant_path(
            "greeting",
            {"lang": "es", "form": "formal"},
            ["greeting", "greeting:es", "greeting:es:formal"],
        )
        # "greeting:es:formal"
    """
    if not context:
        return base_path

    ranked: list[tuple[int, int, str]] = []
    for name in available_names:
        candidate = parse_variant_path(name)
        if candidate.base != base_path:
            continue
        score = score_variant_match(candidate.variants, context)
        if score == 0:
            continue
        ranked.append((score, count_extra_variants(candidate.variants, context), name))

    if not ranked:
        return base_path

    # Stable sort keeps document order for full ties
    ranked.sort(key=lambda entry: (-entry[0], entry[1]))
    return ranked[0][2]


class VariantMatcher:
    """Discovers the live Variant Context and rewrites paths with it.

    Attributes:
        dimensions: Custom dimension names looked up in the document
        explicit: Context supplied by the caller; overrides discovered values
    """

    def __init__(
        self,
        dimensions: Iterable[str] = DEFAULT_CUSTOM_DIMENSIONS,
        explicit: Mapping[str, Any] | None = None,
    ):
        self.dimensions = tuple(dimensions)
        self.explicit = {k: v for k, v in (explicit or {}).items() if isinstance(v, str)}

    def discover(self, scope_resolver: Any) -> VariantContext:
        """Tree-walk the document from the resolver's scope for known dimensions."""
        found: dict[str, Any] = {}

        for dimension in (*WELL_KNOWN_DIMENSIONS, *self.dimensions):
            value = scope_resolver.tree_walk(dimension)
            if value is not MISSING and isinstance(value, str):
                found[dimension] = value

        found.update(self.explicit)
        return normalize_context(found)

    def resolve(
        self,
        base_path: str,
        context: Mapping[str, str],
        available_names: Iterable[str],
    ) -> str:
        resolved = resolve_variant_path(base_path, context, available_names)
        if resolved != base_path:
            logger.debug("Variant %s resolved to %s for %s", base_path, resolved, dict(context))
        return resolved
