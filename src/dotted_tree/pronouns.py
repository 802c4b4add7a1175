"""Pronoun placeholders: ``${:subject}``, ``${:object}``, ``${:possessive}``, ``${:reflexive}``.

Resolved from the tree-walked ``gender`` (default ``x``) and ``lang``
(default ``en``). Unknown languages fall back to English, unknown genders
to neutral.
"""

import re

PRONOUN_FORMS = ("subject", "object", "possessive", "reflexive")

PRONOUNS: dict[str, dict[str, dict[str, str]]] = {
    "en": {
        "m": {"subject": "he", "object": "him", "possessive": "his", "reflexive": "himself"},
        "f": {"subject": "she", "object": "her", "possessive": "her", "reflexive": "herself"},
        "x": {"subject": "they", "object": "them", "possessive": "their", "reflexive": "themselves"},
    },
}

_PLACEHOLDER = re.compile(r"^:(subject|object|possessive|reflexive)$")


def is_pronoun_placeholder(value: str) -> bool:
    return bool(_PLACEHOLDER.match(value.strip()))


def extract_pronoun_form(placeholder: str) -> str | None:
    match = _PLACEHOLDER.match(placeholder.strip())
    return match.group(1) if match else None


def resolve_pronoun(form: str, gender: str = "x", lang: str = "en") -> str:
    """Look up a pronoun, e.g. resolve_pronoun("object", "f") == "her"."""
    table = PRONOUNS.get(lang) or PRONOUNS["en"]
    forms = table.get(gender) or table["x"]
    return forms.get(form, "they")
