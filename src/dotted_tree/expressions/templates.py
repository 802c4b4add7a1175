"""Scanning of ``${...}`` interpolation blocks and expression-shape detection."""

import re
from dataclasses import dataclass

TEMPLATE_OPEN = "${"

# name( or a.b.c( with no space before the parenthesis
FUNCTION_CALL_PATTERN = re.compile(r"[A-Za-z_][\w.]*\(")

# Plain or parent-relative dotted path: count, user.name, .lang, ..company.name
SIMPLE_PATH_PATTERN = re.compile(r"^\.*[A-Za-z_]\w*(\.(?:[A-Za-z_]\w*|\d+))*$")


@dataclass(frozen=True)
class TemplateBlock:
    """The source between ``${`` and its matching ``}``."""

    source: str
    start: int
    end: int


def has_template(text: str) -> bool:
    return TEMPLATE_OPEN in text


def has_function_call(text: str) -> bool:
    return bool(FUNCTION_CALL_PATTERN.search(text))


def looks_like_expression(value: object) -> bool:
    """True for strings that carry an interpolation block or a call."""
    return isinstance(value, str) and (has_template(value) or has_function_call(value))


def find_block_end(text: str, start: int) -> int:
    """Index of the ``}`` closing the block opened at ``text[start:start + 2]``.

    Nested braces and quoted strings inside the block are skipped.
    Returns -1 when the block is unterminated.
    """
    depth = 0
    quote: str | None = None
    i = start + len(TEMPLATE_OPEN)

    while i < len(text):
        char = text[i]
        if quote:
            if char == "\\":
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in ("'", '"', "`"):
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            if depth == 0:
                return i
            depth -= 1
        i += 1

    return -1


def split_template(text: str) -> list[str | TemplateBlock]:
    """Split text into literal runs and interpolation blocks.

    An unterminated ``${`` is kept as literal text.
    """
    parts: list[str | TemplateBlock] = []
    position = 0

    while True:
        start = text.find(TEMPLATE_OPEN, position)
        if start < 0:
            break
        end = find_block_end(text, start)
        if end < 0:
            break
        if start > position:
            parts.append(text[position:start])
        parts.append(TemplateBlock(text[start + 2 : end].strip(), start, end + 1))
        position = end + 1

    if position < len(text):
        parts.append(text[position:])

    return parts
