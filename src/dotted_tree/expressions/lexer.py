"""Tokenizer for dotted-tree expressions.

A single compiled scanner recognizes numbers, quoted strings, names and
operators. Two forms need context and are handled before it:

- ``${...}`` blocks become one TEMPLATE token holding the raw block content
  (brace and quote aware, so ``${ {a: 1}.a }`` stays whole).
- A ``.`` directly after an operand is member access (DOT); anywhere else it
  starts a scope reference such as ``.lang`` or ``..company.name``.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from dotted_tree.exceptions import LexerError
from dotted_tree.expressions.templates import TEMPLATE_OPEN, find_block_end


class TokenType(Enum):
    """Kinds of token produced by the Lexer."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    NULL = "null"

    IDENTIFIER = "identifier"
    REFERENCE = "reference"
    TEMPLATE = "template"

    EQ = "=="
    NEQ = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    IN = "in"
    NOT_IN = "not in"

    AND = "&&"
    OR = "||"
    NOT = "!"
    NULLISH = "??"
    QUESTION = "?"

    PLUS = "+"
    MINUS = "-"
    MULTIPLY = "*"
    DIVIDE = "/"
    MODULO = "%"

    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"
    LBRACE = "{"
    RBRACE = "}"
    COMMA = ","
    DOT = "."
    COLON = ":"

    EOF = "eof"


@dataclass(frozen=True)
class Token:
    """One lexeme with its decoded value and source location (1-indexed line/column)."""

    type: TokenType
    value: str | int | float | bool | None
    position: int
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


OPERATORS: dict[str, TokenType] = {
    "===": TokenType.EQ,
    "!==": TokenType.NEQ,
    "==": TokenType.EQ,
    "!=": TokenType.NEQ,
    "<=": TokenType.LTE,
    ">=": TokenType.GTE,
    "&&": TokenType.AND,
    "||": TokenType.OR,
    "??": TokenType.NULLISH,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "!": TokenType.NOT,
    "?": TokenType.QUESTION,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.MULTIPLY,
    "/": TokenType.DIVIDE,
    "%": TokenType.MODULO,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    ".": TokenType.DOT,
}

KEYWORDS: dict[str, tuple[TokenType, object]] = {
    "true": (TokenType.BOOLEAN, True),
    "false": (TokenType.BOOLEAN, False),
    "null": (TokenType.NULL, None),
    "undefined": (TokenType.NULL, None),
    "and": (TokenType.AND, "and"),
    "or": (TokenType.OR, "or"),
    "not": (TokenType.NOT, "not"),
    "in": (TokenType.IN, "in"),
}

_NAME = r"[A-Za-z_][A-Za-z0-9_]*"

_SCANNER = re.compile(
    r"(?P<number>\d+(?:\.\d+)?)"
    r"|(?P<string>\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*')"
    rf"|(?P<name>{_NAME})"
    r"|(?P<operator>"
    + "|".join(re.escape(op) for op in sorted(OPERATORS, key=len, reverse=True))
    + ")",
    re.DOTALL,
)

REFERENCE_PATTERN = re.compile(rf"\.+{_NAME}(?:\.{_NAME})*")

_NOT_IN_TAIL = re.compile(r"\s+in\b", re.IGNORECASE)

_ESCAPE = re.compile(r"\\(.)", re.DOTALL)
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}

# Token types after which '.' means member access
_OPERAND_END = frozenset({
    TokenType.NUMBER,
    TokenType.STRING,
    TokenType.BOOLEAN,
    TokenType.NULL,
    TokenType.IDENTIFIER,
    TokenType.REFERENCE,
    TokenType.TEMPLATE,
    TokenType.RPAREN,
    TokenType.RBRACKET,
    TokenType.RBRACE,
})


def unescape(text: str) -> str:
    """Decode backslash escapes in a quoted string body."""
    return _ESCAPE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), text)


class Lexer:
    """Tokenizer for the expression language.

    Usage:
        for token in Lexer('.lang == "es" && ${count} > 0'):
            print(token)
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0
        self._previous: TokenType | None = None

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type is TokenType.EOF:
                return

    def tokenize(self) -> list[Token]:
        """All tokens, ending with EOF."""
        return list(self)

    def next_token(self) -> Token:
        token = self._scan()
        self._previous = token.type
        return token

    def _scan(self) -> Token:
        start = self.position
        while start < len(self.source) and self.source[start].isspace():
            start += 1
        self.position = start

        if start >= len(self.source):
            return self._token(TokenType.EOF, None, start)

        if self.source.startswith(TEMPLATE_OPEN, start):
            return self._template(start)

        if self.source[start] == "." and self._previous not in _OPERAND_END:
            return self._reference(start)

        match = _SCANNER.match(self.source, start)
        if match is None:
            raise self._error(f"Unexpected character '{self.source[start]}'", start)

        self.position = match.end()
        text = match.group()
        kind = match.lastgroup

        if kind == "number":
            return self._token(TokenType.NUMBER, float(text) if "." in text else int(text), start)
        if kind == "string":
            return self._token(TokenType.STRING, unescape(text[1:-1]), start)
        if kind == "name":
            return self._name(text, start)
        return self._token(OPERATORS[text], text, start)

    def _template(self, start: int) -> Token:
        end = find_block_end(self.source, start)
        if end < 0:
            raise self._error("Unterminated '${' block", start)
        self.position = end + 1
        content = self.source[start + len(TEMPLATE_OPEN) : end].strip()
        return self._token(TokenType.TEMPLATE, content, start)

    def _reference(self, start: int) -> Token:
        match = REFERENCE_PATTERN.match(self.source, start)
        if match is None:
            raise self._error("Unexpected character '.'", start)
        self.position = match.end()
        return self._token(TokenType.REFERENCE, match.group(), start)

    def _name(self, text: str, start: int) -> Token:
        word = text.lower()

        if word == "not":
            tail = _NOT_IN_TAIL.match(self.source, self.position)
            if tail:
                self.position = tail.end()
                return self._token(TokenType.NOT_IN, "not in", start)

        if word in KEYWORDS:
            token_type, value = KEYWORDS[word]
            return self._token(token_type, value, start)

        return self._token(TokenType.IDENTIFIER, text, start)

    def _location(self, position: int) -> tuple[int, int]:
        line = self.source.count("\n", 0, position) + 1
        column = position - self.source.rfind("\n", 0, position)
        return line, column

    def _token(self, token_type: TokenType, value, position: int) -> Token:
        return Token(token_type, value, position, *self._location(position))

    def _error(self, message: str, position: int) -> LexerError:
        return LexerError(message, position, *self._location(position))
