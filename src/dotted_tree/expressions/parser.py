"""Parser for dotted-tree expressions.

Recursive descent over the Lexer's tokens, producing a small AST.

Binding, loosest first:

    a ? b : c                      conditional (right-associative)
    ??                             nullish
    || or                          logical or
    && and                         logical and
    == != < <= > >= in not in      comparison
    + -                            additive
    * / %                          multiplicative
    ! not -                        unary
    .name  [index]                 postfix

A dotted name directly followed by ``(`` is a call of the flattened
resolver name (``api.users.get(1)``). Inside ``${...}`` every name is a
document reference; outside, a bare name is resolved by the Evaluator.
"""

from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from dotted_tree.exceptions import ParseError
from dotted_tree.expressions.lexer import Lexer, Token, TokenType
from dotted_tree.expressions.templates import TemplateBlock, split_template
from dotted_tree.pronouns import extract_pronoun_form

T = TypeVar("T")


# -----------------------------------------------------------------------------
# AST Node Types
# -----------------------------------------------------------------------------


@dataclass
class ASTNode:
    """Base class for AST nodes."""
    pass


@dataclass
class Literal(ASTNode):
    """Number, string, boolean or null."""
    value: Any


@dataclass
class Identifier(ASTNode):
    """Bare (possibly dotted) name outside ``${...}``, e.g. ``config.limit``."""
    name: str


@dataclass
class Reference(ASTNode):
    """Document reference resolved through the scope: ``count``, ``.lang``, ``..name``."""
    path: str


@dataclass
class Pronoun(ASTNode):
    """``${:subject}`` and friends."""
    form: str


@dataclass
class MemberAccess(ASTNode):
    object: ASTNode
    member: str


@dataclass
class IndexAccess(ASTNode):
    object: ASTNode
    index: ASTNode


@dataclass
class BinaryOp(ASTNode):
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass
class UnaryOp(ASTNode):
    operator: str
    operand: ASTNode


@dataclass
class Conditional(ASTNode):
    """``test ? consequent : alternate``."""
    test: ASTNode
    consequent: ASTNode
    alternate: ASTNode


@dataclass
class FunctionCall(ASTNode):
    """Call of a flattened resolver name, e.g. ``api.users.get(id)``."""
    name: str
    arguments: list[ASTNode]


@dataclass
class TemplateString(ASTNode):
    """Quoted string containing ``${...}``; parts are text or nodes."""
    parts: list[Any]


@dataclass
class ArrayLiteral(ASTNode):
    elements: list[ASTNode]


@dataclass
class ObjectLiteral(ASTNode):
    pairs: dict[str, ASTNode]


# Binary operator levels, loosest first; each level is left-associative
BINARY_LEVELS: list[dict[TokenType, str]] = [
    {TokenType.NULLISH: "??"},
    {TokenType.OR: "||"},
    {TokenType.AND: "&&"},
    {
        TokenType.EQ: "==",
        TokenType.NEQ: "!=",
        TokenType.LT: "<",
        TokenType.LTE: "<=",
        TokenType.GT: ">",
        TokenType.GTE: ">=",
        TokenType.IN: "in",
        TokenType.NOT_IN: "not in",
    },
    {TokenType.PLUS: "+", TokenType.MINUS: "-"},
    {TokenType.MULTIPLY: "*", TokenType.DIVIDE: "/", TokenType.MODULO: "%"},
]

UNARY_OPERATORS = {TokenType.NOT: "!", TokenType.MINUS: "-"}


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class Parser:
    """Recursive descent parser for the expression language.

    Usage:
        ast = Parser('greet(${name}, "es")').parse()

    Args:
        source: Expression text
        references: Treat bare names as document references (``${...}`` content)
    """

    def __init__(self, source: str, references: bool = False):
        self.source = source
        self.references = references
        self.tokens = Lexer(source).tokenize()
        self.index = 0

    def parse(self) -> ASTNode:
        """Parse the whole source into one expression.

        Raises:
            ParseError: On empty input, a syntax error or trailing tokens
        """
        if self._peek().type is TokenType.EOF:
            raise ParseError("Empty expression", 0)

        node = self._expression()

        leftover = self._peek()
        if leftover.type is not TokenType.EOF:
            raise ParseError(f"Unexpected token '{leftover.value}'", leftover.position)
        return node

    # -------------------------------------------------------------------------
    # Token stream
    # -------------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        index = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def _next(self) -> Token:
        token = self._peek()
        if token.type is not TokenType.EOF:
            self.index += 1
        return token

    def _accept(self, token_type: TokenType) -> bool:
        if self._peek().type is token_type:
            self._next()
            return True
        return False

    def _expect(self, token_type: TokenType, what: str) -> Token:
        token = self._peek()
        if token.type is not token_type:
            found = "end of input" if token.type is TokenType.EOF else f"'{token.value}'"
            raise ParseError(f"Expected {what}, found {found}", token.position)
        return self._next()

    # -------------------------------------------------------------------------
    # Grammar
    # -------------------------------------------------------------------------

    def _expression(self) -> ASTNode:
        test = self._binary(0)
        if not self._accept(TokenType.QUESTION):
            return test

        consequent = self._expression()
        self._expect(TokenType.COLON, "':' in conditional expression")
        return Conditional(test, consequent, self._expression())

    def _binary(self, level: int) -> ASTNode:
        if level == len(BINARY_LEVELS):
            return self._unary()

        operators = BINARY_LEVELS[level]
        node = self._binary(level + 1)
        while self._peek().type in operators:
            operator = operators[self._next().type]
            node = BinaryOp(operator, node, self._binary(level + 1))
        return node

    def _unary(self) -> ASTNode:
        operator = UNARY_OPERATORS.get(self._peek().type)
        if operator is None:
            return self._postfix(self._primary())
        self._next()
        return UnaryOp(operator, self._unary())

    def _postfix(self, node: ASTNode) -> ASTNode:
        while True:
            if self._accept(TokenType.DOT):
                if self._peek().type is TokenType.NUMBER and isinstance(self._peek().value, int):
                    # items.0 indexes like items[0]
                    node = IndexAccess(node, Literal(self._next().value))
                    continue
                member = self._expect(TokenType.IDENTIFIER, "a member name after '.'")
                node = MemberAccess(node, str(member.value))
            elif self._accept(TokenType.LBRACKET):
                index = self._expression()
                self._expect(TokenType.RBRACKET, "']'")
                node = IndexAccess(node, index)
            else:
                return node

    def _primary(self) -> ASTNode:
        token = self._next()
        kind = token.type

        if kind in (TokenType.NUMBER, TokenType.BOOLEAN, TokenType.NULL):
            return Literal(token.value)
        if kind is TokenType.STRING:
            return string_node(str(token.value))
        if kind is TokenType.IDENTIFIER:
            return self._name(str(token.value))
        if kind is TokenType.REFERENCE:
            return Reference(str(token.value))
        if kind is TokenType.TEMPLATE:
            return parse_block(str(token.value))
        if kind is TokenType.LPAREN:
            inner = self._expression()
            self._expect(TokenType.RPAREN, "')'")
            return inner
        if kind is TokenType.LBRACKET:
            return ArrayLiteral(self._items(TokenType.RBRACKET, self._expression))
        if kind is TokenType.LBRACE:
            return ObjectLiteral(dict(self._items(TokenType.RBRACE, self._pair)))

        found = "end of input" if kind is TokenType.EOF else f"'{token.value}'"
        raise ParseError(f"Unexpected {found}", token.position)

    def _name(self, head: str) -> ASTNode:
        """A dotted name: resolver call, resolver value or document reference."""
        parts = [head]
        while self._peek().type is TokenType.DOT and self._peek(1).type is TokenType.IDENTIFIER:
            self._next()
            parts.append(str(self._next().value))
        name = ".".join(parts)

        if self._accept(TokenType.LPAREN):
            return FunctionCall(name, self._items(TokenType.RPAREN, self._expression))
        return Reference(name) if self.references else Identifier(name)

    def _items(self, closing: TokenType, item: Callable[[], T]) -> list[T]:
        """Comma-separated items up to ``closing`` (already past the opener)."""
        items: list[T] = []
        if self._accept(closing):
            return items
        items.append(item())
        while self._accept(TokenType.COMMA):
            items.append(item())
        self._expect(closing, f"'{closing.value}'")
        return items

    def _pair(self) -> tuple[str, ASTNode]:
        key = self._peek()
        if key.type not in (TokenType.STRING, TokenType.IDENTIFIER):
            raise ParseError("Expected string or identifier as object key", key.position)
        self._next()
        self._expect(TokenType.COLON, "':' after object key")
        return str(key.value), self._expression()


def string_node(text: str) -> ASTNode:
    """Literal for plain text, TemplateString when it holds ``${...}`` blocks."""
    parts = split_template(text)
    if not any(isinstance(part, TemplateBlock) for part in parts):
        return Literal(text)
    return TemplateString(
        [parse_block(part.source) if isinstance(part, TemplateBlock) else part for part in parts]
    )


def parse_block(source: str) -> ASTNode:
    """Parse the content of a ``${...}`` block."""
    form = extract_pronoun_form(source)
    if form:
        return Pronoun(form)
    return Parser(source, references=True).parse()


def parse(source: str) -> ASTNode:
    """Parse an expression string into its AST root."""
    return Parser(source).parse()
