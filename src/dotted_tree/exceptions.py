"""Error taxonomy for dotted-tree.

- ExpressionSyntaxError: malformed expression text (lexer or parser)
- ParentReferenceError: a parent reference climbs above the document root
- ResolverError: failure while calling a resolver or evaluating a computed expression
- EvaluationDepthError: nested evaluation exceeded the configured depth
- StorageError: failure reported by a storage collaborator
- ValidationFailed: a validation hook rejected a value

Unresolved references are not errors; they evaluate to None.
"""


class DottedError(Exception):
    """Base class for all dotted-tree errors."""
    pass


class ExpressionSyntaxError(DottedError):
    """The expression text could not be tokenized or parsed."""
    pass


class LexerError(ExpressionSyntaxError):
    """Error during lexical analysis."""

    def __init__(self, message: str, position: int, line: int = 1, column: int = 1):
        self.position = position
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, column {column}")


class ParseError(ExpressionSyntaxError):
    """Error during parsing."""

    def __init__(self, message: str, position: int):
        self.position = position
        super().__init__(f"{message} at position {position}")


class ParentReferenceError(DottedError):
    """A multi-dot reference asked for more ancestors than the scope has.

    Always raised to the caller, regardless of the document's error hook.
    """

    def __init__(self, reference: str, scope: list[str], required: int):
        self.reference = reference
        self.scope = list(scope)
        self.required = required
        where = ".".join(scope) if scope else "(root)"
        super().__init__(
            f"Parent reference '{reference}' at '{where}' goes beyond root "
            f"(requires {required} parent levels, only {len(scope)} available)"
        )


class ResolverError(DottedError):
    """A resolver call or computed expression failed."""

    def __init__(self, message: str, expression: str | None = None):
        self.expression = expression
        super().__init__(message)


class EvaluationDepthError(DottedError):
    """Nested evaluation exceeded ``max_evaluation_depth``."""

    def __init__(self, path: str, limit: int):
        self.path = path
        self.limit = limit
        super().__init__(f"Maximum evaluation depth {limit} exceeded while reading '{path}'")


class StorageError(DottedError):
    """A storage collaborator could not load or save a document."""
    pass


class ValidationFailed(DottedError):
    """A validation hook rejected a value."""

    def __init__(self, target: str, message: str):
        self.target = target
        super().__init__(f"Validation failed for '{target}': {message}")
