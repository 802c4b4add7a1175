"""Evaluator for dotted-tree expressions.

Classifies a raw string and expands it:

1. No ``${`` and no ``name(`` call: returned unchanged.
2. ``${...}`` blocks only (substitution mode): a string that is exactly one
   block yields the block's typed value; otherwise each block is replaced
   by its display string.
3. Any call (computed mode): the whole string is parsed as an expression
   and evaluated against resolvers, coercion helpers and ``fresh()``.

Resolver results that are awaitable are awaited before evaluation continues.
"""

import inspect
import logging
import operator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Mapping

from dotted_tree.coercion import COERCION_HELPERS, stringify
from dotted_tree.exceptions import EvaluationDepthError, ParentReferenceError, ResolverError
from dotted_tree.expressions.functions import ResolverRegistry
from dotted_tree.expressions.parser import (
    ASTNode,
    ArrayLiteral,
    BinaryOp,
    Conditional,
    FunctionCall,
    Identifier,
    IndexAccess,
    Literal,
    MemberAccess,
    ObjectLiteral,
    Pronoun,
    Reference,
    TemplateString,
    UnaryOp,
    parse,
    parse_block,
)
from dotted_tree.expressions.templates import (
    SIMPLE_PATH_PATTERN,
    TemplateBlock,
    has_function_call,
    has_template,
    split_template,
)
from dotted_tree.pronouns import extract_pronoun_form, resolve_pronoun
from dotted_tree.scope import ScopeResolver

logger = logging.getLogger(__name__)

_NUMBER = (int, float, Decimal)

_ORDERINGS: dict[str, Callable[[int], bool]] = {
    "<": lambda order: order < 0,
    "<=": lambda order: order <= 0,
    ">": lambda order: order > 0,
    ">=": lambda order: order >= 0,
}

_ARITHMETIC: dict[str, tuple[str, Callable[[Any, Any], Any]]] = {
    "+": ("add", operator.add),
    "-": ("subtract", operator.sub),
    "*": ("multiply", operator.mul),
    "/": ("divide", operator.truediv),
    "%": ("modulo", operator.mod),
}

_ZERO_DIVISORS = {"/": "Division by zero", "%": "Modulo by zero"}


class EvaluationError(ResolverError):
    """A computed expression failed at runtime."""
    pass


def is_number(value: Any) -> bool:
    return isinstance(value, _NUMBER) and not isinstance(value, bool)


def truthy(value: Any) -> bool:
    """Expression truthiness: None, False, 0 and "" are false; containers are true."""
    if value is None:
        return False
    if isinstance(value, (bool, int, float, Decimal)):
        return bool(value)
    if isinstance(value, str):
        return value != ""
    return True


def loose_equals(left: Any, right: Any) -> bool:
    """Equality where int/float/Decimal compare by value and None only equals None."""
    if left is None or right is None:
        return left is right
    if is_number(left) and is_number(right):
        return float(left) == float(right)
    return left == right


@dataclass
class EvaluationContext:
    """What an expression can see.

    Attributes:
        scope: Resolves document references relative to the expression's container
        functions: Execution namespace (coercion helpers, ``fresh``, flattened resolvers)
        expression: Source text, for error messages
    """

    scope: ScopeResolver
    functions: dict[str, Any] = field(default_factory=dict)
    expression: str = ""


class Evaluator:
    """Walks an AST, dispatching on node type to ``_eval_<nodetype>``.

    Usage:
        ctx = EvaluationContext(scope=ScopeResolver({"count": 5}))
        result = await Evaluator(ctx).evaluate(parse("${count} * 2"))
    """

    def __init__(self, context: EvaluationContext):
        self.context = context

    async def evaluate(self, node: ASTNode) -> Any:
        handler = getattr(self, f"_eval_{type(node).__name__.lower()}", None)
        if handler is None:
            raise self._error(f"Unsupported expression node: {type(node).__name__}")
        return await handler(node)

    def _error(self, message: str) -> EvaluationError:
        return EvaluationError(message, self.context.expression)

    # -------------------------------------------------------------------------
    # Names and values
    # -------------------------------------------------------------------------

    async def _eval_literal(self, node: Literal) -> Any:
        return node.value

    async def _eval_identifier(self, node: Identifier) -> Any:
        """Resolver constant or function first, then the document."""
        functions = self.context.functions
        if node.name in functions:
            return functions[node.name]
        return self.context.scope.resolve(node.name)

    async def _eval_reference(self, node: Reference) -> Any:
        return self.context.scope.resolve(node.path)

    async def _eval_pronoun(self, node: Pronoun) -> str:
        return pronoun_for(self.context.scope, node.form)

    async def _eval_memberaccess(self, node: MemberAccess) -> Any:
        target = await self.evaluate(node.object)
        if isinstance(target, Mapping):
            return target.get(node.member)
        if target is None:
            return None
        # Models and other objects returned by resolvers; public attributes only
        if node.member.startswith("_"):
            raise self._error(f"Cannot access private member '{node.member}'")
        return getattr(target, node.member, None)

    async def _eval_indexaccess(self, node: IndexAccess) -> Any:
        target = await self.evaluate(node.object)
        key = await self.evaluate(node.index)

        if isinstance(target, Mapping):
            return target.get(key)
        if isinstance(target, (list, tuple, str)) and isinstance(key, int) and not isinstance(key, bool):
            return target[key] if 0 <= key < len(target) else None
        return None

    async def _eval_arrayliteral(self, node: ArrayLiteral) -> list[Any]:
        return [await self.evaluate(element) for element in node.elements]

    async def _eval_objectliteral(self, node: ObjectLiteral) -> dict[str, Any]:
        return {key: await self.evaluate(value) for key, value in node.pairs.items()}

    async def _eval_templatestring(self, node: TemplateString) -> str:
        text = []
        for part in node.parts:
            text.append(stringify(await self.evaluate(part)) if isinstance(part, ASTNode) else part)
        return "".join(text)

    # -------------------------------------------------------------------------
    # Operators
    # -------------------------------------------------------------------------

    async def _eval_conditional(self, node: Conditional) -> Any:
        branch = node.consequent if truthy(await self.evaluate(node.test)) else node.alternate
        return await self.evaluate(branch)

    async def _eval_unaryop(self, node: UnaryOp) -> Any:
        value = await self.evaluate(node.operand)

        if node.operator == "!":
            return not truthy(value)
        if value is None:
            return None
        if is_number(value):
            return -value
        raise self._error(f"Cannot negate {type(value).__name__}")

    async def _eval_binaryop(self, node: BinaryOp) -> Any:
        op = node.operator

        # &&, || and ?? short-circuit and yield an operand, not a boolean
        if op in ("&&", "||", "??"):
            left = await self.evaluate(node.left)
            if op == "&&":
                done = not truthy(left)
            elif op == "||":
                done = truthy(left)
            else:
                done = left is not None
            return left if done else await self.evaluate(node.right)

        left = await self.evaluate(node.left)
        right = await self.evaluate(node.right)

        if op in ("==", "!="):
            return loose_equals(left, right) == (op == "==")
        if op in _ORDERINGS:
            return _ORDERINGS[op](self._order(left, right))
        if op in ("in", "not in"):
            return self._contains(right, left) == (op == "in")
        if op == "+" and (isinstance(left, str) or isinstance(right, str)):
            return stringify(left) + stringify(right)
        if op == "+" and isinstance(left, list) and isinstance(right, list):
            return left + right
        if op in _ARITHMETIC:
            return self._arithmetic(op, left, right)

        raise self._error(f"Unsupported operator: {op}")

    def _arithmetic(self, op: str, left: Any, right: Any) -> Any:
        if left is None or right is None:
            return None

        verb, apply = _ARITHMETIC[op]
        if not (is_number(left) and is_number(right)):
            raise self._error(f"Cannot {verb} {type(left).__name__} and {type(right).__name__}")
        if op in _ZERO_DIVISORS and right == 0:
            raise self._error(_ZERO_DIVISORS[op])
        return apply(left, right)

    def _order(self, left: Any, right: Any) -> int:
        """-1, 0 or 1; None sorts before everything else."""
        if left is None or right is None:
            return (left is not None) - (right is not None)
        if is_number(left) and is_number(right):
            left, right = float(left), float(right)
        elif not (isinstance(left, str) and isinstance(right, str)):
            raise self._error(
                f"Cannot compare {type(left).__name__} and {type(right).__name__}"
            )
        return (left > right) - (left < right)

    def _contains(self, collection: Any, item: Any) -> bool:
        if collection is None:
            return False
        if isinstance(collection, str):
            return item is not None and stringify(item) in collection
        if isinstance(collection, (list, tuple, dict)):
            return item in collection
        raise self._error(f"'in' needs a collection, got {type(collection).__name__}")

    # -------------------------------------------------------------------------
    # Calls
    # -------------------------------------------------------------------------

    async def _eval_functioncall(self, node: FunctionCall) -> Any:
        """Call a resolver or helper, awaiting asynchronous results."""
        func = self.context.functions.get(node.name)
        if not callable(func):
            raise self._error(f"Unknown function: {node.name}")

        args = [await self.evaluate(arg) for arg in node.arguments]

        try:
            result = func(*args)
            if inspect.isawaitable(result):
                result = await result
        except (ParentReferenceError, EvaluationDepthError):
            raise
        except Exception as e:
            raise self._error(f"Error calling {node.name}: {e}") from e

        return result


# -----------------------------------------------------------------------------
# Expression properties
# -----------------------------------------------------------------------------


def pronoun_for(scope: ScopeResolver, form: str) -> str:
    """Resolve a pronoun form from the gender and lang visible at ``scope``."""
    gender = scope.tree_walk("gender")
    lang = scope.tree_walk("lang")
    return resolve_pronoun(
        form,
        gender if isinstance(gender, str) else "x",
        lang if isinstance(lang, str) else "en",
    )


class ExpressionEvaluator:
    """Expands one expression property.

    Args:
        data: The document tree
        registry: Flattened resolver registry
        scope: Container keys of the property being evaluated
        fresh: Coroutine function re-reading a document path without cache
        path: The requested path, for log and error messages

    Example:
        evaluator = ExpressionEvaluator(data, registry, scope=["users", "alice"])
        await evaluator.evaluate("Hello ${name}")
    """

    def __init__(
        self,
        data: dict[str, Any],
        registry: ResolverRegistry | None = None,
        scope: list[str] | None = None,
        fresh: Callable[[str], Awaitable[Any]] | None = None,
        path: str | None = None,
    ):
        self.scope = ScopeResolver(data, scope)
        self.path = path or ".".join(scope or []) or "(root)"
        self.functions = build_namespace(registry, fresh)

    async def evaluate(self, raw: Any) -> Any:
        """Expand ``raw``; non-strings and plain strings come back unchanged."""
        if not isinstance(raw, str):
            return raw

        templated = has_template(raw)
        computed = has_function_call(raw)

        if not templated and not computed:
            return raw

        if templated and not computed:
            return await self._substitute(raw)

        logger.debug("Computing %s: %s", self.path, raw)
        return await self._run(parse(raw), raw)

    async def _substitute(self, raw: str) -> Any:
        parts = split_template(raw.strip())
        if len(parts) == 1 and isinstance(parts[0], TemplateBlock):
            return await self._evaluate_block(parts[0].source)

        pieces = []
        for part in split_template(raw):
            if isinstance(part, TemplateBlock):
                pieces.append(stringify(await self._evaluate_block(part.source)))
            else:
                pieces.append(part)
        return "".join(pieces)

    async def _evaluate_block(self, source: str) -> Any:
        form = extract_pronoun_form(source)
        if form:
            return pronoun_for(self.scope, form)

        if SIMPLE_PATH_PATTERN.match(source):
            return self.scope.resolve(source)

        return await self._run(parse_block(source), source)

    async def _run(self, node: ASTNode, source: str) -> Any:
        context = EvaluationContext(scope=self.scope, functions=self.functions, expression=source)
        return await Evaluator(context).evaluate(node)


def build_namespace(
    registry: ResolverRegistry | None,
    fresh: Callable[[str], Awaitable[Any]] | None = None,
) -> dict[str, Any]:
    """Coercion helpers, then ``fresh``, then resolvers (which may override both)."""
    namespace: dict[str, Any] = dict(COERCION_HELPERS)
    if fresh is not None:
        namespace["fresh"] = fresh
    if registry is not None:
        namespace.update(registry.functions())
    return namespace


def evaluate(
    expression: str,
    data: Mapping[str, Any],
    scope: list[str] | None = None,
    resolvers: Mapping[str, Any] | None = None,
) -> Awaitable[Any]:
    """Evaluate a standalone expression string against ``data``.

    Example:
        await evaluate("Total: ${count}", {"count": 3})
        # "Total: 3"
    """
    evaluator = ExpressionEvaluator(
        dict(data), ResolverRegistry(resolvers) if resolvers else None, scope
    )
    return evaluator.evaluate(expression)
