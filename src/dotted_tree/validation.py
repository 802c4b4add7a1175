"""Pydantic-backed validation hooks.

Plugs into a Document through ``validate=`` (per-path value checks) and by
wrapping resolvers (per-name argument and result checks):

    validator = PydanticValidator(
        paths={"user.age": int},
        resolvers={"lookup": ResolverSchema(args=(int,), returns=User)},
    )
    doc = Document(
        data,
        resolvers=validator.wrap_resolvers(resolvers),
        validate=validator.validate,
    )
"""

import functools
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from dotted_tree.document import Document, dotted
from dotted_tree.exceptions import ValidationFailed
from dotted_tree.expressions.functions import ResolverRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolverSchema:
    """Expected argument and result types for a resolver.

    Attributes:
        args: One type per positional argument, or None to skip argument checks
        returns: Result type, or None to skip result checks
    """

    args: tuple[Any, ...] | None = None
    returns: Any = None


def _check(adapter: TypeAdapter, target: str, value: Any) -> Any:
    try:
        return adapter.validate_python(value)
    except PydanticValidationError as e:
        raise ValidationFailed(target, str(e)) from e


class PydanticValidator:
    """Validates document values and resolver traffic with pydantic.

    Args:
        paths: Document path to type (any type pydantic can validate)
        resolvers: Resolver name to ResolverSchema
        model: Optional model for the whole raw tree
        strict: When False, whole-tree failures are logged instead of raised
    """

    def __init__(
        self,
        paths: Mapping[str, Any] | None = None,
        resolvers: Mapping[str, ResolverSchema] | None = None,
        model: type[BaseModel] | None = None,
        strict: bool = True,
    ):
        self._paths = {path: TypeAdapter(tp) for path, tp in (paths or {}).items()}
        self._resolvers = dict(resolvers or {})
        self._model = model
        self.strict = strict

    def validate(self, path: str, value: Any) -> Any:
        """Validate (and coerce) a value read at ``path``; unknown paths pass through.

        Raises:
            ValidationFailed: If the value does not fit the registered type
        """
        adapter = self._paths.get(path)
        if adapter is None:
            return value
        return _check(adapter, path, value)

    def validate_tree(self, tree: Mapping[str, Any]) -> bool:
        """Validate a whole raw tree against the model.

        Raises:
            ValidationFailed: In strict mode, if the tree does not fit the model
        """
        if self._model is None:
            return True
        try:
            self._model.model_validate(tree)
        except PydanticValidationError as e:
            if self.strict:
                raise ValidationFailed(self._model.__name__, str(e)) from e
            logger.warning("Document does not match %s: %s", self._model.__name__, e)
            return False
        return True

    def wrap_resolvers(self, resolvers: Mapping[str, Any]) -> dict[str, Any]:
        """Flattened resolvers with argument/result validation applied by name."""
        return ResolverRegistry(resolvers).wrap(self.wrap_resolver).functions()

    def wrap_resolver(self, name: str, fn: Callable[..., Any]) -> Callable[..., Any]:
        schema = self._resolvers.get(name)
        if schema is None:
            return fn

        arg_adapters = [TypeAdapter(tp) for tp in schema.args] if schema.args is not None else None
        result_adapter = TypeAdapter(schema.returns) if schema.returns is not None else None

        def check_result(result: Any) -> Any:
            if result_adapter is None:
                return result
            return _check(result_adapter, f"{name}() result", result)

        async def await_result(pending: Awaitable[Any]) -> Any:
            return check_result(await pending)

        @functools.wraps(fn)
        def wrapper(*args: Any) -> Any:
            if arg_adapters is not None:
                if len(args) != len(arg_adapters):
                    raise ValidationFailed(
                        f"{name}()", f"expected {len(arg_adapters)} arguments, got {len(args)}"
                    )
                args = tuple(
                    _check(adapter, f"{name}() argument {i + 1}", arg)
                    for i, (adapter, arg) in enumerate(zip(arg_adapters, args))
                )
            result = fn(*args)
            if inspect.isawaitable(result):
                return await_result(result)
            return check_result(result)

        return wrapper


def with_pydantic(
    model: type[BaseModel],
    schema: Mapping[str, Any] | None = None,
    strict: bool = True,
    **options: Any,
) -> Document:
    """Create a Document whose raw tree is checked against ``model`` first.

    Options are passed to dotted(). In strict mode a mismatch raises
    ValidationFailed; otherwise it is logged and the Document is returned.
    """
    document = dotted(schema, **options)
    PydanticValidator(model=model, strict=strict).validate_tree(document.to_dict())
    return document
