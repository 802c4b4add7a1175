"""Tests for pydantic validation hooks."""

import logging

import pytest
from pydantic import BaseModel

from dotted_tree import Document, ResolverError, ValidationFailed
from dotted_tree.validation import PydanticValidator, ResolverSchema, with_pydantic


class User(BaseModel):
    id: int
    name: str


class Settings(BaseModel):
    title: str
    limit: int


# =============================================================================
# Path Validation
# =============================================================================


class TestPathValidation:
    def test_coerces_registered_paths(self):
        validator = PydanticValidator(paths={"age": int})
        assert validator.validate("age", "42") == 42

    def test_rejects_bad_values(self):
        validator = PydanticValidator(paths={"age": int})

        with pytest.raises(ValidationFailed) as exc_info:
            validator.validate("age", "forty")
        assert exc_info.value.target == "age"

    def test_unknown_paths_pass_through(self):
        assert PydanticValidator().validate("anything", object) is object

    @pytest.mark.asyncio
    async def test_as_document_hook(self):
        validator = PydanticValidator(paths={"age": int, "user": User})
        doc = Document(
            {"age": "42", "user": {"id": "7", "name": "Ada"}, "bad": "x"},
            validate=validator.validate,
        )

        assert await doc.get("age") == 42
        assert await doc.get("user") == User(id=7, name="Ada")
        assert await doc.get("bad") == "x"

    @pytest.mark.asyncio
    async def test_document_rejection_raises(self):
        validator = PydanticValidator(paths={"age": int})
        doc = Document({"age": "old"}, validate=validator.validate)

        with pytest.raises(ValidationFailed):
            await doc.get("age")


# =============================================================================
# Resolver Validation
# =============================================================================


class TestResolverValidation:
    @pytest.mark.asyncio
    async def test_arguments_are_coerced(self):
        validator = PydanticValidator(
            resolvers={"math.double": ResolverSchema(args=(int,), returns=int)}
        )
        resolvers = validator.wrap_resolvers({"math": {"double": lambda x: x * 2}})
        doc = Document({"n": "21", ".d": "math.double(${n})"}, resolvers=resolvers)

        assert await doc.get("d") == 42

    @pytest.mark.asyncio
    async def test_bad_result_is_a_resolver_error(self):
        validator = PydanticValidator(resolvers={"count": ResolverSchema(returns=int)})
        resolvers = validator.wrap_resolvers({"count": lambda: "many"})
        doc = Document({".c": "count()"}, resolvers=resolvers)

        with pytest.raises(ResolverError) as exc_info:
            await doc.get("c")
        assert isinstance(exc_info.value.__cause__, ValidationFailed)

    @pytest.mark.asyncio
    async def test_wrong_argument_count(self):
        validator = PydanticValidator(resolvers={"one": ResolverSchema(args=(int,))})
        resolvers = validator.wrap_resolvers({"one": lambda *args: args})
        doc = Document({".r": "one(1, 2)"}, resolvers=resolvers)

        with pytest.raises(ResolverError, match="expected 1 arguments, got 2"):
            await doc.get("r")

    @pytest.mark.asyncio
    async def test_async_result_is_validated(self):
        async def fetch(user_id):
            return {"id": user_id, "name": "Ada"}

        validator = PydanticValidator(
            resolvers={"users.get": ResolverSchema(args=(int,), returns=User)}
        )
        resolvers = validator.wrap_resolvers({"users": {"get": fetch}})
        doc = Document({".owner": "users.get('3').name"}, resolvers=resolvers)

        assert await doc.get("owner") == "Ada"

    def test_unregistered_resolvers_untouched(self):
        def upper(value):
            return value.upper()

        resolvers = PydanticValidator().wrap_resolvers({"text": {"upper": upper}, "limit": 5})

        assert resolvers == {"text.upper": upper, "limit": 5}


# =============================================================================
# Whole-Tree Validation
# =============================================================================


class TestWithPydantic:
    def test_valid_tree(self):
        doc = with_pydantic(Settings, {"title": "Hi", "limit": 3, ".extra": "${limit}"})
        assert doc.to_dict()["limit"] == 3

    def test_strict_mismatch_raises(self):
        with pytest.raises(ValidationFailed) as exc_info:
            with_pydantic(Settings, {"title": "Hi"})
        assert exc_info.value.target == "Settings"

    def test_lenient_mismatch_logs(self, caplog):
        with caplog.at_level(logging.WARNING, logger="dotted_tree.validation"):
            doc = with_pydantic(Settings, {"title": "Hi"}, strict=False)

        assert isinstance(doc, Document)
        assert "Document does not match Settings" in caplog.text

    def test_options_are_passed_through(self):
        doc = with_pydantic(Settings, {"title": "Hi", "limit": 1}, maxEvaluationDepth=3)
        assert doc.options.max_evaluation_depth == 3

    def test_validate_tree_without_model(self):
        assert PydanticValidator().validate_tree({"anything": 1}) is True
