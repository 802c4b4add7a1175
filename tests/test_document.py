"""Tests for the Document engine."""

import logging

import pytest

from dotted_tree import (
    Document,
    DocumentOptions,
    EvaluationDepthError,
    ParentReferenceError,
    ResolverError,
    dotted,
)


@pytest.fixture
def greetings():
    return {
        "lang": "es",
        "form": "formal",
        "greeting": "hi",
        "greeting:es": "hola",
        "greeting:es:formal": "buenos días",
    }


@pytest.fixture
def counter():
    """A resolver that counts its calls."""
    calls = []

    def count():
        calls.append(1)
        return len(calls)

    count.calls = calls
    return count


def divide(a, b):
    if b == 0:
        raise ValueError("div0")
    return a / b


# =============================================================================
# Reads
# =============================================================================


class TestGet:
    @pytest.mark.asyncio
    async def test_plain_values(self):
        doc = Document({"name": "Ada", "nested": {"n": 1}, "items": [1, 2]})

        assert await doc.get("name") == "Ada"
        assert await doc.get("nested.n") == 1
        assert await doc.get("items.1") == 2

    @pytest.mark.asyncio
    async def test_missing_is_none(self):
        doc = Document({"a": {}})
        assert await doc.get("a.b") is None
        assert await doc.get("x.y.z") is None
        assert await doc.get("") is None

    @pytest.mark.asyncio
    async def test_expression_marked_key(self):
        doc = Document({"name": "Ada", ".greeting": "Hello ${name}"})

        assert await doc.get("greeting") == "Hello Ada"
        assert await doc.get(".greeting") == "Hello Ada"

    @pytest.mark.asyncio
    async def test_nested_expression_uses_container_scope(self):
        doc = Document({"name": "root", "user": {"name": "Ada", ".bio": "${name} codes"}})

        assert await doc.get("user.bio") == "Ada codes"
        assert await doc.get("user..bio") == "Ada codes"

    @pytest.mark.asyncio
    async def test_parent_reference_tree_walk(self):
        doc = Document({"a": {"b": {".c": "${..name}"}}, "name": "root"})
        assert await doc.get("a.b.c") == "root"

    @pytest.mark.asyncio
    async def test_computed_expression(self):
        doc = Document(
            {"name": "ada", ".shout": "upper(${name}) + '!'"},
            resolvers={"upper": str.upper},
        )
        assert await doc.get("shout") == "ADA!"

    @pytest.mark.asyncio
    async def test_async_resolver(self):
        async def lookup(user_id):
            return {"id": user_id, "name": "Ada"}

        doc = Document(
            {"user_id": 7, ".owner": "api.users.get(${user_id}).name"},
            resolvers={"api": {"users": {"get": lookup}}},
        )
        assert await doc.get("owner") == "Ada"

    @pytest.mark.asyncio
    async def test_fresh_reads_another_path(self):
        doc = Document({"count": 2, ".double": "${count * 2}", ".quad": "fresh('double') * 2"})
        assert await doc.get("quad") == 8

    @pytest.mark.asyncio
    async def test_containers_are_copies(self):
        doc = Document({"user": {"tags": ["a"]}})

        user = await doc.get("user")
        user["tags"].append("b")

        assert await doc.get("user.tags", fresh=True) == ["a"]

    @pytest.mark.asyncio
    async def test_pronouns_follow_hierarchy(self):
        doc = Document({
            "gender": "x",
            "people": {
                "ana": {"gender": "f", ".line": "${:subject} waves"},
                "sam": {".line": "${:subject} waves"},
            },
        })

        assert await doc.get("people.ana.line") == "she waves"
        assert await doc.get("people.sam.line") == "they waves"


class TestVariants:
    @pytest.mark.asyncio
    async def test_worked_example(self, greetings):
        doc = Document(greetings)
        assert await doc.get("greeting") == "buenos días"

    @pytest.mark.asyncio
    async def test_set_variant_overrides_tree(self, greetings):
        doc = Document(greetings)
        await doc.get("greeting")

        doc.set_variant({"lang": "en", "form": "casual"})

        assert await doc.get("greeting") == "hi"

    @pytest.mark.asyncio
    async def test_explicit_variants_option(self, greetings):
        doc = Document(greetings, variants={"form": "casual"})
        assert await doc.get("greeting") == "hola"

    @pytest.mark.asyncio
    async def test_context_discovered_per_container(self):
        doc = Document({
            "lang": "en",
            "title": "Title",
            "title:es": "Título",
            "spanish": {"lang": "es", "title": "Title", "title:es": "Título"},
        })

        assert await doc.get("title") == "Title"
        assert await doc.get("spanish.title") == "Título"

    @pytest.mark.asyncio
    async def test_expression_variant(self):
        doc = Document({
            "lang": "es",
            "name": "Ada",
            ".welcome": "Welcome ${name}",
            ".welcome:es": "Bienvenida ${name}",
        })
        assert await doc.get("welcome") == "Bienvenida Ada"

    @pytest.mark.asyncio
    async def test_custom_dimension(self):
        doc = Document({"theme": "dark", "banner": "plain", "banner:dark": "night"})
        assert await doc.get("banner") == "night"

    def test_variant_context(self, greetings):
        doc = Document(greetings, variants={"theme": "dark"})
        assert doc.variant_context() == {"lang": "es", "form": "formal", "dark": "dark"}


# =============================================================================
# Caching
# =============================================================================


class TestCaching:
    @pytest.mark.asyncio
    async def test_results_are_cached(self, counter):
        doc = Document({".n": "count()"}, resolvers={"count": counter})

        assert await doc.get("n") == 1
        assert await doc.get("n") == 1
        assert len(counter.calls) == 1

    @pytest.mark.asyncio
    async def test_fresh_bypasses_cache(self, counter):
        doc = Document({".n": "count()"}, resolvers={"count": counter})

        await doc.get("n")
        assert await doc.get("n", fresh=True) == 2

    @pytest.mark.asyncio
    async def test_set_clears_cache(self):
        doc = Document({"name": "Ada", ".greeting": "Hello ${name}"})
        assert await doc.get("greeting") == "Hello Ada"

        doc.set("name", "Bob")

        assert await doc.get("greeting") == "Hello Bob"

    @pytest.mark.asyncio
    async def test_unrelated_mutation_clears_everything(self, counter):
        doc = Document({".n": "count()"}, resolvers={"count": counter})
        await doc.get("n")

        doc.set("unrelated", True)

        assert await doc.get("n") == 2

    @pytest.mark.asyncio
    async def test_delete_clears_cache(self):
        doc = Document({"name": "Ada", ".greeting": "Hello ${name}"})
        await doc.get("greeting")

        doc.delete("name")

        assert await doc.get("greeting") == "Hello undefined"

    @pytest.mark.asyncio
    async def test_clear_cache(self, counter):
        doc = Document({".n": "count()"}, resolvers={"count": counter})
        await doc.get("n")

        doc.clear_cache()

        assert await doc.get("n") == 2

    @pytest.mark.asyncio
    async def test_read_overlapping_mutation_is_not_cached(self, counter):
        doc = None

        async def touch():
            doc.set("touched", True)
            return counter()

        doc = Document({".n": "touch()"}, resolvers={"touch": touch})

        assert await doc.get("n") == 1
        assert await doc.get("n") == 2

    @pytest.mark.asyncio
    async def test_mutating_result_does_not_touch_cache(self):
        doc = Document({"user": {"name": "Ada"}})

        first = await doc.get("user")
        first["name"] = "Eve"

        assert await doc.get("user") == {"name": "Ada"}
        assert doc.to_dict()["user"] == {"name": "Ada"}

    @pytest.mark.asyncio
    async def test_substituted_subtree_is_a_copy(self):
        doc = Document({"user": {"name": "Ada"}, ".copy": "${user}"})

        copied = await doc.get("copy")
        copied["name"] = "Eve"

        assert doc.to_dict()["user"] == {"name": "Ada"}
        assert await doc.get("copy") == {"name": "Ada"}

    @pytest.mark.asyncio
    async def test_cached_none_honours_per_call_fallback(self):
        doc = Document({".r": "${missing}"})
        assert await doc.get("r") is None

        assert await doc.get("r", fallback="n/a") == "n/a"
        assert await doc.get("r") is None

    @pytest.mark.asyncio
    async def test_fallback_is_not_cached(self):
        doc = Document({}, fallback="n/a")
        assert await doc.get("name") == "n/a"

        doc.set("name", "Ada")

        assert await doc.get("name") == "Ada"


# =============================================================================
# Mutation
# =============================================================================


class TestMutation:
    @pytest.mark.asyncio
    async def test_set_then_get(self):
        doc = Document({})
        doc.set("a.b", {"c": 1})

        assert await doc.get("a.b.c") == 1
        assert doc.to_dict() == {"a": {"b": {"c": 1}}}

    @pytest.mark.asyncio
    async def test_set_expression_shaped_value(self):
        doc = Document({"count": 3})
        doc.set("calc", "${count * 2}")

        assert await doc.get("calc") == 6

    @pytest.mark.asyncio
    async def test_set_marked_key(self):
        doc = Document({"user": {"name": "Ada"}})
        doc.set("user..bio", "${name} codes")

        assert await doc.get("user.bio") == "Ada codes"
        assert "user..bio" in doc.available_names

    @pytest.mark.asyncio
    async def test_set_list_item_keeps_list(self):
        doc = Document({"items": [1, 2, 3]})
        doc.set("items.1", 9)

        assert doc.to_dict() == {"items": [1, 9, 3]}
        assert await doc.get("items.1") == 9

    @pytest.mark.asyncio
    async def test_set_inside_list_item(self):
        doc = Document({"users": [{"name": "Ada"}, {"name": "Bob"}]})
        doc.set("users.1.name", "Eve")

        assert doc.to_dict() == {"users": [{"name": "Ada"}, {"name": "Eve"}]}

    def test_delete_list_item(self):
        doc = Document({"items": ["a", "b", "c"]})
        doc.delete("items.0")
        assert doc.to_dict() == {"items": ["b", "c"]}

    def test_set_empty_path(self):
        with pytest.raises(ValueError):
            Document({}).set("", 1)

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self):
        doc = Document({"a": 1})
        doc.delete("b.c")
        assert doc.to_dict() == {"a": 1}

    def test_schema_is_not_mutated(self):
        schema = {"a": {"b": 1}}
        doc = Document(schema)
        doc.set("a.b", 2)
        assert schema == {"a": {"b": 1}}

    def test_initial_overrides(self):
        doc = Document({"a": {"x": 1}, "b": 1}, initial={"a": {"y": 2}, "b": 2})
        assert doc.to_dict() == {"a": {"x": 1, "y": 2}, "b": 2}


# =============================================================================
# Errors and Fallbacks
# =============================================================================


class TestErrorPolicy:
    @pytest.mark.asyncio
    async def test_resolver_error_without_hook_raises(self):
        doc = Document({".r": "divide(10,0)"}, resolvers={"divide": divide})

        with pytest.raises(ResolverError):
            await doc.get("r")

    @pytest.mark.asyncio
    async def test_hook_throw(self):
        doc = Document(
            {".r": "divide(10,0)"},
            resolvers={"divide": divide},
            on_error=lambda error, path: "throw",
        )
        with pytest.raises(ResolverError):
            await doc.get("r")

    @pytest.mark.asyncio
    async def test_hook_fallback(self):
        seen = []

        def on_error(error, path):
            seen.append((type(error), path))
            return "fallback"

        doc = Document(
            {".r": "divide(10,0)"},
            resolvers={"divide": divide},
            on_error=on_error,
            fallback="oops",
        )

        assert await doc.get("r") == "oops"
        assert seen[0][1] == "r"
        assert issubclass(seen[0][0], ResolverError)

    @pytest.mark.asyncio
    async def test_hook_replacement_value(self):
        doc = Document(
            {".r": "divide(10,0)"},
            resolvers={"divide": divide},
            on_error=lambda error, path: 0,
        )
        assert await doc.get("r") == 0

    @pytest.mark.asyncio
    async def test_async_hook(self):
        async def on_error(error, path):
            return "recovered"

        doc = Document({".r": "divide(1,0)"}, resolvers={"divide": divide}, on_error=on_error)
        assert await doc.get("r") == "recovered"

    @pytest.mark.asyncio
    async def test_fallback_without_hook(self, caplog):
        doc = Document({".r": "divide(1,0)"}, resolvers={"divide": divide}, fallback=-1)

        with caplog.at_level(logging.WARNING, logger="dotted_tree.document"):
            assert await doc.get("r") == -1

        assert "Using fallback for r" in caplog.text

    @pytest.mark.asyncio
    async def test_parent_reference_error_ignores_hook(self):
        doc = Document(
            {"a": {".b": "${...x}"}},
            on_error=lambda error, path: "fallback",
            fallback="nope",
        )
        with pytest.raises(ParentReferenceError):
            await doc.get("a.b")

    @pytest.mark.asyncio
    async def test_fallback_for_missing_values(self):
        doc = Document({}, fallback="n/a")
        assert await doc.get("missing") == "n/a"
        assert await doc.get("missing", fallback="other") == "other"

    @pytest.mark.asyncio
    async def test_callable_fallbacks(self):
        async def later():
            return "async default"

        assert await Document({}, fallback=lambda: "default").get("x") == "default"
        assert await Document({}, fallback=later).get("x") == "async default"

    @pytest.mark.asyncio
    async def test_stored_none_uses_fallback(self):
        doc = Document({"x": None}, fallback="n/a")
        assert await doc.get("x") == "n/a"

    @pytest.mark.asyncio
    async def test_evaluation_depth_limit(self):
        doc = Document({".loop": "fresh('loop')"}, max_evaluation_depth=5)

        with pytest.raises(EvaluationDepthError) as exc_info:
            await doc.get("loop")
        assert exc_info.value.limit == 5


class TestValidateHook:
    @pytest.mark.asyncio
    async def test_hook_transforms_values(self):
        doc = Document(
            {"name": "ada", "age": 3},
            validate=lambda path, value: value.upper() if isinstance(value, str) else value,
        )
        assert await doc.get("name") == "ADA"
        assert await doc.get("age") == 3

    @pytest.mark.asyncio
    async def test_rejection_follows_error_policy(self):
        def reject(path, value):
            raise ValueError(f"bad {path}")

        assert await Document({"x": 1}, validate=reject, fallback=0).get("x") == 0

        with pytest.raises(ValueError, match="bad x"):
            await Document({"x": 1}, validate=reject).get("x")

    @pytest.mark.asyncio
    async def test_async_hook(self):
        async def double(path, value):
            return value * 2

        assert await Document({"x": 2}, validate=double).get("x") == 4


# =============================================================================
# Introspection
# =============================================================================


class TestIntrospection:
    @pytest.mark.asyncio
    async def test_has(self):
        doc = Document(
            {"a": 1, "n": None, ".r": "divide(1,0)"},
            resolvers={"divide": divide},
        )

        assert await doc.has("a")
        assert not await doc.has("n")
        assert not await doc.has("missing")
        assert not await doc.has("r")

    def test_all_keys(self):
        doc = Document({"a": {"x": 1, ".y": "${x}"}, "b": 2})

        assert doc.all_keys() == ["a", "b"]
        assert doc.all_keys("a") == ["x", ".y"]
        assert doc.all_keys("b") == []

    def test_available_names(self, greetings):
        doc = Document(greetings)
        assert "greeting:es:formal" in doc.available_names

    def test_resolvers(self):
        doc = Document({}, resolvers={"math": {"double": lambda x: x * 2}})
        assert doc.resolvers.list_registered() == ["math.double"]

    def test_to_dict_is_a_copy(self):
        doc = Document({"a": {"b": 1}})
        doc.to_dict()["a"]["b"] = 2
        assert doc.to_dict() == {"a": {"b": 1}}

    def test_repr(self):
        assert repr(Document({"a": 1})) == "Document(keys=['a'], cached=0)"


class TestFactory:
    @pytest.mark.asyncio
    async def test_dotted_accepts_camel_case(self):
        doc = dotted(
            {".r": "divide(1,0)"},
            resolvers={"divide": divide},
            onError=lambda error, path: "handled",
            maxEvaluationDepth=10,
        )

        assert doc.options.max_evaluation_depth == 10
        assert await doc.get("r") == "handled"

    def test_dotted_rejects_unknown_options(self):
        with pytest.raises(ValueError, match="Unknown document option"):
            dotted({}, cache=False)

    def test_options_and_overrides(self):
        options = DocumentOptions(fallback="a", max_evaluation_depth=7)
        doc = Document({}, options, fallback="b")

        assert doc.options.fallback == "b"
        assert doc.options.max_evaluation_depth == 7
