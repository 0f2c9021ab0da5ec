"""
Unit tests for the capability builder and definitions.

Tests cover:
- Fluent attachment and last-write-wins replacement
- Freezing on build()
- Build-time handler requirements
- Strategy derivation and discovery summaries
- Categories and examples
- Quick-mode define()
"""

from dataclasses import FrozenInstanceError
from typing import Any

import pytest
from pydantic import BaseModel

from auikit.capability import CapabilityBuilder, CapabilityDefinition, capability, define
from auikit.errors import BuildError, DuplicateCapabilityError, NoHandlerBuildError, ValidationError
from auikit.registry import CapabilityRegistry
from auikit.schema import Category, CapabilityExample, HandlerStrategy


class EchoInput(BaseModel):
    message: str


def trusted(input: Any, ctx: Any) -> str:
    return "trusted"


def untrusted(input: Any, ctx: Any) -> str:
    return "untrusted"


async def passthrough(input: Any, ctx: Any, next: Any) -> Any:
    return await next()


class TestBuilder:
    """Tests for attachment methods."""

    def test_build_collects_steps(self) -> None:
        def renderer(result: Any, input: Any, state: Any) -> str:
            return f"<p>{result}</p>"

        definition = (
            capability("echo")
            .input(EchoInput)
            .execute(trusted)
            .client_execute(untrusted)
            .render(renderer)
            .middleware(passthrough)
            .describe("Echo a message")
            .tag("demo", "text")
            .build()
        )

        assert isinstance(definition, CapabilityDefinition)
        assert definition.name == "echo"
        assert definition.input_schema is not None
        assert definition.trusted_handler is trusted
        assert definition.untrusted_handler is untrusted
        assert definition.render_handler is renderer
        assert definition.middleware_chain == (passthrough,)
        assert definition.description == "Echo a message"
        assert definition.tags == ("demo", "text")
        assert definition.restrict_to_trusted_origin is False

    def test_methods_return_builder(self) -> None:
        builder = capability("x")
        assert builder.execute(trusted) is builder
        assert builder.describe("d") is builder
        assert builder.tag("t") is builder

    def test_last_write_wins(self) -> None:
        definition = (
            capability("x")
            .execute(untrusted)
            .execute(trusted)
            .describe("first")
            .describe("second")
            .build()
        )
        assert definition.trusted_handler is trusted
        assert definition.description == "second"

    def test_middleware_accumulates_in_order(self) -> None:
        async def first(input: Any, ctx: Any, next: Any) -> Any:
            return await next()

        async def second(input: Any, ctx: Any, next: Any) -> Any:
            return await next()

        definition = capability("x").execute(trusted).middleware(first).middleware(second).build()
        assert definition.middleware_chain == (first, second)

    def test_tags_accumulate_without_duplicates(self) -> None:
        definition = capability("x").execute(trusted).tag("a", "b").tag("b", "c").build()
        assert definition.tags == ("a", "b", "c")

    def test_category_defaults_to_custom(self) -> None:
        definition = capability("x").execute(trusted).build()
        assert definition.category == Category.CUSTOM
        assert definition.examples == ()

    @pytest.mark.parametrize("value", ["server", Category.SERVER])
    def test_category(self, value: Any) -> None:
        definition = capability("x").execute(trusted).category(value).build()
        assert definition.category is Category.SERVER

    def test_unknown_category_rejected(self) -> None:
        builder = capability("x").execute(trusted)
        with pytest.raises(BuildError, match="Unknown category 'edge'") as exc_info:
            builder.category("edge")
        assert exc_info.value.suggestion == "Use one of: server, client, hybrid, custom"
        assert builder.build().category == Category.CUSTOM

    def test_examples_accumulate(self) -> None:
        definition = (
            capability("add")
            .execute(trusted)
            .example("Small numbers", {"a": 1, "b": 2}, 3)
            .example("No expectation")
            .build()
        )
        assert definition.examples == (
            CapabilityExample(description="Small numbers", input={"a": 1, "b": 2}, expected_output=3),
            CapabilityExample(description="No expectation"),
        )


    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_name_rejected(self, name: str) -> None:
        with pytest.raises(BuildError):
            capability(name)

    def test_repr(self) -> None:
        builder = capability("x").execute(trusted)
        assert repr(builder) == "<CapabilityBuilder: x (open)>"
        builder.build()
        assert repr(builder) == "<CapabilityBuilder: x (built)>"


class TestBuild:
    """Tests for build() and freezing."""

    def test_build_without_handler_fails(self) -> None:
        with pytest.raises(NoHandlerBuildError, match='Capability "empty" must have an execute handler.'):
            capability("empty").describe("nothing to run").build()

    def test_untrusted_only_builds(self) -> None:
        definition = capability("client").client_execute(untrusted).build()
        assert definition.strategy == HandlerStrategy.UNTRUSTED_ONLY

    def test_restricted_untrusted_only_fails(self) -> None:
        with pytest.raises(NoHandlerBuildError):
            capability("client").client_execute(untrusted).restrict_origin().build()

    @pytest.mark.parametrize(
        "attach",
        [
            lambda b: b.input(EchoInput),
            lambda b: b.execute(trusted),
            lambda b: b.client_execute(untrusted),
            lambda b: b.render(lambda result, input, state: None),
            lambda b: b.middleware(passthrough),
            lambda b: b.describe("late"),
            lambda b: b.tag("late"),
            lambda b: b.category("server"),
            lambda b: b.example("late"),
            lambda b: b.restrict_origin(),
            lambda b: b.build(),
        ],
    )
    def test_built_builder_is_frozen(self, attach: Any) -> None:
        builder = capability("frozen").execute(trusted)
        builder.build()
        with pytest.raises(BuildError, match="Cannot modify a built capability"):
            attach(builder)

    def test_failed_build_leaves_builder_open(self) -> None:
        builder = capability("later")
        with pytest.raises(NoHandlerBuildError):
            builder.build()
        definition = builder.execute(trusted).build()
        assert definition.trusted_handler is trusted

    def test_rejected_registration_leaves_builder_open(self) -> None:
        strict = CapabilityRegistry(allow_replace=False)
        strict.capability("x").execute(trusted).build()

        builder = strict.capability("x").execute(untrusted)
        with pytest.raises(DuplicateCapabilityError):
            builder.build()

        assert builder.built is False
        builder.tag("retried")
        assert strict.get("x").trusted_handler is trusted

    def test_definition_is_immutable(self) -> None:
        definition = capability("x").execute(trusted).build()
        with pytest.raises(FrozenInstanceError):
            definition.name = "y"  # type: ignore

    def test_on_build_callback(self) -> None:
        built: list[CapabilityDefinition] = []
        definition = CapabilityBuilder("x", on_build=built.append).execute(trusted).build()
        assert built == [definition]


class TestDefinition:
    """Tests for derived definition properties."""

    @pytest.mark.parametrize(
        ("builder", "expected"),
        [
            (lambda: capability("a").execute(trusted), HandlerStrategy.TRUSTED_ONLY),
            (lambda: capability("b").client_execute(untrusted), HandlerStrategy.UNTRUSTED_ONLY),
            (
                lambda: capability("c").execute(trusted).client_execute(untrusted),
                HandlerStrategy.BOTH,
            ),
            (
                lambda: capability("d").execute(trusted).client_execute(untrusted).restrict_origin(),
                HandlerStrategy.RESTRICTED_TO_TRUSTED,
            ),
        ],
    )
    def test_strategy(self, builder: Any, expected: HandlerStrategy) -> None:
        assert builder().build().strategy == expected

    def test_validate_without_schema_passes_input_through(self) -> None:
        definition = capability("x").execute(trusted).build()
        raw = {"anything": [1, 2, 3]}
        assert definition.validate(raw) is raw

    def test_validate_with_schema(self) -> None:
        definition = capability("echo").input(EchoInput).execute(trusted).build()
        assert definition.validate({"message": "hi"}) == EchoInput(message="hi")
        with pytest.raises(ValidationError) as exc_info:
            definition.validate({"message": 5})
        assert exc_info.value.capability == "echo"

    def test_summary_has_no_handlers(self) -> None:
        definition = (
            capability("json-tool")
            .input(EchoInput)
            .execute(trusted)
            .client_execute(untrusted)
            .middleware(passthrough)
            .describe("JSON serializable tool")
            .tag("json")
            .build()
        )
        assert definition.summary().to_payload() == {
            "name": "json-tool",
            "description": "JSON serializable tool",
            "tags": ["json"],
            "hasInput": True,
            "hasExecute": True,
            "hasClientExecute": True,
            "hasRender": False,
            "hasMiddleware": True,
        }

    def test_repr(self) -> None:
        definition = capability("x").execute(trusted).build()
        assert repr(definition) == "<Capability: x (trusted_only)>"


class TestDefine:
    """Tests for quick-mode define()."""

    def test_define_builds_immediately(self) -> None:
        definition = define(
            "echo",
            trusted,
            input=EchoInput,
            client_execute=untrusted,
            middleware=[passthrough],
            description="Echo",
            tags=["demo"],
        )
        assert definition.trusted_handler is trusted
        assert definition.untrusted_handler is untrusted
        assert definition.has_input
        assert definition.middleware_chain == (passthrough,)
        assert definition.tags == ("demo",)

    def test_define_restricted(self) -> None:
        definition = define("admin", trusted, client_execute=untrusted, restrict_origin=True)
        assert definition.strategy == HandlerStrategy.RESTRICTED_TO_TRUSTED

    def test_define_requires_handler(self) -> None:
        with pytest.raises(NoHandlerBuildError):
            define("nothing")

    def test_define_with_category_and_examples(self) -> None:
        sample = CapabilityExample(description="Echo hi", input={"message": "hi"}, expected_output="hi")
        definition = define("echo", trusted, category="client", examples=[sample])
        assert definition.category == Category.CLIENT
        assert definition.examples == (sample,)
