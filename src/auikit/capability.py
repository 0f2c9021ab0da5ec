"""
Capability definitions and the fluent builder that produces them.

A capability is a named, independently invocable unit of behavior with a
declared input contract. Capabilities are assembled step by step:

    echo = (
        capability("echo")
        .input(EchoInput)
        .execute(lambda input, ctx: input.message)
        .describe("Echo a message back")
        .tag("demo")
        .build()
    )

Handlers take (validated_input, context) and may be plain functions or
coroutine functions. Middleware stages take (input, context, next). Render
handlers take (result, input, live_state) and are only ever called by the
surrounding application, never by the engine.

Rules:
    - Re-attaching a step of the same kind replaces it (last write wins);
      middleware() and tag() accumulate instead
    - build() freezes the builder; any later change raises BuildError
    - A capability needs at least one usable handler to build
"""

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar, cast

from auikit.errors import BuildError, NoHandlerBuildError
from auikit.schema import Category, CapabilityExample, CapabilitySummary, HandlerStrategy
from auikit.validation import SchemaAdapter

if TYPE_CHECKING:
    from auikit.context import InvocationContext


InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")
NewInputT = TypeVar("NewInputT")
NewOutputT = TypeVar("NewOutputT")

Handler = Callable[[Any, "InvocationContext"], Any]
RenderHandler = Callable[[Any, Any, Any], Any]
Next = Callable[[], Awaitable[Any]]
MiddlewareStage = Callable[[Any, "InvocationContext", Next], Any]


@dataclass(frozen=True)
class CapabilityDefinition(Generic[InputT, OutputT]):
    """
    Immutable, fully built capability.

    Definitions are shared by the registry and by any number of concurrent
    engine calls, so they never change after build().

    Attributes:
        name: Unique identifier within a registry
        input_schema: Validator for raw input (None accepts anything)
        trusted_handler: Handler for trusted-origin callers
        untrusted_handler: Handler for untrusted-origin callers
        render_handler: Presentation callback for external renderers
        middleware_chain: Stages in attachment order
        restrict_to_trusted_origin: Never use the untrusted handler
        description: Human-readable description
        tags: Discovery tags
        category: Where the capability is meant to run
        examples: Sample invocations for discovery
    """

    name: str
    input_schema: SchemaAdapter | None = None
    trusted_handler: Handler | None = None
    untrusted_handler: Handler | None = None
    render_handler: RenderHandler | None = None
    middleware_chain: tuple[MiddlewareStage, ...] = ()
    restrict_to_trusted_origin: bool = False
    description: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)
    category: Category = Category.CUSTOM
    examples: tuple[CapabilityExample, ...] = ()

    @property
    def strategy(self) -> HandlerStrategy:
        """Which handler set this capability has."""
        if self.restrict_to_trusted_origin:
            return HandlerStrategy.RESTRICTED_TO_TRUSTED
        if self.trusted_handler is not None and self.untrusted_handler is not None:
            return HandlerStrategy.BOTH
        if self.untrusted_handler is not None:
            return HandlerStrategy.UNTRUSTED_ONLY
        return HandlerStrategy.TRUSTED_ONLY

    @property
    def has_input(self) -> bool:
        return self.input_schema is not None

    @property
    def has_execute(self) -> bool:
        return self.trusted_handler is not None

    @property
    def has_client_execute(self) -> bool:
        return self.untrusted_handler is not None

    @property
    def has_render(self) -> bool:
        return self.render_handler is not None

    @property
    def has_middleware(self) -> bool:
        return len(self.middleware_chain) > 0

    def validate(self, raw: Any) -> Any:
        """
        Validate raw input against the input schema.

        Returns raw unchanged when no schema is attached.

        Raises:
            ValidationError: If the schema rejects the input
        """
        if self.input_schema is None:
            return raw
        return self.input_schema.validate(raw, capability=self.name)

    def summary(self) -> CapabilitySummary:
        """Discovery-safe description, without handler bodies."""
        return CapabilitySummary(
            name=self.name,
            description=self.description,
            tags=list(self.tags),
            has_input=self.has_input,
            has_execute=self.has_execute,
            has_client_execute=self.has_client_execute,
            has_render=self.has_render,
            has_middleware=self.has_middleware,
        )

    def __repr__(self) -> str:
        return f"<Capability: {self.name} ({self.strategy.value})>"


class CapabilityBuilder(Generic[InputT, OutputT]):
    """
    Fluent, step-accumulating builder for a CapabilityDefinition.

    Each attachment method returns the builder retyped for the steps
    attached so far: input() fixes the input type seen by handlers,
    execute() fixes the output type seen by the renderer.

    Attributes:
        name: Name of the capability being built
        built: Whether build() has been called
    """

    def __init__(
        self,
        name: str,
        on_build: Callable[[CapabilityDefinition[Any, Any]], None] | None = None,
    ) -> None:
        """
        Initialize the builder.

        Args:
            name: Capability name
            on_build: Called with the definition once build() succeeds

        Raises:
            BuildError: If the name is empty or not a string
        """
        if not isinstance(name, str) or not name.strip():
            raise BuildError(
                message="Capability name must be a non-empty string",
                capability=str(name),
            )
        self.name = name
        self.built = False
        self._on_build = on_build
        self._input_schema: SchemaAdapter | None = None
        self._trusted_handler: Handler | None = None
        self._untrusted_handler: Handler | None = None
        self._render_handler: RenderHandler | None = None
        self._middleware: list[MiddlewareStage] = []
        self._restrict = False
        self._description: str | None = None
        self._tags: list[str] = []
        self._category = Category.CUSTOM
        self._examples: list[CapabilityExample] = []

    def _check_open(self) -> None:
        if self.built:
            raise BuildError(capability=self.name)

    def input(self, schema: Any) -> "CapabilityBuilder[NewInputT, OutputT]":
        """Attach the input schema (pydantic model, type or validator)."""
        self._check_open()
        self._input_schema = SchemaAdapter.wrap(schema)
        return cast("CapabilityBuilder[NewInputT, OutputT]", self)

    def execute(
        self,
        handler: Callable[[InputT, "InvocationContext"], NewOutputT | Awaitable[NewOutputT]],
    ) -> "CapabilityBuilder[InputT, NewOutputT]":
        """Attach the trusted-origin handler."""
        self._check_open()
        self._trusted_handler = handler
        return cast("CapabilityBuilder[InputT, NewOutputT]", self)

    def client_execute(
        self,
        handler: Callable[[InputT, "InvocationContext"], OutputT | Awaitable[OutputT]],
    ) -> "CapabilityBuilder[InputT, OutputT]":
        """Attach the untrusted-origin handler."""
        self._check_open()
        self._untrusted_handler = handler
        return self

    def render(
        self,
        renderer: Callable[[OutputT, InputT, Any], Any],
    ) -> "CapabilityBuilder[InputT, OutputT]":
        """Attach the render callback used by external renderers."""
        self._check_open()
        self._render_handler = renderer
        return self

    def middleware(self, stage: MiddlewareStage) -> "CapabilityBuilder[InputT, OutputT]":
        """Append a middleware stage; stages run in attachment order."""
        self._check_open()
        self._middleware.append(stage)
        return self

    def describe(self, text: str) -> "CapabilityBuilder[InputT, OutputT]":
        """Set the description."""
        self._check_open()
        self._description = text
        return self

    def tag(self, *tags: str) -> "CapabilityBuilder[InputT, OutputT]":
        """Add discovery tags, ignoring ones already present."""
        self._check_open()
        for tag in tags:
            if tag not in self._tags:
                self._tags.append(tag)
        return self

    def category(self, value: Category | str) -> "CapabilityBuilder[InputT, OutputT]":
        """
        Set the category (server, client, hybrid or custom).

        Raises:
            BuildError: If value is not a known category
        """
        self._check_open()
        try:
            self._category = Category(value)
        except ValueError as e:
            raise BuildError(
                message=f"Unknown category {value!r} for capability {self.name}",
                capability=self.name,
                suggestion="Use one of: " + ", ".join(c.value for c in Category),
            ) from e
        return self

    def example(
        self,
        description: str,
        input: Any = None,
        expected_output: Any = None,
    ) -> "CapabilityBuilder[InputT, OutputT]":
        """Append a sample invocation."""
        self._check_open()
        self._examples.append(
            CapabilityExample(description=description, input=input, expected_output=expected_output)
        )
        return self

    def restrict_origin(self) -> "CapabilityBuilder[InputT, OutputT]":
        """Never use the untrusted handler, whatever the caller's origin."""
        self._check_open()
        self._restrict = True
        return self

    def build(self) -> CapabilityDefinition[InputT, OutputT]:
        """
        Freeze the builder and return the definition.

        Raises:
            BuildError: If the builder was already built
            NoHandlerBuildError: If no usable handler is attached
        """
        self._check_open()
        if self._trusted_handler is None and (self._untrusted_handler is None or self._restrict):
            raise NoHandlerBuildError(capability=self.name)

        definition: CapabilityDefinition[InputT, OutputT] = CapabilityDefinition(
            name=self.name,
            input_schema=self._input_schema,
            trusted_handler=self._trusted_handler,
            untrusted_handler=self._untrusted_handler,
            render_handler=self._render_handler,
            middleware_chain=tuple(self._middleware),
            restrict_to_trusted_origin=self._restrict,
            description=self._description,
            tags=tuple(self._tags),
            category=self._category,
            examples=tuple(self._examples),
        )
        # The builder stays open if on_build rejects the definition
        if self._on_build is not None:
            self._on_build(definition)
        self.built = True
        return definition

    def __repr__(self) -> str:
        state = "built" if self.built else "open"
        return f"<CapabilityBuilder: {self.name} ({state})>"


def capability(name: str) -> CapabilityBuilder[Any, Any]:
    """Start building a capability."""
    return CapabilityBuilder(name)


def define(
    name: str,
    handler: Handler | None = None,
    *,
    input: Any = None,
    client_execute: Handler | None = None,
    render: RenderHandler | None = None,
    middleware: Iterable[MiddlewareStage] = (),
    description: str | None = None,
    tags: Iterable[str] = (),
    restrict_origin: bool = False,
    category: Category | str = Category.CUSTOM,
    examples: Iterable[CapabilityExample] = (),
) -> CapabilityDefinition[Any, Any]:
    """
    Build a capability in one call.

    Example:
        add = define("add", lambda input, ctx: input["a"] + input["b"])

    Raises:
        NoHandlerBuildError: If neither handler is given
    """
    builder = CapabilityBuilder(name)
    if input is not None:
        builder.input(input)
    if handler is not None:
        builder.execute(handler)
    if client_execute is not None:
        builder.client_execute(client_execute)
    if render is not None:
        builder.render(render)
    for stage in middleware:
        builder.middleware(stage)
    if description is not None:
        builder.describe(description)
    builder.tag(*tags)
    builder.category(category)
    for sample in examples:
        builder.example(sample.description, sample.input, sample.expected_output)
    if restrict_origin:
        builder.restrict_origin()
    return builder.build()
