"""
Execution Engine for auikit.

The engine runs one capability call. It never retries, times out, logs
errors or touches the context cache: those are handler or middleware
concerns.

Execution Flow:
    1. Materialize a context when the caller supplies none
    2. Validate raw input (failure: ValidationError, nothing else runs)
    3. Run the middleware chain in attachment order (onion model)
    4. At the end of the chain, dispatch to the handler the capability's
       strategy selects for the context's origin
    5. Return whatever the top of the chain produced

Middleware:
    Each stage is called as stage(input, context, next). Awaiting next()
    runs the rest of the chain and returns its result, which the stage may
    return as-is or replace. A stage that never calls next() short-circuits:
    its own return value is the result and no handler runs. Code before
    next() runs in attachment order, code after it in reverse order.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from auikit.capability import CapabilityDefinition, Handler, MiddlewareStage
from auikit.context import InvocationContext, create_context
from auikit.errors import MiddlewareError, MissingHandlerError
from auikit.schema import HandlerStrategy


logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    """Await value if a sync-or-async callable handed back an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


def select_handler(
    definition: CapabilityDefinition[Any, Any],
    context: InvocationContext,
) -> Handler:
    """
    Resolve the handler for this call.

    The untrusted handler runs only for untrusted origins, when it exists
    and the capability is not restricted to trusted origins. Every other
    case uses the trusted handler.

    Raises:
        MissingHandlerError: If the selected handler is absent
    """
    strategy = definition.strategy
    if strategy in (HandlerStrategy.BOTH, HandlerStrategy.UNTRUSTED_ONLY) and not context.is_trusted_origin:
        handler = definition.untrusted_handler
    else:
        handler = definition.trusted_handler

    if handler is None:
        raise MissingHandlerError(
            capability=definition.name,
            trusted_origin=context.is_trusted_origin,
        )

    logger.debug(
        "Dispatching %s (%s) to %s handler",
        definition.name,
        strategy.value,
        "trusted" if handler is definition.trusted_handler else "untrusted",
    )
    return handler


class Continuation:
    """
    The next() handed to a middleware stage.

    Calling it runs the rest of the chain exactly once; a second call
    raises MiddlewareError. rerun() re-enters the rest of the chain
    deliberately, for stages that retry.
    """

    def __init__(self, capability: str, stage: str, proceed: Callable[[], Awaitable[Any]]) -> None:
        self._capability = capability
        self._stage = stage
        self._proceed = proceed
        self.called = False

    @property
    def capability(self) -> str:
        """Name of the capability being run."""
        return self._capability

    async def __call__(self) -> Any:
        if self.called:
            raise MiddlewareError(
                capability=self._capability,
                stage=self._stage,
                message=f"next() called multiple times by middleware {self._stage}",
                suggestion="Use next.rerun() to run the rest of the chain again",
            )
        self.called = True
        return await self._proceed()

    async def rerun(self) -> Any:
        """Run the rest of the chain again."""
        self.called = True
        return await self._proceed()


async def run_chain(
    name: str,
    stages: Sequence[MiddlewareStage],
    input: Any,
    context: InvocationContext,
    terminal: Callable[[], Awaitable[Any]],
) -> Any:
    """
    Run middleware stages around a terminal call.

    Equivalent to a right fold of stages over terminal: stage i receives a
    continuation that invokes stage i + 1, and the last stage's
    continuation invokes terminal.
    """

    async def invoke(index: int) -> Any:
        if index == len(stages):
            return await terminal()
        stage = stages[index]
        stage_name = getattr(stage, "__name__", repr(stage))
        proceed = Continuation(name, stage_name, lambda: invoke(index + 1))
        return await _resolve(stage(input, context, proceed))

    return await invoke(0)


async def run(
    definition: CapabilityDefinition[Any, Any],
    raw_input: Any = None,
    context: InvocationContext | None = None,
) -> Any:
    """
    Execute a capability.

    Args:
        definition: The built capability
        raw_input: Input as received from the caller
        context: Invocation context; a fresh one is created when None

    Returns:
        The result produced by the top of the middleware chain

    Raises:
        ValidationError: If the input schema rejects raw_input
        MissingHandlerError: If no handler exists for the context's origin
        Exception: Anything a handler or middleware stage raises, unchanged
    """
    if context is None:
        context = create_context()

    validated = definition.validate(raw_input)

    async def dispatch() -> Any:
        handler = select_handler(definition, context)
        return await _resolve(handler(validated, context))

    if not definition.middleware_chain:
        return await dispatch()
    return await run_chain(definition.name, definition.middleware_chain, validated, context, dispatch)


def run_sync(
    definition: CapabilityDefinition[Any, Any],
    raw_input: Any = None,
    context: InvocationContext | None = None,
) -> Any:
    """
    Execute a capability from synchronous code.

    Must not be called from inside a running event loop.
    """
    return asyncio.run(run(definition, raw_input, context))
