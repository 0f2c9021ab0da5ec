"""
auikit - Declare named capabilities once, invoke them from anywhere.

A capability (tool) is a small, named unit of behavior that a human, an
API or an autonomous agent can invoke the same way. auikit provides:
- A fluent builder for capability definitions
- Input validation through Pydantic
- Onion-style middleware around every call
- Trusted/untrusted origin dispatch between two handlers
- A registry with tag and category discovery and handler-free summaries

Example usage:
    from pydantic import BaseModel
    from auikit import capability, run

    class EchoInput(BaseModel):
        message: str

    echo = (
        capability("echo")
        .input(EchoInput)
        .execute(lambda input, ctx: input.message)
        .build()
    )

    await run(echo, {"message": "hi"})  # "hi"
"""

from auikit.capability import (
    CapabilityBuilder,
    CapabilityDefinition,
    capability,
    define,
)
from auikit.context import InvocationContext, create_context
from auikit.engine import run, run_sync
from auikit.errors import (
    AuiError,
    BuildError,
    CapabilityNotFoundError,
    HandlerError,
    MiddlewareError,
    MissingHandlerError,
    ValidationError,
)
from auikit.fetch import FetchHandle, remote_handler
from auikit.registry import CapabilityRegistry, default_registry
from auikit.schema import CapabilityExample, CapabilitySummary, Category, HandlerStrategy, RuntimeConfig

__version__ = "0.1.0"
__author__ = "auikit Contributors"

__all__ = [
    "__version__",
    "__author__",
    "AuiError",
    "BuildError",
    "CapabilityBuilder",
    "CapabilityDefinition",
    "CapabilityExample",
    "CapabilityNotFoundError",
    "CapabilityRegistry",
    "CapabilitySummary",
    "Category",
    "FetchHandle",
    "HandlerError",
    "HandlerStrategy",
    "InvocationContext",
    "MiddlewareError",
    "MissingHandlerError",
    "RuntimeConfig",
    "ValidationError",
    "capability",
    "create_context",
    "default_registry",
    "define",
    "remote_handler",
    "run",
    "run_sync",
]
