"""
Invocation context for capability calls.

An InvocationContext is the bundle handed to every handler and middleware
stage: a key/value cache, an HTTP fetch handle, the origin flag and
optional ambient data (identity, session, environment).

The engine never reads or writes the cache. Entries live exactly as long
as whoever created the context keeps it; passing the same context to
several calls shares the cache between them.
"""

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any

from auikit.fetch import FetchHandle
from auikit.schema import Origin, RuntimeConfig


# Environment variable consulted when no configuration forces the origin
ORIGIN_ENV_VAR = "AUIKIT_ORIGIN"


def infer_trusted_origin(config: RuntimeConfig | None = None) -> bool:
    """
    Infer the origin flag from configuration and the process environment.

    Order: config.origin, then the AUIKIT_ORIGIN environment variable,
    then trusted (a Python process runs server-side).

    Raises:
        ValueError: If AUIKIT_ORIGIN holds an unknown value
    """
    if config is not None and config.origin is not None:
        return config.origin == Origin.TRUSTED

    value = os.environ.get(ORIGIN_ENV_VAR, "").strip().lower()
    if not value:
        return True
    try:
        return Origin(value) == Origin.TRUSTED
    except ValueError:
        msg = f"{ORIGIN_ENV_VAR} must be 'trusted' or 'untrusted', got {value!r}"
        raise ValueError(msg) from None


@dataclass
class InvocationContext:
    """
    Per-call (or per-session) data passed to handlers and middleware.

    Attributes:
        cache: Key/value store, never cleared by the engine
        fetch: HTTP-capable call primitive
        is_trusted_origin: Whether the caller is a trusted origin
        identity: Who is calling (user, agent, service account)
        session: Session data of the caller
        environment: Ambient environment data
        extras: Free-form additions (middleware results, request ids, ...)
    """

    cache: dict[str, Any] = field(default_factory=dict)
    fetch: FetchHandle = field(default_factory=FetchHandle)
    is_trusted_origin: bool = field(default_factory=infer_trusted_origin)
    identity: Any = None
    session: Any = None
    environment: dict[str, Any] = field(default_factory=dict)
    extras: dict[str, Any] = field(default_factory=dict)

    def with_origin(self, trusted: bool) -> "InvocationContext":
        """Copy sharing this context's cache and fetch handle, with another origin."""
        return replace(self, is_trusted_origin=trusted)

    def __repr__(self) -> str:
        origin = "trusted" if self.is_trusted_origin else "untrusted"
        return f"<InvocationContext: {origin}, {len(self.cache)} cached>"


_CONTEXT_FIELDS = frozenset(f.name for f in fields(InvocationContext))


def create_context(config: RuntimeConfig | None = None, **additions: Any) -> InvocationContext:
    """
    Create a fresh context.

    The cache starts empty, the fetch handle and environment come from the
    configuration, and the origin is inferred. Keyword additions override
    any field; unknown keywords are stored in extras.

    Args:
        config: Optional runtime configuration
        **additions: Field overrides and extra ambient data

    Returns:
        A new InvocationContext

    Example:
        ctx = create_context(identity={"id": 1}, is_trusted_origin=False)
    """
    known = {key: value for key, value in additions.items() if key in _CONTEXT_FIELDS}
    extras = {key: value for key, value in additions.items() if key not in _CONTEXT_FIELDS}

    if "fetch" not in known:
        known["fetch"] = FetchHandle.from_config(config) if config else FetchHandle()
    if "is_trusted_origin" not in known:
        known["is_trusted_origin"] = infer_trusted_origin(config)
    if "environment" not in known and config is not None:
        known["environment"] = dict(config.environment)

    context = InvocationContext(**known)
    context.extras.update(extras)
    return context
