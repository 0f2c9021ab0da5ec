"""
Exception hierarchy for auikit.

All auikit exceptions inherit from AuiError, allowing callers to catch
every auikit-specific failure with a single except clause.

Exception Categories:
    - BuildError: Capability builder misuse (frozen, missing handler)
    - ValidationError: Raw input rejected by the input schema
    - MissingHandlerError: No handler usable for the resolved origin
    - HandlerError / MiddlewareError: Bases for handler and stage authors
    - RegistryError: Lookup misses and duplicate registrations
    - ConfigError: Invalid runtime configuration
    - RemoteCallError: Fetch or remote execution failure

The engine never wraps exceptions raised by handlers or middleware stages.
HandlerError and MiddlewareError exist so that handler and stage authors can
raise coded errors; anything else they raise propagates untouched.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Build errors: 1xxx
ERROR_BUILD_INVALID = 1001
ERROR_BUILD_NO_HANDLER = 1002

# Execution errors: 2xxx
ERROR_VALIDATION_FAILED = 2001
ERROR_MISSING_HANDLER = 2002
ERROR_HANDLER_FAILED = 2003
ERROR_MIDDLEWARE_FAILED = 2004
ERROR_MIDDLEWARE_TIMEOUT = 2005

# Registry errors: 3xxx
ERROR_CAPABILITY_NOT_FOUND = 3001
ERROR_CAPABILITY_DUPLICATE = 3002

# Configuration errors: 4xxx
ERROR_CONFIG_INVALID = 4001

# Transport errors: 5xxx
ERROR_REMOTE_CALL_FAILED = 5001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class AuiError(Exception):
    """
    Base exception for all auikit errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Build Errors
# =============================================================================


@dataclass
class BuildError(AuiError):
    """
    Raised when a capability builder is used incorrectly.

    The most common case is attaching a step to a capability that has
    already been built.

    Attributes:
        capability: Name of the capability being built
    """

    capability: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Cannot modify a built capability"
        if self.code == 0:
            self.code = ERROR_BUILD_INVALID
        self.context["capability"] = self.capability


@dataclass
class NoHandlerBuildError(BuildError):
    """Raised when build() is called before any usable handler is attached."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f'Capability "{self.capability}" must have an execute handler.'
        if self.code == 0:
            self.code = ERROR_BUILD_NO_HANDLER
        if not self.suggestion:
            self.suggestion = "Attach a handler with .execute() before calling .build()"
        super().__post_init__()


# =============================================================================
# Execution Errors
# =============================================================================


@dataclass
class ValidationError(AuiError):
    """
    Raised when raw input fails the capability's input schema.

    Attributes:
        capability: Name of the capability whose schema rejected the input
        issues: Field-level issues, each with "loc", "msg" and "type"
    """

    capability: str = ""
    issues: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            summary = "; ".join(_format_issue(issue) for issue in self.issues)
            self.message = f'Invalid input for "{self.capability}": {summary}'
        if self.code == 0:
            self.code = ERROR_VALIDATION_FAILED
        self.context.update({
            "capability": self.capability,
            "issues": self.issues,
        })


def _format_issue(issue: dict[str, Any]) -> str:
    loc = ".".join(str(part) for part in issue.get("loc", ()))
    msg = issue.get("msg", "invalid")
    return f"{loc}: {msg}" if loc else msg


@dataclass
class MissingHandlerError(AuiError):
    """Raised when a capability has no handler usable for the resolved origin."""

    capability: str = ""
    trusted_origin: bool = True

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f'Capability "{self.capability}" has no execute handler for this origin.'
        if self.code == 0:
            self.code = ERROR_MISSING_HANDLER
        self.context.update({
            "capability": self.capability,
            "trusted_origin": self.trusted_origin,
        })


@dataclass
class HandlerError(AuiError):
    """
    Base class for failures raised by capability handlers.

    The engine passes these through unmodified, like any other exception
    a handler raises.
    """

    capability: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Capability {self.capability} failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_HANDLER_FAILED
        self.context.update({
            "capability": self.capability,
            "underlying_error": self.underlying_error,
        })


@dataclass
class MiddlewareError(AuiError):
    """Base class for failures raised by middleware stages."""

    capability: str = ""
    stage: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Middleware {self.stage} failed for {self.capability}"
        if self.code == 0:
            self.code = ERROR_MIDDLEWARE_FAILED
        self.context.update({
            "capability": self.capability,
            "stage": self.stage,
        })


@dataclass
class MiddlewareTimeoutError(MiddlewareError):
    """Raised by the timeout() stage when the inner chain runs too long."""

    timeout_seconds: float = 0.0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Capability {self.capability} timed out after {self.timeout_seconds}s"
        if self.code == 0:
            self.code = ERROR_MIDDLEWARE_TIMEOUT
        if not self.suggestion:
            self.suggestion = "Raise the timeout or speed up the handler"
        super().__post_init__()
        self.context["timeout_seconds"] = self.timeout_seconds


# =============================================================================
# Registry Errors
# =============================================================================


@dataclass
class RegistryError(AuiError):
    """
    Base class for registry errors.

    Attributes:
        capability: Name of the capability involved
    """

    capability: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["capability"] = self.capability


@dataclass
class CapabilityNotFoundError(RegistryError, LookupError):
    """Raised when a capability is not registered."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f'Capability "{self.capability}" not found'
        if self.code == 0:
            self.code = ERROR_CAPABILITY_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check the capability name or register it first"
        super().__post_init__()


@dataclass
class DuplicateCapabilityError(RegistryError):
    """Raised by a strict registry when a name is registered twice."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f'Capability "{self.capability}" is already registered'
        if self.code == 0:
            self.code = ERROR_CAPABILITY_DUPLICATE
        if not self.suggestion:
            self.suggestion = "Use replace() to overwrite an existing capability"
        super().__post_init__()


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(AuiError):
    """Raised when runtime configuration cannot be loaded."""

    path: str = ""
    issues: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration: {self.path or '<string>'}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context.update({
            "path": self.path,
            "issues": self.issues,
        })


# =============================================================================
# Transport Errors
# =============================================================================


@dataclass
class RemoteCallError(HandlerError):
    """Raised when a fetch or remote capability call fails."""

    url: str = ""
    status_code: int | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            if self.status_code is not None:
                self.message = f"Remote call to {self.url} failed with status {self.status_code}"
            else:
                self.message = f"Remote call to {self.url} failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_REMOTE_CALL_FAILED
        super().__post_init__()
        self.context.update({
            "url": self.url,
            "status_code": self.status_code,
        })
