"""
Schema definitions for auikit.

This module defines the Pydantic models shared across auikit:
- HandlerStrategy: How a capability's handlers map onto caller origins
- Category: Where a capability is meant to run
- CapabilitySummary: The discovery payload describing a capability
- CapabilityExample: A sample invocation exported with input schemas
- RuntimeConfig: Configuration used to build invocation contexts

Design Decisions:
    - Models are immutable (frozen=True) and reject unknown fields
    - The discovery payload serializes with the camelCase keys remote
      callers expect (hasInput, hasExecute, ...)
    - Configuration is plain YAML validated by Pydantic
"""

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from auikit.errors import ConfigError


# =============================================================================
# Enums
# =============================================================================


class Origin(str, Enum):
    """Where a call comes from."""

    TRUSTED = "trusted"
    UNTRUSTED = "untrusted"


class HandlerStrategy(str, Enum):
    """
    The shape of a capability's handler set.

    Resolved once per call against the context's origin flag:
    - TRUSTED_ONLY: only the trusted handler exists
    - UNTRUSTED_ONLY: only the untrusted handler exists
    - BOTH: the origin decides which handler runs
    - RESTRICTED_TO_TRUSTED: the trusted handler always runs
    """

    TRUSTED_ONLY = "trusted_only"
    UNTRUSTED_ONLY = "untrusted_only"
    BOTH = "both"
    RESTRICTED_TO_TRUSTED = "restricted_to_trusted"


class Category(str, Enum):
    """
    Where a capability is meant to run.

    Registries use it for grouping and force the origin for two values:
    - SERVER: always executed as a trusted origin
    - CLIENT: always executed as an untrusted origin
    - HYBRID, CUSTOM: the caller's context decides
    """

    SERVER = "server"
    CLIENT = "client"
    HYBRID = "hybrid"
    CUSTOM = "custom"


# =============================================================================
# Discovery Models
# =============================================================================


class CapabilitySummary(BaseModel):
    """
    Discovery-safe description of a capability.

    Contains presence flags only, never handler bodies, so it can be
    exposed to a remote agent that is choosing which capability to call.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(..., description="Unique capability name")
    description: str | None = Field(default=None, description="What the capability does")
    tags: list[str] = Field(default_factory=list, description="Discovery tags")
    has_input: bool = Field(default=False, alias="hasInput")
    has_execute: bool = Field(default=False, alias="hasExecute")
    has_client_execute: bool = Field(default=False, alias="hasClientExecute")
    has_render: bool = Field(default=False, alias="hasRender")
    has_middleware: bool = Field(default=False, alias="hasMiddleware")

    def to_payload(self) -> dict[str, Any]:
        """Serialize using the camelCase wire keys."""
        return self.model_dump(by_alias=True)


class CapabilityExample(BaseModel):
    """A sample invocation shown to whoever discovers the capability."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    description: str = Field(..., description="What the example demonstrates")
    input: Any = Field(default=None, description="Raw input for the call")
    expected_output: Any = Field(default=None, alias="expectedOutput")


# =============================================================================
# Configuration Models
# =============================================================================


class RuntimeConfig(BaseModel):
    """
    Runtime configuration for invocation contexts.

    Attributes:
        origin: Force the origin flag; None means infer from the environment
        fetch_base_url: Base URL for the context's fetch handle
        fetch_timeout_seconds: Timeout applied to each fetch call
        fetch_headers: Headers sent with each fetch call
        environment: Ambient environment data handed to handlers
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    origin: Origin | None = Field(
        default=None,
        description="Force trusted/untrusted origin (default: infer)",
    )
    fetch_base_url: str = Field(
        default="",
        description="Base URL prepended to relative fetch URLs",
    )
    fetch_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for each fetch call in seconds",
        gt=0,
        le=300,
    )
    fetch_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent with every fetch call",
    )
    environment: dict[str, Any] = Field(
        default_factory=dict,
        description="Ambient environment data for handlers",
    )


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> RuntimeConfig:
    """
    Load runtime configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated RuntimeConfig object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return _validate_config(data, str(path))


def load_config_from_string(content: str) -> RuntimeConfig:
    """Load runtime configuration from a YAML string."""
    data = yaml.safe_load(content)
    return _validate_config(data, "")


def _validate_config(data: Any, source: str) -> RuntimeConfig:
    # An empty file is an empty mapping
    if data is None:
        data = {}
    try:
        return RuntimeConfig.model_validate(data)
    except PydanticValidationError as e:
        issues = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        raise ConfigError(path=source, issues=issues) from e
