"""
Capability registry for auikit.

The registry is a name-keyed store of built capabilities. It is an
ordinary object: create one per application (or per test) and pass it to
whatever needs it. default_registry exists only as a convenience for small
scripts; the engine never consults it.

Design:
    - Insertion-ordered, so listings are deterministic
    - Re-registering a name replaces the old definition (logged), unless
      the registry was created with allow_replace=False
    - Discovery output (describe, export_schema) never contains handlers
    - A capability's category (server, client) can fix the origin execute()
      runs it with

Usage:
    from auikit.registry import CapabilityRegistry

    registry = CapabilityRegistry()
    registry.register(echo)
    result = await registry.execute("echo", {"message": "hi"})
"""

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from auikit.capability import CapabilityBuilder, CapabilityDefinition
from auikit.context import InvocationContext, create_context
from auikit.engine import run
from auikit.errors import CapabilityNotFoundError, DuplicateCapabilityError
from auikit.schema import Category, CapabilitySummary


logger = logging.getLogger(__name__)


# Relevance weights for search()
NAME_WEIGHT = 10
DESCRIPTION_WEIGHT = 5
TAG_WEIGHT = 3
CATEGORY_WEIGHT = 2


class CapabilityRegistry:
    """
    Registry for looking up capabilities by name.

    Attributes:
        allow_replace: Whether registering an existing name replaces it
        _capabilities: Internal mapping of names to definitions
    """

    def __init__(self, allow_replace: bool = True) -> None:
        """
        Initialize an empty registry.

        Args:
            allow_replace: Replace on duplicate names (True) or raise
                DuplicateCapabilityError (False)
        """
        self.allow_replace = allow_replace
        self._capabilities: dict[str, CapabilityDefinition[Any, Any]] = {}

    def register(self, definition: CapabilityDefinition[Any, Any]) -> CapabilityDefinition[Any, Any]:
        """
        Register a capability.

        A replaced capability keeps its original listing position.

        Args:
            definition: The built capability

        Returns:
            The definition, so register() can wrap a build() call

        Raises:
            ValueError: If definition is None
            DuplicateCapabilityError: If the name exists and replacing is off
        """
        if definition is None:
            msg = "Cannot register None as a capability"
            raise ValueError(msg)

        name = definition.name
        if name in self._capabilities:
            if not self.allow_replace:
                raise DuplicateCapabilityError(capability=name)
            logger.warning("Replacing registered capability %r", name)

        self._capabilities[name] = definition
        return definition

    def replace(self, definition: CapabilityDefinition[Any, Any]) -> CapabilityDefinition[Any, Any]:
        """Register a capability, replacing any existing one without warning."""
        self._capabilities[definition.name] = definition
        return definition

    def capability(self, name: str) -> CapabilityBuilder[Any, Any]:
        """
        Start a builder that registers its capability on build().

        Raises:
            DuplicateCapabilityError: From build(), if the name exists and
                replacing is off
        """
        return CapabilityBuilder(name, on_build=self.register)

    def get(self, name: str) -> CapabilityDefinition[Any, Any] | None:
        """
        Look up a capability by name.

        Returns:
            The definition, or None if not registered
        """
        return self._capabilities.get(name)

    def require(self, name: str) -> CapabilityDefinition[Any, Any]:
        """
        Look up a capability that must exist.

        Raises:
            CapabilityNotFoundError: If no capability has that name
        """
        definition = self._capabilities.get(name)
        if definition is None:
            raise CapabilityNotFoundError(capability=name)
        return definition

    def has(self, name: str) -> bool:
        """Check if a capability is registered."""
        return name in self._capabilities

    def remove(self, name: str) -> bool:
        """
        Remove a capability.

        Returns:
            True if it was removed, False if it wasn't registered
        """
        if name in self._capabilities:
            del self._capabilities[name]
            return True
        return False

    def clear(self) -> None:
        """Remove all capabilities."""
        self._capabilities.clear()

    def names(self) -> list[str]:
        """All capability names in insertion order."""
        return list(self._capabilities.keys())

    def find_by_tag(self, tag: str) -> list[CapabilityDefinition[Any, Any]]:
        """Capabilities carrying exactly this tag."""
        return [d for d in self._capabilities.values() if tag in d.tags]

    def find_by_all_tags(self, tags: Iterable[str]) -> list[CapabilityDefinition[Any, Any]]:
        """
        Capabilities carrying every one of the tags.

        An empty tag list matches nothing.
        """
        wanted = set(tags)
        if not wanted:
            return []
        return [d for d in self._capabilities.values() if wanted.issubset(d.tags)]

    def find_by_category(self, category: Category | str) -> list[CapabilityDefinition[Any, Any]]:
        """Capabilities in one category; an unknown category matches nothing."""
        return [d for d in self._capabilities.values() if d.category == category]

    def list_by_category(self) -> dict[str, list[CapabilityDefinition[Any, Any]]]:
        """Capabilities grouped by category value; empty categories are omitted."""
        grouped: dict[str, list[CapabilityDefinition[Any, Any]]] = {}
        for definition in self._capabilities.values():
            grouped.setdefault(definition.category.value, []).append(definition)
        return grouped

    def search(self, query: str) -> list[tuple[CapabilityDefinition[Any, Any], int]]:
        """
        Rank capabilities against a free-text query.

        Case-insensitive substring matching on name, description, tags and
        category.

        Returns:
            (definition, relevance) pairs, most relevant first
        """
        needle = query.lower()
        if not needle:
            return []

        results: list[tuple[CapabilityDefinition[Any, Any], int]] = []
        for definition in self._capabilities.values():
            relevance = 0
            if needle in definition.name.lower():
                relevance += NAME_WEIGHT
            if definition.description and needle in definition.description.lower():
                relevance += DESCRIPTION_WEIGHT
            relevance += TAG_WEIGHT * sum(1 for tag in definition.tags if needle in tag.lower())
            if needle in definition.category.value:
                relevance += CATEGORY_WEIGHT
            if relevance > 0:
                results.append((definition, relevance))

        # sorted() is stable, so ties stay in insertion order
        return sorted(results, key=lambda pair: pair[1], reverse=True)

    async def execute(
        self,
        name: str,
        input: Any = None,
        context: InvocationContext | None = None,
    ) -> Any:
        """
        Look up a capability and run it through the engine.

        A server-category capability runs with a trusted origin and a
        client-category one with an untrusted origin, whatever the context
        says. The overridden context shares the caller's cache.

        Raises:
            CapabilityNotFoundError: If no capability has that name
        """
        definition = self.require(name)
        if definition.category in (Category.SERVER, Category.CLIENT):
            trusted = definition.category == Category.SERVER
            if context is None:
                context = create_context(is_trusted_origin=trusted)
            else:
                context = context.with_origin(trusted)
        return await run(definition, input, context)

    def describe(self, name: str) -> CapabilitySummary:
        """
        Discovery summary of a capability.

        Raises:
            CapabilityNotFoundError: If no capability has that name
        """
        return self.require(name).summary()

    def describe_all(self) -> list[CapabilitySummary]:
        """Discovery summaries of every capability, in insertion order."""
        return [d.summary() for d in self._capabilities.values()]

    def export_schema(self) -> dict[str, dict[str, Any]]:
        """
        Input schemas of every capability, keyed by name.

        Each entry has name, description, category, tags, inputSchema (a
        JSON Schema, or None when the capability takes any input) and
        examples.
        """
        schemas: dict[str, dict[str, Any]] = {}
        for name, definition in self._capabilities.items():
            input_schema = definition.input_schema.json_schema() if definition.input_schema else None
            schemas[name] = {
                "name": name,
                "description": definition.description,
                "category": definition.category.value,
                "tags": list(definition.tags),
                "inputSchema": input_schema,
                "examples": [e.model_dump(by_alias=True) for e in definition.examples],
            }
        return schemas

    def stats(self) -> dict[str, Any]:
        """Total capability count, per-tag counts and per-category counts."""
        by_tag: dict[str, int] = {}
        by_category: dict[str, int] = {}
        for definition in self._capabilities.values():
            by_category[definition.category.value] = by_category.get(definition.category.value, 0) + 1
            for tag in definition.tags:
                by_tag[tag] = by_tag.get(tag, 0) + 1
        return {"total": len(self._capabilities), "by_tag": by_tag, "by_category": by_category}

    def list(self) -> list[CapabilityDefinition[Any, Any]]:
        """All capabilities in insertion order."""
        return [d for d in self._capabilities.values()]

    def __len__(self) -> int:
        """Return the number of registered capabilities."""
        return len(self._capabilities)

    def __iter__(self) -> Iterator[CapabilityDefinition[Any, Any]]:
        """Iterate over all registered capabilities."""
        return iter(self._capabilities.values())

    def __contains__(self, name: object) -> bool:
        """Check if a capability is registered using 'in' operator."""
        return name in self._capabilities

    def __repr__(self) -> str:
        """String representation of the registry."""
        names = ", ".join(self._capabilities)
        return f"<CapabilityRegistry: [{names}]>"


# Convenience instance for scripts; nothing in auikit relies on it
default_registry = CapabilityRegistry()


def register_capability(definition: CapabilityDefinition[Any, Any]) -> CapabilityDefinition[Any, Any]:
    """Register a capability in the default registry."""
    return default_registry.register(definition)


def get_capability(name: str) -> CapabilityDefinition[Any, Any]:
    """
    Get a capability from the default registry.

    Raises:
        CapabilityNotFoundError: If no capability has that name
    """
    return default_registry.require(name)
