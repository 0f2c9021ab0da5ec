"""
Input validation for capabilities.

SchemaAdapter puts a single validate() call in front of whatever schema a
capability declares. Pydantic models and any type Pydantic's TypeAdapter
understands are supported directly; other objects are accepted when they
expose a validate(raw) method of their own.

Example:
    class EchoInput(BaseModel):
        message: str

    adapter = SchemaAdapter.wrap(EchoInput)
    adapter.validate({"message": "hi"}).message  # "hi"
    adapter.validate({})                          # raises ValidationError
"""

from typing import Any, get_origin

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from auikit.errors import ValidationError


class SchemaAdapter:
    """
    Wraps an external schema behind a uniform validate() call.

    Attributes:
        schema: The schema object as given by the capability author
    """

    def __init__(self, schema: Any) -> None:
        self.schema = schema
        if isinstance(schema, TypeAdapter):
            self._adapter: TypeAdapter | None = schema
        elif _is_opaque_validator(schema):
            self._adapter = None
        else:
            self._adapter = TypeAdapter(schema)

    @classmethod
    def wrap(cls, schema: Any) -> "SchemaAdapter":
        """Return schema as an adapter, reusing it if it already is one."""
        if isinstance(schema, SchemaAdapter):
            return schema
        return cls(schema)

    def validate(self, raw: Any, capability: str = "") -> Any:
        """
        Validate raw input.

        Args:
            raw: Input as received from the caller
            capability: Capability name, used in error messages

        Returns:
            The validated (and possibly coerced) input

        Raises:
            ValidationError: With the schema's structured issue list
        """
        try:
            if self._adapter is not None:
                return self._adapter.validate_python(raw)
            return self.schema.validate(raw)
        except PydanticValidationError as e:
            raise ValidationError(capability=capability, issues=_issues(e)) from e
        except ValueError as e:
            # Opaque validators report failures as plain ValueErrors
            issues = [{"loc": [], "msg": str(e), "type": "value_error"}]
            raise ValidationError(capability=capability, issues=issues) from e

    def json_schema(self) -> dict[str, Any] | None:
        """JSON Schema for the input, or None for opaque validators."""
        if self._adapter is None:
            return None
        return self._adapter.json_schema()

    def __repr__(self) -> str:
        return f"<SchemaAdapter: {self.schema!r}>"


def _is_opaque_validator(schema: Any) -> bool:
    # Classes and typing constructs (Annotated, unions, generics) go through
    # TypeAdapter even when attribute access finds a pydantic validate().
    if isinstance(schema, type) or get_origin(schema) is not None:
        return False
    return callable(getattr(schema, "validate", None))


def _issues(error: PydanticValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in error.errors()
    ]
