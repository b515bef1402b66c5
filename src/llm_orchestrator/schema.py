"""Tool and structured-output schema descriptions.

``Property`` is a recursive JSON-Schema-like node. ``Tool`` and ``Schema``
wrap a property list and render to the same nested shape; they convert into
each other without loss of name, description, properties or strictness.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PropertyType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


@dataclass(frozen=True)
class Property:
    """A named schema node."""

    name: str
    type: PropertyType
    description: str | None = None
    required: bool = False
    #: Children, for object types.
    properties: list[Property] = field(default_factory=list)
    #: Element schema, for array types.
    items: Property | None = None
    enum: list[Any] | None = None
    default: Any = None

    @classmethod
    def string(
        cls, name: str, description: str | None = None, required: bool = False
    ) -> Property:
        return cls(name, PropertyType.STRING, description, required)

    @classmethod
    def number(
        cls, name: str, description: str | None = None, required: bool = False
    ) -> Property:
        return cls(name, PropertyType.NUMBER, description, required)

    @classmethod
    def integer(
        cls, name: str, description: str | None = None, required: bool = False
    ) -> Property:
        return cls(name, PropertyType.INTEGER, description, required)

    @classmethod
    def boolean(
        cls, name: str, description: str | None = None, required: bool = False
    ) -> Property:
        return cls(name, PropertyType.BOOLEAN, description, required)

    @classmethod
    def object(
        cls,
        name: str,
        properties: list[Property],
        description: str | None = None,
        required: bool = False,
    ) -> Property:
        return cls(name, PropertyType.OBJECT, description, required, list(properties))

    @classmethod
    def array(
        cls,
        name: str,
        items: Property,
        description: str | None = None,
        required: bool = False,
    ) -> Property:
        return cls(name, PropertyType.ARRAY, description, required, items=items)

    @classmethod
    def enumeration(
        cls,
        name: str,
        values: list[str],
        description: str | None = None,
        required: bool = False,
    ) -> Property:
        """A string property restricted to *values*."""
        return cls(name, PropertyType.STRING, description, required, enum=list(values))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value}
        if self.description:
            data["description"] = self.description
        if self.enum is not None:
            data["enum"] = list(self.enum)
        if self.default is not None:
            data["default"] = self.default

        if self.type is PropertyType.OBJECT and self.properties:
            data["properties"] = properties_map(self.properties)
            required = required_names(self.properties)
            if required:
                data["required"] = required

        if self.type is PropertyType.ARRAY and self.items is not None:
            data["items"] = self.items.to_dict()

        return data


def properties_map(properties: list[Property]) -> dict[str, Any]:
    """Render properties keyed by name, in declaration order."""
    return {prop.name: prop.to_dict() for prop in properties}


def required_names(properties: list[Property]) -> list[str]:
    return [prop.name for prop in properties if prop.required]


@dataclass(frozen=True)
class Tool:
    """A function the model may call."""

    name: str
    description: str | None = None
    properties: list[Property] = field(default_factory=list)
    strict: bool = False

    @classmethod
    def from_schema(cls, schema: Schema) -> Tool:
        return cls(
            name=schema.name,
            description=schema.description,
            properties=list(schema.properties),
            strict=schema.strict,
        )

    def parameters(self) -> dict[str, Any]:
        """The JSON Schema of the tool's arguments."""
        return {
            "type": "object",
            "properties": properties_map(self.properties),
            "required": required_names(self.properties),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters(),
            "strict": self.strict,
        }


@dataclass(frozen=True)
class Schema:
    """A named JSON Schema for structured output."""

    name: str
    description: str | None = None
    properties: list[Property] = field(default_factory=list)
    strict: bool = True
    additional_properties: bool = False

    @classmethod
    def from_tool(cls, tool: Tool) -> Schema:
        return cls(
            name=tool.name,
            description=tool.description,
            properties=list(tool.properties),
            strict=tool.strict,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "strict": self.strict,
            "schema": {
                "type": "object",
                "properties": properties_map(self.properties),
                "required": required_names(self.properties),
                "additionalProperties": self.additional_properties,
            },
        }
