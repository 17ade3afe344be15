"""Type definitions for the IDL model consumed by the code generators."""

from dataclasses import dataclass, field
from typing import Any

from dataclasses_json import DataClassJsonMixin


@dataclass
class IdlType(DataClassJsonMixin):
    """Represents a primitive, container or user-defined type.

    Containers (list, set, map) carry their element types in ``params``.
    """

    name: str
    params: list["IdlType"] = field(default_factory=list)

    def __str__(self) -> str:
        if self.params:
            return f"{self.name}<{', '.join(str(p) for p in self.params)}>"
        return self.name


@dataclass
class Annotation(DataClassJsonMixin):
    """Represents an annotation such as ``@priority(HIGH)``."""

    name: str
    value: Any | None = None


@dataclass
class Option(DataClassJsonMixin):
    """Represents a program-level option."""

    name: str
    value: Any


@dataclass
class Param(DataClassJsonMixin):
    """Represents a request field of a function."""

    name: str
    type: IdlType


@dataclass
class Function(DataClassJsonMixin):
    """Represents an RPC function of a service."""

    name: str
    params: list[Param] = field(default_factory=list)
    return_type: IdlType = field(default_factory=lambda: IdlType("void"))
    annotations: list[Annotation] = field(default_factory=list)

    @property
    def returns_void(self) -> bool:
        return self.return_type.name == "void"


@dataclass
class Service(DataClassJsonMixin):
    """Represents a service and its functions."""

    name: str
    functions: list[Function] = field(default_factory=list)
    annotations: list[Annotation] = field(default_factory=list)


@dataclass
class StructField(DataClassJsonMixin):
    """Represents a member of a struct."""

    name: str
    type: IdlType


@dataclass
class Struct(DataClassJsonMixin):
    """Represents a struct type definition."""

    name: str
    fields: list[StructField] = field(default_factory=list)


@dataclass
class EnumValue(DataClassJsonMixin):
    """Represents a single enum value."""

    name: str
    value: int


@dataclass
class Enum(DataClassJsonMixin):
    """Represents an enum type definition."""

    name: str
    type: IdlType
    values: list[EnumValue] = field(default_factory=list)


@dataclass
class Program(DataClassJsonMixin):
    """Represents a complete interface definition.

    ``namespaces`` maps a target language to a dotted namespace overriding
    the one derived from ``name``.
    """

    name: str
    services: list[Service] = field(default_factory=list)
    structs: list[Struct] = field(default_factory=list)
    enums: list[Enum] = field(default_factory=list)
    namespaces: dict[str, str] = field(default_factory=dict)
    options: list[Option] = field(default_factory=list)

    def find_struct(self, name: str) -> Struct | None:
        return next((s for s in self.structs if s.name == name), None)

    def find_enum(self, name: str) -> Enum | None:
        return next((e for e in self.enums if e.name == name), None)

    def option(self, name: str) -> Any | None:
        return next((o.value for o in self.options if o.name == name), None)


PRIMITIVE_TYPES = frozenset(
    [
        "bool",
        "int8",
        "int16",
        "int32",
        "int64",
        "uint8",
        "uint16",
        "uint32",
        "uint64",
        "float32",
        "float64",
        "bytes",
        "string",
        "void",
    ]
)

# Container name -> number of type parameters
CONTAINER_TYPES = {"list": 1, "set": 1, "map": 2}


def annotation_value(annotations: list[Annotation], name: str) -> Any | None:
    """Return the value of the first annotation called ``name``."""
    return next((a.value for a in annotations if a.name == name), None)


def qualified_name(service: Service, function: Function) -> str:
    """Return the ``Service.Function`` name used to identify a function."""
    return f"{service.name}.{function.name}"
