"""Interface definition parser using Lark."""

import os
from dataclasses import dataclass
from typing import Any, TypeVar

from lark import Lark, Token
from lark.visitors import Transformer

from .errors import ValidationError
from .types import (
    CONTAINER_TYPES,
    PRIMITIVE_TYPES,
    Annotation,
    Enum,
    EnumValue,
    Function,
    IdlType,
    Option,
    Param,
    Program,
    Service,
    Struct,
    StructField,
)

_g_parser: Lark | None = None


@dataclass
class _ProgramName:
    value: str


@dataclass
class _Namespace:
    language: str
    value: str


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[TFilter]) -> TFilter | None:
    filtered = _filter(args, class_type)
    if len(filtered) > 1:
        raise ValidationError(f"Found more than one {class_type.__name__}")
    return filtered[0] if filtered else None


def _tokens(args: list[Any]) -> list[Token]:
    return _filter(args, Token)


def _convert_value(token: Token) -> Any:
    if token.type == "SIGNED_INT":
        return int(token)
    if token.type == "ESCAPED_STRING":
        return str(token)[1:-1]
    return str(token)


class TreeTransformer(Transformer):
    """Transform parse tree into model types."""

    def program_name(self, args: list[Any]) -> _ProgramName:
        return _ProgramName(value=str(args[0]))

    def namespace(self, args: list[Any]) -> _Namespace:
        return _Namespace(language=str(args[0]), value=args[1])

    def dotted_name(self, args: list[Any]) -> str:
        return ".".join(str(t) for t in _tokens(args))

    def option(self, args: list[Any]) -> Option:
        name, value = _tokens(args)
        return Option(name=str(name), value=_convert_value(value))

    def annotation(self, args: list[Any]) -> Annotation:
        tokens = _tokens(args)
        value = _convert_value(tokens[1]) if len(tokens) > 1 else None
        return Annotation(name=str(tokens[0]), value=value)

    def type_ref(self, args: list[Any]) -> IdlType:
        return IdlType(name=str(args[0]), params=_filter(args[1:], IdlType))

    def enum_value(self, args: list[Any]) -> EnumValue:
        name, value = _tokens(args)
        return EnumValue(name=str(name), value=int(value))

    def enum(self, args: list[Any]) -> Enum:
        return Enum(
            name=str(_tokens(args)[0]),
            type=_find_one(args, IdlType),
            values=_filter(args, EnumValue),
        )

    def struct_field(self, args: list[Any]) -> StructField:
        return StructField(name=str(args[0]), type=args[1])

    def struct(self, args: list[Any]) -> Struct:
        return Struct(name=str(_tokens(args)[0]), fields=_filter(args, StructField))

    def param(self, args: list[Any]) -> Param:
        return Param(name=str(args[0]), type=args[1])

    def function(self, args: list[Any]) -> Function:
        return_type = _find_one(args, IdlType)
        return Function(
            name=str(_tokens(args)[0]),
            params=_filter(args, Param),
            return_type=return_type if return_type is not None else IdlType("void"),
            annotations=_filter(args, Annotation),
        )

    def service(self, args: list[Any]) -> Service:
        return Service(
            name=str(_tokens(args)[0]),
            functions=_filter(args, Function),
            annotations=_filter(args, Annotation),
        )


def _check_unique(names: list[str], kind: str, scope: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ValidationError(f"Duplicate {kind} {name} in {scope}", f"{scope}.{name}")
        seen.add(name)


def validate(program: Program) -> None:
    """Validate the invariants of a program definition."""
    _check_unique([s.name for s in program.services], "service", program.name)
    _check_unique(
        [t.name for t in program.structs] + [e.name for e in program.enums],
        "type",
        program.name,
    )

    for user_type in [*program.structs, *program.enums]:
        if user_type.name in PRIMITIVE_TYPES or user_type.name in CONTAINER_TYPES:
            raise ValidationError(
                f"Type {user_type.name} shadows a built-in type", user_type.name
            )

    for enum in program.enums:
        if not enum.values:
            raise ValidationError(f"Enum {enum.name} has no values", enum.name)
        _check_unique([v.name for v in enum.values], "enum value", enum.name)

    for struct in program.structs:
        _check_unique([f.name for f in struct.fields], "field", struct.name)

    for service in program.services:
        _check_unique([f.name for f in service.functions], "function", service.name)
        for function in service.functions:
            _check_unique(
                [p.name for p in function.params], "param", f"{service.name}.{function.name}"
            )


def parse(text: str, name: str | None = None) -> Program:
    """Parse an interface definition.

    ``name`` is used as the program name when the text has no
    ``program`` declaration.
    """
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/stubsmith.lark", encoding="utf-8") as f:
            grammar = f.read()

        _g_parser = Lark(grammar)

    tree = _g_parser.parse(text)
    items = TreeTransformer().transform(tree).children

    program_name = _find_one(items, _ProgramName)
    if program_name is not None:
        name = program_name.value
    if not name:
        raise ValidationError("Program has no name; add a 'program' declaration")

    program = Program(
        name=name,
        services=_filter(items, Service),
        structs=_filter(items, Struct),
        enums=_filter(items, Enum),
        namespaces={ns.language: ns.value for ns in _filter(items, _Namespace)},
        options=_filter(items, Option),
    )

    validate(program)

    return program
