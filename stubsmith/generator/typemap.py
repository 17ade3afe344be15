"""Mapping of IDL types to target language spellings.

Each target language registers a TypeConvention describing its primitive
table, container spellings, namespace syntax and the expressions used to
synthesize values. TypeMapper resolves types of one program against those
conventions.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .errors import UnknownTypeError
from .types import CONTAINER_TYPES, PRIMITIVE_TYPES, Function, IdlType, Param, Program

# Name of the generated variable holding the requested payload size
PAYLOAD_SIZE = "payload_bytes"


@dataclass(frozen=True)
class Namespace:
    """Namespace of one program in one target language."""

    language: str
    parts: tuple[str, ...]
    begin: str
    end: str
    separator: str
    global_prefix: str = ""

    @property
    def name(self) -> str:
        return self.separator.join(self.parts)

    def qualify(self, name: str) -> str:
        return f"{self.global_prefix}{self.name}{self.separator}{name}"


@dataclass(frozen=True)
class TypeConvention:
    """Type spelling rules of a target language.

    ``containers`` and ``container_defaults`` hold format strings: element
    types are passed positionally and the mapped container type as
    ``{type}``. ``payloads`` use ``{size}`` for the payload size variable.
    ``identifier`` spells an IDL name, such as an enum value, in the language.
    """

    language: str
    primitives: Mapping[str, str]
    containers: Mapping[str, str]
    separator: str
    default_namespace: Callable[[Program], str]
    namespace_begin: Callable[[tuple[str, ...]], str]
    namespace_end: Callable[[tuple[str, ...]], str]
    defaults: Mapping[str, str]
    payloads: Mapping[str, str]
    container_defaults: Mapping[str, str]
    struct_default: str
    enum_default: str
    global_prefix: str = ""
    identifier: Callable[[str], str] = str


_CONVENTIONS: dict[str, TypeConvention] = {}


def register_convention(convention: TypeConvention) -> None:
    """Register the type conventions of a target language."""
    _CONVENTIONS[convention.language] = convention


def convention(language: str) -> TypeConvention:
    try:
        return _CONVENTIONS[language]
    except KeyError:
        raise UnknownTypeError("<any>", language) from None


def namespace_for(program: Program, language: str) -> Namespace:
    """Return the namespace a program's declarations live in for a language."""
    conv = convention(language)
    dotted = program.namespaces.get(language) or conv.default_namespace(program)
    parts = tuple(dotted.split("."))
    return Namespace(
        language=language,
        parts=parts,
        begin=conv.namespace_begin(parts),
        end=conv.namespace_end(parts),
        separator=conv.separator,
        global_prefix=conv.global_prefix,
    )


class TypeMapper:
    """Resolve the types of one program into target language spellings."""

    def __init__(self, program: Program) -> None:
        self.program = program
        self._user_types = {s.name for s in program.structs} | {e.name for e in program.enums}
        self._namespaces: dict[str, Namespace] = {}

    def namespace(self, language: str) -> Namespace:
        if language not in self._namespaces:
            self._namespaces[language] = namespace_for(self.program, language)
        return self._namespaces[language]

    def _user_type(self, t: IdlType, language: str, qualified: bool) -> str:
        return self.namespace(language).qualify(t.name) if qualified else t.name

    def map_type(
        self, t: IdlType, language: str, *, owner: str | None = None, qualified: bool = True
    ) -> str:
        """Map an IDL type to its spelling in ``language``."""
        conv = convention(language)

        if t.name in CONTAINER_TYPES:
            if len(t.params) != CONTAINER_TYPES[t.name] or t.name not in conv.containers:
                raise UnknownTypeError(str(t), language, owner)
            inner = [
                self.map_type(p, language, owner=owner, qualified=qualified) for p in t.params
            ]
            return conv.containers[t.name].format(*inner)

        if t.params:
            raise UnknownTypeError(str(t), language, owner)

        if t.name in PRIMITIVE_TYPES:
            if t.name not in conv.primitives:
                raise UnknownTypeError(t.name, language, owner)
            return conv.primitives[t.name]

        if t.name in self._user_types:
            return self._user_type(t, language, qualified)

        raise UnknownTypeError(t.name, language, owner)

    def map_param_type(self, param: Param, language: str, *, owner: str | None = None) -> str:
        return self.map_type(param.type, language, owner=owner)

    def map_return_type(
        self, function: Function, language: str, *, owner: str | None = None
    ) -> str:
        return self.map_type(function.return_type, language, owner=owner)

    def default_expression(
        self, t: IdlType, language: str, *, owner: str | None = None, qualified: bool = True
    ) -> str:
        """Return an expression constructing a default value of ``t``."""
        conv = convention(language)
        spelled = self.map_type(t, language, owner=owner, qualified=qualified)

        if t.name in CONTAINER_TYPES:
            return conv.container_defaults[t.name].format(type=spelled)
        if t.name in PRIMITIVE_TYPES:
            if t.name not in conv.defaults:
                raise UnknownTypeError(t.name, language, owner)
            return conv.defaults[t.name]

        enum = self.program.find_enum(t.name)
        if enum is not None:
            value = conv.identifier(enum.values[0].name)
            return conv.enum_default.format(type=spelled, value=value)
        return conv.struct_default.format(type=spelled)

    def payload_expression(self, t: IdlType, language: str, *, owner: str | None = None) -> str:
        """Return an expression synthesizing a request payload of ``t``.

        Primitives scale with the payload size variable; other types fall
        back to their default value.
        """
        conv = convention(language)
        if t.name in PRIMITIVE_TYPES and t.name in conv.payloads:
            self.map_type(t, language, owner=owner)
            return conv.payloads[t.name].format(size=PAYLOAD_SIZE)
        return self.default_expression(t, language, owner=owner)
