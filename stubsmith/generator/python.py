"""Python code generator for task-based RPC services."""

import keyword
from importlib import resources
from typing import Any

from stubsmith.runtime.perf import PerfClientHelper

from .engine import FileRole, RenderContext, register
from .errors import ValidationError
from .typemap import TypeConvention, register_convention
from .types import CONTAINER_TYPES, Function, IdlType, Param, Service, qualified_name
from .util import escape_names, to_snake_case

LANGUAGE = "python"

RUNTIME_FILES = [
    "__init__.py",
    "tasks.py",
    "rpc.py",
    "perf.py",
]

DEFAULT_RUNTIME_IMPORT = "stubsmith_runtime"

# Map IDL types to Python type annotations
PRIMITIVE_TYPE_MAP = {
    "bool": "bool",
    "int8": "int",
    "int16": "int",
    "int32": "int",
    "int64": "int",
    "uint8": "int",
    "uint16": "int",
    "uint32": "int",
    "uint64": "int",
    "float32": "float",
    "float64": "float",
    "bytes": "bytes",
    "string": "str",
    "void": "None",
}

CONTAINER_TYPE_MAP = {
    "list": "list[{0}]",
    "set": "set[{0}]",
    "map": "dict[{0}, {1}]",
}

DEFAULT_VALUES = {
    "bool": "False",
    "float32": "0.0",
    "float64": "0.0",
    "bytes": 'b""',
    "string": '""',
    **{name: "0" for name, py_type in PRIMITIVE_TYPE_MAP.items() if py_type == "int"},
}

PAYLOAD_VALUES = {
    "bool": "True",
    "float32": "float({size})",
    "float64": "float({size})",
    "bytes": "bytes({size})",
    "string": '"x" * {size}',
    **{name: "{size}" for name, py_type in PRIMITIVE_TYPE_MAP.items() if py_type == "int"},
}


def _identifier(name: str) -> str:
    """Make an IDL name usable as a Python identifier."""
    return f"{name}_" if keyword.iskeyword(name) else name


register_convention(
    TypeConvention(
        language=LANGUAGE,
        primitives=PRIMITIVE_TYPE_MAP,
        containers=CONTAINER_TYPE_MAP,
        separator=".",
        default_namespace=lambda program: f"{to_snake_case(program.name)}_types",
        namespace_begin=lambda parts: f"# begin namespace {'.'.join(parts)}",
        namespace_end=lambda parts: f"# end namespace {'.'.join(parts)}",
        defaults=DEFAULT_VALUES,
        payloads=PAYLOAD_VALUES,
        container_defaults={"list": "[]", "set": "set()", "map": "{{}}"},
        struct_default="{type}()",
        enum_default="{type}.{value}",
        identifier=_identifier,
    )
)

# Parameters stubs add next to the IDL parameters of a function
RESERVED_PARAMS = frozenset(["self", "timeout_ms", "context", "callback"])

# Members a perf test client gets from its base classes and template
PERF_CLIENT_MEMBERS = frozenset(
    [name for name in dir(PerfClientHelper) if not name.startswith("_")]
    + ["results", "finished", "build_suites", "start_test"]
)

_STUB_ROLES = frozenset([FileRole.CLIENT_STUB, FileRole.SERVER_STUB, FileRole.PERF_TEST_CLIENT])


def _method_name(function: Function) -> str:
    return _identifier(to_snake_case(function.name))


def _param_names(service: Service, function: Function) -> list[str]:
    return escape_names(
        [p.name for p in function.params],
        RESERVED_PARAMS,
        qualified_name(service, function),
        escape=_identifier,
    )


def _check_members(ctx: RenderContext) -> None:
    """Fail when two functions of a service would define the same method.

    Client methods are inherited by the perf test client, so they must not
    shadow its own members either.
    """
    perf = ctx.role == FileRole.PERF_TEST_CLIENT
    for service in ctx.services:
        owners = dict.fromkeys(PERF_CLIENT_MEMBERS, "the perf test client") if perf else {}
        for function in service.functions:
            name = qualified_name(service, function)
            method = _method_name(function)
            members = [method, f"begin_{method}"]
            if perf:
                members += [f"send_{method}", f"payload_{method}"]
            for member in members:
                if member in owners:
                    raise ValidationError(
                        f"{name} generates method {member}, already defined by {owners[member]}",
                        name,
                    )
                owners[member] = name


def _bindings(ctx: RenderContext) -> dict[str, Any]:
    mapper = ctx.mapper
    if ctx.role in _STUB_ROLES:
        _check_members(ctx)

    def map_type(t: IdlType, owner: str | None = None, qualified: bool = True) -> str:
        return mapper.map_type(t, LANGUAGE, owner=owner, qualified=qualified)

    def field_default(t: IdlType, owner: str) -> str:
        value = mapper.default_expression(t, LANGUAGE, owner=owner, qualified=False)
        if t.name in CONTAINER_TYPES or ctx.program.find_struct(t.name) is not None:
            return f"field(default_factory=lambda: {value})"
        return value

    def params(service: Service, function: Function) -> str:
        owner = qualified_name(service, function)
        return "".join(
            f", {name}: {mapper.map_param_type(p, LANGUAGE, owner=owner)}"
            for name, p in zip(_param_names(service, function), function.params)
        )

    def return_type(service: Service, function: Function) -> str:
        return mapper.map_return_type(function, LANGUAGE, owner=qualified_name(service, function))

    def request(service: Service, function: Function) -> str:
        names = _param_names(service, function)
        if not names:
            return "None"
        if len(names) == 1:
            return names[0]
        items = ", ".join(f'"{p.name}": {name}' for name, p in zip(names, function.params))
        return f"{{{items}}}"

    def handler_args(function: Function) -> str:
        if not function.params:
            return ""
        if len(function.params) == 1:
            return "request"
        return ", ".join(f'request["{p.name}"]' for p in function.params)

    def param_type(param: Param, owner: str) -> str:
        return mapper.map_param_type(param, LANGUAGE, owner=owner)

    def payload(t: IdlType, owner: str) -> str:
        return mapper.payload_expression(t, LANGUAGE, owner=owner)

    def default(t: IdlType, owner: str) -> str:
        return mapper.default_expression(t, LANGUAGE, owner=owner)

    return {
        "map_type": map_type,
        "field_default": field_default,
        "params": params,
        "param_type": param_type,
        "return_type": return_type,
        "request": request,
        "handler_args": handler_args,
        "payload": payload,
        "default": default,
        "method": _method_name,
        "identifier": _identifier,
        "uses_types": bool(ctx.program.structs or ctx.program.enums),
        "runtime_import": ctx.options.get("runtime_import") or DEFAULT_RUNTIME_IMPORT,
    }


_SERVICE_PREFIX = "{prefix}_{service_snake}"

register(
    LANGUAGE,
    FileRole.TYPE_DEFINITIONS,
    "python/types.py.j2",
    "{namespace}.py",
    bindings=_bindings,
    service_scoped=False,
)
register(
    LANGUAGE,
    FileRole.TASK_CODES,
    "python/codes.py.j2",
    "{prefix}_codes.py",
    bindings=_bindings,
    service_scoped=False,
)
register(
    LANGUAGE,
    FileRole.CLIENT_STUB,
    "python/client.py.j2",
    "{prefix}_client.py",
    bindings=_bindings,
    service_prefix=_SERVICE_PREFIX,
)
register(
    LANGUAGE,
    FileRole.SERVER_STUB,
    "python/server.py.j2",
    "{prefix}_server.py",
    bindings=_bindings,
    service_prefix=_SERVICE_PREFIX,
)
register(
    LANGUAGE,
    FileRole.PERF_TEST_CLIENT,
    "python/perf.py.j2",
    "{prefix}_perf.py",
    bindings=_bindings,
    service_prefix=_SERVICE_PREFIX,
)


def runtime() -> dict[str, str]:
    """Return the Python runtime files as a dict of filename -> content."""
    result: dict[str, str] = {}
    for filename in RUNTIME_FILES:
        content = resources.files("stubsmith.runtime").joinpath(filename).read_text()
        result[filename] = content
    return result
