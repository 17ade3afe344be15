"""C++ code generator for task-based RPC services."""

from typing import Any

from stubsmith.runtime.perf import (
    DEFAULT_CONCURRENCY,
    DEFAULT_PAYLOAD_BYTES,
    DEFAULT_ROUNDS,
    DEFAULT_TIMEOUTS_MS,
)

from .codes import DEFAULT_POOL, TaskMeta, TaskPriority
from .engine import FileRole, RenderContext, register
from .typemap import TypeConvention, register_convention
from .types import Function, IdlType, Service, qualified_name
from .util import escape_names, to_snake_case

LANGUAGE = "cpp"

PRIMITIVE_TYPE_MAP = {
    "bool": "bool",
    "int8": "int8_t",
    "int16": "int16_t",
    "int32": "int32_t",
    "int64": "int64_t",
    "uint8": "uint8_t",
    "uint16": "uint16_t",
    "uint32": "uint32_t",
    "uint64": "uint64_t",
    "float32": "float",
    "float64": "double",
    "string": "std::string",
    "bytes": "::dsn::blob",
    "void": "void",
}

CONTAINER_TYPE_MAP = {
    "list": "std::vector<{0}>",
    "set": "std::set<{0}>",
    "map": "std::map<{0}, {1}>",
}

DEFAULT_VALUES = {
    "bool": "false",
    "float32": "0.0f",
    "float64": "0.0",
    "string": "std::string()",
    "bytes": "::dsn::blob()",
    **{name: f"{cpp_type}()" for name, cpp_type in PRIMITIVE_TYPE_MAP.items() if "int" in name},
}

# Payload sizes scale strings and blobs; numbers carry the size itself
PAYLOAD_VALUES = {
    "bool": "true",
    "string": "std::string({size}, 'x')",
    "bytes": "::dsn::blob::create_from_bytes(std::string({size}, 'x'))",
    "float32": "static_cast<float>({size})",
    "float64": "static_cast<double>({size})",
    **{
        name: f"static_cast<{cpp_type}>({{size}})"
        for name, cpp_type in PRIMITIVE_TYPE_MAP.items()
        if "int" in name
    },
}

PRIORITY_NAMES = {
    TaskPriority.LOW: "TASK_PRIORITY_LOW",
    TaskPriority.COMMON: "TASK_PRIORITY_COMMON",
    TaskPriority.HIGH: "TASK_PRIORITY_HIGH",
}

EMPTY_REQUEST = "::dsn::empty_request"
EMPTY_RESPONSE = "::dsn::empty_response"

# Parameters and locals stubs declare next to the IDL parameters of a function
RESERVED_PARAMS = frozenset(
    [
        "resp",
        "result",
        "context",
        "callback",
        "timeout_milliseconds",
        "hash",
        "err",
        "ctx",
        "payload_bytes",
        "timeout_ms",
    ]
)

KEYWORDS = frozenset(
    """
    alignas alignof and and_eq asm auto bitand bitor bool break case catch char char8_t
    char16_t char32_t class compl concept const consteval constexpr constinit const_cast
    continue co_await co_return co_yield decltype default delete do double dynamic_cast
    else enum explicit export extern false float for friend goto if inline int long
    mutable namespace new noexcept not not_eq nullptr operator or or_eq private
    protected public register reinterpret_cast requires return short signed sizeof
    static static_assert static_cast struct switch template this thread_local throw
    true try typedef typeid typename union unsigned using virtual void volatile wchar_t
    while xor xor_eq
    """.split()
)


def _identifier(name: str) -> str:
    """Make an IDL name usable as a C++ identifier."""
    return f"{name}_" if name in KEYWORDS else name


def _namespace_begin(parts: tuple[str, ...]) -> str:
    return " ".join(f"namespace {part} {{" for part in parts)


def _namespace_end(parts: tuple[str, ...]) -> str:
    return " ".join("}" for _ in parts) + f" // namespace {'::'.join(parts)}"


register_convention(
    TypeConvention(
        language=LANGUAGE,
        primitives=PRIMITIVE_TYPE_MAP,
        containers=CONTAINER_TYPE_MAP,
        separator="::",
        global_prefix="::",
        default_namespace=lambda program: to_snake_case(program.name),
        namespace_begin=_namespace_begin,
        namespace_end=_namespace_end,
        defaults=DEFAULT_VALUES,
        payloads=PAYLOAD_VALUES,
        container_defaults={name: "{type}()" for name in CONTAINER_TYPE_MAP},
        struct_default="{type}()",
        enum_default="{type}::{value}",
        identifier=_identifier,
    )
)


def _param_names(service: Service, function: Function) -> list[str]:
    return escape_names(
        [p.name for p in function.params],
        RESERVED_PARAMS,
        qualified_name(service, function),
        escape=_identifier,
    )


def _pool(meta: TaskMeta) -> str:
    """Spell a pool; declared pools live in the program namespace."""
    if meta.pool == DEFAULT_POOL:
        return f"::dsn::{DEFAULT_POOL}"
    return meta.pool


def _bindings(ctx: RenderContext) -> dict[str, Any]:
    mapper = ctx.mapper

    def map_type(t: IdlType, owner: str | None = None, qualified: bool = True) -> str:
        return mapper.map_type(t, LANGUAGE, owner=owner, qualified=qualified)

    def param_list(service: Service, function: Function) -> str:
        owner = qualified_name(service, function)
        return ", ".join(
            f"const {mapper.map_param_type(p, LANGUAGE, owner=owner)}& {name}"
            for name, p in zip(_param_names(service, function), function.params)
        )

    def request_type(service: Service, function: Function) -> str:
        owner = qualified_name(service, function)
        types = [mapper.map_param_type(p, LANGUAGE, owner=owner) for p in function.params]
        if not types:
            return EMPTY_REQUEST
        if len(types) == 1:
            return types[0]
        return f"std::tuple<{', '.join(types)}>"

    def request_value(service: Service, function: Function) -> str:
        names = _param_names(service, function)
        if not names:
            return f"{EMPTY_REQUEST}()"
        if len(names) == 1:
            return names[0]
        return f"std::make_tuple({', '.join(names)})"

    def response_type(service: Service, function: Function) -> str:
        if function.returns_void:
            return EMPTY_RESPONSE
        return mapper.map_return_type(function, LANGUAGE, owner=qualified_name(service, function))

    def payload(t: IdlType, owner: str) -> str:
        return mapper.payload_expression(t, LANGUAGE, owner=owner)

    def default(t: IdlType, owner: str) -> str:
        return mapper.default_expression(t, LANGUAGE, owner=owner)

    return {
        "map_type": map_type,
        "param_list": param_list,
        "request_type": request_type,
        "request_value": request_value,
        "param_names": _param_names,
        "identifier": _identifier,
        "response_type": response_type,
        "payload": payload,
        "default": default,
        "priority": lambda meta: PRIORITY_NAMES[meta.priority],
        "pool": _pool,
        "perf_defaults": {
            "perf_test_rounds": DEFAULT_ROUNDS,
            "perf_test_payload_bytes": ",".join(str(v) for v in DEFAULT_PAYLOAD_BYTES),
            "perf_test_timeouts_ms": ",".join(str(v) for v in DEFAULT_TIMEOUTS_MS),
            "perf_test_concurrency": ",".join(str(v) for v in DEFAULT_CONCURRENCY),
        },
    }


register(
    LANGUAGE,
    FileRole.TYPE_DEFINITIONS,
    "cpp/types.h.j2",
    "{prefix}.types.h",
    bindings=_bindings,
    service_scoped=False,
)
register(
    LANGUAGE,
    FileRole.TASK_CODES,
    "cpp/code.definition.h.j2",
    "{prefix}.code.definition.h",
    bindings=_bindings,
    service_scoped=False,
)
register(LANGUAGE, FileRole.CLIENT_STUB, "cpp/client.h.j2", "{prefix}.client.h", bindings=_bindings)
register(LANGUAGE, FileRole.SERVER_STUB, "cpp/server.h.j2", "{prefix}.server.h", bindings=_bindings)
register(
    LANGUAGE,
    FileRole.PERF_TEST_CLIENT,
    "cpp/client.perf.h.j2",
    "{prefix}.client.perf.h",
    bindings=_bindings,
)
register(LANGUAGE, FileRole.PERF_CONFIG, "cpp/perf.ini.j2", "{prefix}.perf.ini", bindings=_bindings)
