"""Template dispatch: one template per (language, file role) pair.

Languages register their templates with ``register``; ``render`` looks the
pair up and renders it against a program and its code table. Rendering is
read-only over both, so renders of different files are independent once
``assign_codes`` has run.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from jinja2 import Environment, PackageLoader

from .codes import CodeTable, assign_codes
from .errors import UnknownFileRoleError, ValidationError
from .perf import PerfSuiteSpec, build_suites
from .typemap import Namespace, TypeMapper, namespace_for
from .types import Program, Service, qualified_name
from .util import to_snake_case

logger = logging.getLogger(__name__)

env = Environment(
    loader=PackageLoader("stubsmith.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)


class FileRole(StrEnum):
    """Category of generated artifact."""

    TYPE_DEFINITIONS = "type_definitions"
    TASK_CODES = "task_codes"
    CLIENT_STUB = "client_stub"
    SERVER_STUB = "server_stub"
    PERF_TEST_CLIENT = "perf_test_client"
    PERF_CONFIG = "perf_config"


PERF_ROLES = frozenset([FileRole.PERF_TEST_CLIENT, FileRole.PERF_CONFIG])


@dataclass(frozen=True)
class RenderContext:
    """Everything a template binding may look at for one render."""

    program: Program
    codes: CodeTable
    language: str
    role: FileRole
    services: list[Service]
    file_prefix: str
    output_prefix: str
    mapper: TypeMapper
    namespace: Namespace
    suites: list[PerfSuiteSpec]
    options: Mapping[str, Any] = field(default_factory=dict)


Bindings = Callable[[RenderContext], dict[str, Any]]


@dataclass(frozen=True)
class TemplateEntry:
    """A registered template.

    ``filename`` is formatted with ``prefix`` and ``namespace`` (the
    program's namespace in this language as a relative path);
    ``service_prefix`` builds the
    prefix of per-service output from ``prefix``, ``service`` and
    ``service_snake``. Entries that are not ``service_scoped`` always
    render the whole program into one file.
    """

    language: str
    role: FileRole
    template: str
    filename: str
    bindings: Bindings | None = None
    service_scoped: bool = True
    service_prefix: str = "{prefix}.{service}"


_REGISTRY: dict[tuple[str, FileRole], TemplateEntry] = {}


def register(
    language: str,
    role: FileRole,
    template: str,
    filename: str,
    *,
    bindings: Bindings | None = None,
    service_scoped: bool = True,
    service_prefix: str = "{prefix}.{service}",
) -> TemplateEntry:
    """Register the template rendering ``role`` files for ``language``."""
    entry = TemplateEntry(
        language=language,
        role=role,
        template=template,
        filename=filename,
        bindings=bindings,
        service_scoped=service_scoped,
        service_prefix=service_prefix,
    )
    _REGISTRY[(language, role)] = entry
    return entry


def lookup(language: str, role: FileRole | str) -> TemplateEntry:
    try:
        return _REGISTRY[(language, FileRole(role))]
    except (KeyError, ValueError):
        raise UnknownFileRoleError(language, str(role)) from None


def languages() -> list[str]:
    """Return registered languages in registration order."""
    return list(dict.fromkeys(language for language, _ in _REGISTRY))


def roles(language: str) -> list[FileRole]:
    """Return the roles registered for a language, in FileRole order."""
    return [role for role in FileRole if (language, role) in _REGISTRY]


def default_prefix(program: Program) -> str:
    return to_snake_case(program.name)


def _select_services(program: Program, service: str | None) -> list[Service]:
    if service is None:
        return program.services
    for candidate in program.services:
        if candidate.name == service:
            return [candidate]
    raise ValidationError(f"Program {program.name} has no service {service}", service)


def render(
    program: Program,
    codes: CodeTable,
    language: str,
    role: FileRole | str,
    *,
    service: str | None = None,
    file_prefix: str | None = None,
    options: Mapping[str, Any] | None = None,
) -> str:
    """Render one output file.

    ``codes`` must come from ``assign_codes`` on the same program. With
    ``service`` set only that service is rendered.
    """
    entry = lookup(language, role)
    services = _select_services(program, service if entry.service_scoped else None)
    prefix = file_prefix or default_prefix(program)
    output_prefix = prefix
    if service is not None and entry.service_scoped:
        output_prefix = entry.service_prefix.format(
            prefix=prefix, service=service, service_snake=to_snake_case(service)
        )

    mapper = TypeMapper(program)
    suites = build_suites(program, codes, services) if entry.role in PERF_ROLES else []

    ctx = RenderContext(
        program=program,
        codes=codes,
        language=language,
        role=entry.role,
        services=services,
        file_prefix=prefix,
        output_prefix=output_prefix,
        mapper=mapper,
        namespace=mapper.namespace(language),
        suites=suites,
        options=options or {},
    )
    bindings = entry.bindings(ctx) if entry.bindings else {}

    logger.debug("Rendering %s/%s for %s", language, entry.role, program.name)
    return env.get_template(entry.template).render(
        program=program,
        services=services,
        codes=codes,
        suites=suites,
        namespace=ctx.namespace,
        file_prefix=prefix,
        output_prefix=output_prefix,
        options=ctx.options,
        qualified_name=qualified_name,
        **bindings,
    )


def output_name(
    entry: TemplateEntry, program: Program, file_prefix: str | None, service: str | None = None
) -> str:
    prefix = file_prefix or default_prefix(program)
    if service is not None and entry.service_scoped:
        prefix = entry.service_prefix.format(
            prefix=prefix, service=service, service_snake=to_snake_case(service)
        )
    namespace = namespace_for(program, entry.language)
    return entry.filename.format(prefix=prefix, namespace="/".join(namespace.parts))


def generate(
    program: Program,
    language: str,
    role: FileRole | str,
    output_dir: str | Path,
    *,
    codes: CodeTable | None = None,
    file_prefix: str | None = None,
    per_service: bool = False,
    options: Mapping[str, Any] | None = None,
) -> list[Path]:
    """Render a role and write it below ``output_dir``.

    Every file is rendered before any is written, so a failing render
    leaves the output directory untouched. Existing files are overwritten.
    """
    entry = lookup(language, role)
    if codes is None:
        codes = assign_codes(program)

    targets: list[str | None] = [None]
    if per_service and entry.service_scoped:
        targets = [s.name for s in program.services]

    rendered: list[tuple[Path, str]] = []
    for service in targets:
        text = render(
            program,
            codes,
            language,
            entry.role,
            service=service,
            file_prefix=file_prefix,
            options=options,
        )
        path = Path(output_dir) / output_name(entry, program, file_prefix, service)
        rendered.append((path, text))

    paths: list[Path] = []
    for path, text in rendered:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        logger.info("Wrote %s", path)
        paths.append(path)
    return paths
