"""Task code assignment for RPC functions.

Every function in a program gets a task code derived from its service and
function names, a scheduling priority and a thread pool. The codes are
global: the runtime registers them in a single table, so they must be
unique across the whole program, not only within a service.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from dataclasses_json import DataClassJsonMixin

from .errors import DuplicateCodeError, InvalidOptionError
from .parser import validate
from .types import Annotation, Program, annotation_value, qualified_name
from .util import fnv1a_32, to_code_part

logger = logging.getLogger(__name__)

DEFAULT_POOL = "THREAD_POOL_DEFAULT"
TEST_TIMER_SUFFIX = "TEST_TIMER"

# Longer codes are shortened to a readable prefix plus a hash of the full code
MAX_CODE_LENGTH = 64
_HASH_SUFFIX_LENGTH = 9

# Codes are emitted as identifiers, which cannot start with a digit
_DIGIT_PREFIX = "TASK_"

_POOL_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class TaskPriority(StrEnum):
    """Scheduling class of a task."""

    LOW = "LOW"
    COMMON = "COMMON"
    HIGH = "HIGH"


@dataclass(frozen=True)
class TaskMeta(DataClassJsonMixin):
    """Task registration data for one function or synthesized task."""

    rpc_code: str
    priority: TaskPriority
    pool: str


@dataclass(frozen=True)
class CodeTable:
    """Result of a code assignment pass over a program.

    ``functions`` is keyed by ``Service.Function`` and keeps declaration order.
    """

    functions: Mapping[str, TaskMeta]
    test_timer: TaskMeta

    def lookup(self, service: str, function: str) -> TaskMeta:
        return self.functions[f"{service}.{function}"]

    def pools(self) -> list[str]:
        """Return non-default pools in order of first use."""
        pools: list[str] = []
        for meta in [*self.functions.values(), self.test_timer]:
            if meta.pool != DEFAULT_POOL and meta.pool not in pools:
                pools.append(meta.pool)
        return pools

    def to_dict(self) -> dict[str, Any]:
        return {
            "functions": {name: meta.to_dict() for name, meta in self.functions.items()},
            "test_timer": self.test_timer.to_dict(),
        }


def derive_code(*parts: str) -> str:
    """Derive a task code from name parts.

    ``derive_code("EchoService", "Ping") == "ECHOSERVICE_PING"``.
    """
    code = "_".join(to_code_part(part) for part in parts)
    if code[:1].isdigit():
        code = f"{_DIGIT_PREFIX}{code}"
    if len(code) > MAX_CODE_LENGTH:
        prefix = code[: MAX_CODE_LENGTH - _HASH_SUFFIX_LENGTH].rstrip("_")
        code = f"{prefix}_{fnv1a_32(code):08X}"
    return code


def _parse_priority(value: Any, entity: str) -> TaskPriority:
    text = str(value).upper().removeprefix("TASK_PRIORITY_")
    try:
        return TaskPriority(text)
    except ValueError:
        raise InvalidOptionError(
            f"Invalid priority {value!r} for {entity}, expected one of "
            f"{', '.join(p.value for p in TaskPriority)}",
            entity,
        ) from None


def _parse_pool(value: Any, entity: str) -> str:
    pool = str(value)
    if not _POOL_NAME.match(pool):
        raise InvalidOptionError(f"Invalid thread pool name {value!r} for {entity}", entity)
    return pool


def _resolve(
    annotations: list[Annotation], entity: str, inherited: tuple[TaskPriority, str]
) -> tuple[TaskPriority, str]:
    priority, pool = inherited

    value = annotation_value(annotations, "priority")
    if value is not None:
        priority = _parse_priority(value, entity)

    value = annotation_value(annotations, "pool")
    if value is not None:
        pool = _parse_pool(value, entity)

    return priority, pool


def assign_codes(program: Program) -> CodeTable:
    """Assign a task code, priority and pool to every function of a program.

    Raises DuplicateCodeError when two functions, or a function and the
    program's test timer, derive the same code.
    """
    validate(program)

    program_defaults = _resolve(
        [Annotation(o.name, o.value) for o in program.options],
        program.name,
        (TaskPriority.COMMON, DEFAULT_POOL),
    )

    owners: dict[str, str] = {}

    def claim(code: str, owner: str) -> None:
        if code in owners:
            raise DuplicateCodeError(code, owners[code], owner)
        owners[code] = owner

    functions: dict[str, TaskMeta] = {}
    for service in program.services:
        service_defaults = _resolve(service.annotations, service.name, program_defaults)
        for function in service.functions:
            name = qualified_name(service, function)
            priority, pool = _resolve(function.annotations, name, service_defaults)
            code = derive_code(service.name, function.name)
            claim(code, name)
            functions[name] = TaskMeta(rpc_code=code, priority=priority, pool=pool)
            logger.debug("%s -> %s (%s, %s)", name, code, priority, pool)

    timer_code = derive_code(program.name, TEST_TIMER_SUFFIX)
    claim(timer_code, f"{program.name} test timer")
    priority, pool = program_defaults
    test_timer = TaskMeta(rpc_code=timer_code, priority=priority, pool=pool)

    return CodeTable(functions=MappingProxyType(functions), test_timer=test_timer)
