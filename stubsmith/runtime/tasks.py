"""Task code and thread pool registry used by generated task code modules."""

import threading
from dataclasses import dataclass
from enum import StrEnum

DEFAULT_POOL = "THREAD_POOL_DEFAULT"


class TaskPriority(StrEnum):
    """Scheduling class of a task."""

    LOW = "LOW"
    COMMON = "COMMON"
    HIGH = "HIGH"


class TaskCodeError(RuntimeError):
    """Raised when a task code or thread pool definition conflicts."""


@dataclass(frozen=True, slots=True)
class TaskCode:
    """A registered task code."""

    name: str
    priority: TaskPriority
    pool: str
    is_rpc: bool = True


_lock = threading.Lock()
_pools: list[str] = [DEFAULT_POOL]
_task_codes: dict[str, TaskCode] = {}


def define_thread_pool(name: str) -> str:
    """Declare a thread pool. Declaring the same pool twice is a no-op."""
    with _lock:
        if name not in _pools:
            _pools.append(name)
    return name


def define_task_code(
    name: str,
    priority: TaskPriority = TaskPriority.COMMON,
    pool: str = DEFAULT_POOL,
    *,
    rpc: bool = True,
) -> TaskCode:
    """Register a task code.

    Re-registering an identical definition returns the existing code, so a
    generated module can be imported more than once. A conflicting
    definition raises TaskCodeError.
    """
    code = TaskCode(name=name, priority=TaskPriority(priority), pool=pool, is_rpc=rpc)
    with _lock:
        if pool not in _pools:
            raise TaskCodeError(f"Task code {name} uses undeclared thread pool {pool}")
        existing = _task_codes.get(name)
        if existing is not None:
            if existing != code:
                raise TaskCodeError(f"Task code {name} already defined as {existing}")
            return existing
        _task_codes[name] = code
    return code


def task_code(name: str) -> TaskCode:
    with _lock:
        try:
            return _task_codes[name]
        except KeyError:
            raise TaskCodeError(f"Unknown task code {name}") from None


def task_codes() -> list[TaskCode]:
    with _lock:
        return list(_task_codes.values())


def thread_pools() -> list[str]:
    with _lock:
        return list(_pools)
