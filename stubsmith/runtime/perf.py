"""Load-test harness driven by generated perf test clients.

A harness runs suites (one per RPC function) case by case. Each case keeps
at most ``concurrency`` requests outstanding: a request acquires a slot
from the budget when it is dispatched and gives it back when its completion
arrives. Completions are matched to requests by the context token handed
to the asynchronous call, so one handler serves every function.

Request lifecycle::

    IDLE --send_one()--> DISPATCHED --end_send_one()--> COMPLETED

The harness keeps no timers of its own. A request that never gets a
response is completed by the channel with ERR_TIMEOUT once the case's
``timeout_ms`` has elapsed.
"""

import itertools
import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .rpc import ErrorCode

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 1000
DEFAULT_PAYLOAD_BYTES = (1024,)
DEFAULT_TIMEOUTS_MS = (10000,)
DEFAULT_CONCURRENCY = (1, 10)


class PerfHarnessError(RuntimeError):
    """Raised when the harness is misused or misconfigured."""


class UnknownContextError(PerfHarnessError):
    """Raised when a completion carries a token that is not outstanding."""


class SlotBudgetError(PerfHarnessError):
    """Raised when slots are over-released or resized while in use."""


class RequestState(StrEnum):
    IDLE = "IDLE"
    DISPATCHED = "DISPATCHED"
    COMPLETED = "COMPLETED"


class SlotBudget:
    """Bounded count of outstanding requests with non-blocking acquisition."""

    def __init__(self, capacity: int) -> None:
        self._lock = threading.Lock()
        self._capacity = self._check(capacity)
        self._in_use = 0

    @staticmethod
    def _check(capacity: int) -> int:
        if capacity < 1:
            raise SlotBudgetError(f"Slot budget must be at least 1, got {capacity}")
        return capacity

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        return self._in_use

    def try_acquire(self) -> bool:
        """Take a slot if one is free. Never blocks."""
        with self._lock:
            if self._in_use >= self._capacity:
                return False
            self._in_use += 1
            return True

    def release(self) -> None:
        with self._lock:
            if self._in_use == 0:
                raise SlotBudgetError("Released a slot that was not acquired")
            self._in_use -= 1

    def resize(self, capacity: int) -> None:
        with self._lock:
            if self._in_use:
                raise SlotBudgetError(f"Cannot resize with {self._in_use} slots in use")
            self._capacity = self._check(capacity)


@dataclass(frozen=True)
class PerfTestCase:
    """One configuration a suite is run with."""

    id: int
    rounds: int
    payload_bytes: int
    timeout_ms: int
    concurrency: int


@dataclass
class PerfTestSuite:
    """Load test of one RPC function.

    ``send`` issues the asynchronous call and is invoked as
    ``send(payload, context=token, callback=handler, timeout_ms=...)``;
    ``handler`` must be called once with ``(error, response, token)``.
    """

    name: str
    config_section: str
    payload_generator: Callable[[int], Any]
    send: Callable[..., None]
    cases: list[PerfTestCase] = field(default_factory=list)


@dataclass
class PerfCaseResult:
    """Outcome counters of one case."""

    suite: str
    case: PerfTestCase
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    elapsed: float = 0.0

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed


@dataclass
class _PendingRequest:
    token: int
    suite: str
    case_id: int
    started: float


def _int_list(value: str | None, default: tuple[int, ...], key: str, section: str) -> list[int]:
    if value is None or not str(value).strip():
        return list(default)
    try:
        numbers = [int(item) for item in str(value).split(",") if item.strip()]
    except ValueError:
        raise PerfHarnessError(
            f"[{section}] {key} must be a comma separated list of integers"
        ) from None
    if not numbers or any(n < 1 for n in numbers):
        raise PerfHarnessError(f"[{section}] {key} values must be positive")
    return numbers


def load_suite_config(
    suite: PerfTestSuite, config: Mapping[str, Mapping[str, str]] | None = None
) -> PerfTestSuite:
    """Fill ``suite.cases`` from the config section named by the suite.

    ``config`` is anything indexable by section name, for example a
    ``configparser.ConfigParser``. Missing sections and keys use defaults.
    Cases are the product of payload sizes, timeouts and concurrency levels.
    """
    section_name = suite.config_section
    section: Mapping[str, str] = {}
    if config is not None and section_name in config:
        section = config[section_name]

    rounds = _int_list(
        section.get("perf_test_rounds"), (DEFAULT_ROUNDS,), "perf_test_rounds", section_name
    )[0]
    payloads = _int_list(
        section.get("perf_test_payload_bytes"),
        DEFAULT_PAYLOAD_BYTES,
        "perf_test_payload_bytes",
        section_name,
    )
    timeouts = _int_list(
        section.get("perf_test_timeouts_ms"),
        DEFAULT_TIMEOUTS_MS,
        "perf_test_timeouts_ms",
        section_name,
    )
    concurrency = _int_list(
        section.get("perf_test_concurrency"),
        DEFAULT_CONCURRENCY,
        "perf_test_concurrency",
        section_name,
    )

    suite.cases = [
        PerfTestCase(
            id=case_id,
            rounds=rounds,
            payload_bytes=payload_bytes,
            timeout_ms=timeout_ms,
            concurrency=slots,
        )
        for case_id, (payload_bytes, timeout_ms, slots) in enumerate(
            itertools.product(payloads, timeouts, concurrency), start=1
        )
    ]
    return suite


class PerfClientHelper:
    """Drives perf test suites with a bounded number of outstanding requests.

    Generated perf clients mix this in, build their suites and call
    ``start``. Every completion releases its slot and refills free slots, so
    the harness runs at the highest rate the budget allows. Completions may
    arrive on any thread and in any order.
    """

    load_suite_config = staticmethod(load_suite_config)

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._budget = SlotBudget(1)
        self._tokens = itertools.count(1)
        self._last_token = 0
        self._pending: dict[int, _PendingRequest] = {}
        self._plan: list[tuple[PerfTestSuite, PerfTestCase]] = []
        self._position = 0
        self._issued = 0
        self._current: PerfCaseResult | None = None
        self._case_started = 0.0
        self._pumping = False
        self._repump = False
        self.results: list[PerfCaseResult] = []
        self.finished = threading.Event()

    @property
    def budget(self) -> SlotBudget:
        return self._budget

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._pending)

    def state(self, token: int) -> RequestState:
        with self._lock:
            if token in self._pending:
                return RequestState.DISPATCHED
            if 0 < token <= self._last_token:
                return RequestState.COMPLETED
            return RequestState.IDLE

    def start(self, suites: list[PerfTestSuite]) -> None:
        """Run ``suites`` in order, each case in order."""
        with self._lock:
            if self._current is not None:
                raise PerfHarnessError("Perf test already running")
            self._plan = [(suite, case) for suite in suites for case in suite.cases]
            self._position = 0
            self.results = []
            self.finished.clear()
            if not self._begin_case():
                self.finished.set()
                return
        self._pump()

    def wait(self, timeout: float | None = None) -> bool:
        return self.finished.wait(timeout)

    def _begin_case(self) -> bool:
        if self._position >= len(self._plan):
            self._current = None
            return False
        suite, case = self._plan[self._position]
        self._budget.resize(case.concurrency)
        self._issued = 0
        self._current = PerfCaseResult(suite=suite.name, case=case)
        self._case_started = self._clock()
        logger.debug(
            "%s case %d: rounds=%d payload=%d timeout=%dms concurrency=%d",
            suite.name,
            case.id,
            case.rounds,
            case.payload_bytes,
            case.timeout_ms,
            case.concurrency,
        )
        return True

    def _finish_case(self) -> None:
        result = self._current
        result.elapsed = self._clock() - self._case_started
        self.results.append(result)
        logger.info(
            "%s case %d: %d succeeded, %d failed (%d timed out) in %.3fs",
            result.suite,
            result.case.id,
            result.succeeded,
            result.failed,
            result.timed_out,
            result.elapsed,
        )
        self._position += 1
        if not self._begin_case():
            logger.info("Perf test finished, %d cases run", len(self.results))
            self.finished.set()

    def send_one(self) -> int | None:
        """Dispatch one request of the current case.

        Returns the context token, or None when no slot is free or the case
        has issued all its rounds. Callers retry later; completions retry on
        their own.
        """
        with self._lock:
            if self._current is None:
                return None
            suite, case = self._plan[self._position]
            if self._issued >= case.rounds or not self._budget.try_acquire():
                return None
            token = next(self._tokens)
            self._last_token = token
            self._issued += 1
            self._pending[token] = _PendingRequest(
                token=token, suite=suite.name, case_id=case.id, started=self._clock()
            )

        try:
            payload = suite.payload_generator(case.payload_bytes)
            suite.send(
                payload, context=token, callback=self.end_send_one, timeout_ms=case.timeout_ms
            )
        except Exception:
            with self._lock:
                if self._pending.pop(token, None) is not None:
                    self._budget.release()
                    self._issued -= 1
            raise
        return token

    def end_send_one(self, err: ErrorCode | str, response: Any, context: int) -> None:
        """Complete the request identified by ``context`` and refill slots."""
        with self._lock:
            pending = self._pending.pop(context, None)
            if pending is None:
                raise UnknownContextError(
                    f"Context token {context!r} is unknown or already completed"
                )
            self._budget.release()

            result = self._current
            if err == ErrorCode.ERR_OK:
                result.succeeded += 1
            else:
                result.failed += 1
                if err == ErrorCode.ERR_TIMEOUT:
                    result.timed_out += 1

            if result.completed >= result.case.rounds:
                self._finish_case()

        self._pump()

    def _pump(self) -> None:
        # Completions delivered while a pump runs (on this or another thread)
        # only flag another pass, keeping synchronous channels from recursing.
        with self._lock:
            if self._pumping:
                self._repump = True
                return
            self._pumping = True
            self._repump = False

        try:
            while True:
                while self.send_one() is not None:
                    pass
                with self._lock:
                    if not self._repump:
                        self._pumping = False
                        return
                    self._repump = False
        except BaseException:
            with self._lock:
                self._pumping = False
            raise
