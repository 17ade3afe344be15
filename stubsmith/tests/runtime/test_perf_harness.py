"""Tests for the perf test harness."""

import configparser
import itertools
import threading

import pytest

from stubsmith.runtime import (
    ErrorCode,
    PerfClientHelper,
    PerfHarnessError,
    PerfTestSuite,
    RequestState,
    SlotBudget,
    SlotBudgetError,
    UnknownContextError,
    load_suite_config,
)


class DeferredSender:
    """Records requests; the test decides when and in which order they complete."""

    def __init__(self):
        self.outstanding = []
        self.payloads = []

    def __call__(self, payload, *, context, callback, timeout_ms):
        self.payloads.append(payload)
        self.outstanding.append((context, callback, timeout_ms))

    def complete(self, index=0, err=ErrorCode.ERR_OK):
        context, callback, _ = self.outstanding.pop(index)
        callback(err, None, context)
        return context


def _suite(send, **settings):
    config = {"task.ECHO_PING": {key: str(value) for key, value in settings.items()}}
    suite = PerfTestSuite(
        name="Echo.Ping",
        config_section="task.ECHO_PING",
        payload_generator=lambda size: "x" * size,
        send=send,
    )
    return load_suite_config(suite, config)


def describe_slot_budget():
    def acquires_up_to_capacity(expect):
        budget = SlotBudget(2)
        expect([budget.try_acquire() for _ in range(3)]) == [True, True, False]
        expect(budget.in_use) == 2
        budget.release()
        expect(budget.try_acquire()) == True

    def rejects_over_release(expect):
        budget = SlotBudget(1)
        with pytest.raises(SlotBudgetError):
            budget.release()

    def resizes_only_when_idle(expect):
        budget = SlotBudget(1)
        budget.resize(4)
        expect(budget.capacity) == 4
        budget.try_acquire()
        with pytest.raises(SlotBudgetError):
            budget.resize(2)

    def rejects_empty_budget(expect):
        with pytest.raises(SlotBudgetError):
            SlotBudget(0)


def describe_load_suite_config():
    def uses_defaults_without_config(expect):
        suite = load_suite_config(PerfTestSuite("Echo.Ping", "task.ECHO_PING", str, print))
        expect(
            [(c.id, c.rounds, c.payload_bytes, c.timeout_ms, c.concurrency) for c in suite.cases]
        ) == [
            (1, 1000, 1024, 10000, 1),
            (2, 1000, 1024, 10000, 10),
        ]

    def reads_config_parser_sections(expect):
        parser = configparser.ConfigParser()
        parser.read_string(
            "[task.ECHO_PING]\n"
            "perf_test_rounds = 10\n"
            "perf_test_payload_bytes = 1, 2\n"
            "perf_test_timeouts_ms = 100\n"
            "perf_test_concurrency = 1,10\n"
        )
        suite = load_suite_config(PerfTestSuite("Echo.Ping", "task.ECHO_PING", str, print), parser)
        expect([(c.id, c.payload_bytes, c.concurrency) for c in suite.cases]) == [
            (1, 1, 1),
            (2, 1, 10),
            (3, 2, 1),
            (4, 2, 10),
        ]
        expect({c.rounds for c in suite.cases}) == {10}
        expect({c.timeout_ms for c in suite.cases}) == {100}

    def ignores_other_sections(expect):
        config = {"task.OTHER": {"perf_test_rounds": "5"}}
        suite = load_suite_config(PerfTestSuite("Echo.Ping", "task.ECHO_PING", str, print), config)
        expect(suite.cases[0].rounds) == 1000

    @pytest.mark.parametrize("value", ["many", "0", "-3"])
    def rejects_invalid_values(expect, value):
        config = {"task.ECHO_PING": {"perf_test_concurrency": value}}
        with pytest.raises(PerfHarnessError, match="perf_test_concurrency"):
            load_suite_config(PerfTestSuite("Echo.Ping", "task.ECHO_PING", str, print), config)


def describe_perf_client_helper():
    def fills_slots_up_to_concurrency(expect):
        sender = DeferredSender()
        helper = PerfClientHelper()
        helper.start([_suite(sender, perf_test_rounds=6, perf_test_concurrency=3)])

        expect(helper.in_flight) == 3
        expect(helper.budget.in_use) == 3
        expect(sender.payloads) == ["x" * 1024] * 3

    def refills_on_out_of_order_completion(expect):
        sender = DeferredSender()
        helper = PerfClientHelper()
        helper.start([_suite(sender, perf_test_rounds=6, perf_test_concurrency=3)])

        peak = 0
        for index in itertools.cycle([2, 0, 1]):
            if not sender.outstanding:
                break
            sender.complete(min(index, len(sender.outstanding) - 1))
            peak = max(peak, helper.in_flight)

        expect(peak <= 3) == True
        expect(helper.in_flight) == 0
        expect(helper.budget.in_use) == 0
        expect(helper.wait(0)) == True
        expect(helper.results[0].succeeded) == 6
        expect(len(sender.payloads)) == 6

    def counts_failures_and_timeouts(expect):
        sender = DeferredSender()
        helper = PerfClientHelper()
        helper.start([_suite(sender, perf_test_rounds=3, perf_test_concurrency=3)])

        sender.complete(err=ErrorCode.ERR_TIMEOUT)
        sender.complete(err=ErrorCode.ERR_NETWORK_FAILURE)
        sender.complete()

        result = helper.results[0]
        expect((result.succeeded, result.failed, result.timed_out)) == (1, 2, 1)
        expect(result.completed) == 3

    def passes_case_timeout_to_sender(expect):
        sender = DeferredSender()
        helper = PerfClientHelper()
        helper.start([_suite(sender, perf_test_rounds=1, perf_test_timeouts_ms=250)])
        expect(sender.outstanding[0][2]) == 250

    def tracks_request_state(expect):
        sender = DeferredSender()
        helper = PerfClientHelper()
        helper.start([_suite(sender, perf_test_rounds=2, perf_test_concurrency=1)])

        token = sender.outstanding[0][0]
        expect(helper.state(token)) == RequestState.DISPATCHED
        sender.complete()
        expect(helper.state(token)) == RequestState.COMPLETED
        expect(helper.state(token + 100)) == RequestState.IDLE

    def rejects_unknown_context(expect):
        sender = DeferredSender()
        helper = PerfClientHelper()
        helper.start([_suite(sender, perf_test_rounds=2, perf_test_concurrency=1)])

        with pytest.raises(UnknownContextError):
            helper.end_send_one(ErrorCode.ERR_OK, None, 999)
        expect(helper.in_flight) == 1

    def rejects_double_completion(expect):
        sender = DeferredSender()
        helper = PerfClientHelper()
        helper.start([_suite(sender, perf_test_rounds=3, perf_test_concurrency=1)])

        context, callback, _ = sender.outstanding[0]
        sender.complete()
        with pytest.raises(UnknownContextError):
            callback(ErrorCode.ERR_OK, None, context)
        expect(helper.budget.in_use) == 1

    def runs_cases_in_order(expect):
        sender = DeferredSender()
        helper = PerfClientHelper(clock=itertools.count().__next__)
        helper.start([_suite(sender, perf_test_rounds=2, perf_test_concurrency="1,2")])

        expect(helper.budget.capacity) == 1
        sender.complete()
        sender.complete()
        expect(helper.budget.capacity) == 2
        expect(helper.in_flight) == 2
        sender.complete()
        sender.complete()

        expect([r.case.concurrency for r in helper.results]) == [1, 2]
        expect(all(r.elapsed > 0 for r in helper.results)) == True
        expect(helper.wait(0)) == True

    def finishes_immediately_without_cases(expect):
        helper = PerfClientHelper()
        helper.start([])
        expect(helper.wait(0)) == True
        expect(helper.results) == []

    def rejects_second_start_while_running(expect):
        sender = DeferredSender()
        helper = PerfClientHelper()
        suite = _suite(sender, perf_test_rounds=2)
        helper.start([suite])
        with pytest.raises(PerfHarnessError):
            helper.start([suite])

    def releases_slot_when_send_fails(expect):
        def send(payload, *, context, callback, timeout_ms):
            raise ConnectionError("down")

        helper = PerfClientHelper()
        with pytest.raises(ConnectionError):
            helper.start([_suite(send, perf_test_rounds=2)])
        expect(helper.in_flight) == 0
        expect(helper.budget.in_use) == 0

    def handles_synchronous_completion(expect):
        calls = []

        def send(payload, *, context, callback, timeout_ms):
            calls.append(context)
            callback(ErrorCode.ERR_OK, payload, context)

        helper = PerfClientHelper()
        helper.start([_suite(send, perf_test_rounds=50, perf_test_concurrency="1,4")])

        expect(helper.wait(0)) == True
        expect(len(calls)) == 100
        expect([r.succeeded for r in helper.results]) == [50, 50]

    def handles_completions_from_other_threads(expect):
        peak = []
        helper = PerfClientHelper()

        def send(payload, *, context, callback, timeout_ms):
            peak.append(helper.in_flight)
            threading.Thread(target=callback, args=(ErrorCode.ERR_OK, payload, context)).start()

        helper.start(
            [_suite(send, perf_test_rounds=40, perf_test_concurrency=4, perf_test_payload_bytes=8)]
        )

        expect(helper.wait(10)) == True
        expect(helper.results[0].succeeded) == 40
        expect(max(peak) <= 4) == True
        expect(helper.budget.in_use) == 0
