"""Tests for task code assignment."""

import pytest

from stubsmith.generator import assign_codes, derive_code
from stubsmith.generator.codes import DEFAULT_POOL, MAX_CODE_LENGTH, TaskPriority
from stubsmith.generator.errors import DuplicateCodeError, InvalidOptionError
from stubsmith.generator.types import (
    Annotation,
    Function,
    IdlType,
    Option,
    Param,
    Program,
    Service,
)


def _function(name, *annotations):
    return Function(
        name=name,
        params=[Param(name="req", type=IdlType("string"))],
        annotations=list(annotations),
    )


def describe_derive_code():
    def joins_upper_cased_parts(expect):
        expect(derive_code("EchoService", "Ping")) == "ECHOSERVICE_PING"

    def replaces_separators(expect):
        expect(derive_code("echo-service", "get.value")) == "ECHO_SERVICE_GET_VALUE"

    def shortens_long_codes_with_a_hash(expect):
        code = derive_code("S" * 40, "F" * 40)
        expect(len(code) <= MAX_CODE_LENGTH) == True
        expect(code.startswith("S" * 40 + "_" + "F" * 14)) == True
        expect(code) == derive_code("S" * 40, "F" * 40)

    def keeps_shortened_codes_distinct(expect):
        first = derive_code("S" * 40, "F" * 40 + "A")
        second = derive_code("S" * 40, "F" * 40 + "B")
        expect(first) != second

    def prefixes_codes_starting_with_a_digit(expect):
        expect(derive_code("_1x", "Ping")) == "TASK_1X_PING"
        expect(derive_code("9Lives", "Get")) == "TASK_9LIVES_GET"


def describe_assign_codes():
    def assigns_echo_code(expect, echo_program):
        codes = assign_codes(echo_program)
        meta = codes.lookup("EchoService", "Ping")
        expect(meta.rpc_code) == "ECHOSERVICE_PING"
        expect(meta.priority) == TaskPriority.COMMON
        expect(meta.pool) == DEFAULT_POOL

    def synthesizes_test_timer(expect, echo_program):
        codes = assign_codes(echo_program)
        expect(codes.test_timer.rpc_code) == "ECHO_TEST_TIMER"
        expect(codes.test_timer.rpc_code not in {m.rpc_code for m in codes.functions.values()}) == (
            True
        )

    def keeps_declaration_order(expect, load_idl):
        codes = assign_codes(load_idl("echo.idl"))
        expect(list(codes.functions)) == ["EchoService.Ping", "EchoService.Count"]

    def is_deterministic(expect, kv_program):
        first = assign_codes(kv_program)
        second = assign_codes(kv_program)
        expect(dict(first.functions)) == dict(second.functions)
        expect(first.test_timer) == second.test_timer

    def does_not_modify_program(expect, kv_program):
        before = kv_program.to_dict()
        assign_codes(kv_program)
        expect(kv_program.to_dict()) == before

    def gives_distinct_codes_across_services(expect):
        program = Program(
            name="Multi",
            services=[
                Service(name="Alpha", functions=[_function("Get"), _function("Put")]),
                Service(name="Beta", functions=[_function("Get")]),
            ],
        )
        codes = [meta.rpc_code for meta in assign_codes(program).functions.values()]
        expect(codes) == ["ALPHA_GET", "ALPHA_PUT", "BETA_GET"]
        expect(len(set(codes))) == len(codes)

    def returns_read_only_table(expect, echo_program):
        codes = assign_codes(echo_program)
        with pytest.raises(TypeError):
            codes.functions["EchoService.Other"] = codes.test_timer


def describe_collisions():
    def fails_when_two_services_collide(expect):
        program = Program(
            name="Clash",
            services=[
                Service(name="A_B", functions=[_function("C")]),
                Service(name="A", functions=[_function("B_C")]),
            ],
        )
        with pytest.raises(DuplicateCodeError) as info:
            assign_codes(program)
        expect(info.value.code) == "A_B_C"
        expect(info.value.first) == "A_B.C"
        expect(info.value.second) == "A.B_C"

    def fails_when_case_differs_only(expect):
        program = Program(
            name="Clash",
            services=[Service(name="Echo", functions=[_function("ping"), _function("PING")])],
        )
        with pytest.raises(DuplicateCodeError, match="ECHO_PING"):
            assign_codes(program)

    def fails_when_function_collides_with_test_timer(expect):
        program = Program(
            name="Echo",
            services=[Service(name="Echo", functions=[_function("Test_Timer")])],
        )
        with pytest.raises(DuplicateCodeError) as info:
            assign_codes(program)
        expect(info.value.second) == "Echo test timer"


def describe_priority_and_pool():
    def applies_program_options(expect):
        program = Program(
            name="Kv",
            services=[Service(name="Kv", functions=[_function("Get")])],
            options=[Option("priority", "HIGH"), Option("pool", "THREAD_POOL_KV")],
        )
        codes = assign_codes(program)
        expect(codes.lookup("Kv", "Get").priority) == TaskPriority.HIGH
        expect(codes.lookup("Kv", "Get").pool) == "THREAD_POOL_KV"
        expect(codes.test_timer.pool) == "THREAD_POOL_KV"

    def lets_services_and_functions_override(expect, kv_program):
        codes = assign_codes(kv_program)
        read = codes.lookup("SimpleKv", "Read")
        batch = codes.lookup("SimpleKv", "WriteBatch")
        expect((read.priority, read.pool)) == (TaskPriority.HIGH, "THREAD_POOL_KV")
        expect((batch.priority, batch.pool)) == (TaskPriority.LOW, "THREAD_POOL_BATCH")
        expect(codes.test_timer.priority) == TaskPriority.COMMON

    def accepts_runtime_priority_names(expect):
        program = Program(
            name="Kv",
            services=[
                Service(
                    name="Kv",
                    functions=[_function("Get", Annotation("priority", "task_priority_low"))],
                )
            ],
        )
        expect(assign_codes(program).lookup("Kv", "Get").priority) == TaskPriority.LOW

    def lists_custom_pools_in_first_use_order(expect, kv_program):
        expect(assign_codes(kv_program).pools()) == ["THREAD_POOL_KV", "THREAD_POOL_BATCH"]

    def rejects_unknown_priority(expect):
        program = Program(
            name="Kv",
            services=[Service(name="Kv", annotations=[Annotation("priority", "URGENT")])],
        )
        with pytest.raises(InvalidOptionError) as info:
            assign_codes(program)
        expect(info.value.entity) == "Kv"

    def rejects_invalid_pool_names(expect):
        program = Program(
            name="Kv",
            services=[
                Service(
                    name="Kv",
                    functions=[_function("Get", Annotation("pool", "not a pool"))],
                )
            ],
        )
        with pytest.raises(InvalidOptionError, match="Kv.Get"):
            assign_codes(program)
