"""Perf test suite descriptions for generated load-test clients."""

from dataclasses import dataclass

from .codes import CodeTable
from .errors import MissingParamError
from .types import Function, Param, Program, Service, qualified_name

CONFIG_SECTION_PREFIX = "task."


@dataclass(frozen=True)
class PerfSuiteSpec:
    """One load-test suite: a single function driven with synthetic payloads."""

    service: Service
    function: Function
    rpc_code: str

    @property
    def name(self) -> str:
        return qualified_name(self.service, self.function)

    @property
    def config_section(self) -> str:
        return f"{CONFIG_SECTION_PREFIX}{self.rpc_code}"

    @property
    def payload_param(self) -> Param:
        return self.function.params[0]

    @property
    def extra_params(self) -> list[Param]:
        return self.function.params[1:]


def build_suites(
    program: Program, codes: CodeTable, services: list[Service] | None = None
) -> list[PerfSuiteSpec]:
    """Build one suite per function, in declaration order.

    Raises MissingParamError for a function without parameters since there
    is no payload type to synthesize.
    """
    suites: list[PerfSuiteSpec] = []
    for service in program.services if services is None else services:
        for function in service.functions:
            name = qualified_name(service, function)
            if not function.params:
                raise MissingParamError(name)
            suites.append(
                PerfSuiteSpec(
                    service=service,
                    function=function,
                    rpc_code=codes.functions[name].rpc_code,
                )
            )
    return suites
