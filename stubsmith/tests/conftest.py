"""Unit tests configuration file."""

import os

import pytest

from stubsmith.generator import Function, IdlType, Param, Program, Service, parse

FILE_DIR = os.path.dirname(os.path.realpath(__file__))


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


def _load_idl(name):
    path = os.path.join(FILE_DIR, "generator", name)
    with open(path) as f:
        return parse(f.read(), name=os.path.splitext(name)[0])


@pytest.fixture
def load_idl():
    """Parse one of the interface definitions next to the generator tests."""
    return _load_idl


@pytest.fixture
def echo_program():
    return Program(
        name="Echo",
        services=[
            Service(
                name="EchoService",
                functions=[
                    Function(
                        name="Ping",
                        params=[Param(name="req", type=IdlType("string"))],
                        return_type=IdlType("string"),
                    )
                ],
            )
        ],
    )


@pytest.fixture
def kv_program():
    return _load_idl("kv.idl")
