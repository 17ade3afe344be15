"""stubsmith - RPC stub and task-code generator for task-based RPC runtimes."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("stubsmith")
except PackageNotFoundError:
    __version__ = "(local)"
