"""stubsmith RPC stub generator."""

from . import cpp as cpp
from . import python as python
from .codes import CodeTable as CodeTable
from .codes import TaskMeta as TaskMeta
from .codes import TaskPriority as TaskPriority
from .codes import assign_codes as assign_codes
from .codes import derive_code as derive_code
from .engine import FileRole as FileRole
from .engine import generate as generate
from .engine import languages as languages
from .engine import render as render
from .engine import roles as roles
from .errors import *
from .parser import parse as parse
from .parser import validate as validate
from .perf import PerfSuiteSpec as PerfSuiteSpec
from .perf import build_suites as build_suites
from .typemap import TypeMapper as TypeMapper
from .typemap import namespace_for as namespace_for
from .types import *
