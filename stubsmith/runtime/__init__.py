"""Runtime support for code generated by stubsmith's Python target."""

from .perf import PerfCaseResult as PerfCaseResult
from .perf import PerfClientHelper as PerfClientHelper
from .perf import PerfHarnessError as PerfHarnessError
from .perf import PerfTestCase as PerfTestCase
from .perf import PerfTestSuite as PerfTestSuite
from .perf import RequestState as RequestState
from .perf import SlotBudget as SlotBudget
from .perf import SlotBudgetError as SlotBudgetError
from .perf import UnknownContextError as UnknownContextError
from .perf import load_suite_config as load_suite_config
from .rpc import ErrorCode as ErrorCode
from .rpc import HandlerRegistry as HandlerRegistry
from .rpc import LocalChannel as LocalChannel
from .rpc import RpcChannel as RpcChannel
from .rpc import RpcError as RpcError
from .tasks import DEFAULT_POOL as DEFAULT_POOL
from .tasks import TaskCode as TaskCode
from .tasks import TaskCodeError as TaskCodeError
from .tasks import TaskPriority as TaskPriority
from .tasks import define_task_code as define_task_code
from .tasks import define_thread_pool as define_thread_pool
from .tasks import task_code as task_code
from .tasks import task_codes as task_codes
from .tasks import thread_pools as thread_pools
