"""RPC channel protocol and handler dispatch used by generated stubs."""

import threading
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol


class ErrorCode(StrEnum):
    """Outcome of an RPC call."""

    ERR_OK = "ERR_OK"
    ERR_TIMEOUT = "ERR_TIMEOUT"
    ERR_NETWORK_FAILURE = "ERR_NETWORK_FAILURE"
    ERR_HANDLER_NOT_FOUND = "ERR_HANDLER_NOT_FOUND"
    ERR_SERVICE_ALREADY_RUNNING = "ERR_SERVICE_ALREADY_RUNNING"
    ERR_INVALID_PARAMETERS = "ERR_INVALID_PARAMETERS"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class RpcError(RuntimeError):
    """Raised when an RPC call does not complete with ERR_OK."""

    def __init__(self, error: ErrorCode, message: str = "") -> None:
        super().__init__(f"{error}: {message}" if message else str(error))
        self.error = error


ResponseCallback = Callable[[ErrorCode, Any], None]
Handler = Callable[[Any], Any]


class RpcChannel(Protocol):
    """Transport a client stub sends requests through.

    ``call_async`` must invoke ``callback`` exactly once per call, with
    ERR_TIMEOUT when no response arrives within ``timeout_ms``.
    """

    def call(self, code: str, request: Any, timeout_ms: int = 0) -> Any: ...

    def call_async(
        self, code: str, request: Any, timeout_ms: int, callback: ResponseCallback
    ) -> None: ...


class HandlerRegistry:
    """Maps task codes to request handlers on the serving side."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[str, Handler] = {}

    def register(self, code: str, handler: Handler) -> None:
        with self._lock:
            if code in self._handlers:
                raise RpcError(
                    ErrorCode.ERR_SERVICE_ALREADY_RUNNING, f"handler for {code} already registered"
                )
            self._handlers[code] = handler

    def unregister(self, code: str) -> None:
        with self._lock:
            self._handlers.pop(code, None)

    def __contains__(self, code: str) -> bool:
        with self._lock:
            return code in self._handlers

    def codes(self) -> list[str]:
        with self._lock:
            return list(self._handlers)

    def dispatch(self, code: str, request: Any) -> Any:
        with self._lock:
            handler = self._handlers.get(code)
        if handler is None:
            raise RpcError(ErrorCode.ERR_HANDLER_NOT_FOUND, code)
        return handler(request)


class LocalChannel:
    """In-process channel delivering requests straight to a HandlerRegistry."""

    def __init__(self, registry: HandlerRegistry) -> None:
        self._registry = registry

    def call(self, code: str, request: Any, timeout_ms: int = 0) -> Any:
        return self._registry.dispatch(code, request)

    def call_async(
        self, code: str, request: Any, timeout_ms: int, callback: ResponseCallback
    ) -> None:
        try:
            response = self._registry.dispatch(code, request)
        except RpcError as e:
            callback(e.error, None)
            return
        callback(ErrorCode.ERR_OK, response)
