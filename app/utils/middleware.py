import inspect
import logging
import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Sequence, Tuple

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from app.utils.logger import EXCEPTION, ACCESS, PAYLOAD, PERFORMANCE, TRACE, LogSink

SENSITIVE_TARGET_PATTERN = os.getenv("SENSITIVE_TARGET_PATTERN", "Login")


class BodyReadError(OSError):
    """Не удалось прочитать тело запроса."""


class RequestContext(Protocol):
    """То, что перехватчик запросов знает о текущем HTTP-запросе."""

    @property
    def remote_address(self) -> str: ...

    @property
    def method(self) -> str: ...

    @property
    def path(self) -> str: ...

    async def read_body(self) -> str: ...

    def set_status(self, status_code: int) -> None: ...


class HttpRequestContext:
    """Адаптер Starlette Request к RequestContext"""

    def __init__(self, request: Request):
        self.request = request

    @property
    def remote_address(self) -> str:
        return self.request.client.host if self.request.client else "Unknown"

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.url.path

    async def read_body(self) -> str:
        # Request кеширует тело, поэтому FastAPI сможет прочитать его повторно
        try:
            body = await self.request.body()
        except (ClientDisconnect, RuntimeError) as e:
            raise BodyReadError(str(e) or type(e).__name__) from e
        return body.decode("utf-8", errors="replace")

    def set_status(self, status_code: int) -> None:
        self.request.state.response_status = status_code


@dataclass
class Invocation:
    """Один перехваченный вызов: цель, операция и аргументы."""

    target: Any
    operation: str
    func: Callable[..., Any]
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    request: Optional[RequestContext] = None

    @property
    def source(self) -> str:
        return f"{self.target}.{self.operation}"


Handler = Callable[[Invocation], Awaitable[Any]]
Interceptor = Callable[[Invocation, Handler], Awaitable[Any]]


def describe_operation(func: Callable[..., Any]) -> str:
    """Возвращает описание операции вида Class.method(params)"""
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", repr(func))
    try:
        signature = str(inspect.signature(func))
    except (TypeError, ValueError):
        signature = "(...)"
    return f"{name}{signature}"


def describe_error(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


async def invoke(invocation: Invocation) -> Any:
    """Конечный обработчик цепочки: вызывает саму операцию."""
    if inspect.iscoroutinefunction(invocation.func):
        return await invocation.func(*invocation.args, **invocation.kwargs)
    return await run_in_threadpool(invocation.func, *invocation.args, **invocation.kwargs)


def _link(interceptor: Interceptor, call_next: Handler) -> Handler:
    async def handler(invocation: Invocation) -> Any:
        return await interceptor(invocation, call_next)

    return handler


class InterceptorChain:
    """
    Фиксированная цепочка перехватчиков, собираемая при старте приложения.

    Первый перехватчик в списке внешний, последний вызывает invoke.
    """

    def __init__(self, interceptors: Sequence[Interceptor] = ()):
        self.interceptors = tuple(interceptors)
        handler: Handler = invoke
        for interceptor in reversed(self.interceptors):
            handler = _link(interceptor, handler)
        self._handler = handler

    def __len__(self) -> int:
        return len(self.interceptors)

    async def __call__(self, invocation: Invocation) -> Any:
        return await self._handler(invocation)


class RequestInterceptor:
    """
    Логирование вызовов контроллеров:
    1) кто, каким методом и по какому пути обратился
    2) тело запроса, кроме чувствительных целей (Login)
    3) исключения, выброшенные контроллером
    """

    def __init__(self, sink: LogSink, sensitive_pattern: str = SENSITIVE_TARGET_PATTERN):
        self.sink = sink
        self.sensitive_pattern = re.compile(sensitive_pattern)

    def is_sensitive(self, target: Any) -> bool:
        return self.sensitive_pattern.search(str(target)) is not None

    async def __call__(self, invocation: Invocation, call_next: Handler) -> Any:
        request = invocation.request
        if request is None:
            return await call_next(invocation)

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        self.sink.access.trace(
            f"{request.remote_address} made a {request.method} request to {request.path} at {timestamp}",
            category=ACCESS,
            source=invocation.source,
        )

        if not self.is_sensitive(invocation.target):
            payload = await self._read_payload(request)
            self.sink.access.trace(
                f"{invocation.target} invoked {invocation.operation} with payload {payload}",
                category=PAYLOAD,
                source=invocation.source,
            )

        try:
            return await call_next(invocation)
        except BaseException as e:
            # Отмена запроса тоже попадает в журнал исключений
            self.sink.exception.warn(
                f"{invocation.target} invoked {invocation.operation} throwing: {describe_error(e)}",
                category=EXCEPTION,
                source=invocation.source,
                error=e,
            )
            request.set_status(500)
            raise

    async def _read_payload(self, request: RequestContext) -> str:
        try:
            body = await request.read_body()
        except OSError as e:
            self.sink.exception.warn(
                "RequestInterceptor failed to get request body",
                category=EXCEPTION,
                error=e,
            )
            return ""
        # Переводы строк не попадают в журнал
        return "".join(body.splitlines())


# Пороги в миллисекундах, верхняя граница не включается
TIMING_TIERS = (
    (250, TRACE),
    (500, logging.DEBUG),
    (1000, logging.INFO),
    (2000, logging.WARNING),
)


def timing_level(duration_ms: int) -> Optional[int]:
    """Уровень журнала для длительности вызова, None если логировать не нужно"""
    for limit, level in TIMING_TIERS:
        if duration_ms < limit:
            return level
    # TODO: вызовы от 2000 мс писать на уровне ERROR, когда алерты начнут читать performance.log
    return None


class TimingInterceptor:
    """Замер времени выполнения операций, помеченных @timed"""

    def __init__(self, sink: LogSink, clock: Callable[[], float] = time.perf_counter):
        self.sink = sink
        self.clock = clock

    async def __call__(self, invocation: Invocation, call_next: Handler) -> Any:
        start_time = self.clock()
        result = await call_next(invocation)
        time_taken = round((self.clock() - start_time) * 1000)

        level = timing_level(time_taken)
        if level is not None:
            self.sink.performance.log(
                level,
                f"{invocation.target} invoked {invocation.operation} taking {time_taken} ms to run",
                category=PERFORMANCE,
                source=invocation.source,
                duration_ms=time_taken,
            )
        return result
