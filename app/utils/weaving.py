import functools
import inspect
from typing import Any, Callable, List, Optional

from fastapi import Request

from app.utils.logger import LogSink
from app.utils.middleware import (
    HttpRequestContext,
    Interceptor,
    InterceptorChain,
    Invocation,
    RequestInterceptor,
    TimingInterceptor,
    describe_operation,
)

TIMED_MARKER = "__timed__"

# Имя параметра, через который FastAPI передает Request в обертку
REQUEST_PARAMETER = "_intercepted_request"


class Interceptable:
    """Базовый класс компонентов, вызовы которых проходят через RequestInterceptor."""


def timed(func: Callable[..., Any]) -> Callable[..., Any]:
    """Помечает операцию для замера времени выполнения"""
    setattr(func, TIMED_MARKER, True)
    return func


def is_timed(func: Callable[..., Any]) -> bool:
    return bool(getattr(func, TIMED_MARKER, False))


class Weaver:
    """
    Собирает цепочки перехватчиков для контроллеров и сервисов.

    Цепочка определяется один раз при сборке: RequestInterceptor для
    Interceptable-целей, затем TimingInterceptor для операций с @timed.
    """

    def __init__(
        self,
        sink: LogSink,
        request_interceptor: Optional[RequestInterceptor] = None,
        timing_interceptor: Optional[TimingInterceptor] = None,
    ):
        self.sink = sink
        self.request_interceptor = request_interceptor or RequestInterceptor(sink)
        self.timing_interceptor = timing_interceptor or TimingInterceptor(sink)

    def chain_for(self, target: Any, func: Callable[..., Any]) -> InterceptorChain:
        interceptors: List[Interceptor] = []
        if isinstance(target, Interceptable):
            interceptors.append(self.request_interceptor)
        if is_timed(func):
            interceptors.append(self.timing_interceptor)
        return InterceptorChain(interceptors)

    def endpoint(self, method: Callable[..., Any]) -> Callable[..., Any]:
        """
        Оборачивает метод контроллера в эндпоинт FastAPI.

        Сигнатура метода сохраняется, поэтому параметры пути, запроса, тела
        и зависимости разбираются как обычно. Дополнительно FastAPI передает
        Request; без него вызов идет по цепочке без контекста запроса.
        """
        target = getattr(method, "__self__", None)
        chain = self.chain_for(target, getattr(method, "__func__", method))
        operation = describe_operation(method)
        signature = inspect.signature(method, eval_str=True)

        @functools.wraps(method)
        async def endpoint(*args, **kwargs):
            request = kwargs.pop(REQUEST_PARAMETER, None)
            invocation = Invocation(
                target=target,
                operation=operation,
                func=method,
                args=args,
                kwargs=kwargs,
                request=HttpRequestContext(request) if request is not None else None,
            )
            return await chain(invocation)

        request_parameter = inspect.Parameter(
            REQUEST_PARAMETER,
            inspect.Parameter.KEYWORD_ONLY,
            default=None,
            annotation=Request,
        )
        endpoint.__signature__ = signature.replace(
            parameters=[*signature.parameters.values(), request_parameter]
        )
        return endpoint

    def wrap(self, method: Callable[..., Any]) -> Callable[..., Any]:
        """Оборачивает связанный метод вне HTTP-контекста"""
        target = getattr(method, "__self__", None)
        chain = self.chain_for(target, getattr(method, "__func__", method))
        operation = describe_operation(method)

        @functools.wraps(method)
        async def wrapper(*args, **kwargs):
            return await chain(Invocation(target, operation, method, args, kwargs))

        return wrapper

    def weave(self, component: Any) -> Any:
        """
        Заменяет методы компонента, помеченные @timed, обернутыми версиями.

        Помеченные методы должны быть корутинами.
        """
        for name, func in inspect.getmembers(type(component), callable):
            if not is_timed(func):
                continue
            if not inspect.iscoroutinefunction(func):
                raise TypeError(f"{type(component).__name__}.{name} is marked @timed but is not a coroutine")
            setattr(component, name, self.wrap(getattr(component, name)))
        return component
