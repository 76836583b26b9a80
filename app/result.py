from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, ParamSpec, TypeVar, Union

from loguru import logger

from app.errors import AppError, ErrorKind, to_http_exception

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")
P = ParamSpec("P")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Failure:
    error: AppError


Result = Union[Success[T], Failure]


def is_success(result: Result[T]) -> bool:
    return isinstance(result, Success)


def map_result(result: Result[T], fn: Callable[[T], U]) -> Result[U]:
    match result:
        case Success(value):
            return Success(fn(value))
        case _:
            return result


def chain(result: Result[T], fn: Callable[[T], Result[U]]) -> Result[U]:
    match result:
        case Success(value):
            return fn(value)
        case _:
            return result


def fold(
    result: Result[T],
    on_success: Callable[[T], R],
    on_failure: Callable[[AppError], R],
) -> R:
    match result:
        case Success(value):
            return on_success(value)
        case Failure(error):
            return on_failure(error)
    raise TypeError(f"Not a Result: {result!r}")


def unwrap(result: Result[T]) -> T:
    """Return the success value or raise the carried AppError."""
    return fold(result, lambda value: value, _raise)


def _raise(error: AppError):
    raise error


def result_boundary(
    message: str,
) -> Callable[[Callable[P, Awaitable[Result[T]]]], Callable[P, Awaitable[Result[T]]]]:
    """
    Outer boundary of a use case: nothing escapes as an exception.

    AppError raised inside (directly, or via `unwrap`) becomes a Failure as-is;
    anything else is logged and wrapped as an UNKNOWN error prefixed by `message`.
    """

    def decorator(fn: Callable[P, Awaitable[Result[T]]]) -> Callable[P, Awaitable[Result[T]]]:
        @functools.wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T]:
            try:
                return await fn(*args, **kwargs)
            except AppError as exc:
                return Failure(exc)
            except Exception as exc:
                logger.exception("Unexpected error in {}", fn.__qualname__)
                return Failure(AppError(ErrorKind.UNKNOWN, f"{message}: {exc}"))

        return wrapper

    return decorator


def respond(result: Result[T]) -> T:
    """HTTP edge: the success value, or the failure raised as an HTTPException."""
    return fold(result, lambda value: value, _raise_http)


def _raise_http(error: AppError):
    raise to_http_exception(error) from error
