"""Shared helpers: exceptions, logging setup and callback plumbing."""

import inspect
import logging
import sys
from typing import Any, Callable, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s:%(lineno)d] - %(message)s'


class PipelineError(Exception):
    """Base class for errors raised by the pipeline library itself."""
    pass


class PipelineArgumentError(PipelineError, ValueError):
    """Raised eagerly when a builder or constructor receives a bad argument."""
    pass


def setup_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """Configure the package logger with a stream handler."""
    package_logger = logging.getLogger("pipeline_transform")
    package_logger.setLevel(level)

    if not package_logger.handlers:
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)

    return package_logger


def is_bytes_like(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


def is_iterable(value: Any) -> bool:
    """True for sync or async iterables, including text and byte buffers."""
    return hasattr(value, "__aiter__") or hasattr(value, "__iter__")


def is_expandable(value: Any) -> bool:
    """Values that flat() and flat_map() unpack one level."""
    return isinstance(value, (list, tuple))


async def resolve(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it as is."""
    if inspect.isawaitable(value):
        return await value
    return value


def require_callable(fn: Any, operation: str) -> Callable:
    if not callable(fn):
        raise PipelineArgumentError(f"{operation}() expects a callable, got {type(fn).__name__}")
    return fn


def require_int(value: Any, operation: str, minimum: Optional[int] = None) -> int:
    # bool is an int subclass but never a meaningful count
    if isinstance(value, bool) or not isinstance(value, int):
        raise PipelineArgumentError(f"{operation}() expects an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise PipelineArgumentError(f"{operation}() expects a value >= {minimum}, got {value}")
    return value


def accepts_index(fn: Callable) -> bool:
    """Whether a reducer can take ``(accumulator, item, index)``."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return False

    positional = []
    for param in signature.parameters.values():
        if param.kind == param.VAR_POSITIONAL:
            return True
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            positional.append(param)
    # a defaulted third parameter belongs to the caller, not to the index
    return len(positional) >= 3 and positional[2].default is inspect.Parameter.empty


async def close_iterator(iterator: Any) -> None:
    """Close a sync or async iterator if it supports it."""
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()
        return
    close = getattr(iterator, "close", None)
    if close is not None:
        close()
