"""
Stage objects for the pull engine.

Every stage turns one async iterator of items into another through ``apply``.
The engine never looks at a stage's concrete type; it only calls ``apply`` on
the output of the previous stage. Per-pass state such as the batch buffer
lives inside ``apply`` so each pull starts clean.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, Iterable, List, Optional, Tuple

from .utils import (
    PipelineArgumentError, is_expandable, is_iterable, require_callable, require_int, resolve,
)


# ---------- Source adapters ----------

async def iterate_sync(iterable: Iterable) -> AsyncIterator:
    for item in iterable:
        yield item


async def iterate_async(iterable) -> AsyncIterator:
    async for item in iterable:
        yield item


async def iterate_bytes(buffer, chunk_size: Optional[int] = None) -> AsyncIterator:
    """Yield a byte buffer whole, or as consecutive chunks of ``chunk_size``."""
    data = bytes(buffer)
    if chunk_size is None:
        yield data
        return
    for start in range(0, len(data), chunk_size):
        yield data[start:start + chunk_size]


async def iterate_any(value) -> AsyncIterator:
    if hasattr(value, "__aiter__"):
        async for item in value:
            yield item
    else:
        for item in value:
            yield item


# ---------- Stages ----------

class Stage(ABC):
    """A transformation from one item sequence to another."""

    name = "stage"

    @abstractmethod
    def apply(self, items: AsyncIterator) -> AsyncIterator:
        """Return the output sequence for ``items``. Must not pull eagerly."""

    def describe(self) -> Optional[str]:
        return None

    def __repr__(self):
        detail = self.describe()
        return f"{type(self).__name__}({detail})" if detail else f"{type(self).__name__}()"


class CallbackStage(Stage):
    """Base for stages driven by a single user callback."""

    def __init__(self, fn: Callable):
        self.fn = require_callable(fn, self.name)

    def describe(self) -> Optional[str]:
        return getattr(self.fn, "__qualname__", None) or repr(self.fn)


class MapStage(CallbackStage):
    name = "map"

    async def apply(self, items):
        fn = self.fn
        async for item in items:
            yield await resolve(fn(item))


class FlatMapStage(CallbackStage):
    name = "flat_map"

    async def apply(self, items):
        fn = self.fn
        async for item in items:
            result = await resolve(fn(item))
            if is_expandable(result):
                for element in result:
                    yield element
            else:
                yield result


class FlatStage(Stage):
    name = "flat"

    async def apply(self, items):
        async for item in items:
            if is_expandable(item):
                for element in item:
                    yield element
            else:
                yield item


class FilterStage(CallbackStage):
    name = "filter"

    async def apply(self, items):
        predicate = self.fn
        async for item in items:
            if await resolve(predicate(item)):
                yield item


class TypeFilterStage(Stage):
    """Keep only instances of the given types."""

    name = "of_type"

    def __init__(self, types: Tuple[type, ...]):
        if not types or not all(isinstance(t, type) for t in types):
            raise PipelineArgumentError("of_type() expects one or more classes")
        self.types = tuple(types)

    def describe(self):
        return ", ".join(t.__name__ for t in self.types)

    async def apply(self, items):
        types = self.types
        async for item in items:
            if isinstance(item, types):
                yield item


class ConcatStage(Stage):
    """Drain upstream, then append each extra value (iterables are unpacked)."""

    name = "concat"

    def __init__(self, values: Tuple[Any, ...]):
        self.values = tuple(values)

    def describe(self):
        return f"{len(self.values)} value(s)"

    async def apply(self, items):
        async for item in items:
            yield item

        for value in self.values:
            if is_iterable(value):
                async for element in iterate_any(value):
                    yield element
            else:
                yield value


class ForEachStage(CallbackStage):
    name = "for_each"

    async def apply(self, items):
        fn = self.fn
        async for item in items:
            await resolve(fn(item))
            yield item


class InspectStage(Stage):
    """Send ``(*labels, item)`` to a sink, then pass the item on."""

    name = "inspect"

    def __init__(self, labels: Tuple[Any, ...], sink: Callable):
        self.labels = tuple(labels)
        self.sink = require_callable(sink, self.name)

    def describe(self):
        return " ".join(str(label) for label in self.labels) or None

    async def apply(self, items):
        labels, sink = self.labels, self.sink
        async for item in items:
            await resolve(sink(*labels, item))
            yield item


class BatchStage(Stage):
    name = "batch"

    def __init__(self, size: int):
        self.size = require_int(size, self.name, minimum=1)

    def describe(self):
        return f"size={self.size}"

    async def apply(self, items):
        size = self.size
        bucket: List[Any] = []
        async for item in items:
            bucket.append(item)
            if len(bucket) >= size:
                yield bucket
                bucket = []
        if bucket:
            yield bucket


class TakeStage(Stage):
    """Stop after ``count`` items without pulling upstream again."""

    name = "take"

    def __init__(self, count: int):
        self.count = require_int(count, self.name)

    def describe(self):
        return f"count={self.count}"

    async def apply(self, items):
        remaining = self.count
        if remaining <= 0:
            return
        async for item in items:
            yield item
            remaining -= 1
            if remaining <= 0:
                return


class SkipStage(Stage):
    name = "skip"

    def __init__(self, count: int):
        self.count = require_int(count, self.name, minimum=0)

    def describe(self):
        return f"count={self.count}"

    async def apply(self, items):
        skipped = 0
        async for item in items:
            if skipped < self.count:
                skipped += 1
                continue
            yield item


def log_sink(level: int = logging.INFO, sink_logger: Optional[logging.Logger] = None) -> Callable:
    """Build the default inspect sink: one log record per item."""
    target = sink_logger or logging.getLogger("pipeline_transform.inspect")

    def sink(*values):
        target.log(level, " ".join(str(value) for value in values))

    return sink
