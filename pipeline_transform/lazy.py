import logging
from inspect import isasyncgen, isgenerator
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable, Dict, Generic, List, Optional, TypeVar

from .models import PipelineDescription, PipelineSettings, SourceKind, StageInfo, get_settings
from .stages import (
    BatchStage, ConcatStage, FilterStage, FlatMapStage, FlatStage, ForEachStage, InspectStage,
    MapStage, SkipStage, Stage, TakeStage, TypeFilterStage, iterate_async, iterate_bytes,
    iterate_sync, log_sink,
)
from .utils import (
    PipelineArgumentError, accepts_index, close_iterator, is_bytes_like, require_callable,
    require_int, resolve,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


def classify_source(source: Any) -> SourceKind:
    if is_bytes_like(source):
        return SourceKind.BYTES
    if hasattr(source, "__aiter__"):
        return SourceKind.ASYNC
    if hasattr(source, "__iter__"):
        return SourceKind.SYNC
    raise PipelineArgumentError(f"Pipeline source must be iterable, got {type(source).__name__}")


class PipelineTransform(Generic[T]):
    """
    A chainable, lazy pipeline over a sync, async or byte source.

    Builder calls append a stage and return the same handle; nothing runs
    until a terminal consumer (or ``async for``) pulls. A handle is meant to
    be consumed once: stages are shared, so use ``copy()`` to fork.
    """

    def __init__(self, source, stages=None, settings: Optional[PipelineSettings] = None,
                 byte_chunk_size: Optional[int] = None):
        self._source = source
        self._source_kind = classify_source(source)
        self._stages: List[Stage] = list(stages or [])
        self._settings = settings or get_settings()
        if byte_chunk_size is not None:
            require_int(byte_chunk_size, "byte_chunk_size", minimum=1)
        self._byte_chunk_size = byte_chunk_size or self._settings.byte_chunk_size
        self._active_pulls = 0
        self._pull_count = 0

    @classmethod
    def from_source(cls, source, *, byte_chunk_size: Optional[int] = None,
                    settings: Optional[PipelineSettings] = None) -> "PipelineTransform":
        """Wrap ``source`` (iterable, async iterable or byte buffer) as a pipeline."""
        return cls(source, settings=settings, byte_chunk_size=byte_chunk_size)

    @property
    def source_kind(self) -> SourceKind:
        return self._source_kind

    @property
    def stages(self) -> List[Stage]:
        return list(self._stages)

    # --------- chainable operators (lazy) ----------
    def map(self, fn: Callable) -> "PipelineTransform":
        return self._with_stage(MapStage(fn))

    def flat_map(self, fn: Callable) -> "PipelineTransform":
        return self._with_stage(FlatMapStage(fn))

    def flat(self) -> "PipelineTransform":
        return self._with_stage(FlatStage())

    def filter(self, predicate: Callable) -> "PipelineTransform":
        return self._with_stage(FilterStage(predicate))

    def of_type(self, *types: type) -> "PipelineTransform":
        """Keep only items that are instances of ``types``"""
        return self._with_stage(TypeFilterStage(types))

    def concat(self, *values) -> "PipelineTransform":
        return self._with_stage(ConcatStage(values))

    def for_each(self, fn: Callable) -> "PipelineTransform":
        return self._with_stage(ForEachStage(fn))

    def inspect(self, *labels, sink: Optional[Callable] = None) -> "PipelineTransform":
        """Trace every item passing this point as ``(*labels, item)``.

        Without a ``sink`` the values go to the ``pipeline_transform.inspect``
        logger at the configured inspect level.
        """
        if sink is None:
            sink = log_sink(self._settings.inspect_levelno)
        return self._with_stage(InspectStage(labels, sink))

    def batch(self, size: int) -> "PipelineTransform":
        return self._with_stage(BatchStage(size))

    def chunk(self, size: int) -> "PipelineTransform":
        """Alias for batch() - groups elements into lists of the given size"""
        return self.batch(size)

    def take(self, count: int) -> "PipelineTransform":
        return self._with_stage(TakeStage(count))

    def skip(self, count: int) -> "PipelineTransform":
        return self._with_stage(SkipStage(count))

    def page(self, page_number: int, page_size: int) -> "PipelineTransform":
        """Restrict to a specific page of results (1-indexed)"""
        require_int(page_number, "page", minimum=1)
        require_int(page_size, "page", minimum=1)
        offset = (page_number - 1) * page_size
        return self.skip(offset).take(page_size)

    # --------- pull engine ----------
    def __aiter__(self) -> AsyncIterator[T]:
        return self._pull()

    async def _pull(self):
        if self._active_pulls:
            logger.warning("Pipeline %r pulled again while a pull is in flight; "
                           "stage side effects may repeat", self)
        self._active_pulls += 1
        self._pull_count += 1
        pull_number = self._pull_count

        chain = [self._adapt_source()]
        for stage in self._stages:
            chain.append(stage.apply(chain[-1]))

        logger.debug("Pull #%d started: %s source, %d stage(s)",
                     pull_number, self._source_kind.value, len(self._stages))
        produced = 0
        try:
            async for item in chain[-1]:
                produced += 1
                yield item
        except Exception:
            logger.debug("Pull #%d aborted after %d item(s)", pull_number, produced, exc_info=True)
            raise
        else:
            logger.debug("Pull #%d finished after %d item(s)", pull_number, produced)
        finally:
            self._active_pulls -= 1
            if self._settings.close_source:
                for iterator in reversed(chain):
                    await close_iterator(iterator)
                if isgenerator(self._source) or isasyncgen(self._source):
                    await close_iterator(self._source)

    def _adapt_source(self) -> AsyncIterator:
        if self._source_kind is SourceKind.ASYNC:
            return iterate_async(self._source)
        if self._source_kind is SourceKind.SYNC:
            return iterate_sync(self._source)
        return iterate_bytes(self._source, self._byte_chunk_size)

    # --------- terminal consumers ----------
    async def to_list(self) -> List[T]:
        async with aclosing(self._pull()) as items:
            return [item async for item in items]

    async def reduce(self, reducer: Callable, initial):
        """Fold items left to right.

        The reducer gets ``(accumulator, item, index)`` when its third
        positional parameter has no default (or it takes ``*args``),
        otherwise ``(accumulator, item)``.
        """
        require_callable(reducer, "reduce")
        with_index = accepts_index(reducer)
        accumulator = initial
        index = 0
        async with aclosing(self._pull()) as items:
            async for item in items:
                if with_index:
                    result = reducer(accumulator, item, index)
                else:
                    result = reducer(accumulator, item)
                accumulator = await resolve(result)
                index += 1
        return accumulator

    async def find(self, predicate: Callable, default=None):
        """Return the first item satisfying predicate, or ``default``"""
        require_callable(predicate, "find")
        async with aclosing(self._pull()) as items:
            async for item in items:
                if await resolve(predicate(item)):
                    return item
        return default

    async def some(self, predicate: Callable) -> bool:
        require_callable(predicate, "some")
        async with aclosing(self._pull()) as items:
            async for item in items:
                if await resolve(predicate(item)):
                    return True
        return False

    async def every(self, predicate: Callable) -> bool:
        require_callable(predicate, "every")
        async with aclosing(self._pull()) as items:
            async for item in items:
                if not await resolve(predicate(item)):
                    return False
        return True

    async def includes(self, value) -> bool:
        """Strict match: the same object, or an equal value of the same type"""
        async with aclosing(self._pull()) as items:
            async for item in items:
                if item is value or (type(item) is type(value) and item == value):
                    return True
        return False

    async def join(self, separator: str = ",") -> str:
        values = await self.to_list()
        return separator.join("" if value is None else str(value) for value in values)

    async def count(self) -> int:
        total = 0
        async with aclosing(self._pull()) as items:
            async for _ in items:
                total += 1
        return total

    async def sum(self, start=0):
        """Return the sum of all elements"""
        total = start
        async with aclosing(self._pull()) as items:
            async for item in items:
                total += item
        return total

    async def first(self, default=None):
        """Return the first element, or default if empty"""
        async with aclosing(self._pull()) as items:
            async for item in items:
                return item
        return default

    async def last(self, default=None):
        """Return the last element, or default if empty"""
        last_item = default
        async with aclosing(self._pull()) as items:
            async for item in items:
                last_item = item
        return last_item

    async def min(self, default=_MISSING):
        values = await self.to_list()
        if not values and default is not _MISSING:
            return default
        return min(values)

    async def max(self, default=_MISSING):
        values = await self.to_list()
        if not values and default is not _MISSING:
            return default
        return max(values)

    async def group_by(self, key_fn: Callable) -> Dict[Any, List[T]]:
        """Group elements by the (possibly awaited) result of key_fn"""
        require_callable(key_fn, "group_by")
        groups: Dict[Any, List[T]] = {}
        async with aclosing(self._pull()) as items:
            async for item in items:
                key = await resolve(key_fn(item))
                groups.setdefault(key, []).append(item)
        return groups

    def paginate(self, page_size: int) -> AsyncIterator[List[T]]:
        """Iterate pages of up to page_size elements over a single pull"""
        return self._paginate(BatchStage(page_size))

    async def _paginate(self, stage: BatchStage):
        async with aclosing(self._pull()) as items:
            async with aclosing(stage.apply(items)) as pages:
                async for page in pages:
                    yield page

    # --------- helpers ----------
    def describe(self) -> PipelineDescription:
        return PipelineDescription(
            source_kind=self._source_kind,
            stages=[
                StageInfo(index=i, name=stage.name, detail=stage.describe())
                for i, stage in enumerate(self._stages)
            ],
        )

    def copy(self) -> "PipelineTransform":
        """Independent handle over the same source with a copy of the stage list"""
        return type(self)(self._source, self._stages, self._settings, self._byte_chunk_size)

    def _with_stage(self, stage: Stage) -> "PipelineTransform":
        self._stages.append(stage)
        return self

    def __repr__(self):
        names = " -> ".join(stage.name for stage in self._stages) or "(no stages)"
        return f"<PipelineTransform {self._source_kind.value}: {names}>"


def pipeline(source, **kwargs) -> PipelineTransform:
    """Shorthand for PipelineTransform.from_source()"""
    return PipelineTransform.from_source(source, **kwargs)
