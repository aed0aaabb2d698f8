"""
Helpers for driving pipelines from declarative operation lists and for
measuring terminal runs.
"""

import gc
import logging
import time
import tracemalloc
from typing import Any, Awaitable, Dict, Iterable, Tuple, Union

from pydantic import ValidationError

from .lazy import PipelineTransform
from .models import OperationSpec, RunMetrics
from .utils import PipelineArgumentError

logger = logging.getLogger(__name__)


def apply_operations(pipeline: PipelineTransform,
                     operations: Iterable[Union[OperationSpec, Dict[str, Any]]]) -> PipelineTransform:
    """Append one stage per operation spec, in order."""
    for position, raw in enumerate(operations):
        try:
            op = raw if isinstance(raw, OperationSpec) else OperationSpec(**raw)
        except ValidationError as e:
            raise PipelineArgumentError(f"Invalid operation at position {position}: {e}") from e

        if op.type in ("map", "flat_map", "filter", "for_each"):
            getattr(pipeline, op.type)(op.fn)
        elif op.type == "flat":
            pipeline.flat()
        elif op.type == "of_type":
            pipeline.of_type(*op.types)
        elif op.type == "concat":
            pipeline.concat(*op.values)
        elif op.type == "inspect":
            pipeline.inspect(*op.labels)
        elif op.type in ("batch", "chunk"):
            pipeline.batch(op.size)
        elif op.type == "take":
            pipeline.take(op.count)
        elif op.type == "skip":
            pipeline.skip(op.count)

        logger.debug("Applied operation %d: %s", position, op.type)

    return pipeline


async def measure_pipeline(operation_name: str, consumer: Awaitable) -> Tuple[Any, RunMetrics]:
    """Await a terminal consumer while tracking time and peak memory"""

    tracemalloc.start()
    gc.collect()
    start_time = time.perf_counter()

    try:
        result = await consumer
    except Exception as e:
        metrics = _build_metrics(operation_name, start_time, success=False, error=str(e))
        logger.error("Run %s failed after %.2f ms: %s",
                     operation_name, metrics.execution_time_ms, e)
        raise
    else:
        metrics = _build_metrics(
            operation_name,
            start_time,
            result_size=len(result) if hasattr(result, "__len__") else None,
        )
        logger.info("Run %s finished in %.2f ms (peak %.3f MB)",
                    operation_name, metrics.execution_time_ms, metrics.peak_memory_mb)
        return result, metrics
    finally:
        tracemalloc.stop()


def _build_metrics(operation_name: str, start_time: float, **fields) -> RunMetrics:
    execution_time_ms = (time.perf_counter() - start_time) * 1000
    _, peak = tracemalloc.get_traced_memory()
    return RunMetrics(
        operation=operation_name,
        execution_time_ms=execution_time_ms,
        peak_memory_mb=peak / 1024 / 1024,
        **fields,
    )
