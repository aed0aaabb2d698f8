import asyncio
from time import perf_counter

from pipeline_transform import PipelineTransform, get_settings, measure_pipeline, setup_logging


async def expensive_transform(x):
    # Simulate a costly async step so laziness is visible
    print(f"  computing f({x}) ...")
    await asyncio.sleep(0.05)
    return x * x


async def counter():
    i = 0
    while True:
        yield i
        i += 1


async def main():
    setup_logging(get_settings().log_level)

    print("\n--- Demo: laziness (no work until pulled) ---")
    pipeline = (
        PipelineTransform.from_source(range(1, 10_000))
        .map(expensive_transform)
        .filter(lambda v: v % 2 == 0)
        .skip(3)
        .take(5)
    )
    print(f"Constructed {pipeline!r}. No output yet (nothing computed).")

    print("\nPulling (should compute only what's needed for 5 items):")
    t0 = perf_counter()
    out = await pipeline.to_list()
    t1 = perf_counter()
    print(f"Result: {out}")
    print(f"Time: {t1 - t0:.2f}s\n")

    print("--- Demo: infinite async source with inspect ---")
    traced = await (
        PipelineTransform.from_source(counter())
        .inspect("initial")
        .filter(lambda x: x > 4)
        .inspect("filtered")
        .take(3)
        .to_list()
    )
    print(f"Result: {traced}\n")

    print("--- Demo: batching then flattening ---")
    batched = (
        PipelineTransform.from_source(range(1, 12))
        .map(expensive_transform)
        .batch(4)
        .take(2)  # only first two batches -> only first 8 items computed
    )
    async for group in batched:
        print("  batch:", group)
    print()

    print("--- Demo: measured single pass ---")
    seen = []
    total, metrics = await measure_pipeline(
        "sum_of_large_evens",
        PipelineTransform.from_source([1, 2, 3, 4, 5])
        .for_each(seen.append)
        .batch(2)
        .flat()
        .filter(lambda x: x > 3)
        .reduce(lambda acc, x: acc + x, 0),
    )
    print(f"Sum: {total}, source items seen: {len(seen)}")
    print(f"Metrics: {metrics.model_dump()}")


if __name__ == "__main__":
    asyncio.run(main())
