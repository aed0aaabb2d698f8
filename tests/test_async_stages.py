import asyncio

import pytest

from pipeline_transform import PipelineTransform


async def double(x):
    await asyncio.sleep(0)
    return x * 2


class TestAsyncCallbacks:
    """Callbacks may be coroutine functions; their results are awaited in place"""

    @pytest.mark.asyncio
    async def test_map(self):
        assert await PipelineTransform.from_source([1, 2, 3, 4, 5]).map(double).to_list() == [2, 4, 6, 8, 10]

    @pytest.mark.asyncio
    async def test_flat_map_scalar(self):
        assert await PipelineTransform.from_source([1, 2, 3, 4, 5]).flat_map(double).to_list() == [2, 4, 6, 8, 10]

    @pytest.mark.asyncio
    async def test_flat_map_list(self):
        async def pair(x):
            return [x, -x]

        assert await PipelineTransform.from_source([1, 2]).flat_map(pair).to_list() == [1, -1, 2, -2]

    @pytest.mark.asyncio
    async def test_filter(self):
        async def above_three(x):
            return x > 3

        assert await PipelineTransform.from_source([1, 2, 3, 4, 5]).filter(above_three).to_list() == [4, 5]

    @pytest.mark.asyncio
    async def test_filter_always_true(self):
        async def keep(_):
            return True

        assert await PipelineTransform.from_source([1, 2, 3, 4, 5]).filter(keep).to_list() == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_find(self):
        async def above_three(x):
            return x > 3

        assert await PipelineTransform.from_source([1, 2, 3, 4, 5]).find(above_three) == 4

    @pytest.mark.asyncio
    async def test_some_and_every(self):
        async def positive(x):
            return x > 0

        async def above_three(x):
            return x > 3

        assert await PipelineTransform.from_source([1, 2, 3, 4, 5]).some(above_three) is True
        assert await PipelineTransform.from_source([1, 2, 3, 4, 5]).every(positive) is True

    @pytest.mark.asyncio
    async def test_reduce(self):
        async def add(total, x):
            await asyncio.sleep(0)
            return total + x

        assert await PipelineTransform.from_source([1, 2, 3, 4, 5]).reduce(add, 0) == 15

    @pytest.mark.asyncio
    async def test_for_each_is_awaited_before_next_item(self):
        events = []

        async def record(x):
            events.append(("start", x))
            await asyncio.sleep(0)
            events.append(("end", x))

        result = await (
            PipelineTransform.from_source([1, 2])
            .for_each(record)
            .map(lambda x: events.append(("map", x)) or x)
            .to_list()
        )

        assert result == [1, 2]
        assert events == [
            ("start", 1), ("end", 1), ("map", 1),
            ("start", 2), ("end", 2), ("map", 2),
        ]

    @pytest.mark.asyncio
    async def test_async_inspect_sink(self):
        seen = []

        async def sink(*values):
            await asyncio.sleep(0)
            seen.append(values)

        await PipelineTransform.from_source([1, 2]).inspect("a", "b", sink=sink).to_list()
        assert seen == [("a", "b", 1), ("a", "b", 2)]


class TestSuspensionOrdering:
    """Items stay in source order even when per-item work takes varying time"""

    @pytest.mark.asyncio
    async def test_slow_items_do_not_reorder(self):
        async def slow_for_small(x):
            await asyncio.sleep(0.01 * (5 - x))
            return x

        result = await PipelineTransform.from_source([1, 2, 3, 4, 5]).map(slow_for_small).to_list()
        assert result == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_downstream_waits_for_upstream_suspension(self):
        timeline = []

        async def slow(x):
            timeline.append(f"begin {x}")
            await asyncio.sleep(0.005)
            timeline.append(f"done {x}")
            return x

        def downstream(x):
            timeline.append(f"downstream {x}")
            return x

        await PipelineTransform.from_source([1, 2]).map(slow).map(downstream).to_list()
        assert timeline == ["begin 1", "done 1", "downstream 1", "begin 2", "done 2", "downstream 2"]

    @pytest.mark.asyncio
    async def test_async_source_with_async_stages(self):
        async def numbers():
            for i in range(6):
                await asyncio.sleep(0)
                yield i

        result = await (
            PipelineTransform.from_source(numbers())
            .map(double)
            .batch(2)
            .flat()
            .filter(lambda x: x > 2)
            .to_list()
        )
        assert result == [4, 6, 8, 10]

    @pytest.mark.asyncio
    async def test_timeout_by_racing_consumer(self, infinite_stream):
        """No built-in timeout; callers bound a pull with asyncio.wait_for"""
        async def stall(x):
            await asyncio.sleep(10)
            return x

        pt = PipelineTransform.from_source(infinite_stream()).map(stall)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(pt.to_list(), timeout=0.05)
