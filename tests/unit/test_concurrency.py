"""Unit tests for bounded_gather — concurrency cap, ordering and fail-fast."""

from __future__ import annotations

import asyncio

import pytest

from src.utils.concurrency import bounded_gather


class TestBoundedGather:
    @pytest.mark.asyncio
    async def test_results_keep_input_order(self) -> None:
        async def _op(value: int, delay: float) -> int:
            await asyncio.sleep(delay)
            return value

        operations = [
            lambda: _op(1, 0.03),
            lambda: _op(2, 0.0),
            lambda: _op(3, 0.01),
        ]
        assert await bounded_gather(operations, limit=3) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_never_exceeds_limit(self) -> None:
        in_flight = 0
        peak = 0

        async def _op() -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

        await bounded_gather([_op for _ in range(12)], limit=5)

        assert peak == 5

    @pytest.mark.asyncio
    async def test_first_failure_cancels_the_rest(self) -> None:
        started: list[int] = []
        finished: list[int] = []

        async def _slow(i: int) -> int:
            started.append(i)
            await asyncio.sleep(1.0)
            finished.append(i)
            return i

        async def _boom() -> int:
            await asyncio.sleep(0.01)
            raise RuntimeError("embedding failed")

        operations = [_boom] + [lambda i=i: _slow(i) for i in range(6)]

        with pytest.raises(RuntimeError, match="embedding failed"):
            await bounded_gather(operations, limit=3)

        # The failing op's freed slot lets at most one more start; the rest never run.
        assert started[:2] == [0, 1]
        assert len(started) <= 3
        assert finished == []

    @pytest.mark.asyncio
    async def test_empty_operations(self) -> None:
        assert await bounded_gather([], limit=2) == []

    @pytest.mark.asyncio
    async def test_invalid_limit(self) -> None:
        with pytest.raises(ValueError):
            await bounded_gather([], limit=0)
