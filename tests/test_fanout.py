"""Tests for the fan-out/fan-in join."""

from __future__ import annotations

import asyncio

import pytest

from meshplane.control_plane.fanout import (
    AggregationCall,
    AggregationPhase,
    FanOut,
    fan_out,
)


def _query(delays: dict[int, float], failures: dict[int, Exception] | None = None):
    failures = failures or {}

    async def query(instance_id: int) -> dict:
        await asyncio.sleep(delays.get(instance_id, 0))
        if instance_id in failures:
            raise failures[instance_id]
        return {"instance": instance_id}

    return query


@pytest.mark.asyncio
async def test_all_slots_filled() -> None:
    outcomes = await fan_out([0, 1, 2], _query({}), per_instance_timeout=1.0, deadline=2.0)

    assert sorted(outcomes) == [0, 1, 2]
    assert all(outcome.ok for outcome in outcomes.values())
    assert outcomes[2].payload == {"instance": 2}


@pytest.mark.asyncio
async def test_failure_is_isolated_to_its_slot() -> None:
    outcomes = await fan_out(
        [0, 1], _query({}, {1: ValueError("boom")}), per_instance_timeout=1.0, deadline=2.0
    )

    assert outcomes[0].ok is True
    assert outcomes[1].ok is False
    assert outcomes[1].error == "boom"
    assert outcomes[1].timed_out is False


@pytest.mark.asyncio
async def test_slow_instance_times_out_alone() -> None:
    loop = asyncio.get_running_loop()
    started = loop.time()

    outcomes = await fan_out([0, 1, 2], _query({1: 5.0}), per_instance_timeout=0.1, deadline=2.0)

    assert loop.time() - started < 1.0
    assert outcomes[0].ok and outcomes[2].ok
    assert outcomes[1].timed_out is True
    assert "timed out" in outcomes[1].error


@pytest.mark.asyncio
async def test_deadline_bounds_the_whole_call() -> None:
    loop = asyncio.get_running_loop()
    started = loop.time()

    outcomes = await fan_out([0, 1], _query({0: 5.0, 1: 5.0}), per_instance_timeout=10.0, deadline=0.1)

    assert loop.time() - started < 1.0
    assert all(not outcome.ok and outcome.timed_out for outcome in outcomes.values())


def test_effective_timeout_is_the_stricter_bound() -> None:
    assert FanOut(_query({}), per_instance_timeout=5.0, deadline=2.0).effective_timeout == 2.0
    assert FanOut(_query({}), per_instance_timeout=1.0, deadline=2.0).effective_timeout == 1.0


@pytest.mark.asyncio
async def test_no_instances() -> None:
    assert await fan_out([], _query({}), per_instance_timeout=1.0, deadline=1.0) == {}


@pytest.mark.asyncio
async def test_caller_cancellation_cancels_every_task() -> None:
    cancelled: set[int] = set()
    started = asyncio.Event()

    async def query(instance_id: int) -> dict:
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.add(instance_id)
            raise
        return {}

    fanout = FanOut(query, per_instance_timeout=30.0, deadline=30.0)
    fanout.start([0, 1, 2])
    collector = asyncio.create_task(fanout.collect())
    await started.wait()

    collector.cancel()
    with pytest.raises(asyncio.CancelledError):
        await collector

    await asyncio.sleep(0.05)
    assert cancelled == {0, 1, 2}


@pytest.mark.asyncio
async def test_start_and_collect_ordering_enforced() -> None:
    fanout = FanOut(_query({}), per_instance_timeout=1.0, deadline=1.0)
    with pytest.raises(RuntimeError):
        await fanout.collect()

    fanout.start([0])
    with pytest.raises(RuntimeError):
        fanout.start([1])
    assert (await fanout.collect())[0].ok


def test_aggregation_call_phases() -> None:
    call = AggregationCall("t/n/f", "status")

    for phase in (
        AggregationPhase.LOCATING,
        AggregationPhase.FANOUT,
        AggregationPhase.COLLECTING,
        AggregationPhase.DONE,
    ):
        call.advance(phase)

    assert call.phase is AggregationPhase.DONE
    assert call.history[0] is AggregationPhase.INIT
    assert len(call.history) == 5
    with pytest.raises(RuntimeError):
        call.advance(AggregationPhase.LOCATING)


def test_aggregation_call_cannot_skip_phases() -> None:
    call = AggregationCall("t/n/f", "metrics")
    with pytest.raises(RuntimeError):
        call.advance(AggregationPhase.COLLECTING)
    assert call.phase is AggregationPhase.INIT
