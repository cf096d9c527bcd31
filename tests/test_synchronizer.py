"""Tests for auto-selection, single-flight chart loading and coalescing."""

import pytest

from backtest_client.core.exceptions import ApiError
from backtest_client.enums.event import EventType
from backtest_client.services.registry import TaskRegistry
from backtest_client.services.synchronizer import SelectionSynchronizer

from conftest import FakeResponse, make_candles, make_client, make_task, make_trades, settle


@pytest.fixture
def registry():
    return TaskRegistry()


@pytest.fixture
def synchronizer(registry, fake_api, bus):
    return SelectionSynchronizer(registry, fake_api, bus)


@pytest.mark.asyncio
async def test_auto_selects_first_completed_and_keeps_it(registry, synchronizer, fake_api):
    registry.apply(make_task("p", "pending"))
    registry.apply(make_task("f", "failed"))
    assert synchronizer.selected_task_id is None
    assert fake_api.candle_calls == []

    registry.apply(make_task("c1", "completed"))
    assert synchronizer.selected_task_id == "c1"

    registry.apply(make_task("c2", "completed"))
    assert synchronizer.selected_task_id == "c1"


@pytest.mark.asyncio
async def test_auto_select_picks_last_completed_in_registry_order(registry, synchronizer):
    registry.apply(make_task("a", "pending"))
    registry.apply(make_task("b", "pending"))
    # b completes first in wall-clock time, then a; registry order decides
    registry.apply(make_task("b", "running"))
    assert synchronizer.selected_task_id is None

    registry.remove_listener(synchronizer.reconcile)
    registry.apply(make_task("b", "completed"))
    registry.apply(make_task("a", "completed"))
    registry.add_listener(synchronizer.reconcile)
    synchronizer.reconcile()

    assert synchronizer.selected_task_id == "b"


@pytest.mark.asyncio
async def test_load_commits_chart_and_markers(registry, synchronizer, fake_api, recorded_events):
    registry.apply(make_task("c1", "completed", symbol="ETH/USDT", trades=make_trades(3)))
    await settle()
    assert synchronizer.chart_loading
    assert fake_api.candle_calls == [("binance", "ETH/USDT", "1h")]
    assert synchronizer.chart_state().loaded_task_id is None

    fake_api.candle_futures[0].set_result(make_candles(4))
    await settle()

    state = synchronizer.chart_state()
    assert not synchronizer.chart_loading
    assert state.loaded_task_id == "c1"
    assert len(state.chart_points) == 4
    assert len(state.markers) == 3
    assert synchronizer.loaded_chart_task_id == "c1"
    assert EventType.CHART_LOADED in [e.type for e in recorded_events]


@pytest.mark.asyncio
async def test_registry_updates_do_not_start_second_load(registry, synchronizer, fake_api):
    registry.apply(make_task("c1", "completed"))
    registry.apply(make_task("c2", "completed"))
    registry.apply(make_task("p", "running", progress=20.0))
    await settle()

    assert len(fake_api.candle_calls) == 1


@pytest.mark.asyncio
async def test_selection_during_load_is_coalesced(registry, synchronizer, fake_api):
    registry.apply(make_task("a", "completed", symbol="A/USDT", trades=make_trades(1)))
    registry.apply(make_task("b", "completed", symbol="B/USDT", trades=make_trades(2)))
    registry.apply(make_task("c", "completed", symbol="C/USDT", trades=make_trades(3)))
    assert synchronizer.selected_task_id == "a"

    assert synchronizer.select("b")
    assert synchronizer.select("c")
    assert synchronizer.selected_task_id == "c"
    await settle()
    assert len(fake_api.candle_calls) == 1

    fake_api.candle_futures[0].set_result(make_candles(1))
    await settle()

    # a's load finished and the latest desired selection starts right away
    state = synchronizer.chart_state()
    assert state.loaded_task_id == "a"
    assert len(state.markers) == 1
    assert [call[1] for call in fake_api.candle_calls] == ["A/USDT", "C/USDT"]

    fake_api.candle_futures[1].set_result(make_candles(5))
    await settle()

    state = synchronizer.chart_state()
    assert state.loaded_task_id == "c"
    assert len(state.markers) == 3
    assert len(state.chart_points) == 5
    assert len(fake_api.candle_calls) == 2


@pytest.mark.asyncio
async def test_reselecting_loaded_task_during_load_needs_no_new_load(registry, synchronizer, fake_api):
    registry.apply(make_task("a", "completed"))
    registry.apply(make_task("b", "completed"))
    synchronizer.select("b")
    synchronizer.select("a")
    await settle()

    fake_api.candle_futures[0].set_result(make_candles())
    await settle()

    assert synchronizer.chart_state().loaded_task_id == "a"
    assert len(fake_api.candle_calls) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["pending", "running", "failed"])
async def test_selecting_unfinished_task_is_ignored(registry, synchronizer, status):
    registry.apply(make_task("done", "completed"))
    registry.apply(make_task("other", status))

    assert synchronizer.select("other") is False
    assert synchronizer.selected_task_id == "done"


@pytest.mark.asyncio
async def test_selecting_unknown_task_is_ignored(synchronizer):
    assert synchronizer.select("missing") is False
    assert synchronizer.selected_task_id is None


@pytest.mark.asyncio
async def test_failed_load_keeps_previous_chart_without_retry(registry, synchronizer, fake_api, recorded_events):
    registry.apply(make_task("a", "completed"))
    await settle()
    fake_api.candle_futures[0].set_result(make_candles(2))
    await settle()

    registry.apply(make_task("b", "completed"))
    synchronizer.select("b")
    await settle()
    fake_api.candle_futures[1].set_exception(ApiError("candles unavailable"))
    await settle()

    state = synchronizer.chart_state()
    assert not synchronizer.chart_loading
    assert state.loaded_task_id == "a"
    assert len(state.chart_points) == 2
    assert len(fake_api.candle_calls) == 2
    assert EventType.CHART_LOAD_FAILED in [e.type for e in recorded_events]

    # a registry change does not retry on its own
    registry.apply(make_task("c", "pending"))
    await settle()
    assert len(fake_api.candle_calls) == 2

    # reselecting does
    synchronizer.select("b")
    await settle()
    assert len(fake_api.candle_calls) == 3


@pytest.mark.asyncio
async def test_failed_first_load_leaves_chart_empty(registry, synchronizer, fake_api):
    registry.apply(make_task("a", "completed"))
    await settle()
    fake_api.candle_futures[0].set_exception(ApiError("boom"))
    await settle()

    state = synchronizer.chart_state()
    assert state.loaded_task_id is None
    assert state.markers == []
    assert state.chart_points == []


@pytest.mark.asyncio
async def test_unexpected_load_error_is_not_retried(registry, synchronizer, fake_api, recorded_events):
    registry.apply(make_task("a", "completed"))
    await settle()
    fake_api.candle_futures[0].set_exception(ValueError("candle payload is not a list"))
    await settle()

    assert not synchronizer.chart_loading
    assert synchronizer.chart_state().loaded_task_id is None
    assert EventType.CHART_LOAD_FAILED in [e.type for e in recorded_events]

    registry.apply(make_task("b", "pending"))
    await settle()
    assert len(fake_api.candle_calls) == 1


@pytest.mark.asyncio
async def test_malformed_candle_reply_is_not_retried(registry, bus, recorded_events):
    client, http = make_client(FakeResponse(payload={"error": "no candles"}))
    synchronizer = SelectionSynchronizer(registry, client, bus)

    registry.apply(make_task("a", "completed"))
    await settle()
    registry.apply(make_task("b", "pending"))
    await settle()

    assert len(http.calls) == 1
    assert synchronizer.selected_task_id == "a"
    assert synchronizer.chart_state().loaded_task_id is None
    assert EventType.CHART_LOAD_FAILED in [e.type for e in recorded_events]
    await synchronizer.close()


@pytest.mark.asyncio
async def test_close_cancels_in_flight_load(registry, synchronizer, fake_api):
    registry.apply(make_task("a", "completed"))
    assert synchronizer.chart_loading
    await settle()

    await synchronizer.close()

    assert not synchronizer.chart_loading
    assert synchronizer.chart_state().loaded_task_id is None
    registry.apply(make_task("b", "completed"))
    assert len(fake_api.candle_calls) == 1
