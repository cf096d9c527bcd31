import asyncio
import os

# keep test runs from writing rotating log files
os.environ.setdefault("BACKTEST_SYSTEM__ENABLE_LOGGING", "false")

import pytest

from backtest_client.core.event_bus import EventBus
from backtest_client.schemas.data import AvailableCandleInfo, Candle
from backtest_client.schemas.task import (
    BacktestStatistic,
    BacktestTask,
    CreateBacktestTaskResponse,
    Trade,
)


def make_trades(count: int = 2, start_ts: int = 1_700_000_000_000):
    trade_types = ["limit_buy", "market_sell", "market_buy", "limit_sell"]
    return [
        Trade(
            timestamp=start_ts + i * 60_000,
            trade_type=trade_types[i % len(trade_types)],
            price=str(100 + i),
            amount="0.5",
            fee="0.01",
            profit="0" if i % 2 == 0 else "1.25",
        )
        for i in range(count)
    ]


def make_task(task_id: str, status: str = "completed", symbol: str = "BTC/USDT", trades=None, **overrides):
    fields = dict(
        id=task_id,
        status=status,
        progress=100.0 if status == "completed" else 0.0,
        name="sma_cross",
        exchange="binance",
        symbol=symbol,
        timeframe="1h",
        precision={"price_precision": "0.01", "amount_precision": "0.001"},
        created_at=1_700_000_000_000,
        updated_at=1_700_000_000_000,
    )
    if status == "completed":
        fields["statistic"] = BacktestStatistic(
            trades=make_trades() if trades is None else trades,
            net_profit="125.5",
            return_percent=1.255,
            winning_trades=3,
            losing_trades=1,
            total_trades=4,
        )
    if status == "failed":
        fields["error_message"] = "No candles available for backtest"
    fields.update(overrides)
    return BacktestTask(**fields)


def make_candles(count: int = 3, start_ts: int = 1_700_000_000_000):
    return [
        Candle(
            timestamp=start_ts + i * 3_600_000,
            open="100.0",
            high="110.5",
            low="95.25",
            close=str(101 + i),
        )
        for i in range(count)
    ]


async def settle(rounds: int = 10):
    """Let pending callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeApi:
    """
    手动控制结果的 API 替身: 每次调用返回一个 future，由测试决定何时完成。
    设置 candles / create_response 后改为立即返回。
    """

    def __init__(self):
        self.candle_calls = []
        self.candle_futures = []
        self.candles = None
        self.create_requests = []
        self.create_futures = []
        self.create_response = None
        self.strategies = ["sma_cross", "grid"]
        self.available = [
            AvailableCandleInfo(exchange="binance", symbol="BTC/USDT", timeframe="1h"),
            AvailableCandleInfo(exchange="binance", symbol="BTC/USDT", timeframe="4h"),
            AvailableCandleInfo(exchange="binance", symbol="ETH/USDT", timeframe="1h"),
            AvailableCandleInfo(exchange="okx", symbol="SOL/USDT", timeframe="15m"),
        ]
        self.closed = False

    async def get_candles(self, exchange, symbol, timeframe):
        self.candle_calls.append((exchange, symbol, timeframe))
        if self.candles is not None:
            return self.candles
        future = asyncio.get_running_loop().create_future()
        self.candle_futures.append(future)
        return await future

    async def create_task(self, request):
        self.create_requests.append(request)
        if self.create_response is not None:
            return self.create_response
        future = asyncio.get_running_loop().create_future()
        self.create_futures.append(future)
        return await future

    async def list_strategies(self):
        return list(self.strategies)

    async def available_candles(self):
        return list(self.available)

    async def close(self):
        self.closed = True


class FakeStream:
    def __init__(self):
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def recorded_events(bus):
    from backtest_client.enums.event import EventType

    events = []
    for event_type in EventType:
        bus.subscribe(event_type, events.append)
    return events


@pytest.fixture
def created_response():
    return CreateBacktestTaskResponse(task_id="task-new")


class FakeResponse:
    """aiohttp 响应替身; payload 为异常时 json() 抛出该异常"""

    def __init__(self, status=200, payload=None, text=""):
        self.status = status
        self._payload = payload
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self):
        if isinstance(self._payload, BaseException):
            raise self._payload
        return self._payload

    async def text(self):
        return self._text


class FakeHttpSession:
    closed = False

    def __init__(self, result):
        self.result = result
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


def make_client(result):
    from backtest_client.core.config import Settings
    from backtest_client.services.api_client import ApiClient

    http = FakeHttpSession(result)
    return ApiClient(Settings(), session=http), http
