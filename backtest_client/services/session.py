import asyncio
from typing import Any, Dict, List, Optional

from backtest_client.core.config import Settings, settings as default_settings
from backtest_client.core.event_bus import Event, EventBus
from backtest_client.core.exceptions import BacktestClientError
from backtest_client.core.logger import get_logger
from backtest_client.enums.event import EventType
from backtest_client.schemas.chart import ChartState
from backtest_client.schemas.task import (
    BacktestTask,
    CreateBacktestTaskResponse,
    SubmissionForm,
)
from backtest_client.services.api_client import ApiClient
from backtest_client.services.market_filter import MarketDataFilter
from backtest_client.services.presenter import StatisticsPresenter, summarize_task
from backtest_client.services.registry import TaskRegistry
from backtest_client.services.stream import TaskStream
from backtest_client.services.submission import SubmissionController
from backtest_client.services.synchronizer import SelectionSynchronizer

logger = get_logger("BacktestSession")


class BacktestSession:
    """
    回测会话
    持有任务注册表、提交控制器、选择同步器和任务流；创建一次，关闭时释放所有资源
    """

    def __init__(
        self,
        api: ApiClient = None,
        config: Settings = None,
        bus: EventBus = None,
        stream=None,
    ):
        self.config = config or default_settings
        self.api = api or ApiClient(self.config)
        self.bus = bus or EventBus()
        self.registry = TaskRegistry()
        self.submission = SubmissionController(self.api, self.bus)
        self.synchronizer = SelectionSynchronizer(self.registry, self.api, self.bus)
        self.presenter = StatisticsPresenter(self.config.presenter.page_size)
        self.markets = MarketDataFilter()
        self.strategies: List[str] = []
        self.form = SubmissionForm()
        self.result_view_open = False
        self.stream = stream or TaskStream(
            self.api, self.handle_task, self.handle_connection, self.config
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.shutdown()

    async def start(self):
        logger.info("Backtest session is starting up...")
        await asyncio.gather(self.load_strategies(), self.load_available_data())
        self.stream.start()

    async def shutdown(self):
        logger.info("Backtest session is shutting down...")
        self.submission.cancel()
        await self.stream.close()
        await self.synchronizer.close()
        await self.api.close()

    async def load_strategies(self):
        try:
            self.strategies = await self.api.list_strategies()
        except BacktestClientError as e:
            logger.error(f"Failed to load strategies: {e}")
            return

        if self.strategies:
            self.form.name = self.strategies[0]

    async def load_available_data(self):
        try:
            available = await self.api.available_candles()
        except BacktestClientError as e:
            logger.error(f"Failed to load available data: {e}")
            return

        self.markets = MarketDataFilter(available)
        if available:
            first = available[0]
            self.form.exchange = first.exchange
            self.form.symbol = first.symbol
            self.form.timeframe = first.timeframe

    async def handle_task(self, task: BacktestTask):
        is_new = self.registry.apply(task)
        await self.bus.publish(
            Event(
                EventType.TASK_UPDATED,
                {"task_id": task.id, "status": task.status.value, "new": is_new},
            )
        )

    async def handle_connection(self, connected: bool):
        if self.registry.set_connected(connected):
            event_type = EventType.STREAM_CONNECTED if connected else EventType.STREAM_DISCONNECTED
            await self.bus.publish(Event(event_type))

    def tasks(self) -> List[BacktestTask]:
        return self.registry.tasks()

    def connected(self) -> bool:
        return self.registry.connected()

    def task_summaries(self) -> List[Dict[str, Any]]:
        return [summarize_task(task) for task in self.registry.tasks()]

    def update_form(self, **fields: Optional[str]) -> SubmissionForm:
        for key, value in fields.items():
            if value is not None and key in SubmissionForm.model_fields:
                setattr(self.form, key, value)
        return self.form

    @property
    def can_submit(self) -> bool:
        form = self.form
        return bool(form.name and form.exchange and form.symbol and form.timeframe) and not self.submission.in_flight

    async def submit(self) -> Optional[CreateBacktestTaskResponse]:
        form = self.form
        return await self.submission.submit(form.name, form.exchange, form.symbol, form.timeframe)

    def select_task(self, task_id: str) -> bool:
        selected = self.synchronizer.select(task_id)
        if selected:
            self.result_view_open = True
        return selected

    def close_result_view(self):
        self.result_view_open = False

    def chart_state(self) -> ChartState:
        return self.synchronizer.chart_state()

    def statistics(self, page: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """
        当前选中任务的统计展示数据；page 为翻页请求 (会被限制在有效范围内)
        """
        task = self.synchronizer.selected_task()
        if task is None or task.statistic is None:
            return None
        result = self.presenter.present(task.statistic, task.precision, page)
        result["task"] = {"id": task.id, "name": task.name, "symbol": task.symbol}
        return result
