import asyncio
from typing import List, Optional, Set

from backtest_client.core.concurrency import Permit
from backtest_client.core.event_bus import Event, EventBus
from backtest_client.core.logger import get_logger
from backtest_client.enums.event import EventType
from backtest_client.schemas.chart import ChartPoint, ChartState, Marker
from backtest_client.schemas.task import BacktestStatistic, BacktestTask
from backtest_client.services.markers import candles_to_chart_points, project_markers
from backtest_client.services.registry import TaskRegistry

logger = get_logger("SelectionSynchronizer")


class SelectionSynchronizer:
    """
    选中任务与图表的同步状态机

    规则在每次注册表变化、选中变化和加载完成后同步地重新评估，直到不动点:
    1. 未选中任何任务时，自动选中注册表中最后一个已完成的任务
    2. 选中任务与已加载图表不一致且没有加载在途时，开始加载

    加载在途时的新选择不会取消当前加载，只保留为最新的期望值；
    当前加载完成后若期望值仍不同，立即为它开始新的加载。
    """

    def __init__(self, registry: TaskRegistry, api, bus: Optional[EventBus] = None):
        self._registry = registry
        self._api = api
        self._bus = bus
        self.selected_task_id: Optional[str] = None
        self.loaded_chart_task_id: Optional[str] = None
        self._chart_permit = Permit("chart")
        self._chart_points: List[ChartPoint] = []
        self._markers: List[Marker] = []
        self._marker_source: Optional[BacktestStatistic] = None
        # 加载失败的任务不自动重试，直到用户重新选择
        self._failed_task_id: Optional[str] = None
        self._load_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._reconciling = False
        self._dirty = False

        registry.add_listener(self.reconcile)

    @property
    def chart_loading(self) -> bool:
        return self._chart_permit.busy

    def selected_task(self) -> Optional[BacktestTask]:
        if self.selected_task_id is None:
            return None
        return self._registry.get(self.selected_task_id)

    def select(self, task_id: str) -> bool:
        """
        用户选择任务；只有已完成且有统计结果的任务可选，其余点击被忽略
        """
        task = self._registry.get(task_id)
        if task is None or not task.is_selectable:
            logger.debug(f"Ignoring selection of unselectable task {task_id}")
            return False

        self._failed_task_id = None
        if task_id != self.selected_task_id:
            self.selected_task_id = task_id
            logger.info(f"Selected task {task_id}")
            self._emit(EventType.SELECTION_CHANGED, {"task_id": task_id, "auto": False})
        self.reconcile()
        return True

    def chart_state(self) -> ChartState:
        task = (
            self._registry.get(self.loaded_chart_task_id)
            if self.loaded_chart_task_id is not None
            else None
        )
        statistic = task.statistic if task is not None else None
        if statistic is not self._marker_source:
            self._markers = project_markers(statistic.trades) if statistic else []
            self._marker_source = statistic

        return ChartState(
            markers=list(self._markers),
            chart_points=list(self._chart_points),
            loaded_task_id=self.loaded_chart_task_id,
        )

    def reconcile(self):
        """
        重新评估规则直到不动点；重入调用只标记 dirty，由外层循环处理
        """
        self._dirty = True
        if self._reconciling:
            return

        self._reconciling = True
        try:
            while self._dirty:
                self._dirty = False
                self._auto_select()
                self._maybe_start_load()
        finally:
            self._reconciling = False

    def _auto_select(self):
        if self.selected_task_id is not None:
            return

        completed = [task for task in self._registry.tasks() if task.is_selectable]
        if not completed:
            return

        latest = completed[-1]
        self.selected_task_id = latest.id
        logger.info(f"Auto-selected completed task {latest.id}")
        self._emit(EventType.SELECTION_CHANGED, {"task_id": latest.id, "auto": True})
        self._dirty = True

    def _maybe_start_load(self):
        task_id = self.selected_task_id
        if task_id is None or task_id == self.loaded_chart_task_id:
            return
        if self._chart_permit.busy or task_id == self._failed_task_id:
            return

        task = self._registry.get(task_id)
        if task is None or not task.is_selectable:
            return

        loop = asyncio.get_running_loop()
        if not self._chart_permit.try_acquire():
            return

        markers = project_markers(task.statistic.trades)
        logger.info(f"Loading chart for task {task.id} ({task.exchange} {task.symbol} {task.timeframe})")
        self._load_task = loop.create_task(self._load_chart(task, markers))

    async def _load_chart(self, task: BacktestTask, markers: List[Marker]):
        try:
            candles = await self._api.get_candles(task.exchange, task.symbol, task.timeframe)
            chart_points = candles_to_chart_points(candles)
        except Exception as e:
            # any failure marks the task so it is not reloaded until reselected
            logger.error(f"Failed to load chart data for task {task.id}: {e}")
            self._failed_task_id = task.id
            self._emit(EventType.CHART_LOAD_FAILED, {"task_id": task.id, "error": str(e)})
        else:
            self._chart_points = chart_points
            self._markers = markers
            self._marker_source = task.statistic
            self.loaded_chart_task_id = task.id
            logger.info(f"Chart loaded for task {task.id}: {len(chart_points)} candles, {len(markers)} markers")
            self._emit(EventType.CHART_LOADED, {"task_id": task.id})
        finally:
            self._chart_permit.release()
            self._load_task = None

        self.reconcile()

    def _emit(self, event_type: EventType, data: dict):
        if self._bus is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop, dropping {event_type} notification")
            return
        task = loop.create_task(self._bus.publish(Event(event_type, data)))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def close(self):
        """
        释放注册表订阅；关闭时取消在途的图表加载
        """
        self._registry.remove_listener(self.reconcile)
        pending = [t for t in [self._load_task, *self._background] if t is not None]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        # a load cancelled before its first step never reaches its finally
        self._chart_permit.release()
        self._load_task = None
