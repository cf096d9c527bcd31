import asyncio
import time
from typing import Callable, List, Dict, Any
from backtest_client.core.logger import get_logger
from backtest_client.enums.event import EventType

logger = get_logger("EventBus")


class Event:
    """
    基础事件对象
    """

    def __init__(self, type: EventType, data: Dict[str, Any] = None):
        self.type = type
        self.data = data or {}
        self.timestamp = time.time()


class EventBus:
    """
    异步事件总线
    每个 BacktestSession 持有一个实例；模块级 event_bus 为默认实例
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event], Any]]] = {}

    def subscribe(self, event_type: str, callback: Callable[[Event], Any]):
        """
        订阅事件
        :param event_type: 事件类型 (EventType.TASK_UPDATED)
        :param callback: 回调函数 (async def handle(event) 或普通函数)
        """
        self._subscribers.setdefault(event_type, []).append(callback)
        logger.debug(f"Subscribed to {event_type}")

    def unsubscribe(self, event_type: str, callback: Callable[[Event], Any]):
        callbacks = self._subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def clear(self):
        self._subscribers.clear()

    async def publish(self, event: Event):
        """
        发布事件；处理函数的异常只记录日志，不影响发布者
        """
        callbacks = list(self._subscribers.get(event.type, []))
        if not callbacks:
            return

        tasks = []
        for callback in callbacks:
            if asyncio.iscoroutinefunction(callback):
                tasks.append(asyncio.create_task(callback(event)))
            else:
                try:
                    callback(event)
                except Exception as e:
                    logger.error(
                        f"Error in synchronous handler for {event.type}: {e}"
                    )

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Error in async handler for {event.type}: {result}")


# 全局默认实例
event_bus = EventBus()
