import asyncio
from typing import Optional

import aiohttp

from backtest_client.core.concurrency import CancellationToken, Permit
from backtest_client.core.event_bus import Event, EventBus
from backtest_client.core.exceptions import BacktestClientError
from backtest_client.core.logger import get_logger
from backtest_client.enums.event import EventType
from backtest_client.schemas.task import (
    CreateBacktestTaskRequest,
    CreateBacktestTaskResponse,
)

logger = get_logger("SubmissionController")


class SubmissionController:
    """
    回测提交控制器

    同一时间最多只有一个创建请求在途。提交结果不会写入任务注册表，
    任务由后端通过任务流发布。
    """

    def __init__(self, api, bus: Optional[EventBus] = None):
        self._api = api
        self._bus = bus
        self._permit = Permit("submission")
        self._token: Optional[CancellationToken] = None
        self.last_response: Optional[CreateBacktestTaskResponse] = None

    @property
    def in_flight(self) -> bool:
        return self._permit.busy

    async def submit(
        self, name: str, exchange: str, symbol: str, timeframe: str
    ) -> Optional[CreateBacktestTaskResponse]:
        """
        提交一个回测任务

        字段缺失或已有请求在途时直接忽略；失败只记录日志并返回 None。
        """
        if not (name and exchange and symbol and timeframe):
            return None
        # checked before the first await
        if not self._permit.try_acquire():
            logger.debug("Submission already in flight, ignoring")
            return None

        if self._token is not None:
            self._token.cancel()
        token = CancellationToken()
        self._token = token

        request = CreateBacktestTaskRequest(
            name=name, exchange=exchange, symbol=symbol, timeframe=timeframe
        )
        try:
            logger.info(f"Submitting backtest {name} on {exchange}/{symbol} {timeframe}")
            await self._publish(EventType.SUBMISSION_STARTED, request.model_dump())

            future = asyncio.ensure_future(self._api.create_task(request))
            token.bind(future)
            try:
                response = await future
            except asyncio.CancelledError:
                if not token.cancelled:
                    raise
                logger.info("Submission cancelled")
                return None

            if token.cancelled:
                logger.debug(f"Dropping late response for cancelled submission: {response.task_id}")
                return None

            self.last_response = response
            logger.info(f"Backtest task created: {response.task_id}")
            await self._publish(EventType.SUBMISSION_COMPLETED, {"task_id": response.task_id})
            return response
        except (BacktestClientError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to run backtest: {e}")
            await self._publish(EventType.SUBMISSION_FAILED, {"error": str(e), **request.model_dump()})
            return None
        finally:
            if self._token is token:
                self._token = None
            self._permit.release()

    def cancel(self):
        """
        取消在途的提交请求 (会话关闭时调用)
        """
        if self._token is not None:
            logger.info("Cancelling in-flight submission")
            self._token.cancel()

    async def _publish(self, event_type: EventType, data: dict):
        if self._bus is not None:
            await self._bus.publish(Event(event_type, data))
