import asyncio
from typing import Awaitable, Callable, Optional

import aiohttp
from pydantic import ValidationError

from backtest_client.core.config import Settings, settings as default_settings
from backtest_client.core.exceptions import StreamError
from backtest_client.core.logger import get_logger
from backtest_client.schemas.task import BacktestTask

logger = get_logger("TaskStream")

TaskHandler = Callable[[BacktestTask], Awaitable[None]]
ConnectionHandler = Callable[[bool], Awaitable[None]]


def parse_event(data: str) -> Optional[BacktestTask]:
    """
    解析一条 SSE data；格式错误的记录跳过
    """
    try:
        return BacktestTask.model_validate_json(data)
    except ValidationError as e:
        logger.warning(f"Skipping malformed task record: {e.error_count()} errors")
        return None


class TaskStream:
    """
    任务流 (Server-Sent Events) 消费者

    连接建立时后端会先重放所有已知任务，之后推送每一次更新。
    断线后按 reconnect_delay 重连，直到 close()。
    """

    def __init__(self, api, on_task: TaskHandler, on_connection: ConnectionHandler,
                 config: Settings = None):
        self._api = api
        self._on_task = on_task
        self._on_connection = on_connection
        self.config = config or default_settings
        self._closed = False
        self._runner: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        if self._runner is None or self._runner.done():
            self._closed = False
            self._runner = asyncio.create_task(self.run())
        return self._runner

    async def run(self):
        while not self._closed:
            try:
                await self._consume()
            except StreamError as e:
                logger.warning(f"Task stream interrupted: {e}")
            finally:
                await self._on_connection(False)

            if self._closed:
                break
            await asyncio.sleep(self.config.stream.reconnect_delay)

    async def _consume(self):
        url = self._api.url(self.config.api.stream_path)
        # 流式连接不设置总超时
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.config.api.request_timeout)
        try:
            async with self._api.session.get(
                url, timeout=timeout, headers={"Accept": "text/event-stream"}
            ) as response:
                if response.status != 200:
                    raise StreamError(f"Stream request failed with status {response.status}")

                logger.info(f"Connected to task stream {url}")
                await self._on_connection(True)

                data_lines = []
                async for raw_line in response.content:
                    line = raw_line.decode("utf-8").rstrip("\r\n")
                    if line.startswith("data:"):
                        data_lines.append(line[5:].lstrip(" "))
                    elif line == "" and data_lines:
                        task = parse_event("\n".join(data_lines))
                        data_lines = []
                        if task is not None:
                            await self._on_task(task)
                    # comments (keep-alive) and other fields are ignored
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StreamError(f"Task stream transport error: {e}") from e

        raise StreamError("Task stream closed by server")

    async def close(self):
        self._closed = True
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()
            await asyncio.gather(self._runner, return_exceptions=True)
        self._runner = None
