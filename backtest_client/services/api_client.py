import asyncio
from typing import Any, Callable, Dict, List, Optional, TypeVar

import aiohttp
from pydantic import ValidationError

from backtest_client.core.config import Settings, settings as default_settings
from backtest_client.core.exceptions import ApiError
from backtest_client.core.logger import get_logger
from backtest_client.schemas.data import AvailableCandleInfo, Candle, StrategyListResponse
from backtest_client.schemas.task import (
    CreateBacktestTaskRequest,
    CreateBacktestTaskResponse,
)

logger = get_logger("ApiClient")

T = TypeVar("T")


class ApiClient:
    """
    后端 REST API 客户端
    所有传输层错误和格式错误的响应统一转换为 ApiError
    """

    def __init__(self, config: Settings = None, session: Optional[aiohttp.ClientSession] = None):
        self.config = config or default_settings
        self.base_url = self.config.get_api_base_url()
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.api.request_timeout)
            # trust_env=True to respect system proxy settings
            self._session = aiohttp.ClientSession(timeout=timeout, trust_env=True)
            self._owns_session = True
        return self._session

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def close(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = self.url(path)
        logger.debug(f"{method} {url}")
        try:
            async with self.session.request(method, url, **kwargs) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise ApiError(
                        f"{method} {path} failed with status {response.status}",
                        code=response.status,
                        details={"body": text[:500]},
                    )
                try:
                    return await response.json()
                except ValueError as e:
                    raise ApiError(f"{method} {path} returned an undecodable body: {e}") from e
        except asyncio.TimeoutError as e:
            raise ApiError(f"{method} {path} timed out", code=504) from e
        except aiohttp.ClientError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _parse(path: str, parser: Callable[[Any], T], data: Any) -> T:
        """
        响应体结构不符合预期时统一转换为 ApiError
        """
        try:
            return parser(data)
        except (ValidationError, ValueError, TypeError) as e:
            raise ApiError(
                f"{path} returned malformed data",
                details={"error": str(e)[:500]},
            ) from e

    async def list_strategies(self) -> List[str]:
        path = self.config.api.strategies_path
        data = await self._request("GET", path)
        return self._parse(path, lambda d: StrategyListResponse.model_validate(d).strategies, data)

    async def available_candles(self) -> List[AvailableCandleInfo]:
        path = self.config.api.available_candles_path
        data = await self._request("GET", path)
        return self._parse(path, lambda d: [AvailableCandleInfo.model_validate(item) for item in d], data)

    async def get_candles(self, exchange: str, symbol: str, timeframe: str) -> List[Candle]:
        path = self.config.api.candles_path
        params: Dict[str, str] = {
            "exchange": exchange,
            "symbol": symbol,
            "timeframe": timeframe,
        }
        data = await self._request("GET", path, params=params)
        return self._parse(path, lambda d: [Candle.model_validate(item) for item in d], data)

    async def create_task(self, request: CreateBacktestTaskRequest) -> CreateBacktestTaskResponse:
        path = self.config.api.backtest_path
        data = await self._request("POST", path, json=request.model_dump())
        return self._parse(path, CreateBacktestTaskResponse.model_validate, data)
