from pydantic import BaseModel, Field
from typing import List

from backtest_client.schemas.task import LenientDecimal


class Candle(BaseModel):
    timestamp: int = Field(..., description="开盘时间 (epoch millis)")
    open: LenientDecimal = None
    high: LenientDecimal = None
    low: LenientDecimal = None
    close: LenientDecimal = None


class AvailableCandleInfo(BaseModel):
    """
    后端已有的 K 线数据 (exchange, symbol, timeframe)
    """

    exchange: str
    symbol: str
    timeframe: str


class StrategyListResponse(BaseModel):
    strategies: List[str] = Field(default_factory=list, description="可用策略名称")
