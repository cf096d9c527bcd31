from decimal import Decimal
from typing import Iterable, List, Optional

from backtest_client.enums.types import MarkerPosition, MarkerShape
from backtest_client.schemas.chart import ChartPoint, Marker
from backtest_client.schemas.data import Candle
from backtest_client.schemas.task import Trade

BUY_COLOR = "#26a69a"
SELL_COLOR = "#ef5350"


def _display(value: Optional[Decimal]) -> str:
    if value is None:
        return "N/A"
    return format(value, "f")


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


def trade_to_marker(trade: Trade) -> Marker:
    is_buy = trade.trade_type.is_buy
    kind = "LIMIT" if trade.trade_type.is_limit else "MARKET"
    side = "BUY" if is_buy else "SELL"

    return Marker(
        time=trade.timestamp // 1000,
        position=MarkerPosition.BELOW_BAR if is_buy else MarkerPosition.ABOVE_BAR,
        color=BUY_COLOR if is_buy else SELL_COLOR,
        shape=MarkerShape.ARROW_UP if is_buy else MarkerShape.ARROW_DOWN,
        text=f"{kind} {side} {_display(trade.amount)} @ {_display(trade.price)}",
    )


def project_markers(trades: Iterable[Trade]) -> List[Marker]:
    """
    将成交序列转换为图表标记，保持原有顺序
    """
    return [trade_to_marker(trade) for trade in trades]


def candles_to_chart_points(candles: Iterable[Candle]) -> List[ChartPoint]:
    return [
        ChartPoint(
            time=candle.timestamp // 1000,
            open=_to_float(candle.open),
            high=_to_float(candle.high),
            low=_to_float(candle.low),
            close=_to_float(candle.close),
        )
        for candle in candles
    ]
