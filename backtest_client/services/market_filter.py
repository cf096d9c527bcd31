from typing import List, Sequence

from backtest_client.schemas.data import AvailableCandleInfo


def _unique(values) -> List[str]:
    # dict.fromkeys keeps first-seen order
    return list(dict.fromkeys(values))


class MarketDataFilter:
    """
    可用 K 线数据的级联筛选: exchange -> symbol -> timeframe
    """

    def __init__(self, available: Sequence[AvailableCandleInfo] = ()):
        self.available: List[AvailableCandleInfo] = list(available)

    def exchanges(self) -> List[str]:
        return _unique(item.exchange for item in self.available)

    def symbols(self, exchange: str) -> List[str]:
        if not exchange:
            return []
        return _unique(item.symbol for item in self.available if item.exchange == exchange)

    def timeframes(self, exchange: str, symbol: str) -> List[str]:
        if not exchange or not symbol:
            return []
        return _unique(
            item.timeframe
            for item in self.available
            if item.exchange == exchange and item.symbol == symbol
        )
