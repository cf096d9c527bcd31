from enum import Enum


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class TradeType(str, Enum):
    MARKET_BUY = "market_buy"
    MARKET_SELL = "market_sell"
    LIMIT_BUY = "limit_buy"
    LIMIT_SELL = "limit_sell"

    @property
    def is_buy(self) -> bool:
        return self in (TradeType.MARKET_BUY, TradeType.LIMIT_BUY)

    @property
    def is_limit(self) -> bool:
        return self in (TradeType.LIMIT_BUY, TradeType.LIMIT_SELL)


class MarkerPosition(str, Enum):
    BELOW_BAR = "belowBar"
    ABOVE_BAR = "aboveBar"


class MarkerShape(str, Enum):
    ARROW_UP = "arrowUp"
    ARROW_DOWN = "arrowDown"
