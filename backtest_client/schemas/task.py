import math
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, Field, BeforeValidator, model_validator

from backtest_client.enums.types import TaskStatus, TradeType


def _lenient_decimal(value: Any) -> Optional[Decimal]:
    """
    后端以字符串传输 BigDecimal；无法解析或非有限值一律降级为 None (显示为 N/A)
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        # 与 JS Number -> string 一致: 2.0 -> "2", 2.5 -> "2.5"
        return Decimal(int(value)) if value.is_integer() else Decimal(repr(value))
    if isinstance(value, str):
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    return None


def _lenient_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


LenientDecimal = Annotated[Optional[Decimal], BeforeValidator(_lenient_decimal)]
LenientFloat = Annotated[Optional[float], BeforeValidator(_lenient_float)]


class MarketPrecision(BaseModel):
    """
    市场精度 (tick size)，如 0.01
    """

    price_precision: LenientDecimal = None
    amount_precision: LenientDecimal = None


class Trade(BaseModel):
    timestamp: int = Field(..., description="成交时间 (epoch millis)")
    trade_type: TradeType
    price: LenientDecimal = None
    amount: LenientDecimal = None
    fee: LenientDecimal = None
    profit: LenientDecimal = None


class BacktestStatistic(BaseModel):
    """
    回测统计 (由后端计算，客户端只读)
    """

    trades: List[Trade] = []
    initial_capital: LenientDecimal = None
    total_cost: LenientDecimal = None
    net_profit: LenientDecimal = None
    return_percent: LenientFloat = None
    max_equity: LenientDecimal = None
    max_drawdown: LenientDecimal = None
    max_drawdown_percent: LenientFloat = None
    gross_profit: LenientDecimal = None
    gross_loss: LenientDecimal = None
    profit_factor: LenientFloat = None
    sharpe_ratio: LenientFloat = None
    total_trades: int = 0
    buy_trades: int = 0
    sell_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: LenientFloat = None
    avg_win: LenientDecimal = None
    avg_loss: LenientDecimal = None
    largest_win: LenientDecimal = None
    largest_loss: LenientDecimal = None


class BacktestTask(BaseModel):
    """
    回测任务记录；流中的每条消息都是完整记录
    """

    id: str
    status: TaskStatus
    progress: float = 0.0
    name: str
    exchange: str
    symbol: str
    timeframe: str
    precision: Optional[MarketPrecision] = None
    statistic: Optional[BacktestStatistic] = None
    error_message: Optional[str] = None
    created_at: Optional[int] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    updated_at: Optional[int] = None

    @model_validator(mode="after")
    def check_terminal_fields(self) -> "BacktestTask":
        completed = self.status == TaskStatus.COMPLETED
        failed = self.status == TaskStatus.FAILED
        if completed != (self.statistic is not None):
            raise ValueError("statistic must be present exactly when status is completed")
        if failed != (self.error_message is not None):
            raise ValueError("error_message must be present exactly when status is failed")
        return self

    @property
    def is_selectable(self) -> bool:
        return self.status == TaskStatus.COMPLETED and self.statistic is not None


class CreateBacktestTaskRequest(BaseModel):
    name: str
    exchange: str
    symbol: str
    timeframe: str


class CreateBacktestTaskResponse(BaseModel):
    task_id: str


class SubmissionForm(BaseModel):
    """
    回测提交表单的当前取值
    """

    name: str = ""
    exchange: str = ""
    symbol: str = ""
    timeframe: str = ""


class SubmissionFormUpdate(BaseModel):
    name: Optional[str] = None
    exchange: Optional[str] = None
    symbol: Optional[str] = None
    timeframe: Optional[str] = None
