from datetime import datetime, timezone
from typing import Any, Dict, Optional

from backtest_client.enums.types import TaskStatus
from backtest_client.schemas.task import BacktestStatistic, BacktestTask, MarketPrecision, Trade
from backtest_client.services.formatter import (
    Formatter,
    format_number,
    format_percent,
    format_signed,
    to_decimal,
)
from backtest_client.services.paginator import DEFAULT_PAGE_SIZE, Paginator


def format_timestamp(timestamp_ms: Optional[int]) -> str:
    if timestamp_ms is None:
        return "N/A"
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def summarize_task(task: BacktestTask) -> Dict[str, Any]:
    """
    任务列表中一行的展示数据
    """
    summary: Dict[str, Any] = {
        "id": task.id,
        "name": task.name,
        "subtitle": f"{task.symbol} · {task.exchange} · {task.timeframe}",
        "status": task.status.value,
        "selectable": task.is_selectable,
    }
    if task.status == TaskStatus.RUNNING:
        summary["progress"] = round(task.progress)
    if task.status == TaskStatus.COMPLETED and task.statistic is not None:
        statistic = task.statistic
        summary["net_profit"] = format_number(statistic.net_profit)
        summary["return_percent"] = format_percent(statistic.return_percent)
        summary["winning_trades"] = statistic.winning_trades
        summary["losing_trades"] = statistic.losing_trades
    if task.status == TaskStatus.FAILED:
        summary["error_message"] = task.error_message
    return summary


class StatisticsPresenter:
    """
    统计结果展示: 格式化指标 + 成交记录分页

    分页器在不同任务之间复用，切换任务时页码保持不变。
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        self.paginator: Paginator[Trade] = Paginator(page_size=page_size)

    def present(
        self,
        statistic: BacktestStatistic,
        precision: Optional[MarketPrecision] = None,
        page: Optional[int] = None,
    ) -> Dict[str, Any]:
        formatter = Formatter(precision)
        self.paginator.items = statistic.trades
        if page is not None:
            self.paginator.go_to(page)

        net_profit = to_decimal(statistic.net_profit)
        return {
            "summary": self.summary(statistic),
            "is_profit": net_profit is not None and net_profit > 0,
            "orders": len(statistic.trades),
            "completed_trades": statistic.total_trades,
            "trades": [self.trade_row(trade, formatter) for trade in self.paginator.current_slice()],
            "pagination": self.pagination(),
        }

    @staticmethod
    def summary(statistic: BacktestStatistic) -> Dict[str, str]:
        return {
            "net_profit": format_number(statistic.net_profit),
            "return_percent": format_percent(statistic.return_percent),
            "initial_capital": format_number(statistic.initial_capital),
            "max_equity": format_number(statistic.max_equity),
            "total_cost": format_number(statistic.total_cost),
            "max_drawdown": format_number(statistic.max_drawdown),
            "max_drawdown_percent": format_percent(statistic.max_drawdown_percent),
            "profit_factor": format_number(statistic.profit_factor),
            "win_rate": format_percent(statistic.win_rate),
            "sharpe_ratio": format_number(statistic.sharpe_ratio),
            "gross_profit": format_number(statistic.gross_profit),
            "gross_loss": format_number(statistic.gross_loss),
            "avg_win": format_number(statistic.avg_win),
            "avg_loss": format_number(statistic.avg_loss),
            "largest_win": format_number(statistic.largest_win),
            "largest_loss": format_number(statistic.largest_loss),
            "total_trades": str(statistic.total_trades),
            "buy_trades": str(statistic.buy_trades),
            "sell_trades": str(statistic.sell_trades),
            "winning_trades": str(statistic.winning_trades),
            "losing_trades": str(statistic.losing_trades),
        }

    @staticmethod
    def trade_row(trade: Trade, formatter: Formatter) -> Dict[str, Any]:
        profit = to_decimal(trade.profit)
        return {
            "time": format_timestamp(trade.timestamp),
            "side": "BUY" if trade.trade_type.is_buy else "SELL",
            "is_limit": trade.trade_type.is_limit,
            "price": formatter.format_price(trade.price),
            "amount": formatter.format_amount(trade.amount),
            "fee": formatter.format_price(trade.fee),
            "profit": "-" if not profit else format_signed(profit, 2),
        }

    def pagination(self) -> Dict[str, Any]:
        first, last, total = self.paginator.showing_range()
        return {
            "page": self.paginator.page,
            "page_count": self.paginator.page_count,
            "page_size": self.paginator.page_size,
            "has_previous": self.paginator.has_previous,
            "has_next": self.paginator.has_next,
            "is_paginated": self.paginator.is_paginated,
            "showing": f"Showing {first} to {last} of {total} trades",
        }
