from backtest_client.services.registry import TaskRegistry
from backtest_client.services.submission import SubmissionController
from backtest_client.services.synchronizer import SelectionSynchronizer
from backtest_client.services.session import BacktestSession

# 纯函数式投影: 标记、格式化、分页
from backtest_client.services.markers import project_markers
from backtest_client.services.formatter import Formatter
from backtest_client.services.paginator import Paginator

__all__ = [
    "TaskRegistry",
    "SubmissionController",
    "SelectionSynchronizer",
    "BacktestSession",
    "project_markers",
    "Formatter",
    "Paginator",
]
