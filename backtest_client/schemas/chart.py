from pydantic import BaseModel
from typing import List, Optional

from backtest_client.enums.types import MarkerPosition, MarkerShape


class Marker(BaseModel):
    """
    图表上的成交标记，由 Trade 派生，不单独缓存
    """

    time: int
    position: MarkerPosition
    color: str
    shape: MarkerShape
    text: str


class ChartPoint(BaseModel):
    time: int
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None


class ChartState(BaseModel):
    markers: List[Marker] = []
    chart_points: List[ChartPoint] = []
    loaded_task_id: Optional[str] = None
