from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backtest_client.core.logger import get_logger
from backtest_client.routers.deps import get_session
from backtest_client.schemas.chart import ChartState
from backtest_client.schemas.response import StandardResponse
from backtest_client.services.session import BacktestSession

router = APIRouter(tags=["results"])

logger = get_logger("ResultsRouter")


@router.post("/selection/{task_id}", response_model=StandardResponse[dict])
async def select_task(task_id: str, session: BacktestSession = Depends(get_session)):
    """
    选择任务；未完成的任务被忽略
    """
    selected = session.select_task(task_id)
    if not selected:
        logger.info(f"Ignored selection of task {task_id}")
    return StandardResponse(
        data={
            "selected": selected,
            "selected_task_id": session.synchronizer.selected_task_id,
        }
    )


@router.delete("/selection/view", response_model=StandardResponse[dict])
async def close_result_view(session: BacktestSession = Depends(get_session)):
    session.close_result_view()
    return StandardResponse(data={"result_view_open": False})


@router.get("/chart", response_model=StandardResponse[ChartState])
async def chart(session: BacktestSession = Depends(get_session)):
    return StandardResponse(data=session.chart_state())


@router.get("/statistics", response_model=StandardResponse[dict])
async def statistics(
    page: Optional[int] = Query(None, description="页码，超出范围会被限制"),
    session: BacktestSession = Depends(get_session),
):
    """
    当前选中任务的统计与成交分页
    """
    result = session.statistics(page)
    if result is None:
        raise HTTPException(status_code=404, detail="No completed task selected")
    return StandardResponse(data=result)
