from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from backtest_client.core.logger import get_logger
from backtest_client.routers.deps import get_session
from backtest_client.schemas.response import StandardResponse
from backtest_client.schemas.task import SubmissionForm, SubmissionFormUpdate
from backtest_client.services.session import BacktestSession

router = APIRouter(tags=["tasks"])

logger = get_logger("TasksRouter")


@router.get("/tasks", response_model=StandardResponse[List[Dict[str, Any]]])
async def list_tasks(session: BacktestSession = Depends(get_session)):
    """
    任务列表 (按首次出现顺序)
    """
    return StandardResponse(data=session.task_summaries())


@router.get("/connection", response_model=StandardResponse[dict])
async def connection(session: BacktestSession = Depends(get_session)):
    return StandardResponse(data={"connected": session.connected()})


@router.get("/form", response_model=StandardResponse[dict])
async def get_form(session: BacktestSession = Depends(get_session)):
    return StandardResponse(
        data={**session.form.model_dump(), "can_submit": session.can_submit}
    )


@router.put("/form", response_model=StandardResponse[SubmissionForm])
async def update_form(update: SubmissionFormUpdate, session: BacktestSession = Depends(get_session)):
    """
    更新提交表单
    """
    form = session.update_form(**update.model_dump())
    return StandardResponse(data=form)


@router.post("/tasks", response_model=StandardResponse[dict])
async def submit_task(session: BacktestSession = Depends(get_session)):
    """
    按当前表单提交回测；任务本身通过任务流出现
    """
    if not session.can_submit:
        return StandardResponse(code=409, message="Submission not possible", data={"submitted": False})

    response = await session.submit()
    if response is None:
        logger.warning("Submission returned no task")
        return StandardResponse(code=502, message="Submission failed", data={"submitted": False})
    return StandardResponse(data={"submitted": True, "task_id": response.task_id})
