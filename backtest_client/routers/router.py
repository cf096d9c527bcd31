from fastapi import APIRouter
from backtest_client.routers.v1.tasks import router as tasks_router
from backtest_client.routers.v1.results import router as results_router
from backtest_client.routers.v1.markets import router as markets_router

router = APIRouter(prefix="/api/v1")

router.include_router(tasks_router)
router.include_router(results_router)
router.include_router(markets_router)
