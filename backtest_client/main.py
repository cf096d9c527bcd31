from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backtest_client.core.logger import get_logger
from backtest_client.routers.router import router
from backtest_client.schemas.response import (
    StandardResponse,
    http_exception_handler,
    validation_exception_handler,
    global_exception_handler,
)
from backtest_client.services.session import BacktestSession

# 获取系统日志记录器
logger = get_logger("System")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI 生命周期管理: 启动时打开会话，关闭时释放
    """
    session: BacktestSession = app.state.session
    logger.info("Backtest client view API is starting up...")
    await session.start()

    yield

    logger.info("Backtest client view API is shutting down...")
    await session.shutdown()


def create_app(session: BacktestSession = None) -> FastAPI:
    app = FastAPI(
        title="Backtest Client",
        description="Client-side view of backtest tasks, charts and statistics",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.session = session or BacktestSession()

    # 注册异常处理器
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # 注册 API 路由
    app.include_router(router)

    @app.get("/", response_model=StandardResponse[dict])
    async def root():
        """
        健康检查接口
        """
        return StandardResponse(
            data={"status": "ok", "connected": app.state.session.connected()}
        )

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backtest_client.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
