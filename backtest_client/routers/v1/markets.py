from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from backtest_client.routers.deps import get_session
from backtest_client.schemas.response import StandardResponse
from backtest_client.services.session import BacktestSession

router = APIRouter(tags=["markets"])


@router.get("/strategies", response_model=StandardResponse[List[str]])
async def list_strategies(session: BacktestSession = Depends(get_session)):
    return StandardResponse(data=session.strategies)


@router.get("/markets", response_model=StandardResponse[dict])
async def list_markets(
    exchange: Optional[str] = Query(None),
    symbol: Optional[str] = Query(None),
    session: BacktestSession = Depends(get_session),
):
    """
    级联筛选: 交易所 -> 交易对 -> 周期
    """
    markets = session.markets
    return StandardResponse(
        data={
            "exchanges": markets.exchanges(),
            "symbols": markets.symbols(exchange or ""),
            "timeframes": markets.timeframes(exchange or "", symbol or ""),
        }
    )
