from fastapi import Request

from backtest_client.services.session import BacktestSession


def get_session(request: Request) -> BacktestSession:
    return request.app.state.session
