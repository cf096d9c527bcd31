from typing import Optional, Any, Dict


class BacktestClientError(Exception):
    """Base exception for all custom errors in the backtest client"""
    def __init__(self, message: str, code: int = 500, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        return f"[{self.code}] {self.message}"


class ConfigurationError(BacktestClientError):
    """Raised when there is a configuration error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=503, details=details)


class ApiError(BacktestClientError):
    """Raised when a backend request fails or returns an error status"""
    def __init__(self, message: str, code: int = 502, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class StreamError(BacktestClientError):
    """Raised when the task stream transport breaks"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=502, details=details)

