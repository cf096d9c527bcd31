import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Union

from backtest_client.schemas.task import MarketPrecision

NOT_AVAILABLE = "N/A"

Numeric = Union[Decimal, float, int, str, None]


def to_decimal(value: Numeric) -> Optional[Decimal]:
    """
    Coerce a raw value to a finite Decimal, or None when it cannot be shown.
    Floats are taken at their exact binary value so rounding matches the
    number the backend sent.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, str):
            parsed = Decimal(value.strip())
        elif isinstance(value, (Decimal, int, float)):
            parsed = Decimal(value)
        else:
            return None
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def digits_from_tick(tick: Numeric) -> Optional[int]:
    """
    tick 0.01 -> 2, tick 1 -> 0; non-positive or missing ticks give None.
    """
    tick_value = to_decimal(tick)
    if tick_value is None or tick_value <= 0:
        return None
    digits = abs(math.log10(tick_value))
    nearest = round(digits)
    if abs(digits - nearest) < 1e-9:
        return int(nearest)
    return int(digits)


def format_number(value: Numeric, decimals: Optional[int] = 2) -> str:
    number = to_decimal(value)
    if number is None or decimals is None:
        return NOT_AVAILABLE
    quantum = Decimal(1).scaleb(-decimals)
    try:
        rounded = number.quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # exceeds context precision
        return f"{number:.{decimals}f}"
    return format(rounded, "f")


def format_percent(value: Numeric) -> str:
    number = to_decimal(value)
    if number is None:
        return NOT_AVAILABLE
    sign = "+" if number >= 0 else ""
    return f"{sign}{format_number(number, 2)}%"


def format_signed(value: Numeric, decimals: int = 2) -> str:
    number = to_decimal(value)
    if number is None:
        return NOT_AVAILABLE
    sign = "+" if number > 0 else ""
    return f"{sign}{format_number(number, decimals)}"


class Formatter:
    """
    按市场精度格式化价格和数量

    price/amount 的小数位由 tick size 推导: digits = |log10(tick)|。
    精度缺失或非法时对应的格式化结果为 "N/A"。
    """

    def __init__(self, precision: Optional[MarketPrecision] = None):
        precision = precision or MarketPrecision()
        self.price_digits = digits_from_tick(precision.price_precision)
        self.amount_digits = digits_from_tick(precision.amount_precision)

    def format_number(self, value: Any, decimals: int = 2) -> str:
        return format_number(value, decimals)

    def format_price(self, value: Any) -> str:
        return format_number(value, self.price_digits)

    def format_amount(self, value: Any) -> str:
        return format_number(value, self.amount_digits)

    def format_percent(self, value: Any) -> str:
        return format_percent(value)
