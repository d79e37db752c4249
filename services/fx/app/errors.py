"""Error taxonomy shared by the core and the HTTP layer."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    BAD_INPUT = "BAD_INPUT"
    UNSUPPORTED_CURRENCY = "UNSUPPORTED_CURRENCY"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_DATE_FORMAT = "INVALID_DATE_FORMAT"
    FUTURE_DATE = "FUTURE_DATE"
    DATE_OUT_OF_RANGE = "DATE_OUT_OF_RANGE"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    INVALID_PROVIDER_RATE = "INVALID_PROVIDER_RATE"
    INTERNAL = "INTERNAL"


class ExchangeError(Exception):
    code: ErrorCode = ErrorCode.INTERNAL
    retriable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def as_dict(self) -> Dict[str, Any]:
        payload = {"code": self.code.value, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InputError(ExchangeError):
    """Caller supplied bad input; detected before any I/O."""


class UnsupportedCurrency(InputError):
    code = ErrorCode.UNSUPPORTED_CURRENCY

    def __init__(self, currency: str, role: str = "") -> None:
        label = f"unsupported {role} currency" if role else "unsupported currency"
        super().__init__(f"{label}: {currency}", {"currency": currency})
        self.currency = currency


class InvalidAmount(InputError):
    code = ErrorCode.INVALID_AMOUNT

    def __init__(self, amount: float, reason: str = "amount must be a non-negative number") -> None:
        super().__init__(f"{reason}: {amount}", {"amount": str(amount)})


class InvalidDateFormat(InputError):
    code = ErrorCode.INVALID_DATE_FORMAT

    def __init__(self, value: str) -> None:
        super().__init__(f"invalid date format, expected YYYY-MM-DD: {value!r}", {"date": value})


class FutureDate(InputError):
    code = ErrorCode.FUTURE_DATE

    def __init__(self, value: str) -> None:
        super().__init__(f"date cannot be in the future: {value}", {"date": value})


class DateOutOfRange(InputError):
    code = ErrorCode.DATE_OUT_OF_RANGE

    def __init__(self, value: str, max_days: int) -> None:
        super().__init__(
            f"date is too far in the past, maximum {max_days} days allowed",
            {"date": value, "max_days": max_days},
        )


class ProviderError(ExchangeError):
    """Upstream rate provider failed; the caller may retry later."""

    retriable = True


class ProviderUnavailable(ProviderError):
    code = ErrorCode.PROVIDER_UNAVAILABLE


class InvalidProviderRate(ProviderError):
    code = ErrorCode.INVALID_PROVIDER_RATE
