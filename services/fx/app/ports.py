"""Capabilities the core depends on."""
from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Tuple


class RateProvider(Protocol):
    """Something that can fetch a conversion rate.

    Implementations return a positive rate (units of ``to_ccy`` per one
    ``from_ccy``) or raise ``ProviderError``. They must be safe to call from
    several threads at once.
    """

    def fetch_rate(self, from_ccy: str, to_ccy: str, on_date: Optional[date] = None) -> float:
        ...


class RateStore(Protocol):
    """Something that can hold the latest rate for a pair."""

    def get_rate(self, from_ccy: str, to_ccy: str) -> Tuple[float, bool]:
        ...

    def set_rate(self, from_ccy: str, to_ccy: str, rate: float) -> None:
        ...
