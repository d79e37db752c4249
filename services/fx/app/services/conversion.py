"""
Rate resolution and amount conversion.

Latest rates come from the cache (write-through on a miss); dated requests
always go straight to the provider and never touch the cache.
"""
from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from ..currencies import ExchangeConfig, normalize_code
from ..errors import DateOutOfRange, FutureDate, InvalidAmount, InvalidDateFormat, UnsupportedCurrency
from ..ports import RateProvider, RateStore

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConversionService:
    """Stateless per call; all shared state lives in the injected ``RateStore``."""

    def __init__(
        self,
        store: RateStore,
        provider: RateProvider,
        config: Optional[ExchangeConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._provider = provider
        self._config = config or ExchangeConfig()
        self._clock = clock

    @property
    def provider_is_date_aware(self) -> bool:
        return bool(getattr(self._provider, "supports_historical", False))

    def convert_amount(self, from_ccy: str, to_ccy: str, amount: float, on_date: Optional[str] = None) -> float:
        """Convert ``amount`` of ``from_ccy`` into ``to_ccy``.

        An empty ``on_date`` means the latest rate; anything else is validated
        as a historical date first.
        """
        src, dst = self._validate_pair(from_ccy, to_ccy)

        if amount is None or not math.isfinite(amount) or amount < 0:
            raise InvalidAmount(amount)

        if src == dst:
            return amount

        rate = self._resolve_rate(src, dst, on_date)
        result = amount * rate
        if not math.isfinite(result):
            raise InvalidAmount(amount, reason="converted amount is out of range")
        return result

    def get_latest_rate(self, from_ccy: str, to_ccy: str) -> float:
        return self.convert_amount(from_ccy, to_ccy, 1.0)

    def get_historical_rate(self, from_ccy: str, to_ccy: str, date_str: str) -> float:
        src, dst = self._validate_pair(from_ccy, to_ccy)

        # same currency is 1:1 on any date
        if src == dst:
            return 1.0

        requested = self._validate_date(date_str)
        # historical data is never cached
        return self._provider.fetch_rate(src, dst, requested)

    # ---------------- internals ----------------
    def _resolve_rate(self, src: str, dst: str, on_date: Optional[str]) -> float:
        if on_date:
            requested = self._validate_date(on_date)
            return self._provider.fetch_rate(src, dst, requested)

        rate, found = self._store.get_rate(src, dst)
        if found:
            logger.debug(f"Cache hit for {src}/{dst}")
            return rate

        logger.debug(f"Cache miss for {src}/{dst}, fetching from provider")
        rate = self._provider.fetch_rate(src, dst)
        self._store.set_rate(src, dst, rate)
        return rate

    def is_supported(self, code: str) -> bool:
        return self._config.is_supported(code)

    def _validate_pair(self, from_ccy: str, to_ccy: str) -> Tuple[str, str]:
        src = normalize_code(from_ccy)
        dst = normalize_code(to_ccy)
        if not self.is_supported(src):
            raise UnsupportedCurrency(src or str(from_ccy), role="source")
        if not self.is_supported(dst):
            raise UnsupportedCurrency(dst or str(to_ccy), role="target")
        return src, dst

    def _validate_date(self, value: Optional[str]) -> date:
        raw = (value or "").strip()
        if not _DATE_RE.match(raw):
            raise InvalidDateFormat(value or "")
        try:
            requested = datetime.strptime(raw, "%Y-%m-%d").date()
        except ValueError:
            raise InvalidDateFormat(raw)

        now = self._clock()
        if requested > now.date():
            raise FutureDate(raw)

        oldest = (now - timedelta(days=self._config.max_historical_days)).date()
        if requested < oldest:
            raise DateOutOfRange(raw, self._config.max_historical_days)
        return requested
