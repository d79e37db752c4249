"""
exchangerate-api.com (v6) client with a short fixed retry.

The free tier only serves the spot rate, so a requested date is accepted
for interface compatibility but is not sent upstream.
"""
from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any, Callable, Dict, Optional

import httpx

from ..errors import InvalidProviderRate, ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)

USER_AGENT = "fx-service/1.0.0"


class ExchangeRateApiClient:
    """Thread-safe provider; one ``httpx.Client`` shared by requests and the refresher."""

    supports_historical = False

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 12.0,
        attempts: int = 2,
        retry_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _endpoint(self, from_ccy: str, to_ccy: str) -> str:
        return f"/{self.api_key}/pair/{from_ccy}/{to_ccy}/1"

    def fetch_rate(self, from_ccy: str, to_ccy: str, on_date: Optional[date] = None) -> float:
        pair = f"{from_ccy}-{to_ccy}"
        if on_date is not None:
            logger.debug(f"Provider ignores requested date {on_date.isoformat()} for {pair}, returning spot rate")

        last_error: Optional[ProviderError] = None
        for attempt in range(1, self.attempts + 1):
            try:
                return self._request_rate(from_ccy, to_ccy)
            except ProviderError as e:
                last_error = e
                if attempt < self.attempts:
                    logger.warning(f"Rate fetch for {pair} failed ({attempt}/{self.attempts}): {e}, retrying")
                    self._sleep(self.retry_delay)

        assert last_error is not None
        last_error.details.update({"pair": pair, "attempts": self.attempts, "reason": last_error.message})
        last_error.message = f"failed after {self.attempts} tries: {last_error.message}"
        last_error.args = (last_error.message,)
        raise last_error

    def _request_rate(self, from_ccy: str, to_ccy: str) -> float:
        """Single upstream call; every failure mode becomes a ``ProviderError``."""
        try:
            r = self._client.get(self._endpoint(from_ccy, to_ccy))
        except httpx.TimeoutException as e:
            raise ProviderUnavailable(f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"http request failed: {e}") from e

        if r.status_code != 200:
            raise ProviderUnavailable(f"api http {r.status_code}: {r.text[:200]}")

        try:
            data: Dict[str, Any] = r.json()
        except ValueError as e:
            raise ProviderUnavailable(f"json parse failed: {e}") from e
        if not isinstance(data, dict):
            raise ProviderUnavailable("unexpected response shape")

        if data.get("result") != "success":
            reason = data.get("error-type") or data.get("result")
            raise ProviderUnavailable(f"api error: {reason}")

        try:
            rate = float(data.get("conversion_rate"))
        except (TypeError, ValueError):
            raise InvalidProviderRate(f"invalid rate: {data.get('conversion_rate')!r}")
        if not rate > 0:
            raise InvalidProviderRate(f"invalid rate: {rate}")
        return rate
