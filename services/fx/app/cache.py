"""
In-memory cache of the latest rate per currency pair, kept fresh by one
background thread.

- Reads share the lock, writes hold it exclusively
- Refresh is a best-effort sweep: a failing pair is logged and skipped, its
  previous value stays in place
- Nothing is persisted; the table starts empty on every boot
"""
from __future__ import annotations

import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .currencies import ExchangeConfig, normalize_code
from .errors import ExchangeError
from .ports import RateProvider

logger = logging.getLogger(__name__)

# how many successful fetches per sweep are logged individually
_LOG_FIRST_SUCCESSES = 3


class ReadWriteLock:
    """Many concurrent readers or a single writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class RateEntry:
    rate: float
    last_updated: datetime


@dataclass
class RefreshSummary:
    """Outcome of one refresh sweep."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    total: int = 0
    succeeded: int = 0
    failed: List[str] = field(default_factory=list)
    aborted: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": list(self.failed),
            "aborted": self.aborted,
        }


def pair_key(from_ccy: str, to_ccy: str) -> str:
    return f"{normalize_code(from_ccy)}-{normalize_code(to_ccy)}"


class RateCache:
    """Latest-rate table plus the refresh loop that keeps it current."""

    def __init__(self, provider: RateProvider, config: Optional[ExchangeConfig] = None) -> None:
        self._provider = provider
        self._config = config or ExchangeConfig()
        self._lock = ReadWriteLock()
        self._entries: Dict[str, RateEntry] = {}

        self._lifecycle = threading.Lock()
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._last_refresh: Optional[RefreshSummary] = None

    # ---------------- table ----------------
    def get_rate(self, from_ccy: str, to_ccy: str) -> Tuple[float, bool]:
        key = pair_key(from_ccy, to_ccy)
        with self._lock.read():
            entry = self._entries.get(key)
        if entry is None:
            return 0.0, False
        return entry.rate, True

    def get_entry(self, from_ccy: str, to_ccy: str) -> Optional[RateEntry]:
        with self._lock.read():
            return self._entries.get(pair_key(from_ccy, to_ccy))

    def set_rate(self, from_ccy: str, to_ccy: str, rate: float) -> None:
        """Store ``rate`` for the pair; raises ``ValueError`` for non-positive rates or same-currency pairs."""
        rate = float(rate)
        if not (math.isfinite(rate) and rate > 0):
            raise ValueError(f"rate must be a positive number, got {rate}")
        if normalize_code(from_ccy) == normalize_code(to_ccy):
            raise ValueError(f"same-currency pair {normalize_code(from_ccy)} is never cached")
        entry = RateEntry(rate=rate, last_updated=datetime.now(timezone.utc))
        key = pair_key(from_ccy, to_ccy)
        with self._lock.write():
            self._entries[key] = entry

    def stats(self) -> Dict[str, Any]:
        with self._lock.read():
            updates = [e.last_updated for e in self._entries.values()]
        out: Dict[str, Any] = {"total_pairs": len(updates)}
        if updates:
            out["oldest_update"] = min(updates).isoformat()
            out["newest_update"] = max(updates).isoformat()
        out["refresh_running"] = self.is_running
        last = self._last_refresh
        out["last_refresh"] = last.as_dict() if last else None
        return out

    # ---------------- refresh ----------------
    def refresh_all(self, stop_event: Optional[threading.Event] = None) -> RefreshSummary:
        """Fetch every supported pair once; failures never abort the sweep."""
        currencies = self._config.currencies()
        summary = RefreshSummary(started_at=datetime.now(timezone.utc))
        logger.info(f"Starting exchange rate refresh for {len(currencies)} currencies")

        for from_ccy, to_ccy in self._config.pairs():
            if stop_event is not None and stop_event.is_set():
                summary.aborted = True
                logger.info("Refresh interrupted by shutdown")
                break

            summary.total += 1
            pair = f"{from_ccy}-{to_ccy}"
            try:
                rate = self._provider.fetch_rate(from_ccy, to_ccy)
            except ExchangeError as e:
                logger.warning(f"Failed to fetch rate {pair}: {e}")
                summary.failed.append(pair)
                continue
            except Exception as e:
                logger.exception(f"Unexpected error fetching rate {pair}: {e}")
                summary.failed.append(pair)
                continue

            try:
                self.set_rate(from_ccy, to_ccy, rate)
            except ValueError as e:
                logger.warning(f"Rejected rate {pair}: {e}")
                summary.failed.append(pair)
                continue
            summary.succeeded += 1
            if summary.succeeded <= _LOG_FIRST_SUCCESSES:
                logger.debug(f"Fetched rate {pair}: {rate:.6f}")

        summary.finished_at = datetime.now(timezone.utc)
        self._last_refresh = summary
        if summary.failed:
            logger.warning(
                f"Exchange rate refresh completed: {summary.succeeded}/{summary.total} pairs updated. "
                f"Failed pairs: {summary.failed}"
            )
        else:
            logger.info(f"Exchange rate refresh completed: {summary.succeeded}/{summary.total} pairs updated")
        return summary

    @property
    def is_running(self) -> bool:
        worker = self._worker
        return worker is not None and worker.is_alive()

    def start_background_refresh(self) -> None:
        """Start the refresh thread; the first sweep runs right away on that thread."""
        with self._lifecycle:
            if self.is_running:
                logger.warning("Background refresh already running")
                return
            self._stop_event = threading.Event()
            self._worker = threading.Thread(
                target=self._refresh_loop,
                args=(self._stop_event,),
                name="rate-cache-refresh",
                daemon=True,
            )
            self._worker.start()
        logger.info(f"Background rate refresh started (interval {self._config.refresh_interval_sec}s)")

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the refresh thread and wait for it to exit.

        Returns False when the thread was still busy (e.g. inside a slow
        upstream call) after ``timeout`` seconds.
        """
        with self._lifecycle:
            worker = self._worker
            self._stop_event.set()
            if worker is None:
                return True
            deadline = self._config.shutdown_timeout_sec if timeout is None else timeout
            worker.join(deadline)
            if worker.is_alive():
                logger.warning(f"Refresh thread did not exit within {deadline}s")
                return False
            self._worker = None
        logger.info("Background rate refresh stopped")
        return True

    def _refresh_loop(self, stop_event: threading.Event) -> None:
        interval = self._config.refresh_interval_sec
        while not stop_event.is_set():
            try:
                self.refresh_all(stop_event)
            except Exception:
                logger.exception("Refresh sweep crashed")
            if stop_event.wait(interval):
                break
