"""Currency codes and the core exchange configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterator, List, Tuple

DEFAULT_CURRENCIES: Tuple[str, ...] = ("USD", "INR", "EUR", "JPY", "GBP")
DEFAULT_MAX_HISTORICAL_DAYS = 90
DEFAULT_REFRESH_INTERVAL_SEC = 3600.0


def normalize_code(code: object) -> str:
    """Uppercase, whitespace-trimmed form of a currency code."""
    if code is None:
        return ""
    return str(code).strip().upper()


def parse_currency_list(raw: str) -> List[str]:
    """Parse a CSV list of codes, dropping blanks and duplicates but keeping order."""
    out: List[str] = []
    for part in (raw or "").split(","):
        code = normalize_code(part)
        if code and code not in out:
            out.append(code)
    return out


@dataclass(frozen=True)
class ExchangeConfig:
    """Values the cache and the conversion service read at construction time."""

    supported_currencies: Tuple[str, ...] = DEFAULT_CURRENCIES
    max_historical_days: int = DEFAULT_MAX_HISTORICAL_DAYS
    refresh_interval_sec: float = DEFAULT_REFRESH_INTERVAL_SEC
    shutdown_timeout_sec: float = 15.0
    _allowed: FrozenSet[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        codes = tuple(normalize_code(c) for c in self.supported_currencies if normalize_code(c))
        object.__setattr__(self, "supported_currencies", codes)
        object.__setattr__(self, "_allowed", frozenset(codes))

    def is_supported(self, code: object) -> bool:
        clean = normalize_code(code)
        if not clean:
            return False
        return clean in self._allowed

    def currencies(self) -> List[str]:
        # copy so callers cannot mutate the allow-list
        return list(self.supported_currencies)

    def pairs(self) -> Iterator[Tuple[str, str]]:
        """Every ordered (from, to) pair with from != to."""
        for i, from_ccy in enumerate(self.supported_currencies):
            for j, to_ccy in enumerate(self.supported_currencies):
                if i == j:
                    continue
                yield from_ccy, to_ccy
