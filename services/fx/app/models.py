"""Pydantic models for the fx HTTP surface."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorCode


def _now() -> datetime:
    return datetime.now(timezone.utc)


# Common envelope
class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    source: str = "fx"
    retriable: bool = False
    details: Optional[Dict[str, Any]] = None


class OkEnvelope(BaseModel):
    ok: bool = True
    data: Dict[str, Any]
    ts: datetime = Field(default_factory=_now)


class ErrEnvelope(BaseModel):
    ok: bool = False
    error: ErrorBody
    ts: datetime = Field(default_factory=_now)


# Specific outputs
class ConvertResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_ccy: str = Field(alias="from")
    to_ccy: str = Field(alias="to")
    amount: float
    date: str = "latest"


class RateQuote(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_ccy: str = Field(alias="from")
    to_ccy: str = Field(alias="to")
    rate: float
    date: str = "latest"
    # False when the provider served a spot rate for a dated request
    date_specific: Optional[bool] = None


class HealthStatus(BaseModel):
    status: str = "ok"
    version: str
    checks: Dict[str, str] = Field(default_factory=dict)

    def add_check(self, name: str, status: str) -> None:
        self.checks[name] = status
        if status not in ("ok", "disabled") and self.status == "ok":
            self.status = "degraded"

    @property
    def is_healthy(self) -> bool:
        return self.status == "ok"
