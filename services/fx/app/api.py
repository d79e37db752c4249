"""FastAPI router exposing the fx endpoints.

Endpoints are plain ``def`` so Starlette runs each request on its worker
thread pool; upstream calls block only that worker.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .cache import RateCache
from .currencies import normalize_code
from .errors import ErrorCode, ExchangeError, InputError, ProviderError
from .models import ConvertResult, ErrEnvelope, ErrorBody, HealthStatus, OkEnvelope, RateQuote
from .services import ConversionService

router = APIRouter()


def service_dep(request: Request) -> ConversionService:
    return request.app.state.conversion


def cache_dep(request: Request) -> RateCache:
    return request.app.state.rate_cache


def success(data: dict, status_code: int = 200) -> JSONResponse:
    payload = OkEnvelope(data=data)
    return JSONResponse(content=jsonable_encoder(payload), status_code=status_code)


def failure(code: ErrorCode, message: str, *, retriable: bool = False, details: dict | None = None,
            source: str = "fx", status_code: int = 400) -> JSONResponse:
    error = ErrEnvelope(
        error=ErrorBody(code=code, message=message, source=source, retriable=retriable, details=details)
    )
    return JSONResponse(content=jsonable_encoder(error), status_code=status_code)


def exchange_failure(exc: ExchangeError) -> JSONResponse:
    """Map a core error onto the envelope: bad input is 400, upstream trouble is 503."""
    if isinstance(exc, InputError):
        return failure(exc.code, exc.message, details=exc.details or None, status_code=400)
    if isinstance(exc, ProviderError):
        return failure(
            exc.code,
            "exchange rate service temporarily unavailable",
            retriable=True,
            details=exc.details or None,
            source="exchangerate_api",
            status_code=503,
        )
    return failure(ErrorCode.INTERNAL, "internal server error", status_code=500)


@router.get("/health")
def health(request: Request, cache: RateCache = Depends(cache_dep)):
    settings = request.app.state.settings
    status = HealthStatus(version=settings.VERSION)
    status.add_check("service", "ok")
    if not settings.BACKGROUND_REFRESH:
        status.add_check("rate_cache", "disabled")
    else:
        status.add_check("rate_cache", "ok" if cache.is_running else "stopped")

    if not status.is_healthy:
        return failure(
            ErrorCode.INTERNAL,
            "service degraded",
            retriable=True,
            details=status.model_dump(),
            status_code=503,
        )
    return success(status.model_dump())


@router.get("/convert")
def convert(
    from_ccy: str = Query(..., alias="from", min_length=1),
    to_ccy: str = Query(..., alias="to", min_length=1),
    amount: float = Query(...),
    date: Optional[str] = Query(None),
    service: ConversionService = Depends(service_dep),
):
    try:
        converted = service.convert_amount(from_ccy, to_ccy, amount, date)
    except ExchangeError as exc:
        return exchange_failure(exc)

    result = ConvertResult(
        from_ccy=normalize_code(from_ccy),
        to_ccy=normalize_code(to_ccy),
        amount=converted,
        date=date or "latest",
    )
    return success(result.model_dump(by_alias=True))


@router.get("/rate/latest")
def latest_rate(
    from_ccy: str = Query(..., alias="from", min_length=1),
    to_ccy: str = Query(..., alias="to", min_length=1),
    service: ConversionService = Depends(service_dep),
):
    try:
        rate = service.get_latest_rate(from_ccy, to_ccy)
    except ExchangeError as exc:
        return exchange_failure(exc)

    quote = RateQuote(from_ccy=normalize_code(from_ccy), to_ccy=normalize_code(to_ccy), rate=rate)
    return success(quote.model_dump(by_alias=True, exclude_none=True))


@router.get("/rate/historical")
def historical_rate(
    from_ccy: str = Query(..., alias="from", min_length=1),
    to_ccy: str = Query(..., alias="to", min_length=1),
    date: str = Query(..., min_length=1),
    service: ConversionService = Depends(service_dep),
):
    try:
        rate = service.get_historical_rate(from_ccy, to_ccy, date)
    except ExchangeError as exc:
        return exchange_failure(exc)

    src, dst = normalize_code(from_ccy), normalize_code(to_ccy)
    quote = RateQuote(
        from_ccy=src,
        to_ccy=dst,
        rate=rate,
        date=date,
        date_specific=True if src == dst else service.provider_is_date_aware,
    )
    return success(quote.model_dump(by_alias=True))


@router.get("/cache/stats")
def cache_stats(cache: RateCache = Depends(cache_dep)):
    return success(cache.stats())
