from datetime import datetime, timedelta, timezone

from starlette.testclient import TestClient


def _today(delta_days=0):
    return (datetime.now(timezone.utc) + timedelta(days=delta_days)).date().isoformat()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    js = r.json()
    assert js["ok"] is True
    assert js["data"]["status"] == "ok"
    assert js["data"]["version"] == "1.0.0"
    assert js["data"]["checks"] == {"service": "ok", "rate_cache": "disabled"}


def test_health_with_background_refresh(settings, provider):
    from app.main import create_app

    settings.BACKGROUND_REFRESH = True
    app = create_app(settings, provider=provider)
    with TestClient(app) as c:
        r = c.get("/health")
        assert r.status_code == 200
        assert r.json()["data"]["checks"]["rate_cache"] == "ok"
    # lifespan shutdown stopped the refresher
    assert not app.state.rate_cache.is_running


def test_convert_example(client, provider):
    r = client.get("/convert", params={"from": "usd", "to": " EUR ", "amount": 100})
    assert r.status_code == 200
    js = r.json()
    assert js["ok"] is True
    assert js["data"] == {"from": "USD", "to": "EUR", "amount": 86.0, "date": "latest"}
    assert provider.call_count == 1

    # second call served from cache
    client.get("/convert", params={"from": "USD", "to": "EUR", "amount": 1})
    assert provider.call_count == 1


def test_convert_same_currency(client, provider):
    r = client.get("/convert", params={"from": "GBP", "to": "gbp", "amount": 0})
    assert r.status_code == 200
    assert r.json()["data"]["amount"] == 0
    assert provider.call_count == 0


def test_convert_negative_amount(client):
    r = client.get("/convert", params={"from": "USD", "to": "EUR", "amount": -1})
    assert r.status_code == 400
    js = r.json()
    assert js["ok"] is False
    assert js["error"]["code"] == "INVALID_AMOUNT"
    assert js["error"]["retriable"] is False


def test_convert_overflow_is_invalid_amount(client):
    r = client.get("/convert", params={"from": "EUR", "to": "USD", "amount": 1.7e308})
    assert r.status_code == 400
    js = r.json()
    assert js["ok"] is False
    assert js["error"]["code"] == "INVALID_AMOUNT"
    assert "out of range" in js["error"]["message"]


def test_convert_unsupported_currency(client):
    r = client.get("/convert", params={"from": "USD", "to": "JPY", "amount": 5})
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "UNSUPPORTED_CURRENCY"
    assert err["details"] == {"currency": "JPY"}


def test_convert_with_date_bypasses_cache(client, provider):
    params = {"from": "USD", "to": "EUR", "amount": 2, "date": _today(-1)}
    for _ in range(2):
        r = client.get("/convert", params=params)
        assert r.status_code == 200
        assert r.json()["data"]["date"] == params["date"]
    assert provider.call_count == 2
    stats = client.get("/cache/stats").json()["data"]
    assert stats["total_pairs"] == 0


def test_missing_and_malformed_params_are_bad_input(client):
    r = client.get("/convert", params={"to": "EUR", "amount": 1})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "BAD_INPUT"
    assert "from" in r.json()["error"]["details"]["fields"]

    r = client.get("/convert", params={"from": "USD", "to": "EUR", "amount": "ten"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "BAD_INPUT"

    r = client.get("/rate/latest", params={"from": "", "to": "EUR"})
    assert r.status_code == 400

    r = client.get("/rate/historical", params={"from": "USD", "to": "EUR"})
    assert r.status_code == 400


def test_latest_rate(client):
    r = client.get("/rate/latest", params={"from": "eur", "to": "usd"})
    assert r.status_code == 200
    assert r.json()["data"] == {"from": "EUR", "to": "USD", "rate": 1.16, "date": "latest"}


def test_latest_rate_provider_down(settings, make_provider):
    from app.main import create_app

    provider = make_provider(rates={}, failing={("USD", "EUR")})
    with TestClient(create_app(settings, provider=provider)) as c:
        r = c.get("/rate/latest", params={"from": "USD", "to": "EUR"})
    assert r.status_code == 503
    err = r.json()["error"]
    assert err["code"] == "PROVIDER_UNAVAILABLE"
    assert err["retriable"] is True
    assert err["message"] == "exchange rate service temporarily unavailable"


def test_historical_rate(client, provider):
    when = _today(-5)
    for _ in range(2):
        r = client.get("/rate/historical", params={"from": "USD", "to": "GBP", "date": when})
        assert r.status_code == 200
    assert r.json()["data"] == {"from": "USD", "to": "GBP", "rate": 0.75, "date": when, "date_specific": False}
    assert provider.call_count == 2


def test_historical_rate_errors(client):
    cases = {
        "2025-13-40": "INVALID_DATE_FORMAT",
        "not-a-date": "INVALID_DATE_FORMAT",
        _today(2): "FUTURE_DATE",
        _today(-120): "DATE_OUT_OF_RANGE",
    }
    for value, code in cases.items():
        r = client.get("/rate/historical", params={"from": "USD", "to": "EUR", "date": value})
        assert r.status_code == 400, value
        assert r.json()["error"]["code"] == code


def test_historical_same_currency(client, provider):
    r = client.get("/rate/historical", params={"from": "EUR", "to": "EUR", "date": _today(-1)})
    assert r.status_code == 200
    assert r.json()["data"]["rate"] == 1.0
    assert r.json()["data"]["date_specific"] is True
    assert provider.call_count == 0


def test_cache_stats(client):
    client.get("/rate/latest", params={"from": "USD", "to": "EUR"})
    r = client.get("/cache/stats")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["total_pairs"] == 1
    assert data["refresh_running"] is False
    assert "oldest_update" in data and "newest_update" in data
