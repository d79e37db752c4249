from .exchangerate_api import ExchangeRateApiClient

__all__ = ["ExchangeRateApiClient"]
