"""EUR rate computation and the update/query service built on it."""

from eurrates.rates.calculator import EurRateCalculator
from eurrates.rates.service import ExchangeRateService

__all__ = ["EurRateCalculator", "ExchangeRateService"]
