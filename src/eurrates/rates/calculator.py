"""EUR conversion rate arithmetic.

For each pair the rate is the amount of crypto one EUR buys:

    rate = EURUSDT / <CRYPTO>USDT

Both legs are USDT-quoted, so USDT cancels out. The calculator is pure:
no I/O and no state beyond its logger.
"""

from collections.abc import Mapping

import structlog

from eurrates.exceptions import ValidationError
from eurrates.logging import get_logger
from eurrates.models import BASE_CURRENCY_SYMBOL, RATE_QUANTUM, CurrencyPair, quantize_rate


class EurRateCalculator:
    """Computes EUR rates for every supported pair from a price snapshot."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or get_logger(__name__)

    def calculate_eur_rates(self, prices: Mapping[str, float]) -> dict[CurrencyPair, float]:
        """Convert USDT-quoted prices into EUR rates.

        Pairs whose quote price is missing or not positive, or whose rate
        rounds to zero at the stored precision, are skipped and logged; the
        remaining pairs are still returned.

        Raises:
            ValidationError: The base currency price is missing or not
                positive, or no pair could be computed at all.
        """
        base_price = self._validate_base_price(prices)
        rates: dict[CurrencyPair, float] = {}

        for pair in CurrencyPair:
            quote_symbol = pair.quote_symbol

            if quote_symbol not in prices:
                self._logger.warning(
                    "missing_price_for_pair",
                    symbol=quote_symbol,
                    pair=pair.value,
                )
                continue

            quote_price = prices[quote_symbol]
            if quote_price <= 0:
                # the fetcher already filters these out
                self._logger.error(
                    "invalid_quote_price",
                    symbol=quote_symbol,
                    pair=pair.value,
                    price=quote_price,
                )
                continue

            rate = base_price / quote_price
            if quantize_rate(rate) <= 0:
                self._logger.warning(
                    "rate_below_precision",
                    pair=pair.value,
                    eur_crypto_rate=rate,
                    quantum=str(RATE_QUANTUM),
                )
                continue

            rates[pair] = rate
            self._logger.debug(
                "rate_calculated",
                pair=pair.value,
                base_currency_rate=base_price,
                crypto_usdt_rate=quote_price,
                eur_crypto_rate=rates[pair],
            )

        if not rates:
            raise ValidationError(
                "No valid EUR exchange rates could be calculated",
                supported_pairs=CurrencyPair.values(),
            )

        self._logger.info(
            "eur_rates_calculated",
            pairs_calculated=len(rates),
            base_currency=BASE_CURRENCY_SYMBOL,
        )
        return rates

    @staticmethod
    def _validate_base_price(prices: Mapping[str, float]) -> float:
        if BASE_CURRENCY_SYMBOL not in prices:
            raise ValidationError(
                f"Base currency price ({BASE_CURRENCY_SYMBOL}) not available for conversion"
            )
        base_price = prices[BASE_CURRENCY_SYMBOL]
        if base_price <= 0:
            raise ValidationError(
                f"Invalid base currency rate ({BASE_CURRENCY_SYMBOL}) for conversion"
            )
        return base_price
