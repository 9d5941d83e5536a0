"""
Currency Conversion

Every currency has a rate relative to one reference unit (rate = units
of that currency per 1 reference unit). Converting is
amount / rate[source] * rate[target].

DESIGN DECISION: A missing rate is an error for anything that gets
stored. Display code may fall back to the unconverted amount, but only
through convert_for_display(), which marks the result as degraded.
"""

import math
from typing import Iterable, Mapping, NamedTuple, Union

import structlog

from networth.models.portfolio import Currency


logger = structlog.get_logger(__name__)


class MissingRateError(LookupError):
    """No usable rate for a currency."""

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"No conversion rate for currency: {currency}")


def normalize_currency(code: str) -> str:
    """Strip, upper-case and check a 3-letter ISO code."""
    normalized = (code or "").strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError(f"Invalid currency code: {code!r}")
    return normalized


class RateTable:
    """Read-only rates keyed by normalized currency code."""

    def __init__(self, rates: Mapping[str, float]):
        self._rates = {normalize_currency(code): float(rate) for code, rate in rates.items()}

    @classmethod
    def from_currencies(cls, currencies: Iterable[Currency]) -> "RateTable":
        return cls({c.code: c.rate for c in currencies})

    def get_rate(self, currency: str) -> float:
        """
        Rate for one currency.

        Raises:
            MissingRateError: If the currency is unknown or its rate is unusable
        """
        code = normalize_currency(currency)
        rate = self._rates.get(code)
        if rate is None or not math.isfinite(rate) or rate <= 0:
            raise MissingRateError(code)
        return rate

    def has_rate(self, currency: str) -> bool:
        try:
            self.get_rate(currency)
        except (MissingRateError, ValueError):
            return False
        return True

    @property
    def codes(self) -> list[str]:
        return sorted(self._rates)

    def __len__(self) -> int:
        return len(self._rates)


RatesLike = Union[RateTable, Mapping[str, float]]


def _as_table(rates: RatesLike) -> RateTable:
    return rates if isinstance(rates, RateTable) else RateTable(rates)


def convert(amount: float, source: str, target: str, rates: RatesLike) -> float:
    """
    Convert an amount between two currencies.

    Same currency returns the amount unchanged, without needing a rate.

    Raises:
        MissingRateError: If either currency has no usable rate
        ValueError: If a currency code is malformed
    """
    source_code = normalize_currency(source)
    target_code = normalize_currency(target)
    if source_code == target_code:
        return amount

    table = _as_table(rates)
    return amount / table.get_rate(source_code) * table.get_rate(target_code)


class DisplayAmount(NamedTuple):
    value: float
    currency: str
    degraded: bool = False


def convert_for_display(
    amount: float,
    source: str,
    target: str,
    rates: RatesLike,
) -> DisplayAmount:
    """
    Convert for display only.

    When a rate is missing the unconverted amount is returned in the
    source currency with degraded=True. Never store a degraded result.
    """
    try:
        return DisplayAmount(convert(amount, source, target, rates), normalize_currency(target))
    except MissingRateError as e:
        logger.warning(
            "conversion_degraded",
            source=source,
            target=target,
            missing=e.currency,
            amount=amount,
        )
        return DisplayAmount(amount, normalize_currency(source), degraded=True)
