"""
Cost basis, realized P/L and dividend withholding.

A cost basis of None means "unknown" (no shares were ever bought into
the asset). That is different from a cost basis of 0.
"""

from typing import Iterable, NamedTuple, Optional

from networth.models.portfolio import Flow


INVEST_CATEGORY = "invest"
DEFAULT_WITHHOLDING_RATE = 0.30


def _shares_of(flow: Flow) -> float:
    value = flow.metadata.get("shares")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0.0


def average_cost_basis(invest_flows: Iterable[Flow], asset_id: str) -> Optional[float]:
    """
    Average price paid per share for an asset.

    Only invest flows into `asset_id` that carry a positive share count
    contribute: sum(amount) / sum(shares).
    """
    total_amount = 0.0
    total_shares = 0.0

    for flow in invest_flows:
        if flow.category != INVEST_CATEGORY or flow.to_asset_id != asset_id:
            continue
        shares = _shares_of(flow)
        if shares > 0:
            total_amount += flow.amount
            total_shares += shares

    if total_shares == 0:
        return None
    return total_amount / total_shares


def realized_pnl(
    sale_amount: float,
    avg_cost: Optional[float],
    shares_sold: float,
) -> Optional[float]:
    """Profit or loss of a sale: sale_amount - avg_cost * shares_sold."""
    if avg_cost is None:
        return None
    return sale_amount - avg_cost * shares_sold


class DividendSplit(NamedTuple):
    gross: float
    tax_withheld: float
    net: float
    rate: float


def dividend_withholding(
    gross_amount: float,
    rate: float = DEFAULT_WITHHOLDING_RATE,
) -> DividendSplit:
    """Split a gross dividend into tax withheld and the net amount received."""
    tax = gross_amount * rate
    return DividendSplit(gross_amount, tax, gross_amount - tax, rate)
