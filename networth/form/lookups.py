"""
Asynchronous Lookups

Runs the lookup effects the reducer asks for: ticker search, stock
price, average cost basis and the user's tax settings.

DESIGN DECISION: At most one task runs per lookup field. Dispatching a
new lookup cancels the previous one for that field. Ticker search waits
out a debounce delay before calling the market, so fast typing only
sends the last query.

Lookups are read-only, so transient failures (market unavailable,
storage connection errors) are retried with exponential backoff.
Repository writes are never retried here.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from networth.calculators import average_cost_basis
from networth.config import EngineSettings, get_settings
from networth.form.actions import (
    FetchCostBasis,
    FetchStockPrice,
    LoadTaxSettings,
    LookupEffect,
    SearchTickers,
)
from networth.models.form import LookupField
from networth.services.market import (
    MarketDataError,
    MarketDataInterface,
    MarketDataUnavailableError,
)
from networth.services.storage import (
    ConnectionError,
    PortfolioStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

# (field, generation, value, error) - exactly one of value/error is meaningful
ResultCallback = Callable[[LookupField, int, Any, Optional[Exception]], Awaitable[None]]


class LookupCoordinator:
    """Runs lookup effects and reports results back with their generation."""

    def __init__(
        self,
        market: MarketDataInterface,
        storage: PortfolioStorageInterface,
        on_result: ResultCallback,
        settings: Optional[EngineSettings] = None,
    ):
        self._market = market
        self._storage = storage
        self._on_result = on_result
        self._settings = settings or get_settings().engine
        self._tasks: dict[LookupField, asyncio.Task] = {}

    def dispatch(self, effect: LookupEffect) -> asyncio.Task:
        """Start a lookup, cancelling any older one for the same field."""
        previous = self._tasks.get(effect.field)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.create_task(self._run(effect))
        self._tasks[effect.field] = task
        return task

    def cancel_all(self) -> None:
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._tasks.clear()

    async def drain(self) -> None:
        """Wait until every running lookup has finished or been cancelled."""
        pending = [t for t in self._tasks.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run(self, effect: LookupEffect) -> None:
        try:
            value = await self._fetch(effect)
        except (MarketDataError, StorageError) as e:
            logger.warning(
                "lookup_failed",
                field=effect.field.value,
                generation=effect.generation,
                error=str(e),
            )
            await self._on_result(effect.field, effect.generation, None, e)
            return

        await self._on_result(effect.field, effect.generation, value, None)

    async def _fetch(self, effect: LookupEffect) -> Any:
        settings = self._settings

        if isinstance(effect, SearchTickers):
            await asyncio.sleep(settings.ticker_search_debounce_seconds)
            return await self._with_retry(
                self._market.search_ticker_symbols,
                effect.query,
                region=effect.region,
                limit=settings.ticker_search_limit,
            )

        if isinstance(effect, FetchStockPrice):
            return await self._with_retry(self._market.get_stock_price, effect.ticker)

        if isinstance(effect, FetchCostBasis):
            flows = await self._with_retry(
                self._storage.list_invest_flows_for_asset,
                effect.asset_id,
                limit=settings.cost_basis_history_limit,
            )
            return average_cost_basis(flows, effect.asset_id)

        if isinstance(effect, LoadTaxSettings):
            return await self._with_retry(self._storage.get_user_tax_settings)

        raise TypeError(f"Not a lookup effect: {type(effect).__name__}")

    async def _with_retry(self, call: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.lookup_retry_attempts),
            wait=wait_exponential(
                multiplier=self._settings.lookup_retry_wait_seconds, max=10,
            ),
            retry=retry_if_exception_type((MarketDataUnavailableError, ConnectionError)),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await call(*args, **kwargs)
        return result
