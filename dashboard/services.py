"""
Dashboard service layer.

Translates ListingService results into API schemas.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from lifecycle.naming import normalize_symbol_name
from lifecycle.runtime import ListingRuntime
from lifecycle.transitions import TransitionOutcome, sell_deadline

from dashboard.schemas import (
    NotSoldEntry,
    OrderActionResponse,
    OrderView,
    SymbolView,
)


class DashboardService:
    def __init__(self, runtime: ListingRuntime):
        self.runtime = runtime
        self.listing = runtime.service

    async def create_symbol(self, name: str, listing_date: str) -> SymbolView:
        symbol = await self.listing.create_symbol(name, listing_date)
        return SymbolView.model_validate(symbol)

    async def get_symbol(self, name: str) -> Dict[str, Any]:
        pair = normalize_symbol_name(name, self.listing.context.config.quote_asset)
        state = await self.listing.symbol_state(pair)
        symbol = await self.listing.context.store.get_symbol_by_name(pair)
        return {"data": SymbolView.model_validate(symbol), "state": state.value}

    async def list_symbols(
        self,
        is_listed: Optional[bool] = None,
        is_finished: Optional[bool] = None,
    ) -> List[SymbolView]:
        symbols = await self.listing.list_symbols(is_listed=is_listed, is_finished=is_finished)
        return [SymbolView.model_validate(s) for s in symbols]

    async def list_not_sold(self) -> List[NotSoldEntry]:
        ctx = self.listing.context
        return [
            NotSoldEntry(
                symbol=SymbolView.model_validate(order.symbol),
                order=OrderView.model_validate(order),
                sell_due_at=sell_deadline(ctx, order),
            )
            for order in await self.listing.list_not_sold()
        ]

    async def get_statistics(self) -> List[Dict[str, Any]]:
        return await self.listing.get_statistics()

    async def restart_timers(self) -> List[str]:
        return [str(key) for key in await self.listing.restart_all()]

    async def buy(self, symbol_id: int, quote_order_qty: Optional[Decimal]) -> OrderActionResponse:
        return self._order_action(await self.listing.buy(symbol_id, quote_order_qty))

    async def sell(self, order_pk: int) -> OrderActionResponse:
        return self._order_action(await self.listing.sell(order_pk))

    async def health(self) -> Dict[str, Any]:
        return await self.runtime.health()

    @staticmethod
    def _order_action(outcome: TransitionOutcome) -> OrderActionResponse:
        return OrderActionResponse(
            success=outcome.succeeded,
            message=outcome.detail or None,
            outcome=outcome.kind.value,
            symbol=outcome.symbol_name,
            order=OrderView.model_validate(outcome.order) if outcome.order else None,
        )
