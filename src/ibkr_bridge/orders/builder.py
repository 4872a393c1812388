from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Union

from ibkr_bridge.core.logger import get_logger, log_order_event
from ibkr_bridge.gateway.models import OrderRequest, OrderSide, OrderType, TimeInForce
from ibkr_bridge.orders.resolver import InstrumentResolver

log = get_logger("orders.builder")

LIMIT_PRICE_REQUIRED = "Limit price is required for limit orders"
STOP_PRICE_REQUIRED = "Stop price is required for stop orders"


class OrderValidationError(ValueError):
    """Raised when order parameters are invalid for the chosen order type."""
    pass


def _positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


@dataclass
class OrderBuilder:
    """Build validated orders for one account.

    All validation happens before the symbol is resolved, so an invalid
    order never reaches the gateway. The builder does not submit orders.

    Usage:
        builder = OrderBuilder(resolver=InstrumentResolver(client), account_id="DU123")
        order = builder.build(OrderSide.BUY, "AAPL", 10, OrderType.LIMIT, limit_price=180.0)
        client.submit_order(order)
    """

    resolver: InstrumentResolver
    account_id: str

    def build(
        self,
        side: Union[OrderSide, str],
        symbol: str,
        quantity: float,
        order_type: Union[OrderType, str] = OrderType.MARKET,
        limit_price: Optional[float] = None,
        stop_price: Optional[float] = None,
        time_in_force: Union[TimeInForce, str] = TimeInForce.DAY,
    ) -> OrderRequest:
        """Validate order fields, resolve the symbol and build the order.

        Raises:
            OrderValidationError: If a field is missing or invalid
            ContractNotFoundError: If the symbol cannot be resolved
        """
        try:
            side = OrderSide.parse(side)
            order_type = OrderType.parse(order_type)
            time_in_force = TimeInForce.parse(time_in_force)
        except ValueError as e:
            raise OrderValidationError(str(e)) from e

        if order_type.requires_limit_price and not _positive(limit_price):
            raise OrderValidationError(LIMIT_PRICE_REQUIRED)

        if order_type.requires_stop_price and not _positive(stop_price):
            raise OrderValidationError(STOP_PRICE_REQUIRED)

        symbol = (symbol or "").strip()
        if not symbol:
            raise OrderValidationError("Symbol is required")

        if not _positive(quantity):
            raise OrderValidationError(f"Invalid quantity: {quantity}")

        conid = self.resolver.resolve(symbol)

        order = OrderRequest(
            account_id=self.account_id,
            side=side,
            symbol=symbol,
            contract_id=conid,
            quantity=float(quantity),
            order_type=order_type,
            time_in_force=time_in_force,
            limit_price=limit_price if order_type.requires_limit_price else None,
            stop_price=stop_price if order_type.requires_stop_price else None,
        )
        log_order_event(
            log,
            "order_built",
            symbol,
            side=side.value,
            quantity=order.quantity,
            order_type=order_type.value,
            conid=conid,
        )
        return order
