from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ibkr_bridge.gateway.models import OrderType, TimeInForce
from ibkr_bridge.orders.builder import OrderValidationError


class OrderParams(BaseModel):
    """Order fields of one batch item, parsed once at the boundary.

    Accepts the workflow host's camelCase keys as well as snake_case.
    Defaults mirror the host's form: 1 share, market order, day order.
    Prices of 0 count as absent.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    symbol: str = ""
    quantity: float = Field(1.0, validation_alias=AliasChoices("quantity", "qty"))
    order_type: OrderType = Field(
        OrderType.MARKET, validation_alias=AliasChoices("orderType", "order_type")
    )
    limit_price: Optional[float] = Field(
        None, validation_alias=AliasChoices("limitPrice", "limit_price")
    )
    stop_price: Optional[float] = Field(
        None, validation_alias=AliasChoices("stopPrice", "stop_price")
    )
    time_in_force: TimeInForce = Field(
        TimeInForce.DAY, validation_alias=AliasChoices("timeInForce", "time_in_force", "tif")
    )

    @field_validator("symbol", mode="before")
    @classmethod
    def clean_symbol(cls, v: Any) -> str:
        return "" if v is None else str(v).strip().upper()

    @field_validator("order_type", mode="before")
    @classmethod
    def parse_order_type(cls, v: Any) -> OrderType:
        return OrderType.MARKET if v in (None, "") else OrderType.parse(v)

    @field_validator("time_in_force", mode="before")
    @classmethod
    def parse_time_in_force(cls, v: Any) -> TimeInForce:
        return TimeInForce.DAY if v in (None, "") else TimeInForce.parse(v)

    @field_validator("limit_price", "stop_price", mode="before")
    @classmethod
    def empty_price_is_absent(cls, v: Any) -> Any:
        return None if v in (None, "") else v

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "OrderParams":
        """Parse a loose item mapping.

        Raises:
            OrderValidationError: If a field has the wrong type or value
        """
        try:
            return cls.model_validate(dict(item))
        except ValidationError as e:
            raise OrderValidationError(_describe(e)) from e


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)
