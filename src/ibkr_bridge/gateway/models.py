from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value: Union[str, "OrderSide"]) -> "OrderSide":
        return _parse_enum(cls, value)


class OrderType(str, Enum):
    """Order types, valued by their gateway codes."""

    MARKET = "MKT"
    LIMIT = "LMT"
    STOP = "STP"
    STOP_LIMIT = "STP LMT"

    @classmethod
    def parse(cls, value: Union[str, "OrderType"]) -> "OrderType":
        """Accept a gateway code (``LMT``) or a long name (``LIMIT``)."""
        return _parse_enum(cls, value)

    @property
    def requires_limit_price(self) -> bool:
        return self in (OrderType.LIMIT, OrderType.STOP_LIMIT)

    @property
    def requires_stop_price(self) -> bool:
        return self in (OrderType.STOP, OrderType.STOP_LIMIT)


class TimeInForce(str, Enum):
    DAY = "DAY"
    GOOD_TILL_CANCEL = "GTC"
    IMMEDIATE_OR_CANCEL = "IOC"
    FILL_OR_KILL = "FOK"

    @classmethod
    def parse(cls, value: Union[str, "TimeInForce"]) -> "TimeInForce":
        return _parse_enum(cls, value)


def _parse_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().upper()
    for member in enum_cls:
        if text in (member.value, member.name, member.name.replace("_", " ")):
            return member
    choices = ", ".join(m.value for m in enum_cls)
    raise ValueError(f"Invalid {enum_cls.__name__}: {value!r} (expected one of {choices})")


def _number(value: float) -> Union[int, float]:
    # Gateway accepts fractional values but whole numbers go out as ints
    return int(value) if float(value).is_integer() else value


@dataclass(frozen=True)
class InstrumentRef:
    symbol: str
    contract_id: int


@dataclass(frozen=True)
class OrderRequest:
    """A validated order, ready for submission."""

    account_id: str
    side: OrderSide
    symbol: str
    contract_id: int
    quantity: float
    order_type: OrderType = OrderType.MARKET
    time_in_force: TimeInForce = TimeInForce.DAY
    limit_price: Optional[float] = None
    stop_price: Optional[float] = None

    def to_payload(self) -> dict[str, Any]:
        """Single order entry of the gateway's order-submission body."""
        order: dict[str, Any] = {
            "conid": self.contract_id,
            "orderType": self.order_type.value,
            "side": self.side.value,
            "quantity": _number(self.quantity),
            "tif": self.time_in_force.value,
        }
        if self.order_type.requires_limit_price:
            order["price"] = self.limit_price
        if self.order_type.requires_stop_price:
            order["auxPrice"] = self.stop_price
        return order


@dataclass(frozen=True)
class OrderResult:
    order_id: Optional[str]
    status: str
    order: OrderRequest
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.order_id is not None:
            out["orderId"] = self.order_id
        out.update(
            {
                "status": self.status,
                "symbol": self.order.symbol,
                "side": self.order.side.value,
                "quantity": _number(self.order.quantity),
                "orderType": self.order.order_type.value,
                "timeInForce": self.order.time_in_force.value,
                "conid": self.order.contract_id,
            }
        )
        # Unknown gateway fields pass through and win on collisions
        out.update(self.raw)
        return out


@dataclass(frozen=True)
class HealthStatus:
    status: str  # healthy/unhealthy
    authenticated: bool
    timestamp: str
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"status": self.status}
        if self.status_code is not None:
            out["statusCode"] = self.status_code
        out["timestamp"] = self.timestamp
        out["authenticated"] = self.authenticated
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass(frozen=True)
class PositionsResult:
    positions: list[Any]

    @property
    def count(self) -> int:
        return len(self.positions)

    def to_dict(self) -> dict[str, Any]:
        return {"positions": list(self.positions), "count": self.count}
