from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union

from ibkr_bridge.core.logger import get_logger, log_error_with_context, set_correlation_id
from ibkr_bridge.gateway.client import GatewayClient, error_message
from ibkr_bridge.gateway.models import OrderSide
from ibkr_bridge.orders import InstrumentResolver, OrderBuilder, OrderParams

log = get_logger("batch")


class UnknownOperationError(ValueError):
    """Raised for an operation name outside the supported set. Always fatal."""
    pass


class Operation(str, Enum):
    HEALTH_CHECK = "healthCheck"
    LIST_POSITIONS = "listPositions"
    BUY_STOCK = "buyStock"
    SELL_STOCK = "sellStock"

    @classmethod
    def parse(cls, value: Union[str, "Operation", None]) -> "Operation":
        if isinstance(value, cls):
            return value
        for member in cls:
            if value == member.value:
                return member
        raise UnknownOperationError(f"Unknown operation: {value}")

    @property
    def side(self) -> Optional[OrderSide]:
        """Order side for order operations, None otherwise."""
        if self is Operation.BUY_STOCK:
            return OrderSide.BUY
        if self is Operation.SELL_STOCK:
            return OrderSide.SELL
        return None


class ItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ItemResult:
    """Outcome of one batch item, tagged with the item's input position."""

    paired_item: int
    status: ItemStatus
    json: Any = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is ItemStatus.SUCCEEDED

    @property
    def error(self) -> Optional[str]:
        if self.ok or not isinstance(self.json, dict):
            return None
        return self.json.get("error")

    @classmethod
    def success(cls, index: int, payload: Any) -> "ItemResult":
        return cls(paired_item=index, status=ItemStatus.SUCCEEDED, json=payload)

    @classmethod
    def failure(cls, index: int, error: BaseException) -> "ItemResult":
        return cls(
            paired_item=index,
            status=ItemStatus.FAILED,
            json={"error": error_message(error)},
        )

    def to_dict(self) -> dict[str, Any]:
        return {"json": self.json, "pairedItem": {"item": self.paired_item}}


def _as_json(value: Any) -> Any:
    return value.to_dict() if hasattr(value, "to_dict") else value


@dataclass
class BatchRunner:
    """Apply one gateway operation per input item, strictly in order.

    Items are processed one at a time; each item builds its own order and
    resolves its own symbol. With ``continue_on_fail`` a failing item is
    recorded as ``{"error": message}`` at its position and the batch goes
    on; without it the first failure is re-raised and later items are never
    dispatched. Unknown operations are always re-raised.

    Usage:
        runner = BatchRunner(client=client, account_id="DU123", continue_on_fail=True)
        results = runner.run([{"operation": "buyStock", "symbol": "AAPL", "quantity": 10}])
    """

    client: GatewayClient
    account_id: str = ""
    continue_on_fail: bool = False
    default_operation: Optional[Operation] = None

    def __post_init__(self) -> None:
        self.resolver = InstrumentResolver(client=self.client)
        self.builder = OrderBuilder(resolver=self.resolver, account_id=self.account_id)

    def operation_for(self, item: Mapping[str, Any]) -> Operation:
        name = item.get("operation", item.get("op"))
        if name is None:
            if self.default_operation is None:
                raise UnknownOperationError("Unknown operation: None")
            return self.default_operation
        return Operation.parse(name)

    def run(self, items: Sequence[Mapping[str, Any]]) -> list[ItemResult]:
        """Process every item and return one result per processed item.

        Raises:
            UnknownOperationError: On an unsupported operation name
            Exception: The first item failure, unless continue_on_fail is set
        """
        cid = set_correlation_id()
        log.info(
            f"Batch {cid}: {len(items)} item(s), continue_on_fail={self.continue_on_fail}"
        )

        results: list[ItemResult] = []
        for index, item in enumerate(items):
            operation = self.operation_for(item)
            log.debug(f"Item {index}: dispatching {operation.value}")
            try:
                payload = self.execute(operation, item)
            except UnknownOperationError:
                raise
            except Exception as e:
                log_error_with_context(
                    log,
                    f"Item {index} ({operation.value}) failed",
                    e,
                    item_index=index,
                    operation=operation.value,
                )
                if not self.continue_on_fail:
                    raise
                results.append(ItemResult.failure(index, e))
                continue
            results.append(ItemResult.success(index, payload))

        failed = sum(1 for r in results if not r.ok)
        log.info(f"Batch {cid} done: {len(results) - failed} succeeded, {failed} failed")
        return results

    def execute(self, operation: Operation, item: Mapping[str, Any]) -> Any:
        """Run one operation for one item and return its JSON payload."""
        if operation is Operation.HEALTH_CHECK:
            return self.client.check_health().to_dict()

        if operation is Operation.LIST_POSITIONS:
            self._require_account()
            return _as_json(self.client.list_positions(self.account_id))

        if operation.side is not None:
            self._require_account()
            params = OrderParams.from_item(item)
            order = self.builder.build(
                side=operation.side,
                symbol=params.symbol,
                quantity=params.quantity,
                order_type=params.order_type,
                limit_price=params.limit_price,
                stop_price=params.stop_price,
                time_in_force=params.time_in_force,
            )
            return self.client.submit_order(order).to_dict()

        raise UnknownOperationError(f"Unknown operation: {operation.value}")

    def _require_account(self) -> None:
        if not self.account_id:
            raise ValueError("IBKR_ACCOUNT_ID must be set")
