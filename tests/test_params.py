"""Tests for OrderParams boundary parsing."""
import pytest

from ibkr_bridge.gateway.models import OrderType, TimeInForce
from ibkr_bridge.orders.builder import OrderValidationError
from ibkr_bridge.orders.params import OrderParams


class TestOrderParams:
    """Tests for parsing loose item parameters."""

    def test_defaults(self):
        """Test the defaults used when the item only names a symbol."""
        params = OrderParams.from_item({"symbol": "aapl"})

        assert params.symbol == "AAPL"
        assert params.quantity == 1.0
        assert params.order_type is OrderType.MARKET
        assert params.time_in_force is TimeInForce.DAY
        assert params.limit_price is None
        assert params.stop_price is None

    def test_camel_case_keys(self):
        """Test the workflow host's camelCase parameter names."""
        params = OrderParams.from_item(
            {
                "symbol": "MSFT",
                "quantity": "5",
                "orderType": "LMT",
                "limitPrice": 410.25,
                "stopPrice": 0,
                "timeInForce": "IOC",
            }
        )

        assert params.quantity == 5.0
        assert params.order_type is OrderType.LIMIT
        assert params.limit_price == 410.25
        assert params.stop_price == 0
        assert params.time_in_force is TimeInForce.IMMEDIATE_OR_CANCEL

    def test_snake_case_and_short_keys(self):
        """Test snake_case names and the qty/tif short forms."""
        params = OrderParams.from_item(
            {"symbol": "MSFT", "qty": 3, "order_type": "stop limit", "stop_price": 9, "limit_price": 10, "tif": "gtc"}
        )

        assert params.quantity == 3.0
        assert params.order_type is OrderType.STOP_LIMIT
        assert params.time_in_force is TimeInForce.GOOD_TILL_CANCEL

    def test_blank_values_use_defaults(self):
        """Test that empty strings fall back to defaults or absence."""
        params = OrderParams.from_item(
            {"symbol": "AAPL", "orderType": "", "timeInForce": None, "limitPrice": ""}
        )

        assert params.order_type is OrderType.MARKET
        assert params.time_in_force is TimeInForce.DAY
        assert params.limit_price is None

    def test_unknown_keys_ignored(self):
        """Test that unrelated item keys are ignored."""
        params = OrderParams.from_item({"operation": "buyStock", "symbol": "AAPL", "note": "x"})
        assert params.symbol == "AAPL"

    def test_bad_order_type(self):
        """Test that an unknown order type raises OrderValidationError."""
        with pytest.raises(OrderValidationError, match="Invalid OrderType"):
            OrderParams.from_item({"symbol": "AAPL", "orderType": "TRAIL"})

    def test_bad_quantity(self):
        """Test that a non-numeric quantity raises OrderValidationError."""
        with pytest.raises(OrderValidationError, match="valid number"):
            OrderParams.from_item({"symbol": "AAPL", "quantity": "lots"})

    def test_params_are_frozen(self):
        """Test that parsed params cannot be modified."""
        params = OrderParams.from_item({"symbol": "AAPL"})

        with pytest.raises(Exception):
            params.symbol = "MSFT"
