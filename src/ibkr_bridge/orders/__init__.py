from __future__ import annotations

from .builder import OrderBuilder, OrderValidationError
from .params import OrderParams
from .resolver import ContractNotFoundError, InstrumentResolver

__all__ = [
    "ContractNotFoundError",
    "InstrumentResolver",
    "OrderBuilder",
    "OrderParams",
    "OrderValidationError",
]
