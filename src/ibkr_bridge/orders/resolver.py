from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ibkr_bridge.core.logger import get_logger
from ibkr_bridge.gateway.client import GatewayClient
from ibkr_bridge.gateway.models import InstrumentRef

log = get_logger("orders.resolver")


class ContractNotFoundError(LookupError):
    """Raised when a symbol cannot be resolved to a contract identifier."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(
            f"Could not find contract ID for symbol: {symbol}. "
            "Please verify the symbol is correct."
        )


def _conid(candidate: Any) -> Optional[int]:
    if not isinstance(candidate, dict):
        return None
    value = candidate.get("conid")
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class InstrumentResolver:
    """Map ticker symbols to gateway contract identifiers.

    Takes the first candidate of the gateway's stock search. There is no
    disambiguation by exchange or currency, so a symbol listed on several
    venues resolves to whichever listing the gateway ranks first.
    Nothing is cached; every call performs its own search.
    """

    client: GatewayClient

    def lookup(self, symbol: str) -> InstrumentRef:
        """Resolve a symbol to an InstrumentRef.

        Raises:
            ContractNotFoundError: If the search yields no contract identifier
            httpx.HTTPError: On transport failure
        """
        response = self.client.search_contracts(symbol)

        conid = None
        if isinstance(response, list):
            if response:
                conid = _conid(response[0])
        else:
            conid = _conid(response)

        if conid is None:
            log.warning(f"No contract found for {symbol}")
            raise ContractNotFoundError(symbol)

        log.debug(f"Resolved {symbol} -> conid {conid}")
        return InstrumentRef(symbol=symbol, contract_id=conid)

    def resolve(self, symbol: str) -> int:
        """Resolve a symbol to its contract identifier."""
        return self.lookup(symbol).contract_id
