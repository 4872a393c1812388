from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer

from ibkr_bridge.config import get_settings, Settings
from ibkr_bridge.core.logger import setup_logging, get_logger
from ibkr_bridge.gateway.client import GatewayClient
from ibkr_bridge.runner.batch import BatchRunner, Operation, UnknownOperationError

log = get_logger("ibkr_bridge")
cli_app = typer.Typer(help="Brokerage gateway bridge (health, positions, stock orders).")


def _load_settings(require_account: bool) -> Settings:
    try:
        settings = get_settings()
        if require_account:
            settings.validate_gateway_credentials()
    except Exception as e:
        setup_logging("INFO")
        log.error(f"Configuration error: {e}")
        raise typer.Exit(code=1)
    setup_logging(settings.log_level, json_output=settings.log_json, log_file=settings.log_file)
    return settings


def _make_client(settings: Settings) -> GatewayClient:
    return GatewayClient(
        base_url=settings.ibkr_base_url,
        timeout=settings.ibkr_timeout,
        verify=settings.ibkr_verify_ssl,
    )


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _run_items(
    settings: Settings,
    items: list[dict[str, Any]],
    continue_on_fail: bool,
    operation: Optional[Operation] = None,
) -> None:
    with _make_client(settings) as client:
        runner = BatchRunner(
            client=client,
            account_id=settings.ibkr_account_id,
            continue_on_fail=continue_on_fail,
            default_operation=operation,
        )
        try:
            results = runner.run(items)
        except UnknownOperationError as e:
            log.error(str(e))
            raise typer.Exit(code=2)
        except Exception as e:
            log.error(f"Batch aborted: {e}")
            raise typer.Exit(code=1)
    _echo([r.to_dict() for r in results])


@cli_app.command()
def health():
    """Check that the gateway is reachable and authenticated."""
    settings = _load_settings(require_account=False)
    with _make_client(settings) as client:
        _echo(client.check_health().to_dict())


@cli_app.command()
def positions():
    """List positions of the configured account."""
    settings = _load_settings(require_account=True)
    _run_items(settings, [{"operation": Operation.LIST_POSITIONS.value}], continue_on_fail=False)


def _order(side: Operation, symbol: str, quantity: float, order_type: str,
           limit_price: Optional[float], stop_price: Optional[float], tif: str) -> None:
    settings = _load_settings(require_account=True)
    item = {
        "operation": side.value,
        "symbol": symbol,
        "quantity": quantity,
        "orderType": order_type,
        "limitPrice": limit_price,
        "stopPrice": stop_price,
        "timeInForce": tif,
    }
    _run_items(settings, [item], continue_on_fail=False)


@cli_app.command()
def buy(
    symbol: str = typer.Argument(..., help="Stock symbol (e.g. AAPL)"),
    quantity: float = typer.Argument(1.0, help="Number of shares"),
    order_type: str = typer.Option("MKT", "--order-type", "-t", help="MKT, LMT, STP or 'STP LMT'"),
    limit_price: Optional[float] = typer.Option(None, "--limit-price", help="Limit price for limit orders"),
    stop_price: Optional[float] = typer.Option(None, "--stop-price", help="Stop price for stop orders"),
    tif: str = typer.Option("DAY", "--tif", help="DAY, GTC, IOC or FOK"),
):
    """Place a buy order for a stock."""
    _order(Operation.BUY_STOCK, symbol, quantity, order_type, limit_price, stop_price, tif)


@cli_app.command()
def sell(
    symbol: str = typer.Argument(..., help="Stock symbol (e.g. AAPL)"),
    quantity: float = typer.Argument(1.0, help="Number of shares"),
    order_type: str = typer.Option("MKT", "--order-type", "-t", help="MKT, LMT, STP or 'STP LMT'"),
    limit_price: Optional[float] = typer.Option(None, "--limit-price", help="Limit price for limit orders"),
    stop_price: Optional[float] = typer.Option(None, "--stop-price", help="Stop price for stop orders"),
    tif: str = typer.Option("DAY", "--tif", help="DAY, GTC, IOC or FOK"),
):
    """Place a sell order for a stock."""
    _order(Operation.SELL_STOCK, symbol, quantity, order_type, limit_price, stop_price, tif)


@cli_app.command()
def run(
    items_file: str = typer.Argument(..., help="JSON array of items, or '-' for stdin"),
    operation: Optional[str] = typer.Option(None, "--operation", "-o", help="Operation for items without one"),
    continue_on_fail: Optional[bool] = typer.Option(
        None,
        "--continue-on-fail/--abort-on-fail",
        help="Record failing items and keep going (default from CONTINUE_ON_FAIL)",
    ),
):
    """Run a batch of items, one gateway operation per item."""
    settings = _load_settings(require_account=False)

    try:
        text = sys.stdin.read() if items_file == "-" else Path(items_file).read_text(encoding="utf-8")
        items = json.loads(text)
    except (OSError, ValueError) as e:
        log.error(f"Cannot read items: {e}")
        raise typer.Exit(code=1)
    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        log.error("Items must be a JSON object or an array of objects")
        raise typer.Exit(code=1)

    try:
        default_op = Operation.parse(operation) if operation else None
    except UnknownOperationError as e:
        log.error(str(e))
        raise typer.Exit(code=2)

    if continue_on_fail is None:
        continue_on_fail = settings.continue_on_fail
    _run_items(settings, items, continue_on_fail, default_op)


@cli_app.command()
def validate():
    """Validate configuration and probe the gateway's auth endpoint."""
    settings = _load_settings(require_account=False)

    log.info("Configuration loaded.")
    log.info(f"  Base URL: {settings.ibkr_base_url}")
    log.info(f"  Timeout: {settings.ibkr_timeout}s, verify SSL: {settings.ibkr_verify_ssl}")
    log.info(f"  Continue on fail: {settings.continue_on_fail}")

    try:
        settings.validate_gateway_credentials()
        log.info(f"  Account: {settings.ibkr_account_id}")
    except ValueError as e:
        log.error(f"Configuration validation failed: {e}")
        raise typer.Exit(code=1)

    with _make_client(settings) as client:
        status = client.check_health()
    if not status.healthy:
        log.error(f"Gateway check failed: {status.error or status.status_code}")
        raise typer.Exit(code=1)
    log.info("Gateway reachable and authenticated.")


if __name__ == "__main__":
    cli_app()
