# /main.py
# Operator CLI for a deployed flash liquidator.
import argparse
import asyncio
import sys
from typing import Optional, Tuple

from liquidator.adapters.liquidator_contract import LiquidatorClient
from liquidator.core.chain import MAX_UINT256, NATIVE_ASSET
from liquidator.core.config import settings, VALID_FLASH_FEE_TIERS
from liquidator.core.config_validator import validate as validate_config
from liquidator.core.errors import InvalidRoutingData, RouteUnavailable
from liquidator.core.kill import activate_kill_switch, deactivate_kill_switch, is_kill_switch_active
from liquidator.core.logger import get_logger
from liquidator.core.tx import TransactionManager
from liquidator.routing.codec import AdapterTag, build_routing_data, default_adapter_for_chain
from liquidator.routing.providers import SwapRequest, build_route_registry

log = get_logger("FlashLiquidator.CLI")


def parse_amount(value: str) -> int:
    """'max' selects the half-of-variable-debt sentinel."""
    return MAX_UINT256 if value.lower() == "max" else int(value)


def parse_adapter(value: str) -> int:
    """Adapter name (liquid-swap, uniswap-v3, direct) or raw uint8 tag."""
    try:
        return AdapterTag[value.upper().replace("-", "_")]
    except KeyError:
        return int(value)


async def routing_from_args(args) -> Tuple[bytes, Optional[int]]:
    """
    Routing envelope for the command, plus the quoted output floor when the
    route came from a route provider. `--route-amount` asks the providers for
    hop allocations sized for that much collateral.
    """
    if args.routing_data:
        return bytes.fromhex(args.routing_data.removeprefix("0x")), None
    if args.collateral == args.debt:
        return build_routing_data(AdapterTag.DIRECT), None

    adapter = args.adapter if args.adapter is not None else default_adapter_for_chain(settings.chain_id)
    if args.route_amount is not None:
        request = SwapRequest(
            token_in=args.collateral,
            token_out=args.debt,
            amount_in=args.route_amount,
            decimals_in=args.decimals,
            slippage_bps=args.slippage_bps,
        )
        registry = build_route_registry(settings.chain_id)
        route = await registry.get_route_with_fallback(settings.chain_id, request, adapter_tag=adapter)
        log.info("ROUTE_RESOLVED", adapter_tag=int(route.adapter_tag), hops=len(route.hops), min_output=route.min_output)
        return route.to_routing_data(), route.min_output

    tokens = args.tokens or [args.collateral, args.debt]
    return build_routing_data(adapter, tokens=tokens, fee=args.swap_fee), None


def _add_route_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--collateral", required=True)
    parser.add_argument("--debt", required=True)
    parser.add_argument("--adapter", type=parse_adapter, default=None)
    parser.add_argument("--tokens", nargs="+", help="swap path, collateral first")
    parser.add_argument("--swap-fee", type=int, default=None)
    parser.add_argument("--route-amount", type=int, default=None, help="collateral units to fetch a route for")
    parser.add_argument("--decimals", type=int, default=18, help="collateral token decimals")
    parser.add_argument("--slippage-bps", type=int, default=settings.ROUTE_SLIPPAGE_BPS)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Flash liquidator operator client")
    sub = parser.add_subparsers(dest="command", required=True)

    liq = sub.add_parser("liquidate", help="Liquidate a position through the deployed contract")
    liq.add_argument("--user", required=True)
    _add_route_arguments(liq)
    liq.add_argument("--amount", type=parse_amount, default=MAX_UINT256, help="debt to cover, or 'max'")
    liq.add_argument("--min-out", type=int, default=None, help="defaults to the quoted floor, else 0")
    liq.add_argument("--routing-data", help="pre-encoded routing envelope (hex)")
    liq.add_argument("--flash-fee-tier", type=int, choices=VALID_FLASH_FEE_TIERS, default=None)

    route = sub.add_parser("encode-route", help="Print a routing envelope without sending anything")
    _add_route_arguments(route)
    route.set_defaults(routing_data=None)

    adapter = sub.add_parser("set-adapter", help="Register a swap adapter under a tag")
    adapter.add_argument("--tag", type=parse_adapter, required=True)
    adapter.add_argument("--address", required=True)

    tier = sub.add_parser("set-fee-tier", help="Change the default flash fee tier")
    tier.add_argument("--tier", type=int, required=True)

    rescue = sub.add_parser("rescue", help="Withdraw stranded funds")
    rescue.add_argument("--token", default=NATIVE_ASSET)
    rescue.add_argument("--amount", type=int, default=0)
    rescue.add_argument("--all", action="store_true", dest="entire_balance")
    rescue.add_argument("--recipient", required=True)

    kill = sub.add_parser("kill", help="Engage or release the kill switch")
    kill.add_argument("state", choices=["on", "off", "status"])
    kill.add_argument("--reason", default="operator request")
    return parser


async def run(args) -> int:
    routing_data, min_out = b"", 0
    if args.command in ("encode-route", "liquidate"):
        # Route resolution happens before any transaction is built.
        try:
            routing_data, quoted_min_out = await routing_from_args(args)
        except (InvalidRoutingData, RouteUnavailable, ValueError) as e:
            log.error("ROUTE_UNAVAILABLE", command=args.command, error=str(e))
            print(f"error: {e}", file=sys.stderr)
            return 2
        if args.command == "encode-route":
            print("0x" + routing_data.hex())
            return 0
        min_out = args.min_out if args.min_out is not None else (quoted_min_out or 0)

    if args.command == "kill":
        if args.state == "on":
            activate_kill_switch(args.reason)
        elif args.state == "off":
            deactivate_kill_switch()
        print("active" if is_kill_switch_active() else "inactive")
        return 0

    validate_config()
    tx_manager = TransactionManager()
    await tx_manager.initialize()
    client = LiquidatorClient(tx_manager, settings.LIQUIDATOR_ADDRESS)
    try:
        if args.command == "liquidate":
            if args.flash_fee_tier is None:
                tx_hash = await client.liquidate(args.user, args.collateral, args.debt, args.amount, min_out, routing_data)
            else:
                tx_hash = await client.liquidate_with_fee(
                    args.user, args.collateral, args.debt, args.amount, min_out, routing_data, args.flash_fee_tier
                )
        elif args.command == "set-adapter":
            tx_hash = await client.set_adapter(int(args.tag), args.address)
        elif args.command == "set-fee-tier":
            tx_hash = await client.set_default_flash_fee_tier(args.tier)
        else:
            tx_hash = await client.rescue_tokens(args.token, args.amount, args.entire_balance, args.recipient)
    finally:
        await tx_manager.close()

    print(tx_hash)
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    log.info("CLI_COMMAND", command=args.command)
    return asyncio.run(run(args))


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except KeyboardInterrupt:
        pass
