#!/usr/bin/env python3
"""CLI tools for operating the SMS dispatch core.

Usage:
    python -m sms_dispatch.cli route +244923456789 +351911222333
    python -m sms_dispatch.cli countries
    python -m sms_dispatch.cli send --to +244923456789 --text "Hello"
    python -m sms_dispatch.cli test-gateway [bulksms]
    python -m sms_dispatch.cli balance bulksms
    python -m sms_dispatch.cli status bulksms MESSAGE_ID
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from sms_dispatch.config import get_settings
from sms_dispatch.core.exceptions import SMSDispatchError
from sms_dispatch.core.logging import get_logger, setup_logging

log = get_logger(__name__)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _routing_table():
    from sms_dispatch.services.country_routing import CountryRoutingTable

    routing = get_settings().routing
    return CountryRoutingTable(
        home_country=routing.home_country,
        default_gateway=routing.default_gateway,
    )


def route(args: argparse.Namespace) -> int:
    """Show the country and preferred gateway of each number."""
    table = _routing_table()

    numbers = []
    for phone in args.phones:
        code, gateway = table.gateway_for_phone(phone)
        numbers.append({"phone": phone, "country": code, "gateway": gateway})

    output: dict[str, Any] = {
        "numbers": numbers,
        "batch": table.route_batch(args.phones).to_dict(),
    }
    if args.segments:
        output["cost"] = table.estimate_cost(args.phones, segments=args.segments).to_dict()

    _print_json(output)
    return 0


def countries(args: argparse.Namespace) -> int:
    """List the routing table."""
    _print_json([c.to_dict() for c in _routing_table().all_countries()])
    return 0


def _engine():
    from sms_dispatch.services.dispatcher import DispatchEngine

    return DispatchEngine.from_settings(get_settings())


def send(args: argparse.Namespace) -> int:
    """Send one message through the dispatch engine."""
    from sms_dispatch.integrations.sms.base import SMSMessage

    async def run() -> int:
        async with _engine() as engine:
            result = await engine.send_with_fallback(
                SMSMessage(to=args.to, text=args.text, sender=args.sender or "")
            )
        _print_json(result.to_dict(max_attempts=args.max_attempts))
        return 0 if result.success else 2

    return asyncio.run(run())


def test_gateway(args: argparse.Namespace) -> int:
    """Check configuration, connectivity and balance of gateways."""

    async def run() -> int:
        async with _engine() as engine:
            if args.gateway:
                reports = {args.gateway: await engine.get_gateway_status(args.gateway)}
            else:
                reports = await engine.get_all_gateway_statuses()
        _print_json({name: report.to_dict() for name, report in reports.items()})
        return 0 if reports and all(r.connected for r in reports.values()) else 2

    return asyncio.run(run())


def balance(args: argparse.Namespace) -> int:
    """Show a gateway's account balance."""

    async def run() -> int:
        async with _engine() as engine:
            result = await engine.get_gateway_balance(args.gateway)
        _print_json(result.to_dict())
        return 0

    return asyncio.run(run())


def status(args: argparse.Namespace) -> int:
    """Show the delivery status of a message."""

    async def run() -> int:
        async with _engine() as engine:
            result = await engine.get_message_status(args.gateway, args.message_id)
        _print_json(result.to_dict())
        return 0

    return asyncio.run(run())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SMS Dispatch CLI Tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # route
    route_parser = subparsers.add_parser("route", help="Show routing for phone numbers")
    route_parser.add_argument("phones", nargs="+", help="Phone numbers")
    route_parser.add_argument(
        "--segments", type=int, default=0, help="Also estimate cost for this many segments"
    )

    # countries
    subparsers.add_parser("countries", help="List the country routing table")

    # send
    send_parser = subparsers.add_parser("send", help="Send an SMS with fallback")
    send_parser.add_argument("--to", required=True, help="Destination phone number")
    send_parser.add_argument("--text", required=True, help="Message text")
    send_parser.add_argument("--sender", default=None, help="Sender ID")
    send_parser.add_argument(
        "--max-attempts", type=int, default=None, help="Limit attempts shown in output"
    )

    # test-gateway
    test_parser = subparsers.add_parser("test-gateway", help="Health check gateways")
    test_parser.add_argument("gateway", nargs="?", default=None, help="Gateway name (default: all)")

    # balance
    balance_parser = subparsers.add_parser("balance", help="Show gateway balance")
    balance_parser.add_argument("gateway", help="Gateway name")

    # status
    status_parser = subparsers.add_parser("status", help="Show message delivery status")
    status_parser.add_argument("gateway", help="Gateway name")
    status_parser.add_argument("message_id", help="Provider message ID")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    # stdout carries the JSON output
    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        service_name="sms-dispatch",
        stream=sys.stderr,
    )

    commands = {
        "route": route,
        "countries": countries,
        "send": send,
        "test-gateway": test_gateway,
        "balance": balance,
        "status": status,
    }

    try:
        return commands[args.command](args)
    except SMSDispatchError as e:
        log.error("Command failed", command=args.command, error=str(e))
        _print_json(e.to_dict())
        return 1


if __name__ == "__main__":
    sys.exit(main())
