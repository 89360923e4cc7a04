#!/usr/bin/env python3
"""Simple CLI for talking to the refuel bot locally"""

import argparse
import asyncio
from decimal import Decimal
from typing import Optional, Tuple

from refuel.core.conversation import EventKind, MessageKind, OutboundMessage, UserEvent
from refuel.logging_config import setup_logging
from refuel.services.runtime import Runtime, build_runtime

COMMANDS = {
    "/bridge": EventKind.BEGIN_BRIDGE,
    "/refuel": EventKind.BEGIN_BRIDGE,
    "/transfer": EventKind.BEGIN_TRANSFER,
    "/cancel": EventKind.CANCEL,
    "/wallet": EventKind.SHOW_WALLET,
    "/create": EventKind.CREATE_WALLET,
    "/status": EventKind.CHECK_STATUS,
}

ICONS = {
    MessageKind.PROMPT: "🤖",
    MessageKind.REJECTION: "⚠️ ",
    MessageKind.INFO: "ℹ️ ",
    MessageKind.OUTCOME: "📬",
}


def parse_input(text: str) -> Tuple[EventKind, Optional[str]]:
    """Map a typed line to an event: slash commands, otherwise free text."""
    head, _, rest = text.partition(" ")
    kind = COMMANDS.get(head.lower())
    if kind is None:
        return EventKind.TEXT, text
    return kind, rest.strip() or None


def print_message(message: OutboundMessage) -> None:
    print(f"\n{ICONS.get(message.kind, '🤖')} {message.text}")
    if message.options:
        print("   Options: " + " | ".join(message.options))


async def print_outcomes(runtime: Runtime, user_id: str) -> None:
    while True:
        for message in await runtime.outbox.wait(user_id, timeout_s=3600):
            print_message(message)


async def cli_chat(user_id: str):
    """Interactive chat mode"""
    runtime = build_runtime()
    print("⛽ Refuel Chat")
    print("Type 'exit' to quit, 'help' for commands")
    print("-" * 40)

    printer = asyncio.create_task(print_outcomes(runtime, user_id))
    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, "\n💬 You: ")).strip()
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye! 👋")
                break

            if user_input.lower() in ['exit', 'quit', 'q']:
                print("Goodbye! 👋")
                break

            elif user_input.lower() in ['help', 'h']:
                print("\nCommands:")
                print("  /bridge          - Bridge gas to another chain")
                print("  /transfer        - Send native tokens on one chain")
                print("  /cancel          - Cancel the current flow")
                print("  /wallet          - Show wallets and balances")
                print("  /create evm|solana - Create a wallet")
                print("  /status          - Check an unconfirmed bridge")
                print("  exit             - Quit")
                continue

            elif not user_input:
                continue

            kind, value = parse_input(user_input)
            reply = await runtime.engine.handle_event(user_id, UserEvent(kind=kind, value=value))
            if reply is not None:
                print_message(reply)
    finally:
        print("Waiting for running transfers to finish...")
        await runtime.close()
        printer.cancel()


async def cli_price(symbol: str):
    runtime = build_runtime()
    price: Optional[Decimal] = await runtime.orchestrator.price_oracle.get_usd_price(symbol)
    if price is None:
        print(f"❌ No price available for {symbol.upper()}")
    else:
        print(f"{symbol.upper()}: ${price:,.2f}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Refuel CLI")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    chat_parser = subparsers.add_parser("chat", help="Interactive chat mode")
    chat_parser.add_argument("--user", default="cli-user", help="User id to chat as")

    price_parser = subparsers.add_parser("price", help="Show the USD price of a native asset")
    price_parser.add_argument("symbol", help="ETH or SOL")

    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level)
    command = args.command.lower()

    if command == "chat":
        await cli_chat(args.user)

    elif command == "price":
        await cli_price(args.symbol)

    else:
        print(f"❌ Unknown command: {command}")
        parser.print_help()


def main_sync():
    asyncio.run(main())


if __name__ == "__main__":
    main_sync()
