"""User-facing text for prompts, rejections and outcomes."""

from decimal import Decimal
from typing import Iterable, Optional

from ..chains import ChainDirectory, ChainFamily
from ..transfer.amounts import format_native, format_usd
from ..transfer.models import FailureKind, FlowKind, TransferOutcome
from ...services.balances import WalletOverview
from .models import MessageKind, OutboundMessage


def prompt(text: str, options: Iterable[str] = ()) -> OutboundMessage:
    return OutboundMessage(text=text, kind=MessageKind.PROMPT, options=tuple(options))


def rejection(text: str, options: Iterable[str] = ()) -> OutboundMessage:
    return OutboundMessage(text=text, kind=MessageKind.REJECTION, options=tuple(options))


def info(text: str, options: Iterable[str] = ()) -> OutboundMessage:
    return OutboundMessage(text=text, kind=MessageKind.INFO, options=tuple(options))


def source_chain_prompt(flow: FlowKind, directory: ChainDirectory) -> OutboundMessage:
    if flow == FlowKind.BRIDGE:
        text = "Select source chain:"
    else:
        text = "Select the chain you want to transfer from (this is a transfer, not a bridge):"
    return prompt(text, directory.names())


def amount_prompt(minimum: Decimal) -> OutboundMessage:
    return prompt(f"Enter the amount in USD (minimum {format_usd(minimum)}):")


def address_prompt(chain_name: str) -> OutboundMessage:
    return prompt(f"Enter the recipient address on {chain_name}:")


def processing_notice(flow: FlowKind) -> OutboundMessage:
    if flow == FlowKind.BRIDGE:
        return info("Processing your bridge. This can take a few minutes...")
    return info("Processing your transfer...")


def format_outcome(outcome: TransferOutcome, directory: ChainDirectory) -> OutboundMessage:
    source = directory.get(outcome.source_chain)
    route = source.name
    if outcome.destination_chain is not None:
        route = f"{source.name} → {directory.get(outcome.destination_chain).name}"

    amount_line = ""
    if outcome.amount_usd is not None:
        amount_line = f"Amount: {format_usd(outcome.amount_usd)}"
        if outcome.native_amount is not None:
            amount_line += f" ({format_native(outcome.native_amount)} {outcome.native_symbol})"

    if outcome.success:
        title = "✅ Bridge completed" if outcome.flow == FlowKind.BRIDGE else "✅ Transfer confirmed"
        lines = [title, f"Route: {route}", amount_line, f"Recipient: {outcome.recipient_address}"]
        if outcome.tx_refs:
            lines.append(f"Transaction: {outcome.tx_refs[-1]}")
        if outcome.explorer_link:
            lines.append(outcome.explorer_link)
        return _outcome(lines)

    if outcome.timed_out:
        lines = [
            f"⏳ {outcome.reason}",
            f"Route: {route}",
            amount_line,
            "The transaction was submitted and may still settle. It has not been confirmed yet, "
            "so please do not resend it.",
        ]
        if outcome.tx_refs:
            lines.append(f"Transaction: {outcome.tx_refs[-1]}")
        if outcome.explorer_link:
            lines.append(outcome.explorer_link)
        if outcome.request_id:
            lines.append("Use check status to look it up again.")
        return _outcome(lines)

    lines = [f"❌ {_failure_text(outcome)}", f"Route: {route}"]
    if amount_line:
        lines.append(amount_line)
    if outcome.tx_refs:
        lines.append(f"Transaction: {outcome.tx_refs[-1]}")
    return _outcome(lines)


def _failure_text(outcome: TransferOutcome) -> str:
    reason = outcome.reason or "unknown error"
    if outcome.failure_kind == FailureKind.INSUFFICIENT_BALANCE:
        available = outcome.details.get("available")
        required = outcome.details.get("required")
        if available is not None and required is not None:
            return (
                f"Insufficient balance. You have {available} {outcome.native_symbol} "
                f"but are trying to send {required} {outcome.native_symbol}."
            )
    if outcome.failure_kind == FailureKind.SUBMISSION and outcome.details.get("fee_related"):
        return f"Transaction rejected: {reason}. Top up a little extra to cover network fees."
    if outcome.failure_kind == FailureKind.ROUTE_REJECTED:
        return f"The bridge route was rejected: {reason}"
    return f"Failed: {reason}"


def _outcome(lines: Iterable[Optional[str]]) -> OutboundMessage:
    text = "\n".join(line for line in lines if line)
    return OutboundMessage(text=text, kind=MessageKind.OUTCOME)


def wallet_creation_offer() -> OutboundMessage:
    return prompt(
        "You don't have a wallet yet. Create one to get started:",
        [family.value for family in ChainFamily],
    )


def format_wallet_overview(overview: WalletOverview) -> OutboundMessage:
    lines = ["Your wallets:"]
    for family, address in overview.addresses.items():
        label = "EVM" if family == ChainFamily.EVM else "Solana"
        lines.append(f"{label}: {address}")

    lines.append("")
    lines.append("Balances:")
    for entry in overview.chains:
        line = f"{entry.name}: {format_native(entry.amount)} {entry.symbol}"
        if entry.usd_value is not None:
            line += f" ({format_usd(entry.usd_value)})"
        if entry.chain in overview.failed_chains:
            line += " (unavailable)"
        lines.append(line)
    lines.append(f"Total: {format_usd(overview.total_usd)}")
    return info("\n".join(lines))
