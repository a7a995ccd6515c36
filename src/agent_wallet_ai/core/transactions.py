"""Human-readable descriptions of transactions awaiting confirmation."""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable

from agent_wallet_ai.core.formatting import parse_amount

logger = logging.getLogger("agent_wallet_ai.core.transactions")

RULE = "-" * 40

BalanceFetcher = Callable[[], Awaitable[Decimal | None]]


def _arg(args: dict[str, Any], *keys: str, default: Any = "N/A") -> Any:
    for key in keys:
        value = args.get(key)
        if value not in (None, ""):
            return value
    return default


def _block(title: str, rows: list[tuple[str, Any]]) -> str:
    width = max(len(label) for label, _ in rows) + 1
    body = "\n".join(f"{label + ':':<{width}} {value}" for label, value in rows)
    return f"{title}\n{RULE}\n{body}\n{RULE}"


def describe_transaction(name: str, args: dict[str, Any]) -> str:
    """Fixed-format block naming the operation and its relevant arguments."""
    amount = _arg(args, "amount", "value")
    if name == "native_transfer":
        return _block(
            "💰 ETH Transfer",
            [("Recipient", _arg(args, "to", "recipient")), ("Amount", f"{amount} ETH")],
        )
    if name == "erc20_transfer":
        return _block(
            "🪙 ERC-20 Token Transfer",
            [
                ("Token", _arg(args, "tokenAddress", "token")),
                ("Recipient", _arg(args, "to", "recipient")),
                ("Amount", amount),
            ],
        )
    if name == "uniswap_swap":
        return _block(
            "🔄 Uniswap Swap",
            [
                ("From", _arg(args, "tokenIn")),
                ("To", _arg(args, "tokenOut")),
                ("Amount", amount),
                ("Slippage", f"{_arg(args, 'slippage', default=0.5)}%"),
            ],
        )
    if name == "wrap_eth":
        return _block("📦 Wrap ETH into WETH", [("ETH amount", amount)])
    if name == "unwrap_eth":
        return _block("📦 Unwrap WETH into ETH", [("WETH amount", amount)])
    return f"Operation: {name}\nArguments: {json.dumps(args, indent=2, default=str)}"


def consumes_native_currency(name: str, args: dict[str, Any]) -> bool:
    if name in ("native_transfer", "wrap_eth"):
        return True
    return name == "uniswap_swap" and str(args.get("tokenIn", "")).strip().upper() == "ETH"


async def build_transaction_description(
    name: str,
    args: dict[str, Any],
    fetch_balance: BalanceFetcher | None = None,
) -> str:
    """Describe a pending transaction, with a live balance check where ETH is spent.

    The insufficient-funds warning is advisory; it never blocks confirmation.
    A failed balance lookup just omits the balance lines.
    """
    description = describe_transaction(name, args)
    if fetch_balance is None or not consumes_native_currency(name, args):
        return description

    try:
        balance = await fetch_balance()
    except Exception as exc:
        logger.warning(f"Balance check for {name} failed: {exc}")
        balance = None
    if balance is None:
        return description

    description += f"\nCurrent balance: {float(balance):.4f} ETH"
    amount = parse_amount(args.get("amount", args.get("value")))
    if amount is not None and amount > float(balance):
        description += "\n⚠️ Warning: the amount is higher than the current balance; the transaction may fail."
    return description
