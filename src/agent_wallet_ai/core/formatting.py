"""Compact tool-result formatting and the template fallback reply.

The model normally writes the user-facing text itself.  Everything here is
a safety net, so no function in this module raises on odd input.
"""

from __future__ import annotations

import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from agent_wallet_ai.core.conversation import ToolCallRecord
from agent_wallet_ai.tools.registry import ToolCategory

logger = logging.getLogger("agent_wallet_ai.core.formatting")

PLACEHOLDER_ADDRESS = "0x1234567890123456789012345678901234567890"

_ETH_AMOUNT_RE = re.compile(r"([\d.]+)\s*ETH", re.IGNORECASE)
_NATIVE_BALANCE_RE = re.compile(r"Native Balance:\s*([\d.]+)\s*ETH", re.IGNORECASE)
_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")
_TX_HASH_RE = re.compile(r"0x[a-fA-F0-9]{64}")

# Fields worth keeping from a transaction result
_TX_FIELDS = (
    "transactionHash",
    "to",
    "amount",
    "token",
    "tokenIn",
    "tokenOut",
    "slippage",
    "approvalHash",
    "network",
)


def format_eth_balance(value: Any) -> str:
    """Render a wei amount as ETH with four decimals, e.g. ``"0.5000"``."""
    try:
        wei = Decimal(int(value)) if not isinstance(value, Decimal) else value
        return f"{wei / Decimal(10) ** 18:.4f}"
    except (TypeError, ValueError, InvalidOperation):
        return "0.0000"


def parse_amount(value: Any) -> float | None:
    """Best-effort positive number from a tool argument."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")) or number <= 0:
        return None
    return number


def _strip_eth(balance: str) -> str:
    return re.sub(r"\s*ETH\s*", "", str(balance), flags=re.IGNORECASE)


def _extract_balance(data: dict) -> str:
    """ETH balance as a bare number string, or ``""``."""
    balance = data.get("balance") or data.get("ethBalance") or ""
    if not balance and isinstance(data.get("nativeBalance"), str):
        match = _ETH_AMOUNT_RE.search(data["nativeBalance"])
        if match:
            balance = f"{float(match.group(1)):.4f}"
    return _strip_eth(balance) if balance else ""


def _short(value: str, head: int = 6, tail: int = 4) -> str:
    if len(value) <= head + tail:
        return value
    return f"{value[:head]}...{value[-tail:]}"


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


def _format_mapping(name: str, data: dict, category: ToolCategory | None) -> str:
    if name == "get_wallet_address":
        compact = {"address": data.get("address", "")}
        if data.get("clientAddress"):
            compact["clientAddress"] = data["clientAddress"]
        return _dumps(compact)

    if name == "get_wallet_details":
        balance = _extract_balance(data)
        return _dumps(
            {
                "address": data.get("address") or data.get("walletAddress", ""),
                "balance": f"{balance} ETH" if balance else "0 ETH",
                "network": data.get("network") or data.get("networkId", ""),
            }
        )

    if category is ToolCategory.QUERY and ("balance" in data or "nativeBalance" in data):
        compact: dict[str, Any] = {}
        if data.get("address"):
            compact["address"] = data["address"]
        symbol = data.get("symbol")
        if data.get("token"):
            compact["token"] = data["token"]
            balance = str(data.get("balance", "0"))
            compact["balance"] = f"{balance} {symbol}".strip() if symbol else balance
        else:
            balance = _extract_balance(data)
            if balance:
                compact["balance"] = f"{balance} ETH"
        return _dumps(compact)

    if category in (ToolCategory.TRANSFER, ToolCategory.SWAP, ToolCategory.WRAP_UNWRAP):
        compact = {k: data[k] for k in _TX_FIELDS if k in data}
        if "transactionHash" not in compact:
            tx_hash = data.get("hash") or data.get("txHash")
            if tx_hash:
                compact["transactionHash"] = tx_hash
        return _dumps(compact or data)

    return _dumps(data)


def format_result(name: str, raw: Any, category: ToolCategory | None = None) -> str:
    """Normalize a raw tool result into a compact, display-safe string.

    JSON-looking strings are parsed and formatted like structured results;
    any other string is returned unchanged.
    """
    try:
        if isinstance(raw, str):
            stripped = raw.strip()
            if stripped.startswith(("{", "[")):
                try:
                    parsed = json.loads(stripped)
                except json.JSONDecodeError:
                    return raw
                return format_result(name, parsed, category)
            return raw
        if isinstance(raw, dict):
            return _format_mapping(name, raw, category)
        if isinstance(raw, (list, tuple)):
            return _dumps(list(raw))
        if raw is None:
            return ""
        return str(raw)
    except Exception as exc:
        logger.warning(f"Could not format result of {name}: {exc}")
        try:
            return str(raw)
        except Exception:
            return "<unprintable result>"


def tool_results_text(records: Iterable[ToolCallRecord]) -> str:
    """The synthetic turn that hands one round's results back to the model."""
    lines = [f"[{r.name}] {r.result}" for r in records]
    return "Tool execution completed. Results:\n" + "\n".join(lines)


def looks_like_raw_echo(content: str, records: list[ToolCallRecord], threshold: int) -> bool:
    """Whether a final answer is empty or just parrots raw tool output."""
    if not records:
        return False
    if not content.strip():
        return True
    if len(content) >= threshold:
        return False
    return any(
        (r.result and r.result in content) or f'Tool "{r.name}"' in content
        for r in records
    )


# ------------------------------------------------------------------
# Fallback message synthesis
# ------------------------------------------------------------------


def _valid_address(address: str) -> bool:
    return (
        isinstance(address, str)
        and len(address) == 42
        and address.startswith("0x")
        and address.lower() != PLACEHOLDER_ADDRESS
    )


def _address_sentence(address: str, client_address: str = "") -> str:
    if not _valid_address(address):
        return "❌ Could not get a valid wallet address. Please check the wallet connection."
    if client_address and client_address.lower() != address.lower():
        return (
            f"🧭 Connected browser wallet: {client_address}\n"
            f"📍 Server wallet (signs transactions): {address}"
        )
    return f"📍 Wallet address: {address}"


def _sentence_from_mapping(record: ToolCallRecord, data: dict) -> str:
    category = record.category
    tx_hash = data.get("transactionHash") or data.get("hash") or data.get("txHash") or ""

    if category is ToolCategory.TRANSFER:
        to = str(data.get("to") or data.get("recipient") or "")
        amount = data.get("amount") or data.get("value") or ""
        unit = f"of token {_short(str(data['token']))}" if data.get("token") else "ETH"
        sentence = f"✅ Transfer sent! {amount} {unit} to {_short(to)}."
        if tx_hash:
            sentence += f" Transaction hash: {tx_hash}"
        return sentence

    if category is ToolCategory.QUERY:
        has_balance = any(k in data for k in ("balance", "ethBalance", "nativeBalance"))
        if not has_balance and "address" in data:
            return _address_sentence(str(data.get("address", "")), str(data.get("clientAddress", "")))
        if data.get("token"):
            return f"💰 Token balance: {data.get('balance', '0')}"
        balance = _extract_balance(data)
        return f"💰 Balance: {balance or '0'} ETH"

    if category is ToolCategory.SWAP:
        sentence = (
            f"✅ Swap submitted: {data.get('amount', '')} {data.get('tokenIn', '')} "
            f"→ {data.get('tokenOut', '')}."
        )
        if tx_hash:
            sentence += f" Transaction hash: {tx_hash}"
        return sentence

    sentence = f"✅ {record.name} completed."
    if tx_hash:
        sentence += f" Transaction hash: {tx_hash}"
    return sentence


def _sentence_from_text(record: ToolCallRecord) -> str:
    text = record.result
    if text.startswith("Error:"):
        return f"❌ {record.name} failed: {text[len('Error:'):].strip()}"

    if record.category is ToolCategory.QUERY:
        balance_match = _NATIVE_BALANCE_RE.search(text) or _ETH_AMOUNT_RE.search(text)
        if balance_match:
            return f"💰 Balance: {float(balance_match.group(1)):.4f} ETH"
        address_match = _ADDRESS_RE.search(text)
        if address_match:
            return _address_sentence(address_match.group(0))
        return f"✅ {record.name} completed."

    hash_match = _TX_HASH_RE.search(text)
    if hash_match:
        return f"✅ {record.name} completed. Transaction hash: {hash_match.group(0)}"
    return f"✅ {record.name} completed."


def synthesize_fallback(records: list[ToolCallRecord]) -> str:
    """Deterministic human-readable reply built from the tool audit log."""
    if not records:
        return "Done."

    sentences: list[str] = []
    for record in records:
        try:
            try:
                data = json.loads(record.result)
            except (json.JSONDecodeError, TypeError):
                data = None
            if isinstance(data, dict):
                sentences.append(_sentence_from_mapping(record, data))
            else:
                sentences.append(_sentence_from_text(record))
        except Exception as exc:
            logger.debug(f"Fallback sentence for {record.name} failed: {exc}")
            sentences.append(f"✅ {record.name} completed.")
    return "\n".join(sentences) or "Done."
