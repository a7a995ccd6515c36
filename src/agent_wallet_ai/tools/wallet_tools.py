"""Chat-facing wallet tools.

Each tool takes the connected :class:`WalletSession` as its first argument;
:func:`build_wallet_registry` binds them to one session.  Fund-moving
tools are never gated here -- the chat agent decides which ones need a
human confirmation before they are invoked.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable

from web3 import Web3

from agent_wallet_ai.tools.registry import ToolCategory, ToolRegistry, make_tool
from agent_wallet_ai.wallet.provider import to_base_units

if TYPE_CHECKING:
    from agent_wallet_ai.wallet.session import WalletSession

logger = logging.getLogger("agent_wallet_ai.tools.wallet")

DEFAULT_SLIPPAGE = 0.5
DEFAULT_POOL_FEE = 3000


@dataclass(frozen=True)
class _ToolSpec:
    name: str
    description: str
    category: ToolCategory
    parameters: dict[str, Any]
    func: Callable[..., Any]


_WALLET_TOOLS: list[_ToolSpec] = []


def wallet_tool(
    name: str,
    description: str,
    category: ToolCategory,
    parameters: dict[str, Any] | None = None,
):
    """Decorator declaring a wallet tool.

    Usage:
        @wallet_tool("get_balance", "Get the ETH balance", ToolCategory.QUERY)
        def get_balance(session) -> dict:
            ...
    """

    def decorator(func: Callable) -> Callable:
        _WALLET_TOOLS.append(
            _ToolSpec(
                name=name,
                description=description,
                category=category,
                parameters=parameters or {"type": "object", "properties": {}, "required": []},
                func=func,
            )
        )
        return func

    return decorator


def build_wallet_registry(session: WalletSession) -> ToolRegistry:
    """Create a registry whose tools operate on ``session``."""
    registry = ToolRegistry()
    for spec in _WALLET_TOOLS:
        registry.register(
            make_tool(
                name=spec.name,
                description=spec.description,
                func=functools.partial(spec.func, session),
                category=spec.category,
                parameters=spec.parameters,
            )
        )
    return registry


def _require_amount(amount: Any) -> str:
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if value <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")
    return str(value)


def _require_slippage(slippage: Any) -> Decimal:
    """Slippage percent in [0, 50); ``None`` means the default."""
    if slippage is None:
        return Decimal(str(DEFAULT_SLIPPAGE))
    try:
        value = Decimal(str(slippage))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid slippage: {slippage!r}") from exc
    if not Decimal(0) <= value < Decimal(50):
        raise ValueError(f"Slippage must be between 0 and 50 percent, got {slippage}")
    return value


def _require_address(address: str) -> str:
    if not Web3.is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


def _resolve_token(session: WalletSession, token: str) -> tuple[str, int | None]:
    """Map ETH/WETH/USDC symbols to addresses; known decimals or ``None``."""
    upper = token.strip().upper()
    if upper in ("ETH", "WETH"):
        return session.chain.weth, 18
    if upper == "USDC":
        return session.chain.usdc, 6
    return _require_address(token), None


# ------------------------------------------------------------------
# Queries
# ------------------------------------------------------------------


@wallet_tool(
    "get_wallet_address",
    (
        "Get the current wallet address. Use this when the user asks for "
        "their wallet address. Also returns the connected browser wallet "
        "as clientAddress when there is one."
    ),
    ToolCategory.QUERY,
)
def get_wallet_address(session: WalletSession) -> dict:
    result = {"address": session.address}
    if session.client_address:
        result["clientAddress"] = session.client_address
    return result


@wallet_tool(
    "get_wallet_details",
    "Get the wallet address, native ETH balance, and network.",
    ToolCategory.QUERY,
)
def get_wallet_details(session: WalletSession) -> dict:
    balance_wei = session.get_balance_wei()
    return {
        "address": session.address,
        "network": session.network,
        "chainId": session.chain.chain_id,
        "nativeBalanceWei": str(balance_wei),
        "balance": f"{Web3.from_wei(balance_wei, 'ether'):.4f}",
    }


@wallet_tool(
    "get_balance",
    "Get the wallet's native ETH balance.",
    ToolCategory.QUERY,
)
def get_balance(session: WalletSession) -> dict:
    balance_wei = session.get_balance_wei()
    return {
        "address": session.address,
        "balance": f"{Web3.from_wei(balance_wei, 'ether'):.4f}",
        "balanceWei": str(balance_wei),
    }


@wallet_tool(
    "erc20_balance",
    "Get the wallet's balance of an ERC-20 token (symbol USDC/WETH or contract address).",
    ToolCategory.QUERY,
    {
        "type": "object",
        "properties": {
            "tokenAddress": {
                "type": "string",
                "description": "Token contract address (0x...) or symbol (USDC, WETH)",
            },
        },
        "required": ["tokenAddress"],
    },
)
def erc20_balance(session: WalletSession, tokenAddress: str) -> dict:
    token, _ = _resolve_token(session, tokenAddress)
    result = session.provider.erc20_balance(token, session.address)
    result["address"] = session.address
    return result


# ------------------------------------------------------------------
# Fund-moving operations
# ------------------------------------------------------------------


@wallet_tool(
    "native_transfer",
    "Transfer native ETH from the wallet to another address.",
    ToolCategory.TRANSFER,
    {
        "type": "object",
        "properties": {
            "to": {"type": "string", "description": "Recipient address (0x...)"},
            "amount": {"type": "string", "description": "Amount of ETH, e.g. '0.01'"},
        },
        "required": ["to", "amount"],
    },
)
def native_transfer(session: WalletSession, to: str, amount: str) -> dict:
    recipient = _require_address(to)
    value = _require_amount(amount)
    tx_hash = session.provider.transfer_native(session.private_key, recipient, value)
    return {
        "transactionHash": tx_hash,
        "to": recipient,
        "amount": value,
        "network": session.network,
    }


@wallet_tool(
    "erc20_transfer",
    "Transfer an ERC-20 token from the wallet to another address.",
    ToolCategory.TRANSFER,
    {
        "type": "object",
        "properties": {
            "tokenAddress": {
                "type": "string",
                "description": "Token contract address (0x...) or symbol (USDC, WETH)",
            },
            "to": {"type": "string", "description": "Recipient address (0x...)"},
            "amount": {"type": "string", "description": "Token amount in whole units, e.g. '10'"},
        },
        "required": ["tokenAddress", "to", "amount"],
    },
)
def erc20_transfer(session: WalletSession, tokenAddress: str, to: str, amount: str) -> dict:
    token, _ = _resolve_token(session, tokenAddress)
    recipient = _require_address(to)
    value = _require_amount(amount)
    tx_hash = session.provider.transfer_erc20(session.private_key, token, recipient, value)
    return {
        "transactionHash": tx_hash,
        "token": token,
        "to": recipient,
        "amount": value,
        "network": session.network,
    }


@wallet_tool(
    "wrap_eth",
    "Wrap native ETH into WETH.",
    ToolCategory.WRAP_UNWRAP,
    {
        "type": "object",
        "properties": {
            "amount": {"type": "string", "description": "Amount of ETH to wrap"},
        },
        "required": ["amount"],
    },
)
def wrap_eth(session: WalletSession, amount: str) -> dict:
    value = _require_amount(amount)
    tx_hash = session.provider.wrap_eth(session.private_key, value)
    return {"transactionHash": tx_hash, "amount": value, "network": session.network}


@wallet_tool(
    "unwrap_eth",
    "Unwrap WETH back into native ETH.",
    ToolCategory.WRAP_UNWRAP,
    {
        "type": "object",
        "properties": {
            "amount": {"type": "string", "description": "Amount of WETH to unwrap"},
        },
        "required": ["amount"],
    },
)
def unwrap_eth(session: WalletSession, amount: str) -> dict:
    value = _require_amount(amount)
    tx_hash = session.provider.unwrap_eth(session.private_key, value)
    return {"transactionHash": tx_hash, "amount": value, "network": session.network}


@wallet_tool(
    "uniswap_swap",
    (
        "Swap tokens using Uniswap V3 on Base. Supports ETH, WETH, USDC "
        "symbols or token addresses."
    ),
    ToolCategory.SWAP,
    {
        "type": "object",
        "properties": {
            "tokenIn": {"type": "string", "description": "Token to swap FROM (e.g. ETH, USDC)"},
            "tokenOut": {"type": "string", "description": "Token to swap TO (e.g. USDC, ETH)"},
            "amount": {"type": "string", "description": "Amount of tokenIn, e.g. '0.01'"},
            "slippage": {
                "type": "number",
                "description": f"Slippage tolerance in percent (default {DEFAULT_SLIPPAGE})",
            },
        },
        "required": ["tokenIn", "tokenOut", "amount"],
    },
)
def uniswap_swap(
    session: WalletSession,
    tokenIn: str,
    tokenOut: str,
    amount: str,
    slippage: float | None = None,
) -> dict:
    value = _require_amount(amount)
    tolerance = _require_slippage(slippage)
    token_in, decimals_in = _resolve_token(session, tokenIn)
    token_out, _ = _resolve_token(session, tokenOut)
    if decimals_in is None:
        decimals_in = session.provider.erc20_decimals(token_in)
    amount_in = to_base_units(value, decimals_in)
    is_eth_in = tokenIn.strip().upper() == "ETH"

    quoted = session.provider.quote_exact_input_single(
        token_in, token_out, amount_in, DEFAULT_POOL_FEE
    )
    min_out = int(Decimal(quoted) * (Decimal(100) - tolerance) / Decimal(100))

    approval_hash = None
    if not is_eth_in:
        approval_hash = session.provider.approve_erc20(
            session.private_key, token_in, session.chain.uniswap_router, amount_in
        )
        # swap gas estimation needs the allowance mined
        session.provider.wait_for_receipt(approval_hash)

    tx_hash = session.provider.swap_exact_input_single(
        session.private_key,
        token_in=token_in,
        token_out=token_out,
        amount_in=amount_in,
        recipient=session.address,
        fee=DEFAULT_POOL_FEE,
        value=amount_in if is_eth_in else 0,
        amount_out_minimum=min_out,
    )
    result = {
        "transactionHash": tx_hash,
        "tokenIn": tokenIn,
        "tokenOut": tokenOut,
        "amount": value,
        "slippage": float(tolerance),
        "amountOutMinimum": str(min_out),
        "network": session.network,
    }
    if approval_hash:
        result["approvalHash"] = approval_hash
    return result
