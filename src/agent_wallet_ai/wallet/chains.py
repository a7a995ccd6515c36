"""Network definitions for the supported Base chains."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Chain:
    """An EVM network plus the contract addresses the swap tools need."""

    name: str
    chain_id: int
    rpc_url: str
    native_symbol: str
    explorer_url: str
    uniswap_router: str
    uniswap_quoter: str
    weth: str
    usdc: str


CHAINS: dict[str, Chain] = {
    "base-sepolia": Chain(
        name="base-sepolia",
        chain_id=84532,
        rpc_url="https://sepolia.base.org",
        native_symbol="ETH",
        explorer_url="https://sepolia.basescan.org",
        uniswap_router="0x94cC0AaC535CCDB3C01d6787D6413C739ae12bc4",
        uniswap_quoter="0xC5290058841028F1614F3A6F0F5816cAd0df5E27",
        weth="0x4200000000000000000000000000000000000006",
        usdc="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
    ),
    "base": Chain(
        name="base",
        chain_id=8453,
        rpc_url="https://mainnet.base.org",
        native_symbol="ETH",
        explorer_url="https://basescan.org",
        uniswap_router="0x2626664c2603336E57B271c5C0b26F421741e481",
        uniswap_quoter="0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a",
        weth="0x4200000000000000000000000000000000000006",
        usdc="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
    ),
}


def get_chain(name: str) -> Chain:
    """Get a chain by name. Raises ``KeyError`` if not found."""
    if name not in CHAINS:
        raise KeyError(
            f"Unknown network '{name}'. Available: {list_chain_names()}"
        )
    return CHAINS[name]


def list_chain_names() -> list[str]:
    """Return the names of all supported networks."""
    return list(CHAINS.keys())
