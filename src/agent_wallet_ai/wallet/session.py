"""A connected wallet: one signing key on one network."""

from __future__ import annotations

import logging

from agent_wallet_ai.config import NetworkConfig
from agent_wallet_ai.wallet.chains import Chain, get_chain
from agent_wallet_ai.wallet.keystore import address_from_key, normalize_private_key
from agent_wallet_ai.wallet.provider import Web3Provider

logger = logging.getLogger("agent_wallet_ai.wallet.session")


class WalletSession:
    """Holds the key and provider the wallet tools operate on."""

    def __init__(self, private_key: str, chain: Chain, provider: Web3Provider) -> None:
        self._private_key = normalize_private_key(private_key)
        self.address = address_from_key(self._private_key)
        self.chain = chain
        self.provider = provider
        # browser wallet the user connected in the web UI; never signs
        self.client_address: str | None = None

    @classmethod
    def from_private_key(cls, private_key: str, network: NetworkConfig) -> WalletSession:
        chain = get_chain(network.network_id)
        return cls(private_key, chain, Web3Provider(chain, network.rpc_url))

    @property
    def network(self) -> str:
        return self.chain.name

    @property
    def private_key(self) -> str:
        return self._private_key

    def get_balance_wei(self) -> int:
        return self.provider.get_native_balance_wei(self.address)

    def __repr__(self) -> str:
        return f"WalletSession(address={self.address!r}, network={self.network!r})"
