"""Web3 provider for the wallet's network: reads, contract calls, signing."""

from __future__ import annotations

import logging
from decimal import Decimal

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from agent_wallet_ai.wallet.chains import Chain

logger = logging.getLogger("agent_wallet_ai.wallet.provider")

ERC20_ABI = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "value", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "name": "symbol",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "name",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]

WETH_ABI = [
    {
        "name": "deposit",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [],
        "outputs": [],
    },
    {
        "name": "withdraw",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "wad", "type": "uint256"}],
        "outputs": [],
    },
]

SWAP_ROUTER_ABI = [
    {
        "name": "exactInputSingle",
        "type": "function",
        "stateMutability": "payable",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "recipient", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "amountOutMinimum", "type": "uint256"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
            }
        ],
        "outputs": [{"name": "amountOut", "type": "uint256"}],
    },
]

QUOTER_V2_ABI = [
    {
        "name": "quoteExactInputSingle",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {
                "name": "params",
                "type": "tuple",
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
            }
        ],
        "outputs": [
            {"name": "amountOut", "type": "uint256"},
            {"name": "sqrtPriceX96After", "type": "uint160"},
            {"name": "initializedTicksCrossed", "type": "uint32"},
            {"name": "gasEstimate", "type": "uint256"},
        ],
    },
]


def to_base_units(amount: str | Decimal, decimals: int) -> int:
    """Convert a human amount (``"0.01"``) to integer base units."""
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


class Web3Provider:
    """Wraps a single :class:`Web3` connection for one network."""

    def __init__(self, chain: Chain, rpc_url: str | None = None) -> None:
        self.chain = chain
        self.rpc_url = rpc_url or chain.rpc_url
        self._w3: Web3 | None = None

    @property
    def w3(self) -> Web3:
        """Lazily created connection with POA middleware injected."""
        if self._w3 is None:
            w3 = Web3(Web3.HTTPProvider(self.rpc_url))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._w3 = w3
        return self._w3

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_native_balance_wei(self, address: str) -> int:
        return self.w3.eth.get_balance(Web3.to_checksum_address(address))

    def _erc20(self, token: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)

    def erc20_decimals(self, token: str) -> int:
        return int(self._erc20(token).functions.decimals().call())

    def erc20_balance(self, token: str, owner: str) -> dict:
        """Token balance plus symbol/decimals metadata."""
        contract = self._erc20(token)
        decimals = int(contract.functions.decimals().call())
        raw = contract.functions.balanceOf(Web3.to_checksum_address(owner)).call()
        try:
            symbol = contract.functions.symbol().call()
        except Exception:
            symbol = ""
        balance = Decimal(raw) / (Decimal(10) ** decimals)
        return {"token": Web3.to_checksum_address(token), "symbol": symbol, "balance": str(balance)}

    def erc20_details(self, token: str) -> dict:
        functions = self._erc20(token).functions
        return {
            "address": Web3.to_checksum_address(token),
            "name": str(functions.name().call()),
            "symbol": str(functions.symbol().call()),
            "decimals": int(functions.decimals().call()),
        }

    def erc20_allowance(self, token: str, owner: str, spender: str) -> dict:
        functions = self._erc20(token).functions
        decimals = int(functions.decimals().call())
        raw = functions.allowance(
            Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
        ).call()
        return {
            "allowance": str(Decimal(raw) / (Decimal(10) ** decimals)),
            "symbol": str(functions.symbol().call()),
        }

    def quote_exact_input_single(
        self, token_in: str, token_out: str, amount_in: int, fee: int = 3000
    ) -> int:
        """Expected output in base units, from the Uniswap V3 QuoterV2."""
        quoter = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.chain.uniswap_quoter), abi=QUOTER_V2_ABI
        )
        params = (
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            amount_in,
            fee,
            0,
        )
        amount_out, *_ = quoter.functions.quoteExactInputSingle(params).call()
        return int(amount_out)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def send_transaction(self, private_key: str | bytes, tx: dict) -> str:
        """Fill nonce/fees/gas, sign, and broadcast ``tx``.

        Uses EIP-1559 fee parameters with a legacy gas price fallback.
        Returns the transaction hash as a ``0x``-prefixed hex string.
        """
        w3 = self.w3
        account = w3.eth.account.from_key(private_key)
        tx = dict(tx)
        tx.setdefault("value", 0)
        tx["from"] = account.address
        tx["nonce"] = w3.eth.get_transaction_count(account.address, "pending")
        tx["chainId"] = self.chain.chain_id

        try:
            latest = w3.eth.get_block("latest")
            base_fee = latest.get("baseFeePerGas")
            if base_fee is None:
                raise ValueError("No baseFeePerGas")
            max_priority = w3.eth.max_priority_fee
            tx["maxFeePerGas"] = base_fee * 2 + max_priority
            tx["maxPriorityFeePerGas"] = max_priority
        except Exception:
            tx["gasPrice"] = w3.eth.gas_price
        tx["gas"] = w3.eth.estimate_gas(tx)

        signed = w3.eth.account.sign_transaction(tx, private_key)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        hex_hash = tx_hash.hex()
        if not hex_hash.startswith("0x"):
            hex_hash = "0x" + hex_hash
        logger.info(f"Broadcast tx {hex_hash} on {self.chain.name}")
        return hex_hash

    def wait_for_receipt(self, tx_hash: str, timeout: float = 120) -> dict:
        """Block until ``tx_hash`` is mined.  Raises if it reverted."""
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        if receipt.get("status") == 0:
            raise RuntimeError(f"Transaction {tx_hash} reverted")
        logger.info(f"Tx {tx_hash} mined in block {receipt.get('blockNumber')}")
        return dict(receipt)

    def transfer_native(self, private_key: str | bytes, to_address: str, amount: str) -> str:
        return self.send_transaction(
            private_key,
            {
                "to": Web3.to_checksum_address(to_address),
                "value": Web3.to_wei(Decimal(str(amount)), "ether"),
            },
        )

    def _contract_tx(self, private_key: str | bytes, fn, value: int = 0) -> str:
        account = self.w3.eth.account.from_key(private_key)
        # placeholders keep build_transaction from querying the node; send_transaction fills them
        tx = fn.build_transaction(
            {"from": account.address, "value": value, "gas": 0, "gasPrice": 0, "nonce": 0, "chainId": self.chain.chain_id}
        )
        tx.pop("gas", None)
        for key in ("nonce", "chainId", "maxFeePerGas", "maxPriorityFeePerGas", "gasPrice"):
            tx.pop(key, None)
        return self.send_transaction(private_key, tx)

    def transfer_erc20(
        self, private_key: str | bytes, token: str, to_address: str, amount: str
    ) -> str:
        decimals = self.erc20_decimals(token)
        fn = self._erc20(token).functions.transfer(
            Web3.to_checksum_address(to_address), to_base_units(amount, decimals)
        )
        return self._contract_tx(private_key, fn)

    def approve_erc20(
        self, private_key: str | bytes, token: str, spender: str, amount_base_units: int
    ) -> str:
        fn = self._erc20(token).functions.approve(
            Web3.to_checksum_address(spender), amount_base_units
        )
        return self._contract_tx(private_key, fn)

    def wrap_eth(self, private_key: str | bytes, amount: str) -> str:
        weth = self.w3.eth.contract(address=Web3.to_checksum_address(self.chain.weth), abi=WETH_ABI)
        return self._contract_tx(
            private_key, weth.functions.deposit(), value=to_base_units(amount, 18)
        )

    def unwrap_eth(self, private_key: str | bytes, amount: str) -> str:
        weth = self.w3.eth.contract(address=Web3.to_checksum_address(self.chain.weth), abi=WETH_ABI)
        return self._contract_tx(private_key, weth.functions.withdraw(to_base_units(amount, 18)))

    def swap_exact_input_single(
        self,
        private_key: str | bytes,
        token_in: str,
        token_out: str,
        amount_in: int,
        recipient: str,
        fee: int = 3000,
        value: int = 0,
        amount_out_minimum: int = 0,
    ) -> str:
        router = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.chain.uniswap_router), abi=SWAP_ROUTER_ABI
        )
        params = (
            Web3.to_checksum_address(token_in),
            Web3.to_checksum_address(token_out),
            fee,
            Web3.to_checksum_address(recipient),
            amount_in,
            amount_out_minimum,
            0,
        )
        return self._contract_tx(private_key, router.functions.exactInputSingle(params), value=value)
