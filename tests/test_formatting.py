import json

import pytest

from agent_wallet_ai.core.conversation import ToolCallRecord
from agent_wallet_ai.core.formatting import (
    PLACEHOLDER_ADDRESS,
    format_eth_balance,
    format_result,
    looks_like_raw_echo,
    parse_amount,
    synthesize_fallback,
    tool_results_text,
)
from agent_wallet_ai.tools.registry import ToolCategory

from conftest import RECIPIENT, TX_HASH, WALLET_ADDRESS


class Unprintable:
    def __str__(self):
        raise RuntimeError("no")

    __repr__ = __str__


@pytest.mark.parametrize(
    "value, expected",
    [
        (10**18, "1.0000"),
        ("1500000000000000000", "1.5000"),
        (0, "0.0000"),
        ("junk", "0.0000"),
        (None, "0.0000"),
    ],
)
def test_format_eth_balance(value, expected):
    assert format_eth_balance(value) == expected


@pytest.mark.parametrize("value", ["abc", "-1", "0", "nan", "inf", None, True])
def test_parse_amount_rejects_non_positive_or_garbage(value):
    assert parse_amount(value) is None


def test_parse_amount():
    assert parse_amount(" 0.25 ") == 0.25
    assert parse_amount(3) == 3.0


def test_plain_text_passes_through():
    assert format_result("anything", "Sent 1 ETH") == "Sent 1 ETH"
    assert format_result("anything", "{not json") == "{not json"
    assert format_result("anything", None) == ""


def test_format_result_never_raises():
    assert format_result("weird", Unprintable()) == "<unprintable result>"
    assert "1" in format_result("weird", {"a": {1, 2}})


def test_balance_query_is_compacted():
    raw = {"address": WALLET_ADDRESS, "balance": "0.5000", "balanceWei": "500000000000000000"}
    compact = json.loads(format_result("get_balance", raw, ToolCategory.QUERY))
    assert compact == {"address": WALLET_ADDRESS, "balance": "0.5000 ETH"}


def test_json_string_results_are_parsed_first():
    raw = json.dumps({"balance": "1.2"})
    assert json.loads(format_result("get_balance", raw, ToolCategory.QUERY)) == {"balance": "1.2 ETH"}


def test_token_balance_keeps_symbol():
    raw = {"token": "0xToken", "symbol": "USDC", "balance": "12.5"}
    compact = json.loads(format_result("erc20_balance", raw, ToolCategory.QUERY))
    assert compact == {"token": "0xToken", "balance": "12.5 USDC"}


def test_wallet_details_normalized():
    raw = {"walletAddress": WALLET_ADDRESS, "nativeBalance": "Native Balance: 1.5 ETH", "networkId": "base"}
    compact = json.loads(format_result("get_wallet_details", raw, ToolCategory.QUERY))
    assert compact == {"address": WALLET_ADDRESS, "balance": "1.5000 ETH", "network": "base"}


def test_transaction_result_drops_noise():
    raw = {"hash": TX_HASH, "to": RECIPIENT, "amount": "0.1", "gasUsed": 21000, "logs": []}
    compact = json.loads(format_result("native_transfer", raw, ToolCategory.TRANSFER))
    assert compact == {"to": RECIPIENT, "amount": "0.1", "transactionHash": TX_HASH}


def test_tool_results_text():
    text = tool_results_text([ToolCallRecord("get_balance", "0.5 ETH"), ToolCallRecord("x", "y")])
    assert text == "Tool execution completed. Results:\n[get_balance] 0.5 ETH\n[x] y"


def test_raw_echo_detection():
    records = [ToolCallRecord("get_balance", '{"balance": "0.5 ETH"}')]
    assert not looks_like_raw_echo("", [], 200)
    assert looks_like_raw_echo("", records, 200)
    assert looks_like_raw_echo('Result: {"balance": "0.5 ETH"}', records, 200)
    assert looks_like_raw_echo('Tool "get_balance" said hi', records, 200)
    assert not looks_like_raw_echo("You have half an ETH.", records, 200)
    assert not looks_like_raw_echo('{"balance": "0.5 ETH"}' + " explained" * 40, records, 200)


def test_fallback_empty():
    assert synthesize_fallback([]) == "Done."


def test_fallback_transfer_includes_full_hash():
    record = ToolCallRecord(
        "native_transfer",
        json.dumps({"transactionHash": TX_HASH, "to": RECIPIENT, "amount": "0.1"}),
        ToolCategory.TRANSFER,
    )
    sentence = synthesize_fallback([record])
    assert sentence.startswith("✅ Transfer sent! 0.1 ETH")
    assert TX_HASH in sentence
    assert "0x2546...Ec30" in sentence


def test_fallback_rejects_placeholder_address():
    record = ToolCallRecord(
        "get_wallet_address", json.dumps({"address": PLACEHOLDER_ADDRESS}), ToolCategory.QUERY
    )
    assert synthesize_fallback([record]).startswith("❌ Could not get a valid wallet address")


def test_fallback_shows_both_addresses_when_they_differ():
    record = ToolCallRecord(
        "get_wallet_address",
        json.dumps({"address": WALLET_ADDRESS, "clientAddress": RECIPIENT}),
        ToolCategory.QUERY,
    )
    sentence = synthesize_fallback([record])
    assert RECIPIENT in sentence and WALLET_ADDRESS in sentence


def test_fallback_from_text_results():
    records = [
        ToolCallRecord("get_wallet_details", "Native Balance: 2.5 ETH", ToolCategory.QUERY),
        ToolCallRecord("uniswap_swap", f"swapped in {TX_HASH}", ToolCategory.SWAP),
        ToolCallRecord("mystery", "nothing useful"),
        ToolCallRecord("erc20_transfer", "Error: insufficient balance", ToolCategory.TRANSFER),
    ]
    assert synthesize_fallback(records).splitlines() == [
        "💰 Balance: 2.5000 ETH",
        f"✅ uniswap_swap completed. Transaction hash: {TX_HASH}",
        "✅ mystery completed.",
        "❌ erc20_transfer failed: insufficient balance",
    ]


def test_fallback_swap_mapping():
    record = ToolCallRecord(
        "uniswap_swap",
        json.dumps({"transactionHash": TX_HASH, "tokenIn": "ETH", "tokenOut": "USDC", "amount": "0.01"}),
        ToolCategory.SWAP,
    )
    assert synthesize_fallback([record]) == f"✅ Swap submitted: 0.01 ETH → USDC. Transaction hash: {TX_HASH}"
