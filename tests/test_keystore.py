import os
import stat

import pytest
from eth_account import Account

from agent_wallet_ai.errors import InvalidPrivateKey, WalletNotFound
from agent_wallet_ai.wallet.keystore import WalletStore, address_from_key, normalize_private_key

from conftest import TEST_PRIVATE_KEY


@pytest.fixture
def store(tmp_path) -> WalletStore:
    return WalletStore(tmp_path / "wallets.json")


def test_normalize_private_key():
    assert normalize_private_key("  abcd ") == "0xabcd"
    assert normalize_private_key("0xabcd") == "0xabcd"


def test_address_from_key():
    assert address_from_key(TEST_PRIVATE_KEY) == Account.from_key(TEST_PRIVATE_KEY).address
    assert address_from_key(TEST_PRIVATE_KEY[2:]) == Account.from_key(TEST_PRIVATE_KEY).address
    with pytest.raises(InvalidPrivateKey):
        address_from_key("0xnot-a-key")


def test_create_wallet(store):
    wallet = store.create_wallet("main")

    assert wallet["alias"] == "main"
    assert wallet["address"].startswith("0x") and len(wallet["address"]) == 42
    assert address_from_key(wallet["private_key"]) == wallet["address"]
    assert stat.S_IMODE(store.path.stat().st_mode) == 0o600


def test_list_hides_keys(store):
    store.create_wallet("a")
    store.import_wallet("b", TEST_PRIVATE_KEY)

    wallets = store.list_wallets()

    assert [w["alias"] for w in wallets] == ["a", "b"]
    assert all("private_key" not in w for w in wallets)


def test_import_wallet(store):
    wallet = store.import_wallet("imported", TEST_PRIVATE_KEY[2:])
    assert wallet["private_key"] == TEST_PRIVATE_KEY
    assert wallet["address"] == Account.from_key(TEST_PRIVATE_KEY).address

    with pytest.raises(InvalidPrivateKey):
        store.import_wallet("bad", "1234")
    assert len(store.list_wallets()) == 1


def test_wallets_persist(store):
    wallet = store.create_wallet("main")
    reopened = WalletStore(store.path)
    assert reopened.get_wallet(wallet["id"])["private_key"] == wallet["private_key"]


def test_delete_wallet(store):
    wallet = store.create_wallet("main")
    assert store.delete_wallet(wallet["id"]) is True
    assert store.delete_wallet(wallet["id"]) is False
    with pytest.raises(WalletNotFound):
        store.get_wallet(wallet["id"])
    assert WalletStore(store.path).list_wallets() == []


def test_corrupt_file_is_ignored(tmp_path):
    path = tmp_path / "wallets.json"
    path.write_text("{broken")
    assert WalletStore(path).list_wallets() == []


@pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
def test_key_file_is_never_group_readable(tmp_path, monkeypatch):
    path = tmp_path / "wallets.json"
    path.write_text("[]", encoding="utf-8")
    path.chmod(0o644)

    modes = []
    real_open = os.open

    def recording_open(file, flags, mode=0o777, *args, **kwargs):
        modes.append(mode)
        return real_open(file, flags, mode, *args, **kwargs)

    monkeypatch.setattr(os, "open", recording_open)
    WalletStore(path).create_wallet("main")

    assert modes == [0o600]
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
