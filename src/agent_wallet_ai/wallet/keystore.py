"""Saved-wallet store backed by a local JSON file, using eth-account."""

from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path

from eth_account import Account

from agent_wallet_ai.errors import InvalidPrivateKey, WalletNotFound

logger = logging.getLogger("agent_wallet_ai.wallet.keystore")


def normalize_private_key(private_key: str) -> str:
    """Strip whitespace and ensure the ``0x`` prefix."""
    key = private_key.strip()
    if not key.startswith("0x"):
        key = "0x" + key
    return key


def address_from_key(private_key: str) -> str:
    """Derive the checksummed address for a private key.

    Raises
    ------
    InvalidPrivateKey
        If the key cannot be parsed.
    """
    try:
        return Account.from_key(normalize_private_key(private_key)).address
    except Exception as exc:
        raise InvalidPrivateKey("Invalid private key") from exc


class WalletStore:
    """Persists named wallets as ``{id, alias, address, private_key, created_at}``.

    Keys are stored unencrypted; the file is meant for local development
    wallets and is written with user-only permissions.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._wallets: list[dict] = self._load()

    def _load(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error(f"Failed to load wallets from {self.path}: {exc}")
            return []
        return data if isinstance(data, list) else []

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # created user-only; an existing file is tightened before any key is written
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        if hasattr(os, "fchmod"):
            os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(json.dumps(self._wallets, indent=2))

    def list_wallets(self) -> list[dict]:
        """All saved wallets without their private keys."""
        return [
            {k: v for k, v in w.items() if k != "private_key"}
            for w in self._wallets
        ]

    def get_wallet(self, wallet_id: str) -> dict:
        for wallet in self._wallets:
            if wallet["id"] == wallet_id:
                return wallet
        raise WalletNotFound(f"Wallet {wallet_id} not found.")

    def _add(self, alias: str, private_key: str) -> dict:
        wallet = {
            "id": uuid.uuid4().hex[:12],
            "alias": alias,
            "address": address_from_key(private_key),
            "private_key": private_key,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self._wallets.append(wallet)
        self._save()
        logger.info(f"Saved wallet '{alias}' ({wallet['address']})")
        return wallet

    def create_wallet(self, alias: str) -> dict:
        """Generate a fresh keypair and save it."""
        acct = Account.create()
        return self._add(alias, "0x" + acct.key.hex().removeprefix("0x"))

    def import_wallet(self, alias: str, private_key: str) -> dict:
        """Save an existing key.  Raises :class:`InvalidPrivateKey`."""
        key = normalize_private_key(private_key)
        address_from_key(key)
        return self._add(alias, key)

    def delete_wallet(self, wallet_id: str) -> bool:
        before = len(self._wallets)
        self._wallets = [w for w in self._wallets if w["id"] != wallet_id]
        if len(self._wallets) == before:
            return False
        self._save()
        return True
