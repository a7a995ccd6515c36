"""Configuration system for Agent Wallet AI.

Loads settings from `.agent-wallet-ai/config.yaml`, supports environment
variable expansion, and reports missing credentials without raising.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from agent_wallet_ai.errors import ConfigError


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


def _is_unresolved(value: str) -> bool:
    return not value or bool(_ENV_VAR_RE.fullmatch(value.strip()))


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class LLMProviderConfig(BaseModel):
    """Configuration for a single LLM provider (Anthropic, OpenAI, etc.)."""

    api_key: str = ""
    model: str = ""
    base_url: Optional[str] = None  # For OpenAI-compatible endpoints
    max_tokens: int = 4096


class LLMConfig(BaseModel):
    """Top-level LLM configuration that can hold multiple providers."""

    default_provider: str = "openai"
    temperature: float = 0.7
    anthropic: Optional[LLMProviderConfig] = None
    openai: Optional[LLMProviderConfig] = None

    @field_validator("temperature")
    @classmethod
    def _clamp_temperature(cls, value: float) -> float:
        return max(0.0, min(2.0, value))


class NetworkConfig(BaseModel):
    """Which chain the wallet talks to."""

    network_id: str = "base-sepolia"
    rpc_url: Optional[str] = None  # Falls back to the chain's public RPC


class WalletConfig(BaseModel):
    """Wallet credential sources."""

    private_key: str = ""            # ${PRIVATE_KEY}
    wallets_file: str = "wallets.json"


# Operations that move funds or grant spending rights.
DEFAULT_CONFIRM_TOOLS = [
    "native_transfer",
    "erc20_transfer",
    "uniswap_swap",
    "wrap_eth",
    "unwrap_eth",
]


class AgentSettings(BaseModel):
    """Limits for the chat orchestration loop."""

    max_iterations: int = 5
    summary_trigger_messages: int = 40
    summary_keep_messages: int = 12
    summary_min_messages: int = 4
    echo_length_threshold: int = 200
    confirm_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_CONFIRM_TOOLS))

    @property
    def effective_summary_trigger(self) -> int:
        return max(10, self.summary_trigger_messages)

    @property
    def effective_summary_keep(self) -> int:
        return max(6, self.summary_keep_messages)


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = 3000


class AppConfig(BaseModel):
    """Root configuration object."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    server: ServerConfig = Field(default_factory=ServerConfig)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_root_dir(base: Path | None = None) -> Path:
    """Return the ``.agent-wallet-ai/`` directory (no auto-create)."""
    if base is None:
        base = Path.cwd()
    return base / ".agent-wallet-ai"


def get_config_path(base: Path | None = None) -> Path:
    """Resolve the config file path.

    ``AGENT_WALLET_CONFIG`` wins over the default location.
    """
    override = os.environ.get("AGENT_WALLET_CONFIG")
    if override:
        return Path(override)
    return get_root_dir(base) / "config.yaml"


def get_wallets_path(config: AppConfig, config_path: Path | None = None) -> Path:
    """Saved wallets live next to the config file."""
    return (config_path or get_config_path()).parent / config.wallet.wallets_file


def load_config(path: Path | None = None) -> AppConfig:
    """Load and validate configuration from a YAML file.

    A missing file yields the defaults.  Environment variable placeholders
    (``${VAR}``) are expanded before validation.
    """
    if path is None:
        path = get_config_path()
    if not path.exists():
        return AppConfig()
    try:
        raw_data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    expanded = _expand_env_recursive(raw_data)
    return AppConfig.model_validate(expanded)


def save_config(config: AppConfig, path: Path) -> None:
    """Serialize an :class:`AppConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)


def validate_config(config: AppConfig, *, require_private_key: bool = True) -> list[str]:
    """Return a list of human-readable configuration problems."""
    errors: list[str] = []
    provider_name = config.llm.default_provider
    provider = getattr(config.llm, provider_name, None)
    if provider is None:
        errors.append(
            f"LLM provider '{provider_name}' is not configured. "
            f"Add an 'llm.{provider_name}' section to the config file."
        )
    elif _is_unresolved(provider.api_key) and not provider.base_url:
        errors.append(f"API key for provider '{provider_name}' is required.")

    if require_private_key and _is_unresolved(config.wallet.private_key):
        errors.append("PRIVATE_KEY is required (your wallet private key, starts with 0x).")
    return errors
