"""LLM provider router that maps provider names to concrete instances."""

from __future__ import annotations

import importlib
import logging

from agent_wallet_ai.config import LLMConfig, LLMProviderConfig
from agent_wallet_ai.errors import ConfigError
from agent_wallet_ai.llm.base import BaseLLMProvider

logger = logging.getLogger(__name__)

# Registry of supported provider names -> their implementation classes.
# Imports are deferred to avoid pulling in optional SDK dependencies at
# module load time.
_PROVIDER_FACTORIES: dict[str, str] = {
    "anthropic": "agent_wallet_ai.llm.anthropic.AnthropicProvider",
    "openai": "agent_wallet_ai.llm.openai.OpenAIProvider",
}


def _import_provider_class(dotted_path: str) -> type[BaseLLMProvider]:
    """Dynamically import a provider class from its fully-qualified path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    if not (isinstance(cls, type) and issubclass(cls, BaseLLMProvider)):
        raise TypeError(
            f"Expected a BaseLLMProvider subclass at '{dotted_path}', "
            f"got {cls!r}"
        )
    return cls


class LLMRouter:
    """Builds and caches provider instances from the ``llm`` config section.

    Provider clients hold no conversation state, so every chat session
    can share the same instance.
    """

    def __init__(self, llm_config: LLMConfig):
        self._config = llm_config
        self._providers: dict[str, BaseLLMProvider] = {}

    def _get_provider_config(self, provider_name: str) -> LLMProviderConfig:
        config_block = getattr(self._config, provider_name, None)
        if config_block is None:
            available = [
                attr
                for attr in _PROVIDER_FACTORIES
                if getattr(self._config, attr, None) is not None
            ]
            raise ConfigError(
                f"Provider '{provider_name}' is not configured. "
                f"Available configured providers: {available or 'none'}. "
                f"Add a '{provider_name}' section to your LLM configuration."
            )
        return config_block

    def get_provider(self, provider_name: str | None = None) -> BaseLLMProvider:
        """Get or create a provider instance.

        Parameters
        ----------
        provider_name:
            ``"anthropic"`` or ``"openai"``.  Falls back to
            ``default_provider`` when ``None``.

        Raises
        ------
        ConfigError
            If the provider is unknown, unconfigured, or has no model.
        """
        name = provider_name or self._config.default_provider
        if name in self._providers:
            return self._providers[name]

        if name not in _PROVIDER_FACTORIES:
            raise ConfigError(
                f"Unknown provider '{name}'. "
                f"Supported providers: {sorted(_PROVIDER_FACTORIES.keys())}"
            )

        provider_config = self._get_provider_config(name)

        # Local OpenAI-compatible servers (Ollama) run without a key
        if not provider_config.api_key and not provider_config.base_url:
            raise ConfigError(
                f"API key for provider '{name}' is empty. "
                f"Set it in your configuration file or via environment "
                f"variables (e.g. ${{OPENAI_API_KEY}})."
            )
        if not provider_config.model:
            raise ConfigError(
                f"No model specified for provider '{name}'. "
                f"Set a 'model' in the provider configuration."
            )

        provider_cls = _import_provider_class(_PROVIDER_FACTORIES[name])
        provider = provider_cls(
            api_key=provider_config.api_key,
            model=provider_config.model,
            base_url=provider_config.base_url,
            max_tokens=provider_config.max_tokens,
            temperature=self._config.temperature,
        )

        self._providers[name] = provider
        logger.info(
            "Created %s provider (model=%s, base_url=%s)",
            name,
            provider_config.model,
            provider_config.base_url or "default",
        )
        return provider
