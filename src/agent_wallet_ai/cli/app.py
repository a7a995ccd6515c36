"""CLI for Agent Wallet AI - chat with an AI agent that runs your wallet."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from agent_wallet_ai.config import (
    AppConfig,
    LLMProviderConfig,
    NetworkConfig,
    _is_unresolved,
    get_config_path,
    get_wallets_path,
    load_config,
    save_config,
    validate_config,
)
from agent_wallet_ai.errors import ConfigError, InvalidPrivateKey, WalletAgentError, WalletNotFound
from agent_wallet_ai.wallet.chains import list_chain_names
from agent_wallet_ai.wallet.keystore import WalletStore, address_from_key

app = typer.Typer(
    name="agent-wallet-ai",
    help="Chat with an AI agent that operates a blockchain wallet, with you confirming every transfer.",
    no_args_is_help=True,
)
console = Console()

_config_path: Path | None = None


def _version_callback(value: bool):
    if value:
        from agent_wallet_ai import __version__
        console.print(f"agent-wallet-ai {__version__}")
        raise typer.Exit()


def _init_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)


@app.callback()
def main(
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config.yaml",
        envvar="AGENT_WALLET_CONFIG",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Chat with an AI agent that operates a blockchain wallet."""
    global _config_path
    _config_path = config
    _init_logging(verbose)


def _run(coro):
    """Run an async function synchronously."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_running():
            import concurrent.futures
            with concurrent.futures.ThreadPoolExecutor() as pool:
                return pool.submit(asyncio.run, coro).result()
        return loop.run_until_complete(coro)
    except RuntimeError:
        return asyncio.run(coro)


def _resolved_config_path() -> Path:
    return _config_path or get_config_path()


def _load() -> AppConfig:
    try:
        return load_config(_resolved_config_path())
    except (ConfigError, ValueError) as e:
        console.print(f"[red]Could not load config: {e}[/red]")
        raise typer.Exit(1)


def _store(config: AppConfig) -> WalletStore:
    return WalletStore(get_wallets_path(config, _resolved_config_path()))


# Provider presets: maps user-facing name to (config provider, base_url, default_model, env_var)
PROVIDER_PRESETS = {
    "openai":        ("openai",    None,                         "gpt-4o-mini",                "OPENAI_API_KEY"),
    "anthropic":     ("anthropic", None,                         "claude-sonnet-4-5-20250929", "ANTHROPIC_API_KEY"),
    "deepseek":      ("openai",    "https://api.deepseek.com/v1", "deepseek-chat",              "DEEPSEEK_API_KEY"),
    "ollama":        ("openai",    "http://localhost:11434/v1",   "llama3.1",                   None),
    "openai-compat": ("openai",    None,                         None,                         None),
}


# ------------------------------------------------------------------
# init
# ------------------------------------------------------------------


@app.command()
def init(
    provider: str = typer.Option(None, "--provider", "-p", help="LLM provider (openai, anthropic, deepseek, ollama, or openai-compat)"),
    api_key: str = typer.Option(None, "--api-key", "-k", help="API key for the chosen provider"),
    model: str = typer.Option(None, "--model", "-m", help="Model name (defaults per provider)"),
    base_url: str = typer.Option(None, "--base-url", "-b", help="Base URL for OpenAI-compatible endpoints"),
    network: str = typer.Option("base-sepolia", "--network", "-n", help="Network id"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
):
    """Write a config.yaml for the chosen LLM provider and network."""
    path = _resolved_config_path()
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}. Use --force to overwrite.[/yellow]")
        raise typer.Exit(1)
    if network not in list_chain_names():
        console.print(f"[red]Unknown network '{network}'. Choose from: {', '.join(list_chain_names())}[/red]")
        raise typer.Exit(1)

    chosen_provider = provider
    if chosen_provider is None:
        console.print("\n[bold]Configure LLM provider[/bold]")
        names = list(PROVIDER_PRESETS)
        for i, name in enumerate(names, 1):
            console.print(f"  [cyan][{i}][/cyan] {name}")
        choice = console.input(f"\nChoose provider [1-{len(names)}, default 1]: ").strip()
        chosen_provider = names[int(choice) - 1] if choice.isdigit() and 0 < int(choice) <= len(names) else names[0]
    if chosen_provider not in PROVIDER_PRESETS:
        console.print(f"[red]Unknown provider '{chosen_provider}'.[/red]")
        raise typer.Exit(1)

    config_provider, preset_base_url, preset_model, env_var = PROVIDER_PRESETS[chosen_provider]
    chosen_base_url = base_url or preset_base_url
    if not chosen_base_url and chosen_provider == "openai-compat":
        chosen_base_url = console.input("Base URL (e.g. http://localhost:8000/v1): ").strip()

    # API key: flag > env var placeholder > empty (local servers)
    chosen_key = api_key
    if chosen_key is None:
        chosen_key = f"${{{env_var}}}" if env_var else ""
    chosen_model = model or preset_model or console.input("Model name: ").strip()

    config = AppConfig()
    config.llm.default_provider = config_provider
    setattr(
        config.llm,
        config_provider,
        LLMProviderConfig(api_key=chosen_key, model=chosen_model, base_url=chosen_base_url),
    )
    config.network = NetworkConfig(network_id=network)
    config.wallet.private_key = "${PRIVATE_KEY}"
    save_config(config, path)

    console.print(Panel(
        f"[bold green]Config written![/bold green]\n\n"
        f"Config: {path}\n"
        f"Provider: [cyan]{chosen_provider}[/cyan] (model: {chosen_model})\n"
        f"Network: [cyan]{network}[/cyan]\n\n"
        f"Next steps:\n"
        f"  export PRIVATE_KEY=0x...   (or: agent-wallet-ai wallet create main)\n"
        f"  agent-wallet-ai chat",
        title="Agent Wallet AI",
    ))


# ------------------------------------------------------------------
# chat
# ------------------------------------------------------------------


def _choose_private_key(config: AppConfig, store: WalletStore) -> str:
    """Interactive wallet picker: environment, saved, new, or imported."""
    options: list[tuple[str, str, str]] = []
    if not _is_unresolved(config.wallet.private_key):
        options.append(("Environment wallet (PRIVATE_KEY)", "env", ""))
    for w in store.list_wallets():
        options.append((f"{w['alias']} ({w['address']})", "saved", w["id"]))
    options.append(("Create a new wallet", "create", ""))
    options.append(("Import a private key", "import", ""))

    console.print("\n[bold]Select a wallet[/bold]")
    for i, (label, _, _) in enumerate(options, 1):
        console.print(f"  [cyan][{i}][/cyan] {label}")
    choice = console.input(f"\nChoose [1-{len(options)}, default 1]: ").strip() or "1"
    if not choice.isdigit() or not 0 < int(choice) <= len(options):
        console.print("[red]Invalid choice.[/red]")
        raise typer.Exit(1)

    _, kind, wallet_id = options[int(choice) - 1]
    if kind == "create":
        alias = console.input("Wallet alias: ").strip() or "wallet"
        wallet = store.create_wallet(alias)
        console.print(f"Created [cyan]{wallet['address']}[/cyan]. Fund it before sending anything.")
        return wallet["private_key"]
    if kind == "import":
        alias = console.input("Wallet alias: ").strip() or "imported"
        key = typer.prompt("Private key", hide_input=True).strip()
        return store.import_wallet(alias, key)["private_key"]
    if kind == "env":
        return config.wallet.private_key
    return store.get_wallet(wallet_id)["private_key"]


def _print_reply(message: str) -> None:
    console.print(f"[bold green]Agent>[/bold green] {message}\n")


@app.command()
def chat(
    wallet: str = typer.Option(None, "--wallet", "-w", help="Saved wallet id, or 'env' for PRIVATE_KEY"),
):
    """Start an interactive chat with the wallet agent."""
    from agent_wallet_ai.core.agent import WalletAgent
    from agent_wallet_ai.llm.router import LLMRouter

    config = _load()
    problems = validate_config(config, require_private_key=False)
    if problems:
        for p in problems:
            console.print(f"[red]{p}[/red]")
        raise typer.Exit(1)

    store = _store(config)
    try:
        if wallet == "env":
            private_key = config.wallet.private_key
        elif wallet:
            private_key = store.get_wallet(wallet)["private_key"]
        else:
            private_key = _choose_private_key(config, store)
    except (WalletNotFound, InvalidPrivateKey) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    async def _chat():
        try:
            agent = WalletAgent(config, LLMRouter(config.llm).get_provider())
            with console.status("Connecting wallet..."):
                info = await agent.initialize(private_key)
        except WalletAgentError as e:
            console.print(f"[red]{e}[/red]")
            return

        console.print(Panel(
            f"Address: [cyan]{info.address}[/cyan]\n"
            f"Network: {info.network}\n"
            f"Balance: {info.balance} ETH",
            title="Wallet connected",
        ))
        console.print("[dim]Type '/clear' to reset the conversation, 'exit' to quit.[/dim]\n")

        while True:
            try:
                user_input = console.input("[bold blue]You>[/bold blue] ")
            except (EOFError, KeyboardInterrupt):
                break

            text = user_input.strip()
            if not text:
                continue
            if text.lower() in ("exit", "quit", "bye"):
                break
            if text == "/clear":
                agent.clear_history()
                console.print("[dim]Conversation cleared.[/dim]\n")
                continue

            with console.status("Thinking..."):
                response = await agent.chat(text)
            _print_reply(response.message)

            while response.pending_transaction is not None:
                if typer.confirm("Confirm this transaction?", default=False):
                    with console.status("Sending transaction..."):
                        response = await agent.confirm_pending_transaction()
                else:
                    response = await agent.cancel_pending_transaction()
                _print_reply(response.message)

        console.print("[dim]Chat ended.[/dim]")

    _run(_chat())


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------


@app.command()
def serve(
    port: int = typer.Option(None, "--port", "-p", help="Port to serve on"),
    host: str = typer.Option(None, "--host", help="Host to bind to"),
):
    """Launch the HTTP API."""
    from agent_wallet_ai.server.app import run_server

    config = _load()
    host = host or config.server.host
    port = port or config.server.port
    console.print(f"[bold green]Starting server at http://{host}:{port}[/bold green]")
    run_server(config, host=host, port=port, config_path=_resolved_config_path())


# ------------------------------------------------------------------
# wallet sub-commands
# ------------------------------------------------------------------

wallet_app = typer.Typer(
    name="wallet",
    help="Manage saved wallets.",
    no_args_is_help=True,
)
app.add_typer(wallet_app, name="wallet")


@wallet_app.command("list")
def wallet_list():
    """List saved wallets (keys are never shown)."""
    config = _load()
    wallets = _store(config).list_wallets()
    if not _is_unresolved(config.wallet.private_key):
        try:
            wallets.insert(0, {
                "id": "env",
                "alias": "Environment Wallet",
                "address": address_from_key(config.wallet.private_key),
                "created_at": "",
            })
        except InvalidPrivateKey:
            console.print("[yellow]PRIVATE_KEY is set but could not be parsed.[/yellow]")

    if not wallets:
        console.print("[yellow]No wallets saved. Create one with: agent-wallet-ai wallet create <alias>[/yellow]")
        return

    table = Table(title="Wallets")
    table.add_column("ID", style="cyan")
    table.add_column("Alias", style="bold")
    table.add_column("Address")
    table.add_column("Created", style="dim")
    for w in wallets:
        table.add_row(w["id"], w["alias"], w["address"], w.get("created_at", "")[:19])
    console.print(table)


@wallet_app.command("create")
def wallet_create(alias: str = typer.Argument(help="Name for the new wallet")):
    """Generate a new wallet and save it."""
    wallet = _store(_load()).create_wallet(alias)
    console.print(Panel(
        f"[bold green]Wallet created![/bold green]\n\n"
        f"ID: {wallet['id']}\n"
        f"Address: [cyan]{wallet['address']}[/cyan]\n\n"
        f"[dim]The key is stored unencrypted in the local wallets file.\n"
        f"Fund it before sending anything.[/dim]",
        title="Wallet",
    ))


@wallet_app.command("import")
def wallet_import(alias: str = typer.Argument(help="Name for the imported wallet")):
    """Save an existing private key."""
    store = _store(_load())
    key = typer.prompt("Private key", hide_input=True).strip()
    try:
        wallet = store.import_wallet(alias, key)
    except InvalidPrivateKey as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"Imported [bold]{alias}[/bold]: [cyan]{wallet['address']}[/cyan]")


@wallet_app.command("delete")
def wallet_delete(
    wallet_id: str = typer.Argument(help="ID of the wallet to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a saved wallet."""
    store = _store(_load())
    if not yes:
        typer.confirm(f"Delete wallet {wallet_id}? The key cannot be recovered.", abort=True)
    if not store.delete_wallet(wallet_id):
        console.print(f"[red]Wallet {wallet_id} not found.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted wallet {wallet_id}.[/green]")
