"""CLI for the multi-chain portfolio tracker."""

import logging
from datetime import UTC, datetime
from enum import StrEnum

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.traceback import install

# Import all chain adapters to trigger auto-registration
from portfolio_tracker import adapters  # noqa: F401
from portfolio_tracker.adapters import normalize_evm_address, validate_solana_address
from portfolio_tracker.config import Settings
from portfolio_tracker.core.aggregator import (
    calculate_portfolio_summary,
    format_currency,
    format_number,
    format_percentage,
    recent_transactions,
)
from portfolio_tracker.core.errors import PortfolioTrackerError, describe_error
from portfolio_tracker.core.models import (
    EVM_CHAINS,
    Address,
    Chain,
    FetchStatus,
    PortfolioSummary,
    RefreshOutcome,
    Tag,
)
from portfolio_tracker.core.refresher import AddressRefresher, RefreshQueue
from portfolio_tracker.core.registry import ChainAdapterRegistry, close_adapters
from portfolio_tracker.data import explorer_tx_url, get_chain_info, get_native_symbol
from portfolio_tracker.pricing import create_pricing, symbols_for_addresses
from portfolio_tracker.storage import PortfolioStore, create_store, get_demo_addresses

# Install rich traceback handler
install(show_locals=False)

# Global debug flag
DEBUG = False

app = typer.Typer(
    name="portfolio-tracker",
    help="Track Bitcoin, EVM and Solana wallets and their USD value in one portfolio",
    add_completion=False,
)

console = Console()

STATUS_STYLES = {
    FetchStatus.SUCCESS: "green",
    FetchStatus.ERROR: "red",
    FetchStatus.RATE_LIMITED: "yellow",
    FetchStatus.PENDING: "dim",
    FetchStatus.FETCHING: "cyan",
}

ACTIVE_STATUSES = (FetchStatus.PENDING, FetchStatus.FETCHING)


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output")) -> None:
    """Configure logging for every command."""
    global DEBUG
    DEBUG = debug
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
    # Request URLs carry provider keys
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _fail(e: Exception) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {describe_error(e)}")
    return typer.Exit(code=1)


def _open_store(settings: Settings, writable: bool = False) -> PortfolioStore:
    if settings.demo_mode:
        if writable:
            console.print("[bold red]Error:[/bold red] Demo mode is read-only. Unset DEMO_MODE to save changes.")
            raise typer.Exit(code=1)
        console.print("[yellow]Demo mode: showing sample wallets. Unset DEMO_MODE to track your own.[/yellow]")
    return create_store(settings)


def _load_addresses(settings: Settings, store: PortfolioStore) -> list[Address]:
    """Stored addresses, or the sample wallets while nothing is tracked and no provider key is set."""
    addresses = store.list_addresses()
    if not addresses and settings.is_demo_mode and not settings.demo_mode:
        console.print(
            "[yellow]No addresses tracked yet, showing sample wallets. "
            "Set ALCHEMY_API_KEY to track EVM and Solana data.[/yellow]"
        )
        return get_demo_addresses()
    return addresses


def _normalize_address(address: str, chain: Chain) -> str:
    """Validate an entered address for its chain and return the stored form."""
    if chain in EVM_CHAINS:
        return normalize_evm_address(address)
    if chain == Chain.SOLANA:
        return validate_solana_address(address)
    return address.strip()


def _resolve_tags(store: PortfolioStore, names: list[str]) -> list[Tag]:
    known = store.list_tags()
    tags = []
    for name in names:
        tag = next((t for t in known if t.id == name or t.name.lower() == name.lower()), None)
        if tag is None:
            msg = f"Unknown tag '{name}'. Create it first with 'tag-add'."
            raise typer.BadParameter(msg)
        tags.append(tag)
    return tags


def _short(address: str) -> str:
    return address if len(address) <= 16 else f"{address[:8]}...{address[-6:]}"


@app.command()
def add(
    address: str = typer.Argument(..., help="Wallet address"),
    chain: Chain = typer.Option(..., "--chain", "-c", help="Chain the address lives on"),
    label: str = typer.Option(..., "--label", "-l", help="Display name"),
    description: str | None = typer.Option(None, "--description", help="Free-form note"),
    tag: list[str] = typer.Option([], "--tag", "-t", help="Tag name or id (repeatable)"),
) -> None:
    """
    Track a new wallet address.

    Examples:

        portfolio-tracker add 0xd8dA... --chain ethereum --label "Main wallet"

        portfolio-tracker add bc1q... --chain bitcoin --label Cold --tag savings
    """
    settings = Settings.from_env()
    store = _open_store(settings, writable=True)
    try:
        stored_address = _normalize_address(address, chain)
        new_address = Address(
            label=label,
            address=stored_address,
            chain=chain,
            description=description,
            tags=_resolve_tags(store, tag),
        )
        store.add_address(new_address)
    except PortfolioTrackerError as e:
        if DEBUG:
            raise
        raise _fail(e) from e

    console.print(f"[green]✓ Added[/green] {label} ({chain}) [dim]id={new_address.id}[/dim]")


@app.command()
def remove(address_id: str = typer.Argument(..., help="Address id")) -> None:
    """Stop tracking an address."""
    store = _open_store(Settings.from_env(), writable=True)
    try:
        store.delete_address(address_id)
    except PortfolioTrackerError as e:
        raise _fail(e) from e
    console.print(f"[green]✓ Removed[/green] {address_id}")


@app.command(name="list")
def list_addresses() -> None:
    """List tracked addresses with their latest balances."""
    settings = Settings.from_env()
    addresses = _load_addresses(settings, _open_store(settings))
    if not addresses:
        console.print("\n[yellow]No addresses tracked yet[/yellow]")
        return

    table = Table(title="Tracked Addresses", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Label", style="cyan")
    table.add_column("Chain", style="blue")
    table.add_column("Address", style="white")
    table.add_column("Balance", style="green", justify="right")
    table.add_column("Tags", style="yellow")
    table.add_column("Updated", style="dim")

    for address in addresses:
        balance = address.balance
        balance_str = f"{format_number(balance)} {get_native_symbol(address.chain)}" if balance is not None else "-"
        if address.chain == Chain.ETHEREUM and len(address.positions) > 1:
            balance_str += f" [dim](+{len(address.positions) - 1} networks)[/dim]"
        table.add_row(
            address.id,
            address.label,
            get_chain_info(address.chain)["label"],
            _short(address.address),
            balance_str,
            ", ".join(tag.name for tag in address.tags),
            address.last_updated.strftime("%Y-%m-%d %H:%M") if address.last_updated else "never",
        )

    console.print(table)


@app.command()
def refresh(
    address_id: str | None = typer.Argument(None, help="Address id to refresh"),
    all_addresses: bool = typer.Option(False, "--all", "-a", help="Refresh every tracked address"),
) -> None:
    """
    Fetch fresh balances, tokens and transactions.

    Examples:

        portfolio-tracker refresh --all

        portfolio-tracker refresh 3f2a...
    """
    settings = Settings.from_env()
    store = _open_store(settings)
    if settings.demo_mode:
        console.print("[yellow]Refresh skipped in demo mode[/yellow]")
        return

    if all_addresses:
        targets = store.list_addresses()
    elif address_id:
        address = store.get_address(address_id)
        if address is None:
            console.print(f"[bold red]Error:[/bold red] Address '{address_id}' not found")
            raise typer.Exit(code=1)
        targets = [address]
    else:
        console.print("[bold red]Error:[/bold red] Pass an address id or --all")
        raise typer.Exit(code=1)

    skipped = [address for address in targets if not settings.can_fetch(address.chain)]
    if skipped:
        names = ", ".join(address.label for address in skipped)
        console.print(f"[yellow]Skipping {names}: set ALCHEMY_API_KEY to refresh EVM and Solana addresses[/yellow]")
        targets = [address for address in targets if settings.can_fetch(address.chain)]
    if not targets:
        return

    chain_adapters = ChainAdapterRegistry.create_adapters(settings=settings)
    queue = RefreshQueue()
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task(f"Refreshing {len(targets)} address(es)...", total=None)

            def on_status(outcome: RefreshOutcome) -> None:
                queue.update(outcome)
                if not queue.in_progress():
                    return
                done = sum(1 for entry in queue.snapshot() if entry.status not in ACTIVE_STATUSES)
                progress.update(task, description=f"Refreshing addresses ({done}/{len(targets)} done)...")

            AddressRefresher(store, chain_adapters, on_status=on_status).refresh_all(targets)
            progress.update(task, description="✓ Refresh complete")
    finally:
        close_adapters(chain_adapters)

    labels = {address.id: address.label for address in targets}
    table = Table(title="Refresh Results", show_header=True, header_style="bold magenta")
    table.add_column("Address", style="cyan")
    table.add_column("Status")
    table.add_column("Details", style="white")

    outcomes = queue.snapshot()
    for outcome in outcomes:
        style = STATUS_STYLES[outcome.status]
        if outcome.partial:
            details = "Partial: failed on " + ", ".join(outcome.failed_chains)
        elif outcome.status == FetchStatus.RATE_LIMITED and outcome.retry_at:
            details = f"{outcome.error} Retry after {outcome.retry_at.strftime('%H:%M:%S')} UTC"
        else:
            details = outcome.error or ""
        table.add_row(labels[outcome.address_id], f"[{style}]{outcome.status}[/{style}]", details)

    console.print(table)
    if any(outcome.status != FetchStatus.SUCCESS for outcome in outcomes):
        raise typer.Exit(code=1)


@app.command()
def summary(
    format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
    top: int = typer.Option(10, "--top", help="Number of top holdings to show"),
) -> None:
    """Show the portfolio summary with allocations and top holdings."""
    settings = Settings.from_env()
    addresses = _load_addresses(settings, _open_store(settings))

    pricing = create_pricing(settings)
    try:
        prices = pricing.get_prices(symbols_for_addresses(addresses))
    except PortfolioTrackerError as e:
        console.print(f"[yellow]Prices unavailable, values shown as $0: {describe_error(e)}[/yellow]")
        prices = {}
    finally:
        pricing.close()

    portfolio = calculate_portfolio_summary(addresses, prices, top_n=top)

    if format == OutputFormat.JSON:
        _output_json(portfolio)
    else:
        _output_table(portfolio)


@app.command()
def transactions(limit: int = typer.Option(20, "--limit", "-n", help="Maximum transactions to show")) -> None:
    """Show recent transactions across all addresses."""
    settings = Settings.from_env()
    entries = recent_transactions(_load_addresses(settings, _open_store(settings)), limit=limit)
    if not entries:
        console.print("\n[yellow]No transactions found[/yellow]")
        return

    table = Table(title="Recent Transactions", show_header=True, header_style="bold magenta")
    table.add_column("Time", style="dim")
    table.add_column("Wallet", style="cyan")
    table.add_column("Chain", style="blue")
    table.add_column("Type")
    table.add_column("Amount", style="white", justify="right")
    table.add_column("Explorer", style="dim")

    for entry in entries:
        tx = entry.transaction
        style = "red" if tx.direction == "sent" else "green"
        table.add_row(
            _format_timestamp(tx.timestamp_ms),
            entry.wallet_label,
            get_chain_info(entry.chain)["label"],
            f"[{style}]{tx.direction}[/{style}]",
            f"{format_number(tx.value)} {tx.asset_symbol(get_native_symbol(entry.chain))}",
            explorer_tx_url(entry.chain, tx.hash),
        )

    console.print(table)


@app.command()
def prices(symbols: list[str] = typer.Argument(..., help="Symbols to price, e.g. BTC ETH SOL")) -> None:
    """Show current USD prices and 24h changes."""
    settings = Settings.from_env()
    pricing = create_pricing(settings)
    try:
        quotes = pricing.get_prices(symbols)
    except PortfolioTrackerError as e:
        if DEBUG:
            raise
        raise _fail(e) from e
    finally:
        pricing.close()

    table = Table(title="Prices", show_header=True, header_style="bold magenta")
    table.add_column("Symbol", style="cyan")
    table.add_column("Price", style="bold green", justify="right")
    table.add_column("24h", justify="right")

    for symbol in symbols:
        quote = quotes.get(symbol)
        if quote is None:
            table.add_row(symbol, "[dim]unknown[/dim]", "-")
            continue
        style = "green" if quote.change_24h >= 0 else "red"
        table.add_row(symbol, format_currency(quote.price), f"[{style}]{format_percentage(quote.change_24h)}[/{style}]")

    console.print(table)


@app.command(name="tag-add")
def tag_add(
    name: str = typer.Argument(..., help="Tag name"),
    color: str = typer.Option("#6366f1", "--color", help="Display color"),
) -> None:
    """Create a tag."""
    store = _open_store(Settings.from_env(), writable=True)
    tag = store.add_tag(Tag(name=name, color=color))
    console.print(f"[green]✓ Created tag[/green] {tag.name} [dim]id={tag.id}[/dim]")


@app.command(name="tag-list")
def tag_list() -> None:
    """List tags."""
    store = _open_store(Settings.from_env())
    table = Table(title="Tags", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Color", style="white")
    for tag in store.list_tags():
        table.add_row(tag.id, tag.name, tag.color)
    console.print(table)


@app.command(name="tag-remove")
def tag_remove(tag_id: str = typer.Argument(..., help="Tag id")) -> None:
    """Delete a tag and detach it from all addresses."""
    store = _open_store(Settings.from_env(), writable=True)
    try:
        store.delete_tag(tag_id)
    except PortfolioTrackerError as e:
        raise _fail(e) from e
    console.print(f"[green]✓ Removed tag[/green] {tag_id}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
) -> None:
    """Serve the price, auth and summary HTTP API."""
    import uvicorn

    uvicorn.run(
        "portfolio_tracker.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        log_level="debug" if DEBUG else "info",
    )


@app.command()
def list_chains() -> None:
    """List all supported chains."""
    table = Table(title="Supported Chains", show_header=True, header_style="bold magenta")
    table.add_column("Chain", style="cyan")
    table.add_column("Label", style="white")
    table.add_column("Native", style="green")
    table.add_column("Adapter", style="yellow")

    for chain in ChainAdapterRegistry.list_chains():
        info = get_chain_info(chain)
        adapter_class = ChainAdapterRegistry.get_adapter_class(chain)
        table.add_row(chain, info["label"], info.get("native_symbol", ""), adapter_class.__name__)

    console.print(table)


def _format_timestamp(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M")


def _output_table(portfolio: PortfolioSummary) -> None:
    """Output portfolio summary as rich tables."""
    if portfolio.total_assets == 0:
        console.print("\n[yellow]No balances found. Run 'portfolio-tracker refresh --all' first.[/yellow]")
        return

    change_style = "green" if portfolio.change_24h >= 0 else "red"
    summary_table = Table(show_header=False, box=None)
    summary_table.add_column("Label", style="bold")
    summary_table.add_column("Value", style="bold green")
    summary_table.add_row("Total Value:", format_currency(portfolio.total_value))
    summary_table.add_row(
        "24h Change:", f"[{change_style}]{format_percentage(portfolio.change_24h)}[/{change_style}]"
    )
    summary_table.add_row("Total Assets:", str(portfolio.total_assets))
    console.print("\n")
    console.print(summary_table)

    allocation_table = Table(title="Chain Allocation", show_header=True, header_style="bold magenta")
    allocation_table.add_column("Chain", style="cyan")
    allocation_table.add_column("USD Value", style="bold green", justify="right")
    allocation_table.add_column("Share", style="white", justify="right")
    for allocation in portfolio.chain_allocations:
        allocation_table.add_row(
            allocation.label, format_currency(allocation.usd_value), f"{allocation.percentage:.2f}%"
        )
    console.print("\n")
    console.print(allocation_table)

    holdings_table = Table(title="Top Holdings", show_header=True, header_style="bold magenta")
    holdings_table.add_column("Asset", style="cyan")
    holdings_table.add_column("Balance", style="white", justify="right")
    holdings_table.add_column("USD Value", style="bold green", justify="right")
    holdings_table.add_column("Share", style="white", justify="right")
    holdings_table.add_column("Chains", style="blue")
    for holding in portfolio.top_holdings:
        holdings_table.add_row(
            holding.symbol,
            format_number(holding.total_balance),
            format_currency(holding.usd_value),
            f"{holding.percentage:.2f}%",
            ", ".join(dict.fromkeys(get_chain_info(c.chain)["label"] for c in holding.chains)),
        )
    console.print("\n")
    console.print(holdings_table)
    console.print("\n")


def _output_json(portfolio: PortfolioSummary) -> None:
    """Output portfolio summary as JSON."""
    console.print_json(data=portfolio.model_dump(mode="json"))


if __name__ == "__main__":
    app()
