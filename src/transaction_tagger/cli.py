import json
import typer
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from transaction_tagger.classification import Classifier, TagMappingStore
from transaction_tagger.config.settings import ConfigLoader
from transaction_tagger.database.connection import DatabaseConfig, DatabaseManager
from transaction_tagger.domain.learning import LearningState
from transaction_tagger.learning import LearningCoordinator
from transaction_tagger.logging_setup import configure_logging
from transaction_tagger.parsers.factory import LoaderFactory
from transaction_tagger.repositories.sqlite_store import SQLiteKeyValueStore
from transaction_tagger.services.transaction_service import TransactionService

app = typer.Typer(
    name="transaction-tagger",
    help="Tag bank transactions and learn from your corrections",
    add_completion=False,
)

console = Console()

TAG_STYLES = {
    "Income": "green",
    "Savings": "cyan",
    "Investments": "magenta",
    "Transfers": "blue",
    "Other": "dim",
}


class State:
    verbose: bool = False
    service: Optional[TransactionService] = None


state = State()


def format_amount(minor_units: int) -> str:
    color = "green" if minor_units >= 0 else "red"
    return f"[{color}]{minor_units / 100:+,.2f}[/{color}]"


def format_tag(tag: Optional[str]) -> str:
    if not tag:
        return "[dim]Untagged[/dim]"
    style = TAG_STYLES.get(tag, "yellow")
    return f"[{style}]{tag}[/{style}]"


def build_service(db_path: Path) -> TransactionService:
    """Wire store, mapping, classifier and learning around one shared LearningState"""
    if not LoaderFactory.get_available_formats():
        LoaderFactory.load_loaders_from_config()

    store = SQLiteKeyValueStore(DatabaseManager(DatabaseConfig(db_path)))
    learning_state = LearningState()

    classifier = Classifier(mapping=TagMappingStore(store), state=learning_state)
    coordinator = LearningCoordinator(learning_state, store)
    coordinator.load()

    service = TransactionService(store, classifier, coordinator)
    service.load_transactions()
    return service


def fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    if state.verbose:
        console.print_exception()
    raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose output",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        help="Database file (defaults to $TRANSACTION_TAGGER_DB or data/transactions.db)",
    ),
):
    """
    Transaction Tagger - Import, tag, and correct your bank transactions.
    """
    state.verbose = verbose
    configure_logging("DEBUG" if verbose else None)

    if state.service is None:
        state.service = build_service(db_path or ConfigLoader.database_path())


@app.command(name="import")
def import_transactions(
    filepath: Path = typer.Argument(
        ...,
        help="Path to a CSV or JSON record file",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    tag: bool = typer.Option(
        True,
        "--tag/--no-tag",
        help="Tag transactions as they are being imported",
    ),
):
    """
    Import transactions from a record file.

    Examples:
        transaction-tagger import statement.csv
        transaction-tagger import export.json --no-tag
    """
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Importing transactions...", total=None)
            result = state.service.import_file(filepath, classify=tag)
            progress.update(task, completed=True)

        console.print(f"\n[bold]Found {result.total_parsed} transactions[/bold]")

        if result.imported:
            preview_table = Table(title="Preview (first 5)")
            preview_table.add_column("Date", style="cyan")
            preview_table.add_column("Description", style="white")
            preview_table.add_column("Amount", justify="right")
            preview_table.add_column("Tag")

            for txn in result.imported[:5]:
                preview_table.add_row(
                    str(txn.date or ""),
                    txn.description[:40],
                    format_amount(txn.signed_amount),
                    format_tag(txn.tag),
                )

            console.print("\n")
            console.print(preview_table)

        console.print("")
        console.print(f"[bold green]✓ Imported {result.new_transactions} new transactions[/bold green]")
        if result.duplicates_skipped > 0:
            console.print(f"[yellow]⏭️  Skipped {result.duplicates_skipped} duplicates[/yellow]")

    except Exception as e:
        fail(e)


@app.command(name="list")
def list_transactions(
    tag: Optional[str] = typer.Option(
        None,
        "--tag", "-t",
        help="Only show transactions with this tag",
    ),
    limit: int = typer.Option(
        50,
        "--limit", "-n",
        help="Maximum rows to show",
        min=1,
    ),
):
    """
    List transactions in the working set.
    """
    try:
        transactions = state.service.transactions
        if tag:
            transactions = [t for t in transactions if (t.tag or "").lower() == tag.lower()]

        if not transactions:
            console.print(Panel(
                "[yellow]No transactions found[/yellow]",
                title="Empty",
                border_style="yellow"
            ))
            return

        txn_table = Table(show_header=True, padding=(0, 1))
        txn_table.add_column("ID", style="cyan", no_wrap=True)
        txn_table.add_column("Date", style="cyan", width=12)
        txn_table.add_column("Description", style="white", max_width=40)
        txn_table.add_column("Category", style="dim", width=18)
        txn_table.add_column("Amount", justify="right", width=12)
        txn_table.add_column("Tag", width=12)
        txn_table.add_column("Conf.", justify="right", width=6)

        for txn in transactions[:limit]:
            desc = txn.description[:37] + "..." if len(txn.description) > 40 else txn.description
            confidence = txn.classification_confidence
            txn_table.add_row(
                txn.id,
                str(txn.date or ""),
                desc,
                txn.category or "Uncategorized",
                format_amount(txn.signed_amount),
                format_tag(txn.tag),
                f"{confidence:.2f}" if confidence is not None else "",
            )

        console.print(txn_table)

        if len(transactions) > limit:
            console.print(f"\n[dim]Showing {limit} of {len(transactions)} transactions[/dim]")

    except Exception as e:
        fail(e)


@app.command(name="retag")
def retag(
    transaction_id: str = typer.Argument(..., help="Transaction id"),
    new_tag: str = typer.Argument(..., help="Tag to assign"),
    reason: str = typer.Option(
        "Manual update",
        "--reason", "-r",
        help="Why the tag was changed",
    ),
):
    """
    Manually change a transaction's tag and learn from the correction.

    Examples:
        transaction-tagger retag 42 Savings
        transaction-tagger retag 42 Transfers --reason "Rent to flatmate"
    """
    try:
        if not state.service.update_transaction_tag(transaction_id, new_tag, reason):
            console.print(f"[bold red]Error:[/bold red] Transaction {transaction_id} not found")
            raise typer.Exit(code=1)

        txn = state.service.get_transaction(transaction_id)
        console.print(f"[green]✓[/green] {txn.description[:40]} → {format_tag(txn.tag)}")

        rule = state.service.coordinator.state.rule_for(txn.tag)
        if rule is not None:
            console.print(
                f"[dim]→ Learned rule for {rule.tag}: {len(rule.conditions)} conditions, "
                f"confidence {rule.confidence:.2f}[/dim]"
            )

    except typer.Exit:
        raise
    except Exception as e:
        fail(e)


@app.command(name="reevaluate")
def reevaluate():
    """
    Re-classify every transaction with the latest rules.
    """
    try:
        result = state.service.force_reevaluate_all_transactions()
        console.print(Panel.fit(
            f"[bold]Total:[/bold] {result.total}\n"
            f"[green]Changed:[/green] {result.fixed}\n"
            f"[dim]Unchanged:[/dim] {result.unchanged}",
            title="Re-evaluation",
            border_style="cyan"
        ))
    except Exception as e:
        fail(e)


@app.command(name="fix-tags")
def fix_tags():
    """
    Check every tag against the detectors and fix the ones that fail.
    """
    try:
        result = state.service.fix_all_tag_assignments()
        console.print(Panel.fit(
            f"[bold]Checked:[/bold] {result.total}\n"
            f"[green]Fixed:[/green] {result.fixed}\n"
            f"[cyan]Trusted:[/cyan] {result.trusted}\n"
            f"[dim]Skipped:[/dim] {result.skipped}",
            title="Tag fixing",
            border_style="cyan"
        ))
    except Exception as e:
        fail(e)


@app.command(name="rules")
def rules():
    """
    Show learned rules.
    """
    try:
        coordinator = state.service.coordinator
        learned = coordinator.state.rules

        if not learned:
            console.print(Panel(
                "[yellow]No learned rules yet. Retag a few transactions to create some.[/yellow]",
                title="Learned Rules",
                border_style="yellow"
            ))
            return

        rule_table = Table(title="Learned Rules", show_header=True)
        rule_table.add_column("Tag")
        rule_table.add_column("Conditions", max_width=50)
        rule_table.add_column("Confidence", justify="right")
        rule_table.add_column("Assignments", justify="right")
        rule_table.add_column("Used", justify="right")
        rule_table.add_column("Last used", style="dim")

        for rule in learned:
            conditions = ", ".join(
                c.pattern if c.pattern is not None else f"{c.type.value}={c.value}"
                for c in rule.conditions
            )
            rule_table.add_row(
                format_tag(rule.tag),
                conditions,
                f"{rule.confidence:.2f}",
                str(rule.assignments_count),
                str(rule.usage_count),
                rule.last_used or "never",
            )

        console.print(rule_table)
        console.print(
            f"\n[dim]{coordinator.total_rules} rules from "
            f"{coordinator.total_assignments} manual assignments[/dim]"
        )
    except Exception as e:
        fail(e)


@app.command(name="export-rules")
def export_rules(
    filepath: Path = typer.Argument(..., help="Destination JSON file", dir_okay=False),
):
    """
    Export learned rules, assignments and statistics to a JSON file.
    """
    try:
        data = state.service.coordinator.export_learned_rules()
        filepath.write_text(json.dumps(data, indent=2))
        console.print(f"[green]✓[/green] Exported {len(data['rules'])} rules to {filepath}")
    except Exception as e:
        fail(e)


@app.command(name="import-rules")
def import_rules(
    filepath: Path = typer.Argument(
        ...,
        help="JSON file produced by export-rules",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
):
    """
    Replace learned data with a previously exported snapshot.
    """
    try:
        data = json.loads(filepath.read_text())
        if not isinstance(data, dict) or not state.service.coordinator.import_learned_rules(data):
            console.print(f"[bold red]Error:[/bold red] {filepath} is not a valid rules export")
            raise typer.Exit(code=1)
        console.print(f"[green]✓[/green] Imported {state.service.coordinator.total_rules} rules")
    except typer.Exit:
        raise
    except Exception as e:
        fail(e)


@app.command(name="clear-learning")
def clear_learning(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """
    Delete all learned rules and manual assignments.
    """
    try:
        if not yes:
            typer.confirm("Delete all learned rules and manual assignments?", abort=True)
        state.service.coordinator.clear_learned_data()
        console.print("[green]✓[/green] Cleared learned data")
    except typer.Abort:
        raise
    except Exception as e:
        fail(e)


@app.command(name="map")
def map_tag(
    category: str = typer.Argument(..., help="Category, e.g. 'To your accounts'"),
    subcategory: str = typer.Argument(..., help="Subcategory, e.g. 'Savings'"),
    tag: str = typer.Argument(..., help="Tag to assign"),
):
    """
    Map a category/subcategory pair to a tag.

    Examples:
        transaction-tagger map "To your accounts" Savings Savings
    """
    try:
        mapping = state.service.classifier.mapping
        mapping.update_mapping(category, subcategory, tag)
        console.print(
            f"[green]✓[/green] {category} / {subcategory} → "
            f"{format_tag(mapping.get_tag(category, subcategory))}"
        )
    except Exception as e:
        fail(e)


@app.command(name="summary")
def summary():
    """
    Show totals per tag.
    """
    try:
        transactions = state.service.transactions
        if not transactions:
            console.print(Panel(
                "[yellow]No transactions imported yet[/yellow]",
                title="Empty Summary",
                border_style="yellow"
            ))
            return

        totals = {}
        for txn in transactions:
            key = txn.tag or "Untagged"
            totals[key] = totals.get(key, 0) + txn.signed_amount

        breakdown = state.service.tag_breakdown()
        tag_table = Table(show_header=True, box=None, padding=(0, 2))
        tag_table.add_column("Tag", no_wrap=True)
        tag_table.add_column("Count", justify="right")
        tag_table.add_column("% of Total", justify="right", style="dim")
        tag_table.add_column("Amount", justify="right")

        for tag, count in sorted(breakdown.items(), key=lambda x: x[1], reverse=True):
            tag_table.add_row(
                format_tag(tag),
                str(count),
                f"{count / len(transactions) * 100:.1f}%",
                format_amount(totals[tag]),
            )

        console.print(Panel(
            tag_table,
            title=f"[bold]{len(transactions)} transactions[/bold]",
            border_style="cyan",
            padding=(1, 2)
        ))
    except Exception as e:
        fail(e)


def cli_main():
    """Entry point for the CLI"""
    app()


if __name__ == "__main__":
    cli_main()
