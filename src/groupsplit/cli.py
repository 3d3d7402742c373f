"""CLI for GroupSplit using Typer."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .db import Database
from .exceptions import GroupSplitError
from .models import Expense, Group, Participant, PercentageFormat, Share, SplitKind
from .policies import parse_split_kind
from .service import ExpenseService

app = typer.Typer(
    name="groupsplit",
    help="Track shared group expenses and who owes what",
)

console = Console()


def setup_logging(verbose: bool = False, level: str = "INFO"):
    """Setup logging configuration."""
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


@contextmanager
def _session(verbose: bool) -> Iterator[tuple[Database, ExpenseService]]:
    """Open the database and service; report errors and exit non-zero."""
    db = None
    try:
        settings = load_settings()
        setup_logging(verbose, settings.log_level)
        db = Database(settings.database_path)
        yield db, ExpenseService.from_database(db, settings)
    except (GroupSplitError, ValueError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if db is not None:
            db.close()


def parse_decimal(text: str) -> Decimal:
    """Parse a user-supplied number into a Decimal."""
    try:
        return Decimal(text.strip().replace(",", "."))
    except InvalidOperation:
        raise ValueError(f"Invalid number: {text!r}") from None


def parse_share_option(value: str, split_kind: SplitKind) -> Share:
    """
    Parse a ``--share`` option of the form ``ID`` or ``ID:VALUE``.

    VALUE is a percentage for PERCENTAGE expenses and an amount otherwise.
    """
    participant_text, _, value_text = value.partition(":")
    try:
        participant_id = int(participant_text)
    except ValueError:
        raise ValueError(f"Invalid share {value!r}: expected ID or ID:VALUE") from None

    if not value_text:
        return Share(participant_id=participant_id)

    number = parse_decimal(value_text)
    if split_kind is SplitKind.PERCENTAGE:
        return Share(participant_id=participant_id, percentage=number)
    return Share(participant_id=participant_id, share_amount=number)


def format_money(amount: Decimal) -> str:
    """Format an amount with thousands separators and two decimals."""
    return f"${amount:,.2f}"


def display_expense(expense: Expense):
    """Display an expense and its shares in a table."""
    console.print(f"\n[bold]Expense {expense.id}:[/bold] {expense.description}")
    console.print(f"  Group: {expense.group_id}")
    console.print(f"  Paid by: {expense.payer_id}")
    console.print(f"  Amount: {format_money(expense.amount)}")
    console.print(f"  Split: {expense.split_kind.value}")
    if expense.date:
        console.print(f"  Date: {expense.date.date()}")
    console.print()

    table = Table(title="Shares", show_header=True, header_style="bold magenta")
    table.add_column("Share", style="dim", width=8)
    table.add_column("Participant", style="cyan")
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Percentage", justify="right", width=10)
    table.add_column("Settled", justify="center")

    for share in expense.shares:
        percentage = (
            f"{share.percentage * 100:.2f}%" if share.percentage is not None else "-"
        )
        table.add_row(
            str(share.id),
            str(share.participant_id),
            format_money(share.share_amount or Decimal("0")),
            percentage,
            "[green]yes[/green]" if share.settled else "no",
        )

    console.print(table)

    if expense.total_shares() == expense.amount:
        console.print("  [green]✓ Shares add up to the expense amount[/green]")
    else:
        console.print(
            f"  [red]✗ Shares total {format_money(expense.total_shares())}, "
            f"expected {format_money(expense.amount)}[/red]"
        )


@app.command("add-user")
def add_user(
    name: str = typer.Argument(..., help="Display name"),
    email: str = typer.Argument(..., help="Unique email address"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Register a participant."""
    with _session(verbose) as (db, _):
        participant = db.add_participant(Participant(name=name, email=email))
        console.print(f"[green]✓ Created user {participant.id}[/green] ({name})")


@app.command("create-group")
def create_group(
    name: str = typer.Argument(..., help="Group name"),
    members: list[int] = typer.Option(
        [], "--member", "-m", help="Participant ID to add (repeatable)"
    ),
    description: str | None = typer.Option(
        None, "--description", "-d", help="Group description"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a group, optionally with initial members."""
    with _session(verbose) as (db, _):
        group = db.create_group(
            Group(name=name, description=description, member_ids=set(members))
        )
        console.print(
            f"[green]✓ Created group {group.id}[/green] "
            f"with {len(group.member_ids)} members"
        )


@app.command("add-member")
def add_member(
    group_id: int = typer.Argument(..., help="Group ID"),
    user_id: int = typer.Argument(..., help="Participant ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Add a participant to a group."""
    with _session(verbose) as (db, _):
        if db.add_group_member(group_id, user_id):
            console.print(f"[green]✓ Added user {user_id} to group {group_id}[/green]")
        else:
            console.print(
                f"[yellow]User {user_id} is already a member of group {group_id}[/yellow]"
            )


@app.command("add-expense")
def add_expense(
    group_id: int = typer.Argument(..., help="Group ID"),
    amount: str = typer.Argument(..., help="Total amount, e.g. 100.00"),
    payer: int = typer.Option(..., "--payer", "-p", help="Participant ID who paid"),
    shares: list[str] = typer.Option(
        ..., "--share", "-s", help="ID or ID:VALUE (amount or percentage), repeatable"
    ),
    kind: str = typer.Option(
        "equal", "--kind", "-k", help="Split kind: equal, unequal or percentage"
    ),
    description: str = typer.Option(
        "Expense", "--description", "-d", help="Expense description"
    ),
    percent_format: str | None = typer.Option(
        None,
        "--percent-format",
        help="fraction (0-1) or percent (0-100); detected when omitted",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Create an expense split between group members.

    Examples:
        groupsplit add-expense 1 100.00 -p 1 -s 1 -s 2 -s 3
        groupsplit add-expense 1 100.00 -p 1 -k unequal -s 1:40 -s 2:60
        groupsplit add-expense 1 100.00 -p 1 -k percentage -s 1:60 -s 2:40
    """
    with _session(verbose) as (_, service):
        split_kind = parse_split_kind(kind)
        expense = Expense(
            description=description,
            amount=parse_decimal(amount),
            split_kind=split_kind,
            group_id=group_id,
            payer_id=payer,
            percentage_format=PercentageFormat(percent_format) if percent_format else None,
            shares=[parse_share_option(value, split_kind) for value in shares],
        )

        created = service.create_expense(expense)
        display_expense(created)
        console.print(f"\n[bold green]✓ Expense {created.id} created[/bold green]")


@app.command("show-expense")
def show_expense(
    expense_id: int = typer.Argument(..., help="Expense ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show an expense and its shares."""
    with _session(verbose) as (_, service):
        display_expense(service.get_expense(expense_id))


@app.command("list-expenses")
def list_expenses(
    group_id: int = typer.Argument(..., help="Group ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List a group's expenses, newest first."""
    with _session(verbose) as (_, service):
        expenses = service.get_group_expenses(group_id)
        if not expenses:
            console.print("[yellow]No expenses found.[/yellow]")
            return

        table = Table(title=f"Group {group_id} expenses", header_style="bold magenta")
        table.add_column("ID", style="dim", width=6)
        table.add_column("Date", width=12)
        table.add_column("Description", style="cyan")
        table.add_column("Split", width=10)
        table.add_column("Paid by", justify="right")
        table.add_column("Amount", justify="right", width=12)

        for expense in expenses:
            table.add_row(
                str(expense.id),
                str(expense.date.date()) if expense.date else "",
                expense.description,
                expense.split_kind.value,
                str(expense.payer_id),
                format_money(expense.amount),
            )

        console.print(table)


@app.command()
def settle(
    share_id: int = typer.Argument(..., help="Share ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark a share as settled."""
    with _session(verbose) as (_, service):
        share = service.settle_share(share_id)
        console.print(
            f"[green]✓ Share {share.id} settled[/green] "
            f"({format_money(share.share_amount or Decimal('0'))})"
        )


@app.command()
def unsettled(
    user_id: int = typer.Argument(..., help="Participant ID"),
    group_id: int | None = typer.Option(
        None, "--group", "-g", help="Only shares from this group"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List the shares a participant has not settled yet."""
    with _session(verbose) as (_, service):
        if group_id is None:
            shares = service.get_user_unsettled_shares(user_id)
        else:
            shares = service.get_group_user_unsettled_shares(group_id, user_id)

        if not shares:
            console.print("[green]Nothing outstanding.[/green]")
            return

        table = Table(title=f"Unsettled shares for user {user_id}")
        table.add_column("Share", style="dim", width=8)
        table.add_column("Expense", width=8)
        table.add_column("Amount", justify="right", width=12)

        for share in shares:
            table.add_row(
                str(share.id),
                str(share.expense_id),
                format_money(share.share_amount or Decimal("0")),
            )

        console.print(table)
        total = sum((share.share_amount or Decimal("0") for share in shares), Decimal("0"))
        console.print(f"  Total outstanding: {format_money(total)}")


@app.command("delete-expense")
def delete_expense(
    expense_id: int = typer.Argument(..., help="Expense ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Delete an expense and all of its shares."""
    with _session(verbose) as (_, service):
        if not yes and not typer.confirm(f"Delete expense {expense_id}?"):
            console.print("[yellow]Cancelled.[/yellow]")
            return
        service.delete_expense(expense_id)
        console.print(f"[green]✓ Deleted expense {expense_id}[/green]")


if __name__ == "__main__":
    app()
