import argparse
import json
import sys
from typing import List, Optional, Tuple

from rich.console import Console, RenderableType
from rich.prompt import Prompt
from rich.table import Table

import logic
from ui import SplitsyApp, format_money, format_percentage

HELP = """[bold]Commands[/bold]
  add                          add a party (everyone gets an equal share)
  remove                       remove the last party
  set <ID> <percent>           pin a party's percentage, rescale the rest
  expense <amount> <text...>   record an expense, e.g. expense 90/2 Taxi
  show                         show the current allocation
  ledger                       show recorded expenses
  quit                         leave"""

QUIT_COMMANDS = ("quit", "exit", "q")


def render_allocation(allocation: logic.Allocation) -> str:
    return "  ".join(
        f"[bold]{party.id}[/bold]: {format_percentage(party.percentage)}"
        for party in allocation
    )


def render_ledger(
    ledger: logic.Ledger, allocation: logic.Allocation, currency: str = "$"
) -> Table:
    ids = sorted(
        {party.id for party in allocation}
        | {split.id for expense in ledger for split in expense.splits}
    )
    table = Table(title="Expenses")
    table.add_column("Expense")
    table.add_column("Amount", justify="right")
    for party_id in ids:
        table.add_column(party_id, justify="right")

    for expense in ledger:
        amounts = {split.id: split.amount for split in expense.splits}
        table.add_row(
            expense.description,
            format_money(expense.amount, currency),
            *[
                format_money(amounts[i], currency) if i in amounts else ""
                for i in ids
            ],
        )
    if ledger:
        totals = logic.party_totals(ledger)
        table.add_row(
            "[bold]Total[/bold]",
            f"[bold]{format_money(logic.ledger_total(ledger), currency)}[/bold]",
            *[
                format_money(totals[i], currency) if i in totals else ""
                for i in ids
            ],
        )
    return table


def handle_command(
    line: str,
    allocation: logic.Allocation,
    ledger: logic.Ledger,
    currency: str = "$",
) -> Tuple[logic.Allocation, logic.Ledger, Optional[RenderableType]]:
    """
    Apply one console command and return the new state plus what to print.
    The output is None when the command ends the session.
    """
    parts = line.split(maxsplit=2)
    if not parts:
        return allocation, ledger, ""
    command = parts[0].lower()
    if command in QUIT_COMMANDS:
        return allocation, ledger, None

    try:
        if command == "add":
            allocation = logic.add_party(allocation)
            return allocation, ledger, render_allocation(allocation)

        if command == "remove":
            updated = logic.remove_party(allocation)
            if updated is allocation:
                return allocation, ledger, (
                    f"[bold yellow]At least {logic.MIN_PARTIES} parties are needed.[/bold yellow]"
                )
            return updated, ledger, render_allocation(updated)

        if command == "set":
            if len(parts) != 3:
                return allocation, ledger, "[bold red]Usage: set <ID> <percent>[/bold red]"
            allocation = logic.set_percentage(allocation, parts[1].upper(), parts[2])
            return allocation, ledger, render_allocation(allocation)

        if command == "expense":
            if len(parts) != 3:
                return allocation, ledger, (
                    "[bold red]Usage: expense <amount> <description>[/bold red]"
                )
            updated = logic.add_expense(parts[2], parts[1], allocation, ledger)
            if updated is ledger:
                return allocation, ledger, (
                    "[bold yellow]Expense needs a description and an amount "
                    "greater than zero.[/bold yellow]"
                )
            expense = updated[-1]
            shares = ", ".join(
                f"{split.id}: {format_money(split.amount, currency)}"
                for split in expense.splits
            )
            return allocation, updated, (
                f"[bold]{expense.description}[/bold] "
                f"{format_money(expense.amount, currency)} -> {shares}"
            )

        if command == "show":
            return allocation, ledger, render_allocation(allocation)

        if command == "ledger":
            return allocation, ledger, render_ledger(ledger, allocation, currency)

        if command == "help":
            return allocation, ledger, HELP

    except logic.SplitsyError as e:
        return allocation, ledger, f"[bold red]Error: {e}[/bold red]"

    return allocation, ledger, (
        f"[bold red]Unknown command: {command}[/bold red] (type 'help')"
    )


def run_console(console: Console, settings: dict) -> None:
    allocation = logic.new_allocation(settings["parties"])
    ledger: logic.Ledger = ()
    console.print("[bold]Splitsy[/bold] - type 'help' for commands.")
    console.print(render_allocation(allocation))

    while True:
        try:
            line = Prompt.ask("splitsy", console=console)
        except (EOFError, KeyboardInterrupt):
            break
        allocation, ledger, output = handle_command(
            line, allocation, ledger, settings["currency"]
        )
        if output is None:
            break
        if output:
            console.print(output)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Split expenses between parties by percentage."
    )
    parser.add_argument(
        "--console", action="store_true", help="use the line-based console instead of the TUI"
    )
    parser.add_argument(
        "--config", metavar="PATH", help="JSON settings file (currency, parties)"
    )
    args = parser.parse_args(argv)

    if not args.console:
        SplitsyApp(settings_path=args.config).run()
        return 0

    console = Console()
    settings = dict(logic.DEFAULT_SETTINGS)
    if args.config:
        try:
            settings = logic.load_settings(args.config)
        except FileNotFoundError:
            console.print(f"[bold red]Error: {args.config} not found.[/bold red]")
            return 1
        except json.JSONDecodeError:
            console.print(f"[bold red]Error: Could not decode {args.config}.[/bold red]")
            return 1
        except logic.SplitsyError as e:
            console.print(f"[bold red]Error: {e}[/bold red]")
            return 1
    run_console(console, settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
