# ui.py

import colorsys
import json
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple

from rich.color import Color
from rich.style import Style
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message
from textual.reactive import reactive
from textual.widget import Widget
from textual.widgets import Button, DataTable, Footer, Header, Input, Label, Static

# Import the splitting logic
import logic

PERCENT_STEP = Decimal("0.1")


def format_money(amount: Decimal, currency: str = "$") -> str:
    return f"{currency}{amount:.2f}"


def format_percentage(percentage: Decimal) -> str:
    return f"{percentage:.1f}%"


def party_color(index: int, count: int) -> Color:
    """Evenly spaced hues around the colour wheel, one per party."""
    red, green, blue = colorsys.hls_to_rgb(index / count, 0.6, 0.7)
    return Color.from_rgb(red * 255, green * 255, blue * 255)


def segment_widths(allocation: logic.Allocation, width: int) -> List[Tuple[str, int]]:
    """
    Split `width` cells between parties in proportion to their percentages.
    Leftover cells go to the largest remainders so the widths fill the bar.
    """
    if width <= 0:
        return [(party.id, 0) for party in allocation]
    exact = [party.percentage * width / logic.HUNDRED for party in allocation]
    widths = [int(cells) for cells in exact]
    leftover = width - sum(widths)
    by_remainder = sorted(
        range(len(exact)), key=lambda i: exact[i] - widths[i], reverse=True
    )
    for i in by_remainder[:leftover]:
        widths[i] += 1
    return [(party.id, cells) for party, cells in zip(allocation, widths)]


# --- WIDGET FOR ONE PARTY'S SHARE ---
class PartyInput(Widget):
    """A party's percentage input and a preview of its share of the amount."""

    DEFAULT_CSS = """
    PartyInput {
        height: auto;
        border: round $primary;
        padding: 0 1;
    }
    PartyInput Horizontal {
        height: auto;
    }
    PartyInput Input {
        width: 16;
    }
    PartyInput .unit {
        padding: 1 1 0 0;
    }
    PartyInput .share {
        width: 1fr;
        padding: 1 1 0 0;
        text-align: right;
    }
    """

    class Changed(Message):
        """Message posted when a new percentage is submitted."""

        def __init__(self, party_input: Widget, party_id: str, value: Decimal) -> None:
            self.party_input = party_input
            self.party_id = party_id
            self.value = value
            super().__init__()

    def __init__(self, party: logic.Party, **kwargs) -> None:
        super().__init__(**kwargs)
        self.party_id = party.id
        self.percentage = party.percentage
        self.share_text = ""
        self.input = Input(
            value=f"{party.percentage:.1f}", placeholder="0.0", type="number"
        )
        self.share = Static("", classes="share")

    def compose(self) -> ComposeResult:
        with Horizontal():
            yield self.input
            yield Label("%", classes="unit")
            yield self.share

    def on_mount(self) -> None:
        self.border_title = self.party_id

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        try:
            value = Decimal(event.value.strip())
        except InvalidOperation:
            value = None
        if value is None or not value.is_finite():
            self.notify(f"⚠️ '{event.value}' is not a percentage.", severity="error")
            self.input.value = f"{self.percentage:.1f}"
            return
        value = min(max(value, Decimal(0)), logic.HUNDRED).quantize(PERCENT_STEP)
        self.post_message(self.Changed(self, self.party_id, value))

    def show(self, party: logic.Party, share_text: str) -> None:
        self.party_id = party.id
        self.percentage = party.percentage
        self.border_title = party.id
        text = f"{party.percentage:.1f}"
        if self.input.value != text:
            self.input.value = text
        self.show_share(share_text)

    def show_share(self, share_text: str) -> None:
        self.share_text = share_text
        self.share.update(f"{self.party_id}: {share_text}")

    @property
    def value(self) -> str:
        return self.input.value


class PercentageBar(Widget):
    """A one-line bar with a coloured segment per party."""

    DEFAULT_CSS = """
    PercentageBar {
        height: 1;
        margin: 1 0;
    }
    """

    allocation = reactive(())

    def render(self) -> Text:
        bar = Text()
        count = len(self.allocation)
        for index, (party_id, cells) in enumerate(
            segment_widths(self.allocation, self.size.width)
        ):
            if cells:
                style = Style(color="black", bgcolor=party_color(index, count), bold=True)
                bar.append(party_id.center(cells), style=style)
        return bar


# --- MAIN APP ---
class SplitsyApp(App):
    """A Textual app that splits expenses between lettered parties by percentage."""

    TITLE = "Splitsy"
    CSS = """
    #main_container {
        padding: 0 1;
    }
    #party_list {
        height: auto;
    }
    .party-buttons {
        height: auto;
        margin-top: 1;
    }
    .party-buttons Button {
        margin-right: 1;
    }
    #add_expense {
        width: 100%;
        margin: 1 0;
    }
    #totals, #status {
        margin-top: 1;
    }
    """
    BINDINGS = [
        ("d", "toggle_dark", "Toggle dark mode"),
        ("f2", "add_party", "Add party"),
        ("f3", "remove_party", "Remove party"),
        ("escape", "quit", "Quit"),
    ]

    def __init__(self, settings_path: Optional[str] = None):
        self.settings_path = settings_path
        self.settings = dict(logic.DEFAULT_SETTINGS)
        self.allocation = logic.new_allocation()
        self.ledger: logic.Ledger = ()
        super().__init__()

    def compose(self) -> ComposeResult:
        yield Header()
        yield VerticalScroll(
            Label("Percentages for each party (press Enter to apply):"),
            Vertical(*[PartyInput(party) for party in self.allocation], id="party_list"),
            Horizontal(
                Button("+ Add Party", id="add_party", variant="success"),
                Button("- Remove Party", id="remove_party", variant="error"),
                classes="party-buttons",
            ),
            PercentageBar(id="bar"),
            Input(placeholder="Expense description", id="description"),
            Input(placeholder="Amount (e.g., 45 or 90/2)", id="amount"),
            Button("Add Expense", variant="primary", id="add_expense"),
            DataTable(id="ledger"),
            Static(id="totals"),
            Static(id="status"),
            id="main_container",
        )
        yield Footer()

    async def on_mount(self) -> None:
        table = self.query_one("#ledger", DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True

        if self.settings_path:
            self.load_settings(self.settings_path)
        self.allocation = logic.new_allocation(self.settings["parties"])
        await self._sync_parties()
        self._refresh()

    def load_settings(self, filepath: str) -> None:
        try:
            self.settings = logic.load_settings(filepath)
        except FileNotFoundError:
            self._status(f"[bold red]Error: {filepath} not found.[/bold red]")
        except json.JSONDecodeError:
            self._status(f"[bold red]Error: Could not decode {filepath}.[/bold red]")
        except logic.SplitsyError as e:
            self._status(f"[bold red]Error: {e}[/bold red]")
        else:
            self.log.info(f"Loaded settings from {filepath}: {self.settings}")

    def _status(self, markup: str) -> None:
        self.log.info(Text.from_markup(markup).plain)
        self.query_one("#status", Static).update(markup)

    # --- Event handlers ---

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "add_party":
            await self.action_add_party()
        elif event.button.id == "remove_party":
            await self.action_remove_party()
        elif event.button.id == "add_expense":
            self.action_add_expense()

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "amount":
            self._refresh_shares()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "description":
            self.query_one("#amount", Input).focus()
        elif event.input.id == "amount":
            self.action_add_expense()

    def on_party_input_changed(self, message: PartyInput.Changed) -> None:
        try:
            self.allocation = logic.set_percentage(
                self.allocation, message.party_id, message.value
            )
        except logic.PartyNotFoundError as e:
            self.log.error(str(e))
            self.notify(f"⚠️ {e}", severity="error")
            return
        self._refresh()

    # --- Actions ---

    async def action_add_party(self) -> None:
        try:
            self.allocation = logic.add_party(self.allocation)
        except logic.PartyCapacityError as e:
            self.notify(f"⚠️ {e}", severity="warning")
            return
        await self._sync_parties()
        self._refresh()
        self._status(f"Party {self.allocation[-1].id} added.")

    async def action_remove_party(self) -> None:
        allocation = logic.remove_party(self.allocation)
        if allocation is self.allocation:
            self._status(
                f"[bold yellow]At least {logic.MIN_PARTIES} parties are needed.[/bold yellow]"
            )
            return
        removed = self.allocation[-1].id
        self.allocation = allocation
        await self._sync_parties()
        self._refresh()
        self._status(f"Party {removed} removed.")

    def action_add_expense(self) -> None:
        description = self.query_one("#description", Input)
        amount = self.query_one("#amount", Input)
        ledger = logic.add_expense(
            description.value, amount.value, self.allocation, self.ledger
        )
        if ledger is self.ledger:
            return
        self.ledger = ledger
        expense = ledger[-1]
        description.value = ""
        amount.value = ""
        description.focus()
        self._refresh()
        self._status(
            f"Added {expense.description} "
            f"({format_money(expense.amount, self.settings['currency'])})."
        )

    def action_toggle_dark(self) -> None:
        self.theme = "textual-light" if self.theme == "textual-dark" else "textual-dark"

    # --- Rendering ---

    async def _sync_parties(self) -> None:
        """Mount or remove PartyInput widgets so there is one per party."""
        party_list = self.query_one("#party_list")
        widgets = list(self.query(PartyInput))
        for widget in widgets[len(self.allocation):]:
            await widget.remove()
        added = [PartyInput(party) for party in self.allocation[len(widgets):]]
        if added:
            await party_list.mount(*added)

    def _preview_shares(self) -> Dict[str, Decimal]:
        try:
            amount = logic.safe_decimal_eval(self.query_one("#amount", Input).value)
            splits = logic.compute_splits(amount, self.allocation)
        except logic.CalculationError:
            return {}
        return {split.id: split.amount for split in splits}

    def _refresh_parties(self) -> None:
        currency = self.settings["currency"]
        shares = self._preview_shares()
        for widget, party in zip(self.query(PartyInput), self.allocation):
            widget.show(party, format_money(shares.get(party.id, Decimal(0)), currency))

    def _refresh_shares(self) -> None:
        """Update share previews only, leaving unsubmitted percentages alone."""
        currency = self.settings["currency"]
        shares = self._preview_shares()
        for widget in self.query(PartyInput):
            widget.show_share(format_money(shares.get(widget.party_id, Decimal(0)), currency))

    def _refresh(self) -> None:
        self._refresh_parties()
        self.query_one("#bar", PercentageBar).allocation = self.allocation
        self._refresh_ledger()

    def _refresh_ledger(self) -> None:
        currency = self.settings["currency"]
        ids = sorted(
            {party.id for party in self.allocation}
            | {split.id for expense in self.ledger for split in expense.splits}
        )

        table = self.query_one("#ledger", DataTable)
        table.clear(columns=True)
        table.add_columns("Expense", "Amount", *ids)
        for expense in self.ledger:
            amounts = {split.id: split.amount for split in expense.splits}
            table.add_row(
                expense.description,
                Text(format_money(expense.amount, currency), justify="right"),
                *[
                    Text(format_money(amounts[i], currency), justify="right")
                    if i in amounts
                    else ""
                    for i in ids
                ],
            )

        totals = self.query_one("#totals", Static)
        if not self.ledger:
            totals.update("")
            return
        per_party = "  ".join(
            f"{party_id}: {format_money(amount, currency)}"
            for party_id, amount in logic.party_totals(self.ledger).items()
        )
        totals.update(
            f"[bold]Total: {format_money(logic.ledger_total(self.ledger), currency)}[/bold]"
            f"  {per_party}"
        )
