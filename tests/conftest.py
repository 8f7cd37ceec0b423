"""Pytest configuration and fixtures."""

import csv
import os
import re
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

# Keep tests independent of a developer's .env
os.environ.setdefault("CDP_URL", "http://localhost:9222")
os.environ.setdefault("PAGE_URL_MATCH", "www-p504.intacct.com")

from intacct_billpay.audit import AuditLog
from intacct_billpay.controller import BillPayController, SessionConfig
from intacct_billpay.errors import UIActionError, UITimeoutError
from intacct_billpay.grid import (
    APPLY_FILTER_BUTTON,
    FILTER_SET_TOGGLE,
    SELECTED_TOTAL,
    VENDOR_FILTER_INPUT,
    BillGrid,
)
from intacct_billpay.ledger import Ledger, load_ledger
from intacct_billpay.payment_form import (
    BANK_SELECT,
    BANK_TOGGLE,
    CANCEL_BUTTON,
    CARD_SELECT,
    CARD_TOGGLE,
    MEMO_INPUT,
    PAY_NOW_BUTTON,
    PAYMENT_DATE_INPUT,
    PAYMENT_METHOD_SELECT,
    SAVE_BUTTON,
    PaymentFormDriver,
)
from intacct_billpay.prompts import Prompter

ROW_PATTERN = re.compile(r"_obj__PAYABLES_(\d+)_-_obj__(RECORDID|VENDORNAME|SELECTED)")

LEDGER_HEADERS = [
    "Invoice number",
    "Payment number",
    "Payment method",
    "Payment date",
    "Amount_1",
    "Error",
    "Error Message",
]


@dataclass
class FakeBill:
    """An open bill listed on the fake Pay bills page."""

    invoice: str
    vendor: str
    amount: Decimal


class FakeIntacctPage:
    """In-memory stand-in for the Pay bills frame.

    Rows are positional and renumber when the vendor filter changes or a
    payment is saved, like the real grid.
    """

    def __init__(self, bills: list[FakeBill], displayed_total: str | None = None):
        self.bills = list(bills)
        self.displayed_total = displayed_total
        self.vendor_filter = ""
        self._filter_input = ""
        self.checked: list[str] = []
        self.payment_method: str | None = None
        self.bank: str | None = None
        self.card: str | None = None
        self.payment_date: str | None = None
        self.memo: str | None = None
        self.on_pay_page = False
        self.saved_payments: list[dict[str, Any]] = []
        self.cancelled = 0
        self.filter_set_clicks: list[str] = []
        self.hidden_rows = False
        self.broken_selectors: set[str] = set()
        self.pauses: list[float] = []
        self.actions: list[tuple[str, str]] = []

    @property
    def rows(self) -> list[FakeBill]:
        if not self.vendor_filter:
            return list(self.bills)
        return [bill for bill in self.bills if bill.vendor == self.vendor_filter]

    def _row(self, selector: str) -> tuple[bool, FakeBill | None, str | None]:
        match = ROW_PATTERN.search(selector)
        if not match:
            return False, None, None
        index, column = int(match.group(1)), match.group(2)
        rows = self.rows
        return True, rows[index] if index < len(rows) else None, column

    def _guard(self, action: str, selector: str) -> None:
        self.actions.append((action, selector))
        if selector in self.broken_selectors:
            raise UIActionError(action, selector, "element is not attached")

    async def count(self, selector: str) -> int:
        is_row, bill, _ = self._row(selector)
        if is_row:
            return 1 if bill is not None else 0
        return 1

    async def wait_visible(self, selector: str, timeout: float) -> None:
        self._guard("wait_visible", selector)
        is_row, bill, _ = self._row(selector)
        if is_row and (bill is None or self.hidden_rows):
            raise UITimeoutError("wait_visible", selector, f"Timeout {timeout}s exceeded")
        if selector == MEMO_INPUT and not self.on_pay_page:
            raise UITimeoutError("wait_visible", selector, f"Timeout {timeout}s exceeded")

    async def wait_attached(self, selector: str, timeout: float) -> None:
        self._guard("wait_attached", selector)

    async def inner_text(self, selector: str) -> str:
        self._guard("inner_text", selector)
        is_row, bill, column = self._row(selector)
        if is_row:
            if bill is None:
                raise UIActionError("inner_text", selector, "no such row")
            return bill.invoice if column == "RECORDID" else bill.vendor
        if selector == SELECTED_TOTAL:
            if self.displayed_total is not None:
                return self.displayed_total
            total = sum(
                (bill.amount for bill in self.bills if bill.invoice in self.checked),
                Decimal("0"),
            )
            return f"{total:,.2f}"
        raise UIActionError("inner_text", selector, "unknown selector")

    async def click(self, selector: str) -> None:
        self._guard("click", selector)
        if selector == APPLY_FILTER_BUTTON:
            self.vendor_filter = self._filter_input
        elif selector == PAY_NOW_BUTTON:
            self.on_pay_page = True
        elif selector == SAVE_BUTTON:
            self.saved_payments.append(
                {
                    "invoices": list(self.checked),
                    "method": self.payment_method,
                    "bank": self.bank,
                    "card": self.card,
                    "date": self.payment_date,
                    "memo": self.memo,
                }
            )
            self.bills = [bill for bill in self.bills if bill.invoice not in self.checked]
            self._reset_form()
        elif selector == CANCEL_BUTTON:
            self.cancelled += 1
            self._reset_form()
        elif "ADVANCEDFILTERsel" in selector:
            self.filter_set_clicks.append(selector)
        elif selector not in (FILTER_SET_TOGGLE, BANK_TOGGLE, CARD_TOGGLE):
            raise UIActionError("click", selector, "unknown selector")

    def _reset_form(self) -> None:
        self.checked = []
        self.on_pay_page = False
        self.memo = None

    async def fill(self, selector: str, value: str) -> None:
        self._guard("fill", selector)
        if selector == VENDOR_FILTER_INPUT:
            self._filter_input = value
        elif selector == PAYMENT_DATE_INPUT:
            self.payment_date = value
        elif selector == MEMO_INPUT:
            self.memo = value
        else:
            raise UIActionError("fill", selector, "unknown selector")

    async def select_option(
        self, selector: str, value: str | None = None, label: str | None = None
    ) -> None:
        self._guard("select_option", selector)
        if selector == PAYMENT_METHOD_SELECT:
            self.payment_method = value
        elif selector == BANK_SELECT:
            self.bank = label
        elif selector == CARD_SELECT:
            self.card = label
        else:
            raise UIActionError("select_option", selector, "unknown selector")

    async def check(self, selector: str) -> None:
        self._guard("check", selector)
        is_row, bill, column = self._row(selector)
        if not is_row or bill is None or column != "SELECTED":
            raise UIActionError("check", selector, "no such checkbox")
        if bill.invoice not in self.checked:
            self.checked.append(bill.invoice)

    async def pause(self, seconds: float) -> None:
        self.pauses.append(seconds)


class ScriptedPrompter(Prompter):
    """Prompter fed from a list of answers."""

    def __init__(self, answers: list[str]):
        self.answers = list(answers)
        self.outputs: list[str] = []
        super().__init__(input_func=self._next_answer, output_func=self.outputs.append)

    def _next_answer(self, prompt: str = "") -> str:
        if not self.answers:
            raise AssertionError(f"Unexpected prompt; last output: {self.outputs[-1:]}")
        return self.answers.pop(0)


def write_ledger(path: Path, rows: list[dict[str, str]]) -> Path:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=LEDGER_HEADERS)
        writer.writeheader()
        for row in rows:
            writer.writerow({header: row.get(header, "") for header in LEDGER_HEADERS})
    return path


def ledger_row(
    invoice: str,
    payment: str,
    amount: str = "100.00",
    method: str = "Check",
    paid_on: str = "2024-01-15",
    error: str = "false",
    message: str = "",
) -> dict[str, str]:
    return {
        "Invoice number": invoice,
        "Payment number": payment,
        "Payment method": method,
        "Payment date": paid_on,
        "Amount_1": amount,
        "Error": error,
        "Error Message": message,
    }


@pytest.fixture
def make_ledger(tmp_path):
    """Write ledger rows to a CSV and load it."""

    def _make(rows: list[dict[str, str]]) -> Ledger:
        return load_ledger(write_ledger(tmp_path / "bills.csv", rows))

    return _make


@pytest.fixture
def audit_log(tmp_path) -> AuditLog:
    log = AuditLog(
        tmp_path / "successful_transactions.csv",
        tmp_path / "error_transactions.csv",
        tmp_path / "pending_transactions.csv",
    )
    log.ensure_files()
    return log


@pytest.fixture
def make_page():
    def _make(bills: list[tuple[str, str, str]], displayed_total: str | None = None):
        return FakeIntacctPage(
            [FakeBill(invoice, vendor, Decimal(amount)) for invoice, vendor, amount in bills],
            displayed_total=displayed_total,
        )

    return _make


@pytest.fixture
def make_prompter():
    def _make(answers: list[str] | None = None) -> ScriptedPrompter:
        return ScriptedPrompter(answers or [])

    return _make


@pytest.fixture
def make_form():
    def _make(page: FakeIntacctPage, prompter: Prompter) -> PaymentFormDriver:
        grid = BillGrid(page, load_timeout=0.1, row_timeout=0.1)
        return PaymentFormDriver(
            page,
            grid,
            prompter,
            bank_account_label="CK_Operating x4047--Truist",
            credit_card_label="CC_Truist",
            settle_delay=0,
            method_delay=0,
            wait_timeout=0.1,
        )

    return _make


@pytest.fixture
def make_controller(audit_log, make_form):
    def _make(
        page: FakeIntacctPage,
        ledger: Ledger,
        prompter: Prompter,
        config: SessionConfig | None = None,
    ) -> BillPayController:
        grid = BillGrid(page, load_timeout=0.1, row_timeout=0.1)
        return BillPayController(
            grid,
            make_form(page, prompter),
            ledger,
            audit_log,
            prompter,
            config or SessionConfig(),
            default_batch_size=5,
        )

    return _make
