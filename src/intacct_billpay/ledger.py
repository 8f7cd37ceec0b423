"""Payment ledger loading and invoice matching.

The ledger is a CSV export listing which invoices are paid by which payment.
One payment can cover several invoices, so rows are grouped by payment
number. ``Ledger.match`` classifies an on-screen invoice as a skip, an error
or a payable group.
"""

import csv
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

import structlog

from intacct_billpay.errors import LedgerError

logger = structlog.get_logger(__name__)


# Ledger column headers as exported
COL_INVOICE_NUMBER = "Invoice number"
COL_PAYMENT_NUMBER = "Payment number"
COL_PAYMENT_METHOD = "Payment method"
COL_PAYMENT_DATE = "Payment date"
COL_AMOUNT = "Amount_1"
COL_ERROR = "Error"
COL_ERROR_MESSAGE = "Error Message"

REQUIRED_COLUMNS = (
    COL_INVOICE_NUMBER,
    COL_PAYMENT_NUMBER,
    COL_PAYMENT_METHOD,
    COL_PAYMENT_DATE,
    COL_AMOUNT,
)

SKIP_NO_INVOICE = "No matching invoice found"
SKIP_NO_PAYMENT_NUMBER = "Missing or blank payment number"
SKIP_NO_PAYMENT_ROWS = "No matching payment rows found"
DEFAULT_ERROR_MESSAGE = "CSV error - payment and payment number amounts don't match"

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%m-%d-%Y")


# =============================================================================
# VALUE HELPERS
# =============================================================================


def strip_quotes(value: str | None) -> str:
    """Remove surrounding whitespace and double quotes."""
    if value is None:
        return ""
    return value.strip().strip('"').strip()


def normalize_invoice_number(value: str | None) -> str:
    """Canonical invoice identity: unquoted, trimmed, without leading zeros."""
    return strip_quotes(value).lstrip("0")


def compare_invoice_numbers(first: str | None, second: str | None) -> bool:
    """Compare two invoice numbers, ignoring leading zeros."""
    return normalize_invoice_number(first) == normalize_invoice_number(second)


def parse_amount(text: str | None) -> Decimal:
    """Parse a money string such as ``$1,234.50``.

    Raises:
        ValueError: If the text is not a number.
    """
    cleaned = strip_quotes(text).replace("$", "").replace(",", "").replace(" ", "")
    if not cleaned:
        raise ValueError(f"Empty amount: {text!r}")
    try:
        return Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {text!r}") from e


def parse_payment_date(text: str | None) -> date | None:
    """Parse a ledger date. Returns None for blank or unrecognized values."""
    value = strip_quotes(text)
    if not value:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def format_payment_date(value: date) -> str:
    """Format a date the way the Intacct date field expects (MM/DD/YYYY)."""
    return value.strftime("%m/%d/%Y")


# =============================================================================
# DATA STRUCTURES
# =============================================================================


@dataclass(frozen=True)
class LedgerRow:
    """One invoice/payment pair from the ledger."""

    invoice_number: str
    payment_number: str
    payment_method: str
    payment_date: date | None
    amount: Decimal | None
    has_error: bool = False
    error_message: str | None = None

    @classmethod
    def from_csv(cls, row: dict[str, str | None]) -> "LedgerRow":
        try:
            amount: Decimal | None = parse_amount(row.get(COL_AMOUNT))
        except ValueError:
            amount = None
        return cls(
            invoice_number=strip_quotes(row.get(COL_INVOICE_NUMBER)),
            payment_number=strip_quotes(row.get(COL_PAYMENT_NUMBER)),
            payment_method=strip_quotes(row.get(COL_PAYMENT_METHOD)),
            payment_date=parse_payment_date(row.get(COL_PAYMENT_DATE)),
            amount=amount,
            has_error=strip_quotes(row.get(COL_ERROR)).lower() == "true",
            error_message=strip_quotes(row.get(COL_ERROR_MESSAGE)) or None,
        )


@dataclass(frozen=True)
class MatchSkip:
    """The invoice cannot be paid from the ledger."""

    reason: str
    payment_number: str | None = None


@dataclass(frozen=True)
class MatchError:
    """The ledger flags the payment group as erroneous."""

    reason: str
    payment_number: str | None = None


@dataclass(frozen=True)
class MatchSuccess:
    """The invoice belongs to a payable group."""

    invoice_row: LedgerRow
    payment_rows: tuple[LedgerRow, ...]

    @property
    def payment(self) -> LedgerRow:
        """First row of the group; carries method, date and amount."""
        return self.payment_rows[0]

    @property
    def payment_number(self) -> str:
        return self.payment.payment_number


MatchResult = MatchSkip | MatchError | MatchSuccess


# =============================================================================
# LEDGER
# =============================================================================


class Ledger:
    """Immutable snapshot of the payment ledger."""

    def __init__(self, rows: list[LedgerRow] | tuple[LedgerRow, ...]):
        self.rows = tuple(rows)
        self._by_payment: dict[str, list[LedgerRow]] = defaultdict(list)
        for row in self.rows:
            if row.payment_number:
                self._by_payment[row.payment_number].append(row)

    def __len__(self) -> int:
        return len(self.rows)

    def find_invoice(self, invoice_id: str) -> LedgerRow | None:
        """First row whose invoice number matches."""
        for row in self.rows:
            if compare_invoice_numbers(row.invoice_number, invoice_id):
                return row
        return None

    def payment_group(self, payment_number: str) -> tuple[LedgerRow, ...]:
        """All rows sharing a payment number."""
        return tuple(self._by_payment.get(payment_number, ()))

    def match(self, invoice_id: str) -> MatchResult:
        """Classify an invoice against the ledger."""
        invoice_row = self.find_invoice(invoice_id)
        if invoice_row is None:
            return MatchSkip(SKIP_NO_INVOICE)

        payment_number = invoice_row.payment_number
        if not payment_number:
            return MatchSkip(SKIP_NO_PAYMENT_NUMBER)

        group = self.payment_group(payment_number)
        if not group:
            return MatchSkip(SKIP_NO_PAYMENT_ROWS, payment_number)

        flagged = [row for row in group if row.has_error]
        if invoice_row.has_error:
            flagged.insert(0, invoice_row)
        if flagged:
            return MatchError(
                flagged[0].error_message or DEFAULT_ERROR_MESSAGE,
                payment_number,
            )

        return MatchSuccess(invoice_row=invoice_row, payment_rows=group)


def load_ledger(path: Path | str) -> Ledger:
    """Read the ledger CSV.

    Raises:
        LedgerError: If the file is missing or lacks required columns.
    """
    path = Path(path)
    try:
        with path.open(newline="", encoding="utf-8-sig") as handle:
            reader = csv.DictReader(handle)
            headers = [strip_quotes(name) for name in (reader.fieldnames or [])]
            missing = [col for col in REQUIRED_COLUMNS if col not in headers]
            if missing:
                raise LedgerError(
                    f"Ledger {path} is missing columns: {', '.join(missing)}",
                    details={"headers": headers},
                )
            reader.fieldnames = headers
            rows = [LedgerRow.from_csv(row) for row in reader]
    except OSError as e:
        raise LedgerError(f"Cannot read ledger {path}: {e}") from e

    logger.info(
        "ledger_loaded",
        path=str(path),
        rows=len(rows),
        flagged=sum(1 for row in rows if row.has_error),
    )
    return Ledger(rows)
