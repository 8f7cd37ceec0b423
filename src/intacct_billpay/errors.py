"""Error taxonomy for the bill payment run.

Two branches hang off ``BillPayError``:

- ``FatalError``: the environment is unusable (no browser session, the page
  stopped responding, the ledger cannot be read). The controller stops the
  run and exits with status 1.
- ``InvoiceProcessingError``: something went wrong for a single invoice.
  The controller records it in the error log, clears the vendor filter and
  moves on to the next invoice.
"""

from typing import Any


class BillPayError(Exception):
    """Base exception for bill payment automation errors."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


# === Environment fatal ===


class FatalError(BillPayError):
    """The run cannot continue."""

    pass


class ConfigurationError(FatalError):
    """Required configuration is missing or invalid."""

    pass


class LedgerError(FatalError):
    """The ledger CSV is missing or malformed."""

    pass


class SessionNotFoundError(FatalError):
    """No attachable browser session or Intacct page was found."""

    pass


class PageTimeoutError(FatalError):
    """The Intacct page did not render within the bounded wait."""

    def __init__(self, selector: str, timeout: float):
        super().__init__(f"Timed out after {timeout:g}s waiting for {selector}")
        self.selector = selector
        self.timeout = timeout


# === Per-invoice ===


class InvoiceProcessingError(BillPayError):
    """Processing of the current invoice failed."""

    pass


class UIActionError(InvoiceProcessingError):
    """A UI action (click, fill, select) failed."""

    def __init__(self, action: str, selector: str, message: str):
        super().__init__(f"{action} failed on {selector}: {message}")
        self.action = action
        self.selector = selector


class UITimeoutError(UIActionError):
    """A UI wait timed out in a step where a timeout is not fatal."""

    pass


class RowNotFoundError(InvoiceProcessingError):
    """An invoice could not be located in the bill grid."""

    def __init__(self, invoice_number: str, rows_scanned: int):
        super().__init__(f"Invoice {invoice_number} not found in {rows_scanned} rows.")
        self.invoice_number = invoice_number
        self.rows_scanned = rows_scanned


class AmountMismatchError(InvoiceProcessingError):
    """The selected total on screen differs from the ledger amount."""

    pass


class PaymentFormError(InvoiceProcessingError):
    """The payment form could not be filled in."""

    pass
