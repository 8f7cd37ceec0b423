"""Intacct Bill Pay - reconcile a payment ledger against open Intacct bills."""

__version__ = "0.1.0"

from intacct_billpay.audit import AuditLog, AuditRecord, AuditStatus
from intacct_billpay.config import configure_logging, get_settings
from intacct_billpay.controller import (
    BillPayController,
    ExitCode,
    RunMode,
    SessionConfig,
    SessionState,
    collect_session_config,
    run_session,
)
from intacct_billpay.errors import (
    AmountMismatchError,
    BillPayError,
    FatalError,
    InvoiceProcessingError,
    PageTimeoutError,
    RowNotFoundError,
    SessionNotFoundError,
)
from intacct_billpay.grid import BillGrid
from intacct_billpay.ledger import (
    Ledger,
    LedgerRow,
    MatchError,
    MatchResult,
    MatchSkip,
    MatchSuccess,
    compare_invoice_numbers,
    load_ledger,
)
from intacct_billpay.payment_form import PaymentFormDriver, SubmitOutcome
from intacct_billpay.prompts import Prompter

__all__ = [
    # Version
    "__version__",
    # Ledger
    "Ledger",
    "LedgerRow",
    "MatchResult",
    "MatchSkip",
    "MatchError",
    "MatchSuccess",
    "compare_invoice_numbers",
    "load_ledger",
    # Audit
    "AuditLog",
    "AuditRecord",
    "AuditStatus",
    # UI
    "BillGrid",
    "PaymentFormDriver",
    "SubmitOutcome",
    "Prompter",
    # Controller
    "BillPayController",
    "ExitCode",
    "RunMode",
    "SessionConfig",
    "SessionState",
    "collect_session_config",
    "run_session",
    # Errors
    "BillPayError",
    "FatalError",
    "InvoiceProcessingError",
    "PageTimeoutError",
    "RowNotFoundError",
    "SessionNotFoundError",
    "AmountMismatchError",
    # Config
    "get_settings",
    "configure_logging",
]
