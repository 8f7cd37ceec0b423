"""Append-only audit log of processed invoices.

Two CSV files make up the log:

- ``successful_transactions.csv``: payments saved in Intacct.
- ``error_transactions.csv``: invoices that were skipped or failed. Every
  invoice listed here is left alone on later runs (the resume-skip set)
  until the operator chooses to reprocess errors.

A third file holds a pending-save checkpoint written just before Save is
clicked. If the process dies between the click and the audit append, the
leftover checkpoint is turned into an error record on the next start so the
invoice is not paid twice.
"""

import csv
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

from intacct_billpay.ledger import normalize_invoice_number, strip_quotes

logger = structlog.get_logger(__name__)


SUCCESS_HEADERS = ("Invoice Number", "Payment Number", "Status")
ERROR_HEADERS = ("Invoice Number", "Payment Number", "Status", "Error Message")
PENDING_HEADERS = ("Invoice Number", "Payment Number", "Status")

NO_PAYMENT_NUMBER = "N/A"
UNKNOWN_OUTCOME_MESSAGE = (
    "Save outcome unknown; verify payment in Intacct before reprocessing."
)


class AuditStatus(str, Enum):
    """Outcome recorded for an invoice."""

    SUCCESS = "Success"
    ERROR = "Error"
    SKIPPED = "Skipped"
    PENDING = "Pending"


@dataclass(frozen=True)
class AuditRecord:
    """One line of the audit trail."""

    invoice_number: str
    payment_number: str | None
    status: AuditStatus
    message: str | None = None

    @classmethod
    def success(cls, invoice_number: str, payment_number: str | None) -> "AuditRecord":
        return cls(invoice_number, payment_number, AuditStatus.SUCCESS)

    @classmethod
    def error(
        cls, invoice_number: str, payment_number: str | None, message: str
    ) -> "AuditRecord":
        return cls(invoice_number, payment_number, AuditStatus.ERROR, message)

    @classmethod
    def skipped(
        cls, invoice_number: str, payment_number: str | None, message: str
    ) -> "AuditRecord":
        return cls(invoice_number, payment_number, AuditStatus.SKIPPED, message)


def _ensure_header(path: Path, headers: tuple[str, ...]) -> None:
    """Create the file or put the expected header on its first line."""
    header_line = ",".join(headers)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(header_line + "\n", encoding="utf-8")
        logger.info("audit_file_created", path=str(path))
        return

    content = path.read_text(encoding="utf-8")
    first_line, _, rest = content.partition("\n")
    first_line = first_line.rstrip("\r")
    if first_line == header_line:
        return

    # An outdated header is replaced; anything else is data and is kept
    if strip_quotes(first_line.split(",", 1)[0]) == headers[0]:
        content = rest
    if content and not content.endswith("\n"):
        content += "\n"
    path.write_text(header_line + "\n" + content, encoding="utf-8")
    logger.warning("audit_header_repaired", path=str(path), found=first_line)


class AuditLog:
    """Success/error CSV files doubling as resume state."""

    def __init__(self, success_path: Path, error_path: Path, pending_path: Path):
        self.success_path = Path(success_path)
        self.error_path = Path(error_path)
        self.pending_path = Path(pending_path)
        self._logger = logger.bind(component="audit_log")

    def ensure_files(self) -> None:
        """Create missing files and repair their headers."""
        _ensure_header(self.success_path, SUCCESS_HEADERS)
        _ensure_header(self.error_path, ERROR_HEADERS)
        _ensure_header(self.pending_path, PENDING_HEADERS)

    def clear_errors(self) -> None:
        """Empty the error partition so its invoices are processed again."""
        self.error_path.parent.mkdir(parents=True, exist_ok=True)
        self.error_path.write_text(",".join(ERROR_HEADERS) + "\n", encoding="utf-8")
        self._logger.info("error_log_cleared", path=str(self.error_path))

    # === Writing ===

    def append(self, record: AuditRecord) -> None:
        """Append a record to the success or error partition."""
        payment_number = record.payment_number or NO_PAYMENT_NUMBER
        if record.status == AuditStatus.SUCCESS:
            self._write_row(
                self.success_path,
                [record.invoice_number, payment_number, record.status.value],
            )
        else:
            self._write_row(
                self.error_path,
                [
                    record.invoice_number,
                    payment_number,
                    record.status.value,
                    record.message or "",
                ],
            )
        self._logger.info(
            "audit_record_appended",
            invoice=record.invoice_number,
            payment=payment_number,
            status=record.status.value,
            message=record.message,
        )

    def _write_row(self, path: Path, values: list[str]) -> None:
        with path.open("a", newline="", encoding="utf-8") as handle:
            csv.writer(handle, quoting=csv.QUOTE_ALL).writerow(values)

    # === Resume state ===

    def _read_rows(self, path: Path) -> list[dict[str, str]]:
        if not path.exists():
            return []
        with path.open(newline="", encoding="utf-8") as handle:
            return [row for row in csv.DictReader(handle) if row]

    def error_records(self) -> list[AuditRecord]:
        """Records in the error partition."""
        records = []
        for row in self._read_rows(self.error_path):
            invoice = strip_quotes(row.get("Invoice Number"))
            if not invoice:
                continue
            status_text = strip_quotes(row.get("Status"))
            try:
                status = AuditStatus(status_text)
            except ValueError:
                status = AuditStatus.ERROR
            records.append(
                AuditRecord(
                    invoice_number=invoice,
                    payment_number=strip_quotes(row.get("Payment Number")) or None,
                    status=status,
                    message=strip_quotes(row.get("Error Message")) or None,
                )
            )
        return records

    def skip_set(self) -> set[str]:
        """Normalized invoice numbers that must not be reprocessed."""
        return {
            normalize_invoice_number(record.invoice_number)
            for record in self.error_records()
        }

    def is_resume_skipped(self, invoice_number: str) -> bool:
        return normalize_invoice_number(invoice_number) in self.skip_set()

    # === Pending-save checkpoint ===

    def record_intent(self, invoice_number: str, payment_number: str | None) -> None:
        """Note that Save is about to be clicked for this payment."""
        self._write_row(
            self.pending_path,
            [
                invoice_number,
                payment_number or NO_PAYMENT_NUMBER,
                AuditStatus.PENDING.value,
            ],
        )
        self._logger.debug("save_intent_recorded", invoice=invoice_number)

    def clear_intent(self) -> None:
        """Drop the checkpoint once the outcome is in the audit log."""
        self.pending_path.write_text(",".join(PENDING_HEADERS) + "\n", encoding="utf-8")

    def pending_intents(self) -> list[AuditRecord]:
        return [
            AuditRecord(
                invoice_number=strip_quotes(row.get("Invoice Number")),
                payment_number=strip_quotes(row.get("Payment Number")) or None,
                status=AuditStatus.PENDING,
            )
            for row in self._read_rows(self.pending_path)
            if strip_quotes(row.get("Invoice Number"))
        ]

    def recover_pending(self) -> list[AuditRecord]:
        """Turn checkpoints left by an interrupted run into error records.

        Intents for invoices already in the error partition are dropped.

        Returns:
            The error records written.
        """
        intents = self.pending_intents()
        already_logged = self.skip_set()
        recovered = []
        for intent in intents:
            if normalize_invoice_number(intent.invoice_number) in already_logged:
                self._logger.debug("save_intent_already_logged", invoice=intent.invoice_number)
                continue
            record = AuditRecord.error(
                intent.invoice_number, intent.payment_number, UNKNOWN_OUTCOME_MESSAGE
            )
            self.append(record)
            recovered.append(record)
            self._logger.warning(
                "unresolved_save_intent",
                invoice=intent.invoice_number,
                payment=intent.payment_number,
            )
        if intents:
            self.clear_intent()
        return recovered
