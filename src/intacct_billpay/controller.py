"""Session controller - the bill payment loop.

The controller walks the open-bills grid from the top, matches each invoice
against the ledger, drives the payment form for payable groups and writes
every outcome to the audit log.

Modes:
- UNATTENDED: saves without asking, pausing for a checkpoint after every
  ``max_unattended_batch`` saved payments (default)
- ATTENDED: asks before each invoice and before each save

Per-invoice failures are recorded and the loop continues. Environment
failures (``FatalError``) end the run with exit status 1.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum, IntEnum

import structlog
from playwright.async_api import async_playwright

from intacct_billpay.audit import AuditLog, AuditRecord, AuditStatus
from intacct_billpay.browser import attach_session
from intacct_billpay.config.settings import FlatSettings
from intacct_billpay.driver import PlaywrightDriver
from intacct_billpay.errors import FatalError, InvoiceProcessingError, RowNotFoundError
from intacct_billpay.grid import BillGrid
from intacct_billpay.ledger import (
    Ledger,
    MatchError,
    MatchResult,
    MatchSkip,
    MatchSuccess,
    compare_invoice_numbers,
    load_ledger,
    normalize_invoice_number,
)
from intacct_billpay.payment_form import PaymentFormDriver, SubmitOutcome
from intacct_billpay.prompts import Prompter, generate_filter_options

logger = structlog.get_logger(__name__)


USER_CANCELLED_MESSAGE = "User cancelled."


class RunMode(str, Enum):
    """How much the operator is asked during the run."""

    UNATTENDED = "unattended"
    ATTENDED = "attended"


class ExitCode(IntEnum):
    """Process exit status."""

    OK = 0
    FATAL = 1


class UserStop(Exception):
    """The operator chose to end the run."""

    pass


@dataclass(frozen=True)
class SessionConfig:
    """Choices made at startup."""

    mode: RunMode = RunMode.UNATTENDED
    max_unattended_batch: int = 5
    filter_label: str | None = None
    reprocess_errors: bool = False


@dataclass
class SessionState:
    """Mutable state of one run."""

    mode: RunMode
    batch_limit: int
    unattended_count: int = 0
    row_index: int = 0
    processed: int = 0
    saved: int = 0
    skipped: int = 0
    errored: int = 0
    saved_invoices: set[str] = field(default_factory=set)

    @classmethod
    def from_config(cls, config: SessionConfig) -> "SessionState":
        return cls(mode=config.mode, batch_limit=config.max_unattended_batch)

    @property
    def unattended(self) -> bool:
        return self.mode == RunMode.UNATTENDED

    def summary(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "saved": self.saved,
            "skipped": self.skipped,
            "errored": self.errored,
        }


def collect_session_config(
    prompter: Prompter, settings: FlatSettings, today: date | None = None
) -> SessionConfig:
    """Ask the startup questions."""
    reprocess = prompter.ask_yes_no(
        "Do you want to reprocess invoices in the error file?", default=False
    )

    answer = prompter.ask_text("Select mode: (U/Enter for Unattended, A for Attended)")
    mode = RunMode.ATTENDED if answer.upper() == "A" else RunMode.UNATTENDED

    batch = settings.default_batch_size
    if mode == RunMode.UNATTENDED:
        batch = prompter.ask_int(
            "Enter the number of invoices to process in unattended mode",
            default=settings.default_batch_size,
        )

    filter_label = None
    if prompter.ask_yes_no("Do you want to apply a filter set?", default=True):
        options = generate_filter_options(today or date.today(), settings.filter_months)
        filter_label = prompter.ask_choice("Select a filter set:", options)

    return SessionConfig(
        mode=mode,
        max_unattended_batch=batch,
        filter_label=filter_label,
        reprocess_errors=reprocess,
    )


def prepare_audit_log(audit: AuditLog, config: SessionConfig) -> None:
    """Startup housekeeping on the audit files."""
    if config.reprocess_errors:
        audit.clear_errors()
        logger.info("reprocessing_errors")
    audit.ensure_files()
    recovered = audit.recover_pending()
    if recovered:
        logger.warning("interrupted_saves_found", count=len(recovered))


class BillPayController:
    """Runs the bill payment loop against an attached Intacct page."""

    def __init__(
        self,
        grid: BillGrid,
        form: PaymentFormDriver,
        ledger: Ledger,
        audit: AuditLog,
        prompter: Prompter,
        config: SessionConfig,
        default_batch_size: int = 5,
    ):
        self._grid = grid
        self._form = form
        self._ledger = ledger
        self._audit = audit
        self._prompter = prompter
        self._config = config
        self._default_batch_size = default_batch_size
        self.state = SessionState.from_config(config)
        self._logger = logger.bind(component="controller", mode=config.mode.value)

    async def run(self) -> ExitCode:
        """Run until the grid is worked through, the operator stops, or a fatal error."""
        try:
            if self._config.filter_label:
                try:
                    await self._grid.apply_filter_set(self._config.filter_label)
                except InvoiceProcessingError as e:
                    self._logger.error(
                        "filter_set_failed", filter_set=self._config.filter_label, error=str(e)
                    )
                    return ExitCode.FATAL
            await self._loop()
        except UserStop:
            self._logger.info("stopped_by_user", **self.state.summary())
            return ExitCode.OK
        except FatalError as e:
            self._logger.error("fatal_error", error=str(e), **self.state.summary())
            return ExitCode.FATAL

        self._logger.info("run_completed", **self.state.summary())
        return ExitCode.OK

    async def _loop(self) -> None:
        state = self.state
        while True:
            invoice = await self._grid.invoice_at(state.row_index)
            if invoice is None:
                self._logger.info("no_more_invoices", skipped_rows=state.row_index)
                return

            if self._audit.is_resume_skipped(invoice):
                self._logger.debug("invoice_in_error_log", invoice=invoice)
                state.row_index += 1
                continue
            if normalize_invoice_number(invoice) in state.saved_invoices:
                self._logger.warning("invoice_still_listed_after_save", invoice=invoice)
                state.row_index += 1
                continue

            if not state.unattended:
                if not self._prompter.ask_yes_no(
                    f"Do you want to process invoice number: {invoice}?", default=True
                ):
                    await self._grid.clear_vendor_filter()
                    raise UserStop()

            outcome = await self.process_invoice(invoice, state.row_index)
            state.processed += 1
            state.row_index = 0

            if outcome == SubmitOutcome.SAVED and state.unattended:
                state.unattended_count += 1
                if state.unattended_count >= state.batch_limit:
                    self._checkpoint()

    def _checkpoint(self) -> None:
        """Pause after a full unattended batch."""
        state = self.state
        self._logger.info("unattended_batch_complete", count=state.unattended_count)
        state.mode = RunMode.ATTENDED
        state.unattended_count = 0
        if not self._prompter.ask_yes_no(
            f"Processed {state.batch_limit} invoices in unattended mode. Continue?",
            default=True,
        ):
            raise UserStop()
        state.batch_limit = self._prompter.ask_int(
            "Enter the number of invoices to process in unattended mode",
            default=self._default_batch_size,
        )
        state.mode = RunMode.UNATTENDED

    async def process_invoice(self, invoice: str, row_index: int) -> SubmitOutcome | None:
        """Match one invoice and pay it if the ledger allows.

        Returns:
            The form outcome, or None when no payment was attempted or it failed.
        """
        log = self._logger.bind(invoice=invoice)
        result: MatchResult | None = None
        outcome: SubmitOutcome | None = None
        try:
            vendor = await self._grid.vendor_at(row_index)
            await self._grid.apply_vendor_filter(vendor)
            log.info("processing_invoice", vendor=vendor)

            result = self._ledger.match(invoice)
            if isinstance(result, MatchSkip):
                log.info("invoice_skipped", reason=result.reason)
                self._record(AuditRecord.skipped(invoice, result.payment_number, result.reason))
            elif isinstance(result, MatchError):
                log.info("invoice_ledger_error", reason=result.reason)
                self._record(AuditRecord.error(invoice, result.payment_number, result.reason))
            else:
                outcome = await self._pay(invoice, result)
        except FatalError:
            raise
        except InvoiceProcessingError as e:
            log.warning("invoice_failed", error=str(e))
            self._record_failure(invoice, result, e)
        except Exception as e:
            log.exception("invoice_unexpected_error", error=str(e))
            self._record_failure(invoice, result, e)

        await self._grid.clear_vendor_filter()
        return outcome

    def _record_failure(
        self, invoice: str, result: MatchResult | None, error: Exception
    ) -> None:
        payment_number = result.payment_number if isinstance(result, MatchSuccess) else None
        self._record(AuditRecord.error(invoice, payment_number, str(error)))
        # A different invoice of the same payment is missing from the grid
        if isinstance(error, RowNotFoundError) and not compare_invoice_numbers(
            error.invoice_number, invoice
        ):
            self._record(AuditRecord.error(error.invoice_number, payment_number, str(error)))
        # The error record now covers a save intent left by a failed Save click
        self._audit.clear_intent()

    async def _pay(self, invoice: str, result: MatchSuccess) -> SubmitOutcome:
        payment = result.payment
        payment_number = result.payment_number
        self._logger.info(
            "payment_group_matched",
            invoice=invoice,
            payment=payment_number,
            rows=len(result.payment_rows),
        )

        outcome = await self._form.submit_payment(
            payment_method=payment.payment_method,
            payment_date=payment.payment_date,
            expected_amount=payment.amount,
            invoice_numbers=[row.invoice_number for row in result.payment_rows],
            memo=payment_number,
            unattended=self.state.unattended,
            on_save=lambda: self._audit.record_intent(invoice, payment_number),
        )

        if outcome == SubmitOutcome.SAVED:
            self._record(AuditRecord.success(invoice, payment_number))
            self._audit.clear_intent()
            self.state.saved_invoices.add(normalize_invoice_number(invoice))
        else:
            self._record(AuditRecord.skipped(invoice, payment_number, USER_CANCELLED_MESSAGE))
        return outcome

    def _record(self, record: AuditRecord) -> None:
        self._audit.append(record)
        if record.status == AuditStatus.SUCCESS:
            self.state.saved += 1
        elif record.status == AuditStatus.SKIPPED:
            self.state.skipped += 1
        else:
            self.state.errored += 1


async def run_session(
    settings: FlatSettings, prompter: Prompter, ledger_path: str | None = None
) -> ExitCode:
    """Startup prompts, attach to the browser and run the loop."""
    config = collect_session_config(prompter, settings)
    logger.info(
        "session_configured",
        mode=config.mode.value,
        batch=config.max_unattended_batch,
        filter_set=config.filter_label,
        reprocess_errors=config.reprocess_errors,
    )

    audit = AuditLog(settings.success_log_path, settings.error_log_path, settings.pending_log_path)
    try:
        prepare_audit_log(audit, config)
        ledger = load_ledger(ledger_path or settings.ledger_path)
    except FatalError as e:
        logger.error("startup_failed", error=str(e))
        return ExitCode.FATAL

    async with async_playwright() as playwright:
        try:
            session = await attach_session(playwright, settings)
        except FatalError as e:
            logger.error("session_not_found", error=str(e), details=e.details)
            return ExitCode.FATAL

        try:
            driver = PlaywrightDriver(session.frame, action_timeout=settings.load_timeout)
            grid = BillGrid(driver, settings.load_timeout, settings.row_timeout)
            form = PaymentFormDriver(
                driver,
                grid,
                prompter,
                bank_account_label=settings.bank_account_label,
                credit_card_label=settings.credit_card_label,
                settle_delay=settings.settle_delay,
                method_delay=settings.method_delay,
                wait_timeout=settings.row_timeout,
            )
            controller = BillPayController(
                grid,
                form,
                ledger,
                audit,
                prompter,
                config,
                default_batch_size=settings.default_batch_size,
            )
            return await controller.run()
        finally:
            await session.close()
