"""Payment form driver for the Intacct "Pay bills" page.

Submitting a payment walks a fixed sequence of steps:

1. Select the payment method (EFT or Credit Card)
2. Pick the bank account or credit card for that method
3. Enter the payment date
4. Tick the checkbox of every invoice covered by the payment
5. Verify the selected total against the ledger amount
6. Press "Pay now" and put the payment number in the memo
7. Save (or cancel, when the operator declines)

There is no rollback. When a step fails the caller records the error and
clears the vendor filter so the next lookup starts from a fresh grid.
"""

from collections.abc import Callable, Sequence
from datetime import date
from decimal import Decimal
from enum import Enum

import structlog

from intacct_billpay.driver import UIDriver
from intacct_billpay.errors import AmountMismatchError, PaymentFormError, RowNotFoundError
from intacct_billpay.grid import BillGrid
from intacct_billpay.ledger import format_payment_date, normalize_invoice_number, parse_amount
from intacct_billpay.prompts import Prompter

logger = structlog.get_logger(__name__)


PAYMENT_METHOD_SELECT = "#_obj__PAYMENTMETHOD_D"
BANK_TOGGLE = "#span__obj__FINANCIALENTITY"
BANK_SELECT = "#_c_obj__FINANCIALENTITYsel"
CARD_TOGGLE = "#span__obj__CREDITCARD"
CARD_SELECT = "#_c_obj__CREDITCARDsel"
PAYMENT_DATE_INPUT = "#_obj__WHENPAID"
PAY_NOW_BUTTON = "#paynowid"
MEMO_INPUT = "#_obj__MOREDETAILSPAGE-_obj__MOREDETAILS_0_-_obj__DESCRIPTION"
SAVE_BUTTON = 'button:has-text("Save")'
CANCEL_BUTTON = 'button:has-text("Cancel")'


class PaymentChannel(str, Enum):
    """Payment method options in the Intacct dropdown."""

    EFT = "EFT"
    CREDIT_CARD = "Credit Card"


# Ledger payment method -> Intacct payment method
PAYMENT_METHOD_CHANNELS: dict[str, PaymentChannel] = {
    "check": PaymentChannel.EFT,
    "bank draft": PaymentChannel.EFT,
    "credit card": PaymentChannel.CREDIT_CARD,
}


class SubmitOutcome(str, Enum):
    """Terminal state of a payment submission."""

    SAVED = "saved"
    CANCELLED = "cancelled"


def resolve_payment_channel(payment_method: str) -> PaymentChannel | None:
    return PAYMENT_METHOD_CHANNELS.get(payment_method.strip().lower())


def verify_amount(displayed: str, expected: Decimal | str | None) -> Decimal:
    """Check the on-screen total against the expected payment amount.

    Equality is exact; ``1,234.50`` matches ``$1,234.50`` but not
    ``$1,234.51``.

    Returns:
        The verified amount.

    Raises:
        AmountMismatchError: If the amounts differ or cannot be parsed.
    """
    try:
        selected = parse_amount(displayed)
    except ValueError as e:
        raise AmountMismatchError(f"Selected amount {displayed!r} is not a number") from e

    if expected is None:
        raise AmountMismatchError("Ledger amount is missing or not a number")
    try:
        wanted = expected if isinstance(expected, Decimal) else parse_amount(expected)
    except ValueError as e:
        raise AmountMismatchError(f"Expected amount {expected!r} is not a number") from e

    if selected != wanted:
        raise AmountMismatchError(
            f"Selected amount ({selected}) does not match expected amount ({wanted})",
            details={"selected": str(selected), "expected": str(wanted)},
        )
    return selected


class PaymentFormDriver:
    """Fills in and submits the payment form."""

    def __init__(
        self,
        driver: UIDriver,
        grid: BillGrid,
        prompter: Prompter,
        bank_account_label: str,
        credit_card_label: str,
        settle_delay: float = 2.0,
        method_delay: float = 1.0,
        wait_timeout: float = 10.0,
    ):
        self._driver = driver
        self._grid = grid
        self._prompter = prompter
        self._bank_account_label = bank_account_label
        self._credit_card_label = credit_card_label
        self._settle_delay = settle_delay
        self._method_delay = method_delay
        self._wait_timeout = wait_timeout
        self._logger = logger.bind(component="payment_form")

    async def submit_payment(
        self,
        payment_method: str,
        payment_date: date | None,
        expected_amount: Decimal | str | None,
        invoice_numbers: Sequence[str],
        memo: str,
        unattended: bool,
        on_save: Callable[[], None] | None = None,
    ) -> SubmitOutcome:
        """Run the whole form sequence for one payment.

        Args:
            payment_method: Ledger payment method ("Check", "Credit Card", ...).
            payment_date: Date to enter on the form.
            expected_amount: Ledger amount the selected total must equal.
            invoice_numbers: Invoices covered by the payment.
            memo: Memo text, normally the payment number.
            unattended: Save without asking.
            on_save: Called right before Save is clicked.

        Raises:
            InvoiceProcessingError: A step failed; nothing was saved.
        """
        await self.select_payment_method(payment_method)
        await self.set_payment_date(payment_date)
        checked = await self.check_invoices(invoice_numbers)
        self._logger.info("invoices_checked", count=checked)

        displayed = await self._grid.selected_total_text()
        amount = verify_amount(displayed, expected_amount)
        self._logger.info("amount_verified", amount=str(amount))

        await self._driver.pause(self._settle_delay)
        await self._driver.click(PAY_NOW_BUTTON)
        await self._driver.wait_visible(MEMO_INPUT, self._wait_timeout)
        await self._driver.fill(MEMO_INPUT, memo)
        self._logger.info("memo_entered", memo=memo)

        return await self.confirm(unattended, on_save)

    async def select_payment_method(self, payment_method: str) -> PaymentChannel | None:
        """Choose the Intacct payment method and its account."""
        channel = resolve_payment_channel(payment_method)
        if channel is None:
            self._logger.warning("unhandled_payment_method", payment_method=payment_method)
            return None

        await self._driver.select_option(PAYMENT_METHOD_SELECT, value=channel.value)
        self._logger.info("payment_method_selected", channel=channel.value)
        await self._grid.wait_for_loading()

        await self._driver.pause(self._method_delay)
        if channel == PaymentChannel.EFT:
            await self.select_bank()
        else:
            await self.select_credit_card()
        await self._grid.wait_for_loading()
        return channel

    async def select_bank(self) -> None:
        await self._driver.click(BANK_TOGGLE)
        await self._driver.wait_visible(BANK_SELECT, self._wait_timeout)
        await self._driver.select_option(BANK_SELECT, label=self._bank_account_label)
        self._logger.info("bank_selected", bank=self._bank_account_label)

    async def select_credit_card(self) -> None:
        await self._driver.click(CARD_TOGGLE)
        await self._driver.wait_visible(CARD_SELECT, self._wait_timeout)
        await self._driver.wait_attached(f"{CARD_SELECT} option", self._wait_timeout)
        await self._driver.select_option(CARD_SELECT, label=self._credit_card_label)
        self._logger.info("credit_card_selected", card=self._credit_card_label)

    async def set_payment_date(self, payment_date: date | None) -> None:
        if payment_date is None:
            raise PaymentFormError("Missing or invalid payment date")
        formatted = format_payment_date(payment_date)
        await self._driver.fill(PAYMENT_DATE_INPUT, "")
        await self._driver.fill(PAYMENT_DATE_INPUT, formatted)
        self._logger.info("payment_date_set", date=formatted)

    async def check_invoices(self, invoice_numbers: Sequence[str]) -> int:
        """Tick each distinct invoice, looking up its row afresh every time.

        Raises:
            RowNotFoundError: On the first invoice missing from the grid.
        """
        seen: set[str] = set()
        for invoice in invoice_numbers:
            key = normalize_invoice_number(invoice)
            if key in seen:
                continue
            index = await self._grid.find_row_index(invoice)
            if index is None:
                raise RowNotFoundError(invoice, await self._grid.row_count())
            await self._grid.check_row(index)
            seen.add(key)
            self._logger.debug("invoice_checked", invoice=invoice, index=index)
        return len(seen)

    async def confirm(
        self, unattended: bool, on_save: Callable[[], None] | None = None
    ) -> SubmitOutcome:
        """Save, or ask the operator first in attended mode."""
        if unattended:
            save = True
        else:
            save = self._prompter.ask_yes_no("Ready to Save?", default=True)

        await self._driver.pause(self._settle_delay)
        if not save:
            await self._driver.click(CANCEL_BUTTON)
            self._logger.info("payment_cancelled")
            return SubmitOutcome.CANCELLED

        if on_save is not None:
            on_save()
        await self._driver.click(SAVE_BUTTON)
        self._logger.info("payment_saved", unattended=unattended)
        return SubmitOutcome.SAVED
