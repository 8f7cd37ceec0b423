"""Open-bills grid on the Intacct "Pay bills" page.

Rows are addressed by position (``_obj__PAYABLES_{index}_...``). Intacct
renumbers the rows whenever a filter is applied or a bill is paid, so a row
index is only valid until the next UI action. Every lookup here rescans the
grid from index 0.
"""

import structlog

from intacct_billpay.driver import UIDriver
from intacct_billpay.errors import PageTimeoutError, UIActionError, UITimeoutError
from intacct_billpay.ledger import compare_invoice_numbers

logger = structlog.get_logger(__name__)


ROW_INVOICE = "#_obj__PAYABLES_{index}_-_obj__RECORDID"
ROW_VENDOR = '[id="_obj__PAYABLES_{index}_-_obj__VENDORNAME"]'
ROW_SELECTED = "#_obj__PAYABLES_{index}_-_obj__SELECTED"
VENDOR_FILTER_INPUT = '[id="_obj__VENDORIDRANGESTART_D"]'
APPLY_FILTER_BUTTON = 'button:has-text("Apply filter")'
FILTER_SET_TOGGLE = "#span__obj__ADVANCEDFILTER"
FILTER_SET_OPTION = '#_c_obj__ADVANCEDFILTERsel option:has-text("{label}")'
SELECTED_TOTAL = '#tfooter__obj__PAYABLES .grid_total[id$="-_obj__PAYMENTAMOUNT"]'


class BillGrid:
    """Queries and filter actions on the open-bills grid."""

    def __init__(self, driver: UIDriver, load_timeout: float = 30.0, row_timeout: float = 10.0):
        self._driver = driver
        self._load_timeout = load_timeout
        self._row_timeout = row_timeout
        self._logger = logger.bind(component="bill_grid")

    async def wait_for_loading(self, allow_empty: bool = False) -> bool:
        """Wait until the first row is rendered.

        Args:
            allow_empty: Treat a grid with no rows at all as loaded.

        Returns:
            True if rows are present, False if the grid is empty.

        Raises:
            PageTimeoutError: The grid did not render in time.
        """
        selector = ROW_VENDOR.format(index=0)
        try:
            await self._driver.wait_visible(selector, self._load_timeout)
            return True
        except UITimeoutError as e:
            if allow_empty and await self._driver.count(selector) == 0:
                self._logger.info("grid_empty")
                return False
            raise PageTimeoutError(selector, self._load_timeout) from e

    async def row_exists(self, index: int) -> bool:
        return await self._driver.count(ROW_INVOICE.format(index=index)) > 0

    async def invoice_at(self, index: int) -> str | None:
        """Invoice number of the row at ``index``, or None past the last row.

        Raises:
            PageTimeoutError: The row exists but never became visible.
        """
        selector = ROW_INVOICE.format(index=index)
        if await self._driver.count(selector) == 0:
            return None
        try:
            await self._driver.wait_visible(selector, self._row_timeout)
        except UITimeoutError as e:
            raise PageTimeoutError(selector, self._row_timeout) from e
        return (await self._driver.inner_text(selector)).strip()

    async def vendor_at(self, index: int) -> str:
        return (await self._driver.inner_text(ROW_VENDOR.format(index=index))).strip()

    async def row_count(self) -> int:
        count = 0
        while await self.row_exists(count):
            count += 1
        return count

    async def find_row_index(self, invoice_number: str) -> int | None:
        """Current position of an invoice, or None if it is not listed."""
        index = 0
        while await self.row_exists(index):
            text = await self._driver.inner_text(ROW_INVOICE.format(index=index))
            if compare_invoice_numbers(text, invoice_number):
                self._logger.debug("row_found", invoice=invoice_number, index=index)
                return index
            index += 1

        self._logger.info("row_not_found", invoice=invoice_number, rows=index)
        return None

    async def check_row(self, index: int) -> None:
        await self._driver.check(ROW_SELECTED.format(index=index))

    async def selected_total_text(self) -> str:
        return await self._driver.inner_text(SELECTED_TOTAL)

    # === Filters ===

    async def apply_vendor_filter(self, vendor_name: str) -> None:
        """Narrow the grid to one vendor."""
        await self._driver.fill(VENDOR_FILTER_INPUT, vendor_name)
        await self._driver.click(APPLY_FILTER_BUTTON)
        await self.wait_for_loading()
        self._logger.info("vendor_filter_applied", vendor=vendor_name)

    async def clear_vendor_filter(self) -> None:
        """Remove the vendor filter. UI failures are logged, not raised."""
        try:
            await self._driver.fill(VENDOR_FILTER_INPUT, "")
            await self._driver.click(APPLY_FILTER_BUTTON)
        except UIActionError as e:
            self._logger.warning("vendor_filter_clear_failed", error=str(e))
            return
        await self.wait_for_loading(allow_empty=True)
        self._logger.debug("vendor_filter_cleared")

    async def apply_filter_set(self, label: str) -> None:
        """Select a saved filter set (e.g. ``"Oct 2026"``) and apply it."""
        await self._driver.click(FILTER_SET_TOGGLE)
        await self._driver.click(FILTER_SET_OPTION.format(label=label))
        await self._driver.click(APPLY_FILTER_BUTTON)
        await self.wait_for_loading(allow_empty=True)
        self._logger.info("filter_set_applied", filter_set=label)
