"""Tests for the payment form driver."""

from datetime import date
from decimal import Decimal

import pytest

from intacct_billpay.errors import AmountMismatchError, PaymentFormError, RowNotFoundError
from intacct_billpay.payment_form import (
    PaymentChannel,
    SubmitOutcome,
    resolve_payment_channel,
    verify_amount,
)

PAID_ON = date(2024, 1, 15)


class TestVerifyAmount:
    """Tests for exact amount comparison."""

    def test_matches_with_symbols(self):
        assert verify_amount("1,234.50", "$1,234.50") == Decimal("1234.50")

    def test_off_by_one_cent_fails(self):
        with pytest.raises(AmountMismatchError):
            verify_amount("1,234.50", "$1,234.51")

    def test_decimal_expected(self):
        assert verify_amount("100.00", Decimal("100")) == Decimal("100.00")

    def test_missing_expected(self):
        with pytest.raises(AmountMismatchError):
            verify_amount("100.00", None)

    def test_unparseable_display(self):
        with pytest.raises(AmountMismatchError):
            verify_amount("--", "100.00")


class TestPaymentChannels:
    """Tests for ledger method mapping."""

    @pytest.mark.parametrize(
        ("method", "channel"),
        [
            ("Check", PaymentChannel.EFT),
            ("bank draft", PaymentChannel.EFT),
            (" Credit Card ", PaymentChannel.CREDIT_CARD),
            ("Wire", None),
        ],
    )
    def test_resolve(self, method, channel):
        assert resolve_payment_channel(method) == channel


class TestSubmitPayment:
    """Tests for the full form sequence."""

    @pytest.mark.asyncio
    async def test_check_payment_saved_unattended(self, make_page, make_prompter, make_form):
        page = make_page([("0042", "Acme", "100.00")])
        form = make_form(page, make_prompter())

        outcome = await form.submit_payment(
            "Check", PAID_ON, Decimal("100.00"), ["42"], "P1", unattended=True
        )

        assert outcome == SubmitOutcome.SAVED
        saved = page.saved_payments[0]
        assert saved["invoices"] == ["0042"]
        assert saved["method"] == "EFT"
        assert saved["bank"] == "CK_Operating x4047--Truist"
        assert saved["date"] == "01/15/2024"
        assert saved["memo"] == "P1"

    @pytest.mark.asyncio
    async def test_credit_card_selects_card(self, make_page, make_prompter, make_form):
        page = make_page([("7", "Acme", "10.00")])
        form = make_form(page, make_prompter())

        await form.submit_payment("Credit Card", PAID_ON, "$10.00", ["7"], "P7", unattended=True)

        assert page.saved_payments[0]["method"] == "Credit Card"
        assert page.saved_payments[0]["card"] == "CC_Truist"
        assert page.saved_payments[0]["bank"] is None

    @pytest.mark.asyncio
    async def test_unhandled_method_still_sets_date(self, make_page, make_prompter, make_form):
        page = make_page([("7", "Acme", "10.00")])
        form = make_form(page, make_prompter())

        await form.submit_payment("Wire", PAID_ON, "10.00", ["7"], "P7", unattended=True)

        assert page.saved_payments[0]["method"] is None
        assert page.saved_payments[0]["date"] == "01/15/2024"

    @pytest.mark.asyncio
    async def test_missing_date_fails(self, make_page, make_prompter, make_form):
        page = make_page([("7", "Acme", "10.00")])
        form = make_form(page, make_prompter())

        with pytest.raises(PaymentFormError):
            await form.submit_payment("Check", None, "10.00", ["7"], "P7", unattended=True)
        assert page.saved_payments == []

    @pytest.mark.asyncio
    async def test_group_checks_each_invoice_once(self, make_page, make_prompter, make_form):
        page = make_page([("5", "Acme", "100.00"), ("6", "Acme", "200.00")])
        form = make_form(page, make_prompter())

        await form.submit_payment(
            "Check", PAID_ON, "300.00", ["5", "005", "6"], "P9", unattended=True
        )

        assert page.saved_payments[0]["invoices"] == ["5", "6"]
        assert page.bills == []

    @pytest.mark.asyncio
    async def test_missing_row_raises(self, make_page, make_prompter, make_form):
        page = make_page([("5", "Acme", "100.00")])
        form = make_form(page, make_prompter())

        with pytest.raises(RowNotFoundError) as exc_info:
            await form.submit_payment("Check", PAID_ON, "300.00", ["5", "6"], "P9", unattended=True)

        assert exc_info.value.invoice_number == "6"
        assert exc_info.value.rows_scanned == 1
        assert page.saved_payments == []

    @pytest.mark.asyncio
    async def test_amount_mismatch_stops_before_pay_now(self, make_page, make_prompter, make_form):
        page = make_page([("5", "Acme", "100.00")], displayed_total="100.01")
        form = make_form(page, make_prompter())

        with pytest.raises(AmountMismatchError):
            await form.submit_payment("Check", PAID_ON, "100.00", ["5"], "P1", unattended=True)

        assert page.on_pay_page is False
        assert page.saved_payments == []

    @pytest.mark.asyncio
    async def test_attended_cancel(self, make_page, make_prompter, make_form):
        page = make_page([("5", "Acme", "100.00")])
        prompter = make_prompter(["n"])
        form = make_form(page, prompter)

        outcome = await form.submit_payment(
            "Check", PAID_ON, "100.00", ["5"], "P1", unattended=False
        )

        assert outcome == SubmitOutcome.CANCELLED
        assert page.cancelled == 1
        assert page.saved_payments == []
        assert any("Ready to Save?" in line for line in prompter.outputs)

    @pytest.mark.asyncio
    async def test_attended_enter_saves(self, make_page, make_prompter, make_form):
        page = make_page([("5", "Acme", "100.00")])
        form = make_form(page, make_prompter([""]))

        outcome = await form.submit_payment(
            "Check", PAID_ON, "100.00", ["5"], "P1", unattended=False
        )

        assert outcome == SubmitOutcome.SAVED

    @pytest.mark.asyncio
    async def test_on_save_runs_before_save_click(self, make_page, make_prompter, make_form):
        page = make_page([("5", "Acme", "100.00")])
        form = make_form(page, make_prompter())
        seen = []

        await form.submit_payment(
            "Check",
            PAID_ON,
            "100.00",
            ["5"],
            "P1",
            unattended=True,
            on_save=lambda: seen.append(len(page.saved_payments)),
        )

        assert seen == [0]
        assert len(page.saved_payments) == 1
