from datetime import date
from decimal import Decimal

import pytest

from aquabill.domain.entities import (
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    Reading,
    Tariff,
    TariffBand,
)
from aquabill.domain.exceptions import (
    DuplicateInvoiceError,
    InvoiceNotFoundError,
    OverpaymentError,
    StorageError,
)


def _make_invoice(**overrides) -> Invoice:
    defaults = {
        "id": 1,
        "reading_id": 10,
        "customer_id": 5,
        "tariff_id": 2,
        "issue_date": date(2026, 3, 31),
        "due_date": date(2026, 4, 30),
        "total": Decimal("100.00"),
        "outstanding_balance": Decimal("100.00"),
    }
    defaults.update(overrides)
    return Invoice(**defaults)


class TestTariff:
    def test_end_must_follow_start(self):
        with pytest.raises(ValueError, match="anterior"):
            Tariff(
                id=1,
                name="Residencial",
                description="",
                start_date=date(2026, 1, 1),
                end_date=date(2026, 1, 1),
            )

    def test_rejects_blank_name(self):
        with pytest.raises(ValueError, match="vacío"):
            Tariff(id=1, name="  ", description="", start_date=date(2026, 1, 1))


class TestTariffBand:
    def test_unit_price_coerced_to_decimal(self):
        band = TariffBand(tariff_id=1, consumption_min=21, consumption_max=50, unit_price="2.5")
        assert band.unit_price == Decimal("2.5")

    def test_width_and_contains(self):
        band = TariffBand(tariff_id=1, consumption_min=21, consumption_max=50, unit_price=2)
        assert band.width == 30
        assert band.contains(21)
        assert band.contains(50)
        assert not band.contains(51)
        assert not band.contains(20)

    def test_unbounded_band(self):
        band = TariffBand(tariff_id=1, consumption_min=51, consumption_max=None, unit_price=4)
        assert band.is_unbounded
        assert band.width is None
        assert band.contains(10_000)
        assert band.label() == "[51-∞]"

    def test_base_band(self):
        band = TariffBand(tariff_id=1, consumption_min=0, consumption_max=20, unit_price=10)
        assert band.is_base

    def test_min_must_be_below_max(self):
        with pytest.raises(ValueError, match="menor"):
            TariffBand(tariff_id=1, consumption_min=10, consumption_max=10, unit_price=1)

    def test_rejects_negative_price(self):
        with pytest.raises(ValueError, match="unit_price"):
            TariffBand(tariff_id=1, consumption_min=0, consumption_max=10, unit_price="-1")


class TestReading:
    def test_rejects_negative_consumption(self):
        with pytest.raises(ValueError):
            Reading(
                id=1,
                meter_id=1,
                route_id=None,
                consumption_m3=Decimal("-1"),
                reading_date=date(2026, 3, 1),
                period="2026-03",
            )


class TestInvoice:
    def test_money_rounded_on_creation(self):
        invoice = _make_invoice(total=Decimal("47.505"), outstanding_balance=Decimal("47.505"))
        assert invoice.total == Decimal("47.51")

    def test_due_date_for(self):
        assert Invoice.due_date_for(date(2026, 3, 31)) == date(2026, 4, 30)
        assert Invoice.due_date_for(date(2026, 3, 31), 10) == date(2026, 4, 10)

    def test_partial_payment_keeps_status(self):
        updated = _make_invoice().with_payment(Decimal("40.00"))
        assert updated.outstanding_balance == Decimal("60.00")
        assert updated.status == InvoiceStatus.PENDING

    def test_full_payment_marks_paid(self):
        updated = _make_invoice(status=InvoiceStatus.OVERDUE).with_payment(Decimal("100.00"))
        assert updated.outstanding_balance == Decimal("0.00")
        assert updated.status == InvoiceStatus.PAID
        assert updated.is_paid

    def test_rejects_negative_balance(self):
        with pytest.raises(ValueError, match="outstanding_balance"):
            _make_invoice(outstanding_balance=Decimal("-0.01"))


class TestPayment:
    def test_tendered_cannot_be_below_amount(self):
        with pytest.raises(ValueError, match="amount_tendered"):
            Payment(
                id=1,
                invoice_id=1,
                payment_date=date(2026, 4, 1),
                amount=Decimal("10"),
                amount_tendered=Decimal("5"),
                change=Decimal("0"),
                method=PaymentMethod.CASH,
            )

    def test_amount_must_be_positive(self):
        with pytest.raises(ValueError, match="mayor a cero"):
            Payment(
                id=1,
                invoice_id=1,
                payment_date=date(2026, 4, 1),
                amount=Decimal("0"),
                amount_tendered=Decimal("0"),
                change=Decimal("0"),
                method=PaymentMethod.CASH,
            )


class TestPaymentMethod:
    def test_parse_case_insensitive(self):
        assert PaymentMethod.parse("efectivo") == PaymentMethod.CASH
        assert PaymentMethod.parse(" Transferencia ") == PaymentMethod.TRANSFER

    def test_parse_passes_members_through(self):
        assert PaymentMethod.parse(PaymentMethod.CARD) is PaymentMethod.CARD

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError, match="Permitidos"):
            PaymentMethod.parse("Bitcoin")


class TestBillingErrors:
    def test_conflict_to_dict(self):
        err = DuplicateInvoiceError(42)
        assert err.http_status == 409
        assert err.to_dict() == {
            "error": "duplicate_invoice",
            "mensaje": "Ya existe una factura para la lectura 42",
            "detalles": {"lectura_id": 42},
        }

    def test_not_found_message(self):
        err = InvoiceNotFoundError(7)
        assert err.http_status == 404
        assert err.message == "Factura no encontrado: 7"

    def test_decimal_details_stringified(self):
        err = OverpaymentError(Decimal("30.00"), Decimal("31.00"), Decimal("31.00"))
        assert err.http_status == 400
        assert err.to_dict()["detalles"]["saldo_pendiente"] == "30.00"

    def test_storage_error_reason(self):
        err = StorageError("boom")
        assert err.reason == "internal_error"
        assert err.to_dict() == {"error": "internal_error", "mensaje": "boom"}
