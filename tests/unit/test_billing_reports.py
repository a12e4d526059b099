from datetime import date
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from structlog.testing import capture_logs

from aquabill.application.dtos import InvoiceView, PaymentView
from aquabill.application.use_cases.billing_reports import REPORT_COLUMNS, BillingReportService
from aquabill.domain.entities import Invoice, InvoiceStatus, Payment, PaymentMethod
from aquabill.domain.exceptions import ValidationError


def _view(invoice_id, total, balance, consumption, status=InvoiceStatus.PENDING) -> InvoiceView:
    return InvoiceView(
        invoice=Invoice(
            id=invoice_id,
            reading_id=invoice_id + 10,
            customer_id=5,
            tariff_id=2,
            issue_date=date(2026, 3, 31),
            due_date=date(2026, 4, 30),
            total=Decimal(total),
            outstanding_balance=Decimal(balance),
            status=status,
        ),
        customer_name=f"Cliente {invoice_id}",
        tariff_name="Residencial",
        period="2026-03",
        consumption_m3=Decimal(consumption),
        meter_number=f"MED-{invoice_id:03d}",
    )


def _payment_view(payment_id, amount, period) -> PaymentView:
    return PaymentView(
        payment=Payment(
            id=payment_id,
            invoice_id=1,
            payment_date=date(2026, 4, 2),
            amount=Decimal(amount),
            amount_tendered=Decimal(amount),
            change=Decimal("0"),
            method=PaymentMethod.CASH,
        ),
        customer_name="Ana Pérez",
        period=period,
    )


@pytest.fixture
def store():
    store = MagicMock()
    store.list_invoice_views.return_value = [
        _view(1, "47.50", "47.50", "35"),
        _view(2, "10.00", "0.00", "12", status=InvoiceStatus.PAID),
        _view(3, "0.10", "0.10", "0"),
    ]
    store.list_payment_views.return_value = [
        _payment_view(1, "10.00", "2026-03"),
        _payment_view(2, "0.20", "2026-03"),
        _payment_view(3, "5.00", "2026-02"),
    ]
    return store


class TestInvoiceSummary:
    def test_totals(self, store):
        summary = BillingReportService(store).invoice_summary("2026-03")

        assert summary.total_invoiced == Decimal("57.60")
        assert summary.total_outstanding == Decimal("47.60")
        assert summary.pending_count == 2
        assert summary.average_consumption == Decimal("15.67")
        store.list_invoice_views.assert_called_once_with("2026-03")

    def test_to_dict(self, store):
        data = BillingReportService(store).invoice_summary("2026-03").to_dict()
        assert data["mes_facturado"] == "Marzo 2026"
        assert data["total"] == 3
        assert data["estadisticas"]["total_facturado"] == "57.60"

    def test_empty_period(self, store):
        store.list_invoice_views.return_value = []
        summary = BillingReportService(store).invoice_summary("2026-05")
        assert summary.total_invoiced == Decimal("0.00")
        assert summary.average_consumption == Decimal("0.00")

    def test_invalid_period(self, store):
        with pytest.raises(ValidationError):
            BillingReportService(store).invoice_summary("03-2026")


class TestPaymentSummary:
    def test_groups_by_billed_period(self, store):
        summary = BillingReportService(store).payment_summary()

        assert summary.payment_count == 3
        assert summary.total_paid == Decimal("15.20")
        assert summary.average_payment == Decimal("5.07")
        march = summary.by_period["2026-03"]
        assert march["cantidad_pagos"] == 2
        assert march["total_pagado"] == Decimal("10.20")
        assert march["promedio_pago"] == Decimal("5.10")
        assert march["mes_facturado"] == "Marzo 2026"
        store.list_payment_views.assert_called_once_with(None)

    def test_filtered_by_period(self, store):
        BillingReportService(store).payment_summary("2026-03")
        store.list_payment_views.assert_called_once_with("2026-03")


class TestExportInvoices:
    def test_writes_dataframe(self, store, tmp_path):
        writer = MagicMock()
        output = tmp_path / "out" / "facturas.xlsx"

        result = BillingReportService(store, writer, "Marzo").export_invoices("2026-03", output)

        assert result == output
        assert output.parent.exists()
        df, path, sheet = writer.write.call_args.args
        assert path == output
        assert sheet == "Marzo"
        assert list(df.columns) == REPORT_COLUMNS
        assert len(df) == 3
        assert df.iloc[1]["Estado"] == "Pagada"
        assert df.iloc[0]["Total ($)"] == pytest.approx(47.5)

    def test_single_query_and_totals_logged(self, store, tmp_path):
        with capture_logs() as logs:
            BillingReportService(store, MagicMock()).export_invoices(
                "2026-03", tmp_path / "facturas.xlsx"
            )

        store.list_invoice_views.assert_called_once_with("2026-03")
        [exported] = [entry for entry in logs if entry["event"] == "invoices_exported"]
        assert exported["rows"] == 3
        assert exported["total_invoiced"] == "57.60"

    def test_requires_writer(self, store):
        with pytest.raises(RuntimeError, match="ExcelWriter"):
            BillingReportService(store).export_invoices("2026-03", Path("x.xlsx"))
