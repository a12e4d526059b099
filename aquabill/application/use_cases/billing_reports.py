"""Reportes de facturación y cobranza por periodo."""

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import pandas as pd
import structlog

from aquabill.application.dtos import InvoiceView, PaymentSummary, PeriodInvoiceSummary
from aquabill.application.ports.billing_store import BillingStore
from aquabill.application.ports.excel_handler import ExcelWriter
from aquabill.application.validation import require_period
from aquabill.domain.entities import InvoiceStatus
from aquabill.domain.value_objects import ZERO, Period, money_add, round_money

logger = structlog.get_logger()

REPORT_COLUMNS = [
    "N° Factura",
    "Cliente",
    "Medidor",
    "Periodo",
    "Consumo (m3)",
    "Tarifa",
    "Fecha Emisión",
    "Fecha Vencimiento",
    "Total ($)",
    "Saldo Pendiente ($)",
    "Estado",
]


@dataclass(frozen=True)
class BillingReportService:
    store: BillingStore
    writer: ExcelWriter | None = None
    sheet_name: str = "Facturas"

    def invoice_summary(self, period: str) -> PeriodInvoiceSummary:
        period_value = require_period(period)
        views = self.store.list_invoice_views(period_value)
        summary = PeriodInvoiceSummary(period=period_value, invoices=views)

        consumption = Decimal("0")
        for view in views:
            summary.total_invoiced = money_add(summary.total_invoiced, view.invoice.total)
            summary.total_outstanding = money_add(
                summary.total_outstanding, view.invoice.outstanding_balance
            )
            if view.invoice.status != InvoiceStatus.PAID:
                summary.pending_count += 1
            consumption += view.consumption_m3

        if views:
            summary.average_consumption = round_money(consumption / len(views))
        return summary

    def payment_summary(self, period: str | None = None) -> PaymentSummary:
        period_value = require_period(period) if period else None
        views = self.store.list_payment_views(period_value)
        summary = PaymentSummary(period=period_value)

        for view in views:
            amount = view.payment.amount
            summary.payment_count += 1
            summary.total_paid = money_add(summary.total_paid, amount)
            if view.period is None:
                continue
            bucket = summary.by_period.setdefault(
                view.period,
                {
                    "mes_facturado": Period(view.period).month_name,
                    "cantidad_pagos": 0,
                    "total_pagado": ZERO,
                },
            )
            bucket["cantidad_pagos"] += 1
            bucket["total_pagado"] = money_add(bucket["total_pagado"], amount)

        for bucket in summary.by_period.values():
            bucket["promedio_pago"] = round_money(
                bucket["total_pagado"] / bucket["cantidad_pagos"]
            )
        return summary

    def export_invoices(self, period: str, output_path: Path) -> Path:
        """Escribe las facturas del periodo en un XLSX."""
        if self.writer is None:
            raise RuntimeError("No hay ExcelWriter configurado para exportar")
        summary = self.invoice_summary(period)
        df = self._to_dataframe(summary.invoices)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.writer.write(df, output_path, self.sheet_name)
        logger.info(
            "invoices_exported",
            period=summary.period,
            path=str(output_path),
            rows=len(df),
            total_invoiced=str(summary.total_invoiced),
        )
        return output_path

    @staticmethod
    def _to_dataframe(views: list[InvoiceView]) -> pd.DataFrame:
        rows = []
        for v in views:
            inv = v.invoice
            rows.append(
                {
                    "N° Factura": inv.id,
                    "Cliente": v.customer_name,
                    "Medidor": v.meter_number,
                    "Periodo": v.period,
                    "Consumo (m3)": float(v.consumption_m3),
                    "Tarifa": v.tariff_name,
                    "Fecha Emisión": inv.issue_date,
                    "Fecha Vencimiento": inv.due_date,
                    "Total ($)": float(inv.total),
                    "Saldo Pendiente ($)": float(inv.outstanding_balance),
                    "Estado": inv.status.value,
                }
            )
        return pd.DataFrame(rows, columns=REPORT_COLUMNS)
