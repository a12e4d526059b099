"""Caso de uso: generación masiva de facturas para lecturas sin factura de un periodo."""

from dataclasses import dataclass
from datetime import date
import uuid

import structlog

from aquabill.application.dtos import (
    FAILED,
    GENERATED,
    BulkInvoiceItem,
    BulkInvoiceReport,
    UnbilledReading,
)
from aquabill.application.events import system_alert
from aquabill.application.ports.billing_store import BillingStore
from aquabill.application.ports.notifier import NotificationPublisher
from aquabill.application.use_cases.create_invoice import CreateInvoiceUseCase
from aquabill.application.validation import require_date, require_period
from aquabill.domain.exceptions import BillingError

logger = structlog.get_logger()

MISSING_CUSTOMER = "missing_customer"
MISSING_TARIFF = "missing_tariff"


@dataclass(frozen=True)
class GenerateInvoicesForPeriodUseCase:
    store: BillingStore
    create_invoice: CreateInvoiceUseCase
    publisher: NotificationPublisher | None = None

    def execute(
        self,
        period: str,
        issue_date: date | str,
        recorded_by: int | None = None,
    ) -> BulkInvoiceReport:
        period_value = require_period(period)
        issued = require_date(issue_date, "fecha_emision")
        run_id = str(uuid.uuid4())
        report = BulkInvoiceReport(run_id=run_id, period=period_value, issue_date=issued)

        structlog.contextvars.bind_contextvars(run_id=run_id)
        try:
            candidates = self.store.list_unbilled_readings(period_value)
            logger.info("bulk_invoicing_started", period=period_value, candidates=len(candidates))

            for candidate in candidates:
                report.items.append(self._process(candidate, issued, recorded_by))

            logger.info(
                "bulk_invoicing_finished",
                period=period_value,
                generated=len(report.generated),
                failed=len(report.failed),
                total_amount=str(report.total_amount),
            )
        finally:
            structlog.contextvars.unbind_contextvars("run_id")

        if report.items:
            system_alert(
                self.publisher,
                f"{len(report.generated)} facturas generadas masivamente",
                "success" if not report.failed else "warning",
                {
                    "periodo": period_value,
                    "total_generadas": len(report.generated),
                    "total_fallidas": len(report.failed),
                    "operador_id": recorded_by,
                    "accion": "facturas_masivas_generadas",
                },
            )
        return report

    def _process(
        self,
        candidate: UnbilledReading,
        issue_date: date,
        recorded_by: int | None,
    ) -> BulkInvoiceItem:
        reading = candidate.reading
        item = BulkInvoiceItem(
            reading_id=reading.id,
            customer_name=candidate.customer_name,
            meter_number=candidate.meter_number,
            consumption_m3=reading.consumption_m3,
        )

        if candidate.customer_id is None:
            return self._fail(item, MISSING_CUSTOMER, "El medidor no tiene cliente asignado")
        if candidate.tariff_id is None:
            return self._fail(item, MISSING_TARIFF, "El cliente no tiene tarifa asignada")

        try:
            invoice = self.create_invoice.execute(
                reading_id=reading.id,
                customer_id=candidate.customer_id,
                tariff_id=candidate.tariff_id,
                consumption_m3=reading.consumption_m3,
                issue_date=issue_date,
                recorded_by=recorded_by,
            )
        except BillingError as e:
            return self._fail(item, e.reason, e.message)
        except Exception as e:
            logger.error("bulk_invoice_error", reading_id=reading.id, error=str(e))
            return self._fail(item, "internal_error", "Error interno al procesar")

        item.status = GENERATED
        item.invoice_id = invoice.id
        item.total = invoice.total
        return item

    @staticmethod
    def _fail(item: BulkInvoiceItem, reason: str, message: str) -> BulkInvoiceItem:
        logger.warning("bulk_invoice_failed", reading_id=item.reading_id, reason=reason)
        item.status = FAILED
        item.reason = reason
        item.error = message
        return item
