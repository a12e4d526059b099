"""Caso de uso: genera la factura de una lectura."""

from dataclasses import dataclass
from datetime import date

import structlog

from aquabill.application.events import INVOICE_CREATED, publish_event
from aquabill.application.ports.billing_store import BillingStore
from aquabill.application.ports.notifier import NotificationPublisher
from aquabill.application.use_cases.rate_consumption import TariffRatingEngine
from aquabill.application.validation import require_date
from aquabill.domain.entities import DEFAULT_DUE_DAYS, Invoice
from aquabill.domain.exceptions import (
    CustomerNotFoundError,
    DuplicateInvoiceError,
    ReadingNotFoundError,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class CreateInvoiceUseCase:
    store: BillingStore
    rating: TariffRatingEngine
    publisher: NotificationPublisher | None = None
    due_days: int = DEFAULT_DUE_DAYS

    def execute(
        self,
        reading_id: int,
        customer_id: int,
        tariff_id: int,
        consumption_m3: object,
        issue_date: date | str,
        recorded_by: int | None = None,
    ) -> Invoice:
        issued = require_date(issue_date, "fecha_emision")

        with self.store.transaction():
            if self.store.get_invoice_by_reading(reading_id) is not None:
                raise DuplicateInvoiceError(reading_id)

            total = self.rating.rate(tariff_id, consumption_m3)

            if self.store.get_customer(customer_id) is None:
                raise CustomerNotFoundError(customer_id)
            if self.store.get_reading(reading_id) is None:
                raise ReadingNotFoundError(reading_id)

            invoice = self.store.add_invoice(
                reading_id=reading_id,
                customer_id=customer_id,
                tariff_id=tariff_id,
                issue_date=issued,
                due_date=Invoice.due_date_for(issued, self.due_days),
                total=total,
                modified_by=recorded_by,
            )

        logger.info(
            "invoice_created",
            invoice_id=invoice.id,
            reading_id=reading_id,
            customer_id=customer_id,
            total=str(invoice.total),
        )
        self._notify(invoice, recorded_by)
        return invoice

    def _notify(self, invoice: Invoice, recorded_by: int | None) -> None:
        if self.publisher is None:
            return
        try:
            view = self.store.get_invoice_view(invoice.id)
        except Exception as e:
            logger.warning("invoice_view_unavailable", invoice_id=invoice.id, error=str(e))
            view = None
        publish_event(
            self.publisher,
            INVOICE_CREATED,
            {
                "factura_id": invoice.id,
                "cliente_nombre": view.customer_name if view else None,
                "total": invoice.total,
                "fecha_vencimiento": invoice.due_date,
                "periodo": view.period if view else None,
                "consumo_m3": view.consumption_m3 if view else None,
                "medidor_numero": view.meter_number if view else None,
                "modificado_por": recorded_by,
            },
        )
