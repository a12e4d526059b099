"""Caso de uso: registra una lectura de medidor y genera su factura si procede."""

from dataclasses import dataclass
from datetime import date

import structlog

from aquabill.application.dtos import ReadingResult
from aquabill.application.events import READING_RECORDED, publish_event
from aquabill.application.ports.billing_store import BillingStore
from aquabill.application.ports.notifier import NotificationPublisher
from aquabill.application.use_cases.create_invoice import CreateInvoiceUseCase
from aquabill.application.validation import require_date, require_period
from aquabill.domain.entities import Invoice, Meter, Reading
from aquabill.domain.exceptions import (
    BillingError,
    ConsumptionOutOfRangeError,
    DuplicateReadingError,
    InvalidConsumptionError,
    MeterNotFoundError,
    RouteNotFoundError,
)
from aquabill.domain.value_objects import to_decimal

logger = structlog.get_logger()


@dataclass(frozen=True)
class RecordReadingUseCase:
    store: BillingStore
    create_invoice: CreateInvoiceUseCase
    publisher: NotificationPublisher | None = None

    def execute(
        self,
        meter_id: int,
        route_id: int,
        consumption_m3: object,
        reading_date: date | str,
        period: str,
        recorded_by: int | None = None,
    ) -> ReadingResult:
        try:
            consumption = to_decimal(consumption_m3)
        except ValueError as e:
            raise InvalidConsumptionError(consumption_m3) from e
        if consumption < 0:
            raise ConsumptionOutOfRangeError(consumption_m3)
        read_on = require_date(reading_date, "fecha_lectura")
        period_value = require_period(period)

        with self.store.transaction():
            meter = self.store.get_meter(meter_id)
            if meter is None:
                raise MeterNotFoundError(meter_id)
            if self.store.get_route(route_id) is None:
                raise RouteNotFoundError(route_id)
            if self.store.find_reading(meter_id, period_value) is not None:
                raise DuplicateReadingError(meter_id, period_value)

            reading = self.store.add_reading(
                meter_id, route_id, consumption, read_on, period_value, recorded_by
            )

        logger.info(
            "reading_recorded",
            reading_id=reading.id,
            meter_id=meter_id,
            period=period_value,
            consumption_m3=str(consumption),
        )
        publish_event(
            self.publisher,
            READING_RECORDED,
            {
                "id": reading.id,
                "medidor_id": meter_id,
                "medidor_numero": meter.serial_number,
                "ruta_id": route_id,
                "consumo_m3": consumption,
                "fecha_lectura": read_on,
                "periodo": period_value,
                "modificado_por": recorded_by,
            },
        )

        invoice, error = self._auto_invoice(reading, meter, recorded_by)
        return ReadingResult(reading=reading, invoice=invoice, invoice_error=error)

    def _auto_invoice(
        self, reading: Reading, meter: Meter, recorded_by: int | None
    ) -> tuple[Invoice | None, str | None]:
        """La falla de la facturación automática no invalida la lectura registrada."""
        customer = self.store.get_customer(meter.customer_id) if meter.customer_id else None
        if customer is None or customer.tariff_id is None:
            logger.warning(
                "auto_invoice_skipped",
                reading_id=reading.id,
                reason="cliente sin tarifa asignada o medidor sin cliente",
            )
            return None, "Cliente sin tarifa asignada o medidor sin cliente"

        try:
            invoice = self.create_invoice.execute(
                reading_id=reading.id,
                customer_id=customer.id,
                tariff_id=customer.tariff_id,
                consumption_m3=reading.consumption_m3,
                issue_date=reading.reading_date,
                recorded_by=recorded_by,
            )
        except BillingError as e:
            logger.warning("auto_invoice_failed", reading_id=reading.id, reason=e.reason)
            return None, e.message
        return invoice, None
