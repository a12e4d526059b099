"""Port de persistencia transaccional para facturación."""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date
from decimal import Decimal
from typing import Protocol

from aquabill.application.dtos import InvoiceView, PaymentView, UnbilledReading
from aquabill.domain.entities import (
    Customer,
    Invoice,
    InvoiceStatus,
    Meter,
    Payment,
    PaymentMethod,
    Reading,
    Route,
    Tariff,
    TariffBand,
)


class BillingStore(Protocol):
    def transaction(self) -> AbstractContextManager[None]:
        """Bloque atómico: todo se confirma o todo se revierte."""
        ...

    # === Tarifas ===

    def add_tariff(
        self,
        name: str,
        description: str,
        start_date: date,
        end_date: date | None,
        modified_by: int | None,
    ) -> Tariff: ...

    def get_tariff(self, tariff_id: int) -> Tariff | None: ...

    def list_tariffs(self) -> list[Tariff]: ...

    def list_bands(self, tariff_id: int) -> list[TariffBand]:
        """Retorna los rangos ordenados por consumption_min ascendente."""
        ...

    def insert_bands(self, tariff_id: int, bands: list[TariffBand]) -> list[TariffBand]: ...

    def delete_bands(self, tariff_id: int) -> int: ...

    # === Clientes, medidores, rutas ===

    def add_customer(
        self,
        name: str,
        address: str = "",
        phone: str = "",
        city: str = "",
        email: str | None = None,
        tariff_id: int | None = None,
    ) -> Customer: ...

    def get_customer(self, customer_id: int) -> Customer | None: ...

    def assign_tariff(self, customer_id: int, tariff_id: int | None) -> None: ...

    def add_meter(
        self,
        serial_number: str,
        customer_id: int | None = None,
        location: str = "",
        status: str = "Activo",
    ) -> Meter: ...

    def get_meter(self, meter_id: int) -> Meter | None: ...

    def add_route(self, name: str, description: str = "") -> Route: ...

    def get_route(self, route_id: int) -> Route | None: ...

    # === Lecturas ===

    def add_reading(
        self,
        meter_id: int,
        route_id: int | None,
        consumption_m3: Decimal,
        reading_date: date,
        period: str,
        modified_by: int | None,
    ) -> Reading: ...

    def get_reading(self, reading_id: int) -> Reading | None: ...

    def find_reading(self, meter_id: int, period: str) -> Reading | None: ...

    def list_unbilled_readings(self, period: str) -> list[UnbilledReading]:
        """Lecturas del periodo sin factura, con cliente y tarifa si existen."""
        ...

    # === Facturas ===

    def add_invoice(
        self,
        reading_id: int,
        customer_id: int,
        tariff_id: int,
        issue_date: date,
        due_date: date,
        total: Decimal,
        modified_by: int | None,
    ) -> Invoice:
        """Inserta con saldo = total y estado Pendiente."""
        ...

    def get_invoice(self, invoice_id: int) -> Invoice | None: ...

    def get_invoice_by_reading(self, reading_id: int) -> Invoice | None: ...

    def update_invoice_balance(
        self, invoice_id: int, balance: Decimal, status: InvoiceStatus
    ) -> None: ...

    def get_invoice_view(self, invoice_id: int) -> InvoiceView | None: ...

    def list_invoice_views(self, period: str | None = None) -> list[InvoiceView]: ...

    # === Pagos ===

    def add_payment(
        self,
        invoice_id: int,
        payment_date: date,
        amount: Decimal,
        amount_tendered: Decimal,
        change: Decimal,
        method: PaymentMethod,
        comment: str | None,
        modified_by: int | None,
    ) -> Payment: ...

    def get_payment(self, payment_id: int) -> Payment | None: ...

    def update_payment_details(
        self,
        payment_id: int,
        payment_date: date,
        method: PaymentMethod,
        comment: str | None,
        modified_by: int | None,
    ) -> bool:
        """Actualiza sólo campos no monetarios. Retorna False si no existe."""
        ...

    def list_payment_views(self, period: str | None = None) -> list[PaymentView]: ...
