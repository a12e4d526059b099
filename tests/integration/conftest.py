"""Integration test fixtures: real SqliteBillingStore in tmp_path, recording publisher.

Real components: SqliteBillingStore, TariffRatingEngine, use cases, OpenpyxlExcelHandler.
Faked components: NotificationPublisher (captures events in memory).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

import pytest

from aquabill.application.use_cases.apply_payment import ApplyPaymentUseCase
from aquabill.application.use_cases.billing_reports import BillingReportService
from aquabill.application.use_cases.configure_tariff import TariffService
from aquabill.application.use_cases.create_invoice import CreateInvoiceUseCase
from aquabill.application.use_cases.generate_period_invoices import (
    GenerateInvoicesForPeriodUseCase,
)
from aquabill.application.use_cases.rate_consumption import TariffRatingEngine
from aquabill.application.use_cases.record_reading import RecordReadingUseCase
from aquabill.domain.entities import Customer, Reading
from aquabill.infrastructure.excel_handler import OpenpyxlExcelHandler
from aquabill.infrastructure.sqlite_store import SqliteBillingStore

PERIOD = "2026-03"
ISSUE_DATE = date(2026, 3, 31)

RESIDENTIAL_BANDS = [
    {"consumo_min": 0, "consumo_max": 20, "precio_por_m3": "10.00"},
    {"consumo_min": 21, "consumo_max": 50, "precio_por_m3": "2.50"},
    {"consumo_min": 51, "consumo_max": None, "precio_por_m3": "4.00"},
]


@dataclass
class RecordingPublisher:
    """Captures published events for verification."""

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((event_type, payload))

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [payload for kind, payload in self.events if kind == event_type]


@dataclass
class Services:
    store: SqliteBillingStore
    publisher: RecordingPublisher
    tariffs: TariffService
    create_invoice: CreateInvoiceUseCase
    bulk: GenerateInvoicesForPeriodUseCase
    payments: ApplyPaymentUseCase
    readings: RecordReadingUseCase
    reports: BillingReportService


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def store(tmp_path) -> SqliteBillingStore:
    s = SqliteBillingStore(db_path=str(tmp_path / "billing.db"))
    yield s
    s.close()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def services(store: SqliteBillingStore, publisher: RecordingPublisher) -> Services:
    create_invoice = CreateInvoiceUseCase(
        store=store, rating=TariffRatingEngine(store), publisher=publisher
    )
    return Services(
        store=store,
        publisher=publisher,
        tariffs=TariffService(store, publisher),
        create_invoice=create_invoice,
        bulk=GenerateInvoicesForPeriodUseCase(store, create_invoice, publisher),
        payments=ApplyPaymentUseCase(store, publisher),
        readings=RecordReadingUseCase(store, create_invoice, publisher),
        reports=BillingReportService(store, OpenpyxlExcelHandler(), "Facturas"),
    )


@pytest.fixture
def residential_tariff(services: Services) -> int:
    tariff = services.tariffs.register_tariff(
        "Residencial", "Uso doméstico", date(2026, 1, 1), recorded_by=1
    )
    services.tariffs.configure_bands(tariff.id, RESIDENTIAL_BANDS)
    return tariff.id


@pytest.fixture
def route_id(store: SqliteBillingStore) -> int:
    return store.add_route("Ruta Centro", "Sector céntrico").id


@pytest.fixture
def add_customer_reading(store: SqliteBillingStore, route_id: int):
    """Factory: customer + meter + reading for PERIOD, inserted directly in the store."""
    counter = {"n": 0}

    def _add(
        consumption: str | Decimal,
        tariff_id: int | None,
        name: str | None = None,
    ) -> tuple[Customer, Reading]:
        counter["n"] += 1
        n = counter["n"]
        customer = store.add_customer(name or f"Cliente {n}", f"Calle {n}", tariff_id=tariff_id)
        meter = store.add_meter(f"MED-{n:03d}", customer.id, "Frontis")
        reading = store.add_reading(
            meter.id, route_id, Decimal(str(consumption)), date(2026, 3, 28), PERIOD, 1
        )
        return customer, reading

    return _add
