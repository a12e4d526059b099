from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Optional

from aquabill.domain.entities import Invoice, InvoiceStatus, Payment, Reading
from aquabill.domain.value_objects import ZERO, Period, money_add, round_money

GENERATED = "generada"
FAILED = "fallida"


@dataclass(frozen=True)
class UnbilledReading:
    """Lectura sin factura con los datos necesarios para facturarla."""

    reading: Reading
    meter_number: str
    customer_id: Optional[int]
    customer_name: Optional[str]
    tariff_id: Optional[int]


@dataclass(frozen=True)
class InvoiceView:
    """Factura con datos de cliente, lectura y medidor para notificaciones y reportes."""

    invoice: Invoice
    customer_name: str
    tariff_name: str
    period: str
    consumption_m3: Decimal
    meter_number: str


@dataclass(frozen=True)
class PaymentView:
    payment: Payment
    customer_name: str
    period: Optional[str]


@dataclass(frozen=True)
class PaymentResult:
    payment_id: int
    invoice_id: int
    applied: Decimal
    change: Decimal
    outstanding_balance: Decimal
    status: InvoiceStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "pago_id": self.payment_id,
            "factura_id": self.invoice_id,
            "monto_aplicado": str(self.applied),
            "cambio": str(self.change),
            "saldo_pendiente": str(self.outstanding_balance),
            "estado": self.status.value,
        }


@dataclass(frozen=True)
class ReadingResult:
    reading: Reading
    invoice: Optional[Invoice] = None
    invoice_error: Optional[str] = None


@dataclass
class BulkInvoiceItem:
    reading_id: int
    customer_name: Optional[str]
    meter_number: Optional[str]
    consumption_m3: Decimal
    status: str = GENERATED
    invoice_id: Optional[int] = None
    total: Optional[Decimal] = None
    error: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "lectura_id": self.reading_id,
            "cliente_nombre": self.customer_name,
            "medidor_numero": self.meter_number,
            "consumo_m3": str(self.consumption_m3),
            "estado": self.status,
        }
        if self.status == GENERATED:
            d["factura_id"] = self.invoice_id
            d["total"] = str(self.total)
        else:
            d["error"] = self.error
            d["motivo"] = self.reason
        return d


@dataclass
class BulkInvoiceReport:
    run_id: str
    period: str
    issue_date: date
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    items: list[BulkInvoiceItem] = field(default_factory=list)

    @property
    def total_readings(self) -> int:
        return len(self.items)

    @property
    def generated(self) -> list[BulkInvoiceItem]:
        return [i for i in self.items if i.status == GENERATED]

    @property
    def failed(self) -> list[BulkInvoiceItem]:
        return [i for i in self.items if i.status == FAILED]

    @property
    def total_amount(self) -> Decimal:
        total = ZERO
        for item in self.generated:
            total = money_add(total, item.total or ZERO)
        return total

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "periodo": self.period,
            "fecha_emision": self.issue_date.isoformat(),
            "total_lecturas": self.total_readings,
            "facturas_generadas": len(self.generated),
            "facturas_fallidas": len(self.failed),
            "monto_total": str(self.total_amount),
            "detalles": [i.to_dict() for i in self.items],
        }


@dataclass
class PeriodInvoiceSummary:
    period: str
    invoices: list[InvoiceView] = field(default_factory=list)
    total_invoiced: Decimal = ZERO
    total_outstanding: Decimal = ZERO
    pending_count: int = 0
    average_consumption: Decimal = ZERO

    @property
    def month_name(self) -> str:
        return Period(self.period).month_name

    def to_dict(self) -> dict[str, Any]:
        return {
            "periodo": self.period,
            "mes_facturado": self.month_name,
            "total": len(self.invoices),
            "estadisticas": {
                "total_facturado": str(self.total_invoiced),
                "total_pendiente": str(self.total_outstanding),
                "facturas_pendientes": self.pending_count,
                "promedio_consumo": str(self.average_consumption),
            },
        }


@dataclass
class PaymentSummary:
    period: Optional[str] = None
    payment_count: int = 0
    total_paid: Decimal = ZERO
    by_period: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def average_payment(self) -> Decimal:
        if not self.payment_count:
            return ZERO
        return round_money(self.total_paid / self.payment_count)

