"""Excepciones de negocio de facturación y cobranza."""

from decimal import Decimal
from typing import Any


class BillingError(Exception):
    """Base para errores de facturación.

    ``reason`` es un identificador estable para máquinas; el mensaje es
    legible para humanos. ``http_status`` lo usa la capa HTTP externa.
    """

    reason = "billing_error"
    http_status = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.reason, "mensaje": self.message}
        if self.details:
            payload["detalles"] = {
                k: str(v) if isinstance(v, Decimal) else v for k, v in self.details.items()
            }
        return payload


# === 400 ===


class ValidationError(BillingError):
    """Entrada faltante o mal formada."""

    reason = "validation_error"
    http_status = 400


class InvalidAmountError(ValidationError):
    reason = "invalid_amount"

    def __init__(self, amount: object) -> None:
        super().__init__(
            f"El monto debe ser mayor a cero: {amount}",
            {"monto": amount},
        )


class InvalidConsumptionError(ValidationError):
    reason = "invalid_consumption"

    def __init__(self, consumption: object) -> None:
        super().__init__(
            f"El consumo debe ser numérico: {consumption!r}",
            {"consumo_m3": consumption},
        )


class ConsumptionOutOfRangeError(ValidationError):
    reason = "consumption_out_of_range"

    def __init__(self, consumption: object) -> None:
        super().__init__(
            f"El consumo no puede ser negativo: {consumption}",
            {"consumo_m3": consumption},
        )


class NoBandsDefinedError(ValidationError):
    reason = "no_bands_defined"

    def __init__(self, tariff_id: int) -> None:
        self.tariff_id = tariff_id
        super().__init__(
            f"La tarifa {tariff_id} no tiene rangos definidos",
            {"tarifa_id": tariff_id},
        )


class OverpaymentError(ValidationError):
    """El monto a aplicar excede el saldo pendiente más la tolerancia."""

    reason = "overpayment"

    def __init__(self, balance: Decimal, attempted: Decimal, tendered: Decimal) -> None:
        self.balance = balance
        self.attempted = attempted
        self.tendered = tendered
        super().__init__(
            f"El monto del pago ({attempted}) excede el saldo pendiente ({balance})",
            {
                "saldo_pendiente": balance,
                "monto_solicitado": attempted,
                "cantidad_entregada": tendered,
            },
        )


# === 404 ===


class NotFoundError(BillingError):
    reason = "not_found"
    http_status = 404
    entity = "registro"

    def __init__(self, entity_id: object) -> None:
        self.entity_id = entity_id
        super().__init__(
            f"{self.entity.capitalize()} no encontrado: {entity_id}",
            {"id": entity_id},
        )


class TariffNotFoundError(NotFoundError):
    reason = "tariff_not_found"
    entity = "tarifa"


class CustomerNotFoundError(NotFoundError):
    reason = "customer_not_found"
    entity = "cliente"


class ReadingNotFoundError(NotFoundError):
    reason = "reading_not_found"
    entity = "lectura"


class InvoiceNotFoundError(NotFoundError):
    reason = "invoice_not_found"
    entity = "factura"


class PaymentNotFoundError(NotFoundError):
    reason = "payment_not_found"
    entity = "pago"


class MeterNotFoundError(NotFoundError):
    reason = "meter_not_found"
    entity = "medidor"


class RouteNotFoundError(NotFoundError):
    reason = "route_not_found"
    entity = "ruta"


# === 409 ===


class ConflictError(BillingError):
    reason = "conflict"
    http_status = 409


class DuplicateInvoiceError(ConflictError):
    reason = "duplicate_invoice"

    def __init__(self, reading_id: int) -> None:
        self.reading_id = reading_id
        super().__init__(
            f"Ya existe una factura para la lectura {reading_id}",
            {"lectura_id": reading_id},
        )


class InvoiceAlreadyPaidError(ConflictError):
    reason = "invoice_already_paid"

    def __init__(self, invoice_id: int, balance: Decimal) -> None:
        self.invoice_id = invoice_id
        super().__init__(
            f"La factura {invoice_id} ya está completamente pagada",
            {"factura_id": invoice_id, "saldo_pendiente": balance},
        )


class OverlappingBandsError(ConflictError):
    """El conjunto de rangos no es contiguo o tiene solapamientos."""

    reason = "overlapping_bands"


class DuplicateReadingError(ConflictError):
    reason = "duplicate_reading"

    def __init__(self, meter_id: int, period: str) -> None:
        super().__init__(
            f"Ya existe una lectura para el medidor {meter_id} en el periodo {period}",
            {"medidor_id": meter_id, "periodo": period},
        )


# === 500 ===


class StorageError(BillingError):
    """Falla del almacenamiento subyacente."""

    reason = "internal_error"
    http_status = 500
