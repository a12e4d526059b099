"""Casos de uso de pagos: aplicación contra el saldo de una factura y edición."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import structlog

from aquabill.application.dtos import PaymentResult
from aquabill.application.events import PAYMENT_RECEIVED, publish_event
from aquabill.application.ports.billing_store import BillingStore
from aquabill.application.ports.notifier import NotificationPublisher
from aquabill.application.validation import (
    require_date,
    require_payment_method,
    require_positive_amount,
)
from aquabill.domain.entities import Invoice, Payment, PaymentMethod
from aquabill.domain.exceptions import (
    InvoiceAlreadyPaidError,
    InvoiceNotFoundError,
    OverpaymentError,
    PaymentNotFoundError,
)
from aquabill.domain.value_objects import ZERO, money_add, money_sub, round_money

logger = structlog.get_logger()

DEFAULT_TOLERANCE = Decimal("0.01")


def split_tender(balance: Decimal, tendered: Decimal) -> tuple[Decimal, Decimal]:
    """Retorna (aplicado, cambio): nunca se aplica más que el saldo."""
    applied = round_money(min(round_money(balance), round_money(tendered)))
    change = money_sub(tendered, applied)
    return applied, change


@dataclass(frozen=True)
class ApplyPaymentUseCase:
    store: BillingStore
    publisher: NotificationPublisher | None = None
    tolerance: Decimal = DEFAULT_TOLERANCE

    def execute(
        self,
        invoice_id: int,
        amount_tendered: object,
        method: str | PaymentMethod,
        payment_date: date | str,
        recorded_by: int | None = None,
        comment: str | None = None,
    ) -> PaymentResult:
        tendered = require_positive_amount(amount_tendered)
        payment_method = require_payment_method(method)
        paid_on = require_date(payment_date, "fecha_pago")

        with self.store.transaction():
            invoice = self.store.get_invoice(invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(invoice_id)
            if invoice.outstanding_balance <= ZERO:
                raise InvoiceAlreadyPaidError(invoice_id, invoice.outstanding_balance)

            balance = invoice.outstanding_balance
            applied, change = split_tender(balance, tendered)

            if applied > money_add(balance, self.tolerance):
                raise OverpaymentError(balance=balance, attempted=applied, tendered=tendered)

            payment = self.store.add_payment(
                invoice_id=invoice_id,
                payment_date=paid_on,
                amount=applied,
                amount_tendered=tendered,
                change=change,
                method=payment_method,
                comment=comment,
                modified_by=recorded_by,
            )
            updated = invoice.with_payment(applied)
            self.store.update_invoice_balance(
                invoice_id, updated.outstanding_balance, updated.status
            )

        logger.info(
            "payment_applied",
            payment_id=payment.id,
            invoice_id=invoice_id,
            balance_before=str(balance),
            applied=str(applied),
            change=str(change),
            balance_after=str(updated.outstanding_balance),
            status=updated.status.value,
        )
        self._notify(payment, updated, recorded_by)

        return PaymentResult(
            payment_id=payment.id,
            invoice_id=invoice_id,
            applied=applied,
            change=change,
            outstanding_balance=updated.outstanding_balance,
            status=updated.status,
        )

    def _notify(self, payment: Payment, invoice: Invoice, recorded_by: int | None) -> None:
        if self.publisher is None:
            return
        try:
            view = self.store.get_invoice_view(invoice.id)
        except Exception as e:
            logger.warning("invoice_view_unavailable", invoice_id=invoice.id, error=str(e))
            view = None
        publish_event(
            self.publisher,
            PAYMENT_RECEIVED,
            {
                "id": payment.id,
                "factura_id": invoice.id,
                "cliente_nombre": view.customer_name if view else None,
                "monto": payment.amount,
                "cantidad_entregada": payment.amount_tendered,
                "cambio": payment.change,
                "metodo_pago": payment.method.value,
                "fecha_pago": payment.payment_date,
                "saldo_pendiente": invoice.outstanding_balance,
                "estado_factura": invoice.status.value,
                "modificado_por": recorded_by,
            },
        )


@dataclass(frozen=True)
class ModifyPaymentUseCase:
    """Edita fecha, método y comentario; los montos no se modifican."""

    store: BillingStore

    def execute(
        self,
        payment_id: int,
        payment_date: date | str,
        method: str | PaymentMethod,
        recorded_by: int | None = None,
        comment: str | None = None,
    ) -> Payment:
        paid_on = require_date(payment_date, "fecha_pago")
        payment_method = require_payment_method(method)

        with self.store.transaction():
            updated = self.store.update_payment_details(
                payment_id, paid_on, payment_method, comment, recorded_by
            )
            if not updated:
                raise PaymentNotFoundError(payment_id)
            payment = self.store.get_payment(payment_id)
            if payment is None:
                raise PaymentNotFoundError(payment_id)

        logger.info("payment_modified", payment_id=payment_id, method=payment_method.value)
        return payment
