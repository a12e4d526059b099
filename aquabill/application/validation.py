"""Validación de entradas de casos de uso; convierte ValueError en ValidationError."""

from datetime import date, datetime
from decimal import Decimal

from aquabill.domain.entities import PaymentMethod
from aquabill.domain.exceptions import InvalidAmountError, ValidationError
from aquabill.domain.value_objects import Period, round_money


def require_period(value: object) -> str:
    try:
        return Period(str(value)).value
    except ValueError as e:
        raise ValidationError(str(e), {"periodo": value}) from e


def require_date(value: object, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field_name} es requerido", {"campo": field_name})
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ValidationError(
            f"Formato de fecha no reconocido en {field_name}: '{value}'",
            {"campo": field_name},
        ) from e


def require_text(value: object, field_name: str) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{field_name} es requerido", {"campo": field_name})
    return text


def require_positive_amount(value: object) -> Decimal:
    try:
        amount = round_money(value)
    except ValueError as e:
        raise InvalidAmountError(value) from e
    if amount <= 0:
        raise InvalidAmountError(value)
    return amount


def require_payment_method(value: object) -> PaymentMethod:
    try:
        return PaymentMethod.parse(value)  # type: ignore[arg-type]
    except ValueError as e:
        raise ValidationError(str(e), {"metodo_pago": value}) from e
