"""Entidades de dominio de facturación de agua potable."""

from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from aquabill.domain.value_objects import ZERO, money_sub, round_money, to_decimal

DEFAULT_DUE_DAYS = 30


class InvoiceStatus(Enum):
    """Estado de una factura según su saldo pendiente."""

    PENDING = "Pendiente"
    PAID = "Pagada"
    OVERDUE = "Vencida"  # con saldo, fuera de plazo; se puede seguir pagando

    @classmethod
    def for_balance(cls, balance: Decimal) -> "InvoiceStatus":
        return cls.PAID if balance <= ZERO else cls.PENDING


class PaymentMethod(Enum):
    CASH = "Efectivo"
    TRANSFER = "Transferencia"
    CARD = "Tarjeta"
    CHECK = "Cheque"

    @classmethod
    def parse(cls, value: "str | PaymentMethod") -> "PaymentMethod":
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"Método de pago inválido: '{value}'. Permitidos: {allowed}")


@dataclass(frozen=True, kw_only=True)
class Tariff:
    id: int
    name: str
    description: str
    start_date: date
    end_date: Optional[date] = None
    modified_by: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("name no puede estar vacío")
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError(
                f"La fecha de inicio ({self.start_date}) debe ser anterior a la fecha "
                f"de fin ({self.end_date})"
            )


@dataclass(frozen=True, kw_only=True)
class TariffBand:
    """
    Un bloque de consumo escalonado de una tarifa.

    Límites enteros en m3, inclusivos. ``consumption_max=None`` es el bloque
    superior abierto. El bloque que inicia en 0 (bloque base) cobra
    ``unit_price`` como cargo fijo, no por m3.
    """

    tariff_id: int
    consumption_min: int
    consumption_max: Optional[int]
    unit_price: Decimal
    id: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        if self.consumption_min < 0:
            raise ValueError(f"consumption_min no puede ser negativo: {self.consumption_min}")
        if self.unit_price < 0:
            raise ValueError(f"unit_price no puede ser negativo: {self.unit_price}")
        if self.consumption_max is not None:
            if self.consumption_max < 0:
                raise ValueError(
                    f"consumption_max no puede ser negativo: {self.consumption_max}"
                )
            if self.consumption_min >= self.consumption_max:
                raise ValueError(
                    f"El consumo mínimo ({self.consumption_min}) debe ser menor que el "
                    f"consumo máximo ({self.consumption_max})"
                )

    @property
    def is_base(self) -> bool:
        return self.consumption_min == 0

    @property
    def is_unbounded(self) -> bool:
        return self.consumption_max is None

    @property
    def width(self) -> Optional[int]:
        """Cantidad de m3 cubiertos por el bloque (None si es abierto)."""
        if self.consumption_max is None:
            return None
        return self.consumption_max - self.consumption_min + 1

    def contains(self, consumption: int) -> bool:
        if consumption < self.consumption_min:
            return False
        return self.consumption_max is None or consumption <= self.consumption_max

    def label(self) -> str:
        upper = "∞" if self.consumption_max is None else str(self.consumption_max)
        return f"[{self.consumption_min}-{upper}]"


@dataclass(frozen=True, kw_only=True)
class Customer:
    id: int
    name: str
    address: str = ""
    phone: str = ""
    city: str = ""
    email: Optional[str] = None
    tariff_id: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class Meter:
    id: int
    serial_number: str
    customer_id: Optional[int] = None
    location: str = ""
    status: str = "Activo"


@dataclass(frozen=True, kw_only=True)
class Route:
    id: int
    name: str
    description: str = ""


@dataclass(frozen=True, kw_only=True)
class Reading:
    id: int
    meter_id: int
    route_id: Optional[int]
    consumption_m3: Decimal
    reading_date: date
    period: str
    modified_by: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "consumption_m3", to_decimal(self.consumption_m3))
        if self.consumption_m3 < 0:
            raise ValueError(f"consumption_m3 no puede ser negativo: {self.consumption_m3}")


@dataclass(frozen=True, kw_only=True)
class Invoice:
    """
    Factura de una lectura.

    ``total`` se calcula una sola vez al crearla. ``outstanding_balance``
    empieza igual a ``total`` y sólo disminuye al aplicar pagos.
    """

    id: int
    reading_id: int
    customer_id: int
    tariff_id: int
    issue_date: date
    due_date: date
    total: Decimal
    outstanding_balance: Decimal
    status: InvoiceStatus = InvoiceStatus.PENDING
    modified_by: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "total", round_money(self.total))
        object.__setattr__(self, "outstanding_balance", round_money(self.outstanding_balance))
        if self.total < 0:
            raise ValueError(f"total no puede ser negativo: {self.total}")
        if self.outstanding_balance < 0:
            raise ValueError(
                f"outstanding_balance no puede ser negativo: {self.outstanding_balance}"
            )

    @staticmethod
    def due_date_for(issue_date: date, due_days: int = DEFAULT_DUE_DAYS) -> date:
        return issue_date + timedelta(days=due_days)

    @property
    def is_paid(self) -> bool:
        return self.outstanding_balance <= ZERO

    def with_payment(self, applied: Decimal) -> "Invoice":
        """Retorna copia con el saldo reducido y el estado derivado del nuevo saldo."""
        balance = money_sub(self.outstanding_balance, applied)
        if balance <= ZERO:
            return replace(self, outstanding_balance=ZERO, status=InvoiceStatus.PAID)
        return replace(self, outstanding_balance=balance)


@dataclass(frozen=True, kw_only=True)
class Payment:
    id: int
    invoice_id: int
    payment_date: date
    amount: Decimal  # lo aplicado a la factura
    amount_tendered: Decimal  # lo entregado por el cliente
    change: Decimal
    method: PaymentMethod
    comment: Optional[str] = None
    modified_by: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("amount", "amount_tendered", "change"):
            object.__setattr__(self, name, round_money(getattr(self, name)))
        if self.amount <= 0:
            raise ValueError(f"amount debe ser mayor a cero: {self.amount}")
        if self.amount_tendered < self.amount:
            raise ValueError(
                f"amount_tendered ({self.amount_tendered}) no puede ser menor que "
                f"amount ({self.amount})"
            )
        if self.change < 0:
            raise ValueError(f"change no puede ser negativo: {self.change}")
