"""Value objects del dominio: dinero y periodos de facturación."""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")

MONTH_NAMES = {
    1: "Enero",
    2: "Febrero",
    3: "Marzo",
    4: "Abril",
    5: "Mayo",
    6: "Junio",
    7: "Julio",
    8: "Agosto",
    9: "Septiembre",
    10: "Octubre",
    11: "Noviembre",
    12: "Diciembre",
}


def to_decimal(value: object) -> Decimal:
    """Convierte a Decimal sin pasar por la representación binaria de float."""
    if isinstance(value, bool):
        raise ValueError(f"Monto inválido: {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Monto inválido: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Monto inválido: {value!r}")
    return result


def round_money(value: object) -> Decimal:
    """Redondea a exactamente 2 decimales (half-up al centavo). Idempotente."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_add(a: object, b: object) -> Decimal:
    return round_money(round_money(a) + round_money(b))


def money_sub(a: object, b: object) -> Decimal:
    return round_money(round_money(a) - round_money(b))


def money_mul(amount: object, quantity: object) -> Decimal:
    # quantity son m3 enteros; el precio puede traer más de 2 decimales
    return round_money(to_decimal(amount) * to_decimal(quantity))


@dataclass(frozen=True)
class Period:
    """Periodo de facturación en formato YYYY-MM."""

    value: str

    def __post_init__(self) -> None:
        match = _PERIOD_RE.match(str(self.value).strip())
        if not match:
            raise ValueError(f"Periodo inválido, se esperaba YYYY-MM: '{self.value}'")
        month = int(match.group(2))
        if not 1 <= month <= 12:
            raise ValueError(f"Mes fuera de rango en periodo: '{self.value}'")
        object.__setattr__(self, "value", match.group(0))

    @property
    def year(self) -> int:
        return int(self.value[:4])

    @property
    def month(self) -> int:
        return int(self.value[5:])

    @property
    def month_name(self) -> str:
        """Mes legible, p.ej. 'Marzo 2026'."""
        return f"{MONTH_NAMES[self.month]} {self.year}"

    def __str__(self) -> str:
        return self.value
