"""Reglas de tarificación escalonada por bloques de consumo.

Funciones puras sobre una lista de ``TariffBand``; no acceden al almacenamiento.
"""

from collections.abc import Iterable, Sequence
from decimal import ROUND_FLOOR, Decimal

from aquabill.domain.entities import TariffBand
from aquabill.domain.exceptions import (
    ConsumptionOutOfRangeError,
    InvalidConsumptionError,
    OverlappingBandsError,
)
from aquabill.domain.value_objects import ZERO, money_add, money_mul, round_money, to_decimal


def sort_bands(bands: Iterable[TariffBand]) -> list[TariffBand]:
    return sorted(bands, key=lambda b: b.consumption_min)


def validate_band_set(bands: Sequence[TariffBand]) -> list[TariffBand]:
    """
    Valida que los bloques sean contiguos y no se solapen.

    Ordenados por ``consumption_min``, cada bloque debe empezar en el máximo
    del anterior + 1 y sólo el último puede ser abierto. Retorna los bloques
    ordenados.
    """
    ordered = sort_bands(bands)
    seen: set[int] = set()

    for band in ordered:
        if band.consumption_min in seen:
            raise OverlappingBandsError(
                f"Rango duplicado en el lote: {band.label()}",
                {"consumo_min": band.consumption_min},
            )
        seen.add(band.consumption_min)

    for current, following in zip(ordered, ordered[1:]):
        if current.consumption_max is None:
            raise OverlappingBandsError(
                f"Sólo el último rango puede ser abierto: {current.label()} precede a "
                f"{following.label()}",
                {"rango": current.label()},
            )
        expected = current.consumption_max + 1
        if following.consumption_min < expected:
            raise OverlappingBandsError(
                f"Los rangos {current.label()} y {following.label()} se solapan",
                {"rango": current.label(), "siguiente": following.label()},
            )
        if following.consumption_min > expected:
            raise OverlappingBandsError(
                f"Hay un hueco entre los rangos {current.label()} y {following.label()}",
                {"rango": current.label(), "siguiente": following.label()},
            )

    return ordered


def billable_units(consumption_m3: object) -> int:
    """Trunca el consumo a m3 enteros para ubicar el bloque."""
    try:
        consumption = to_decimal(consumption_m3)
    except ValueError as e:
        raise InvalidConsumptionError(consumption_m3) from e
    if consumption < 0:
        raise ConsumptionOutOfRangeError(consumption_m3)
    return int(consumption.to_integral_value(rounding=ROUND_FLOOR))


def _band_charge(band: TariffBand, units: int) -> Decimal:
    """Cargo de ``units`` m3 dentro de un bloque; el bloque base es cargo fijo."""
    if band.is_base:
        return round_money(band.unit_price)
    return money_mul(band.unit_price, units)


def rate_consumption(bands: Sequence[TariffBand], consumption_m3: object) -> Decimal:
    """
    Calcula el total a cobrar recorriendo los bloques en orden.

    - Bloque completamente consumido: el bloque base suma su cargo fijo, el
      resto suma ``precio × (max - min + 1)``.
    - Bloque que contiene el consumo: el bloque base suma su cargo fijo, el
      resto suma ``precio × (consumo - min + 1)``; aquí termina el recorrido.
    - Consumo bajo el mínimo del primer bloque: no se cobra.
    - Consumo por sobre todos los bloques: el excedente sobre el máximo del
      último bloque se cobra al precio de ese bloque.
    """
    units = billable_units(consumption_m3)
    if not bands:
        return ZERO

    ordered = sort_bands(bands)
    total = ZERO

    for band in ordered:
        if band.contains(units):
            consumed = units - band.consumption_min + 1
            return money_add(total, _band_charge(band, consumed))
        if units < band.consumption_min:
            return round_money(total)
        total = money_add(total, _band_charge(band, band.width))

    last = ordered[-1]
    if not last.is_unbounded:
        excess = units - last.consumption_max
        total = money_add(total, money_mul(last.unit_price, excess))

    return round_money(total)
