"""Motor de tarificación: aplica los rangos persistidos de una tarifa a un consumo."""

from dataclasses import dataclass
from decimal import Decimal

import structlog

from aquabill.application.ports.billing_store import BillingStore
from aquabill.domain.entities import TariffBand
from aquabill.domain.exceptions import NoBandsDefinedError, TariffNotFoundError
from aquabill.domain.rating import billable_units, rate_consumption, sort_bands

logger = structlog.get_logger()


@dataclass(frozen=True)
class TariffRatingEngine:
    store: BillingStore

    def load_bands(self, tariff_id: int) -> list[TariffBand]:
        if self.store.get_tariff(tariff_id) is None:
            raise TariffNotFoundError(tariff_id)
        bands = self.store.list_bands(tariff_id)
        if not bands:
            raise NoBandsDefinedError(tariff_id)
        return sort_bands(bands)

    def rate(self, tariff_id: int, consumption_m3: object) -> Decimal:
        billable_units(consumption_m3)  # rechaza consumo negativo antes de leer la tarifa
        bands = self.load_bands(tariff_id)
        total = rate_consumption(bands, consumption_m3)
        logger.debug(
            "consumption_rated",
            tariff_id=tariff_id,
            consumption_m3=str(consumption_m3),
            bands=len(bands),
            total=str(total),
        )
        return total
