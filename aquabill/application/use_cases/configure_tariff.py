"""Casos de uso de tarifas: alta de tarifas y configuración de rangos de consumo."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

import structlog

from aquabill.application.events import system_alert
from aquabill.application.ports.billing_store import BillingStore
from aquabill.application.ports.notifier import NotificationPublisher
from aquabill.application.validation import require_date, require_text
from aquabill.domain.entities import Tariff, TariffBand
from aquabill.domain.exceptions import TariffNotFoundError, ValidationError
from aquabill.domain.rating import validate_band_set

logger = structlog.get_logger()


def build_band(tariff_id: int, data: Mapping[str, Any] | TariffBand) -> TariffBand:
    """Construye un TariffBand desde un dict con claves consumo_min/consumo_max/precio_por_m3."""
    if isinstance(data, TariffBand):
        return data
    try:
        raw_max = data.get("consumo_max")
        return TariffBand(
            tariff_id=tariff_id,
            consumption_min=int(data["consumo_min"]),
            consumption_max=None if raw_max is None else int(raw_max),
            unit_price=data["precio_por_m3"],
        )
    except KeyError as e:
        raise ValidationError(f"Falta el campo {e.args[0]} en el rango", {"rango": dict(data)}) from e
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Rango inválido: {e}", {"rango": dict(data)}) from e


@dataclass(frozen=True)
class TariffService:
    store: BillingStore
    publisher: NotificationPublisher | None = None

    def register_tariff(
        self,
        name: str,
        description: str,
        start_date: date | str,
        end_date: date | str | None = None,
        recorded_by: int | None = None,
    ) -> Tariff:
        name = require_text(name, "nombre")
        description = require_text(description, "descripcion")
        starts = require_date(start_date, "fecha_inicio")
        ends = require_date(end_date, "fecha_fin") if end_date else None
        if ends is not None and starts >= ends:
            raise ValidationError(
                "La fecha de inicio debe ser anterior a la fecha de fin",
                {"fecha_inicio": starts.isoformat(), "fecha_fin": ends.isoformat()},
            )

        tariff = self.store.add_tariff(name, description, starts, ends, recorded_by)
        logger.info("tariff_registered", tariff_id=tariff.id, name=name)
        system_alert(
            self.publisher,
            f'Nueva tarifa "{name}" creada',
            "success",
            {"tarifa_id": tariff.id, "accion": "tarifa_creada"},
        )
        return tariff

    def configure_bands(
        self,
        tariff_id: int,
        bands: Iterable[Mapping[str, Any] | TariffBand],
        replace: bool = False,
    ) -> list[TariffBand]:
        """
        Registra rangos de consumo para una tarifa.

        Sin ``replace`` los rangos nuevos se validan junto a los ya
        persistidos; con ``replace`` sustituyen a los existentes en la misma
        transacción.
        """
        incoming = [build_band(tariff_id, b) for b in bands]
        if not incoming:
            raise ValidationError("Faltan rangos para la tarifa", {"tarifa_id": tariff_id})

        with self.store.transaction():
            if self.store.get_tariff(tariff_id) is None:
                raise TariffNotFoundError(tariff_id)

            existing = [] if replace else self.store.list_bands(tariff_id)
            validate_band_set(existing + incoming)

            if replace:
                removed = self.store.delete_bands(tariff_id)
                logger.info("tariff_bands_removed", tariff_id=tariff_id, removed=removed)
            created = self.store.insert_bands(tariff_id, validate_band_set(incoming))

        logger.info("tariff_bands_configured", tariff_id=tariff_id, bands=len(created))
        system_alert(
            self.publisher,
            f"Tarifa ID {tariff_id} configurada con {len(created)} rangos",
            "info",
            {
                "tarifa_id": tariff_id,
                "total_rangos": len(created),
                "rangos_resumen": [
                    {"min": b.consumption_min, "max": b.consumption_max, "precio": b.unit_price}
                    for b in created
                ],
                "accion": "tarifa_configurada",
            },
        )
        return created

    def get_tariff_with_bands(self, tariff_id: int) -> tuple[Tariff, list[TariffBand]]:
        tariff = self.store.get_tariff(tariff_id)
        if tariff is None:
            raise TariffNotFoundError(tariff_id)
        return tariff, self.store.list_bands(tariff_id)
