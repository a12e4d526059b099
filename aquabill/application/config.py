"""Configuración de la aplicación cargada desde YAML."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from aquabill.domain.value_objects import round_money


@dataclass(frozen=True)
class DatabaseConfig:
    path: str


@dataclass(frozen=True)
class BillingConfig:
    due_days: int = 30
    payment_tolerance: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class NotificationsConfig:
    enabled: bool = True


@dataclass(frozen=True)
class ReportsConfig:
    output_dir: str = "reports"
    sheet_name: str = "Facturas"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig
    billing: BillingConfig = field(default_factory=BillingConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    reports: ReportsConfig = field(default_factory=ReportsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: str | Path) -> AppConfig:
    """Carga y valida la configuración desde un archivo YAML."""
    path = Path(config_path).resolve()
    if not path.exists():
        msg = f"Archivo de configuración no encontrado: {path}"
        raise FileNotFoundError(msg)

    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        msg = f"YAML inválido: se esperaba dict, se obtuvo {type(raw).__name__}"
        raise ValueError(msg)

    _validate_required_keys(raw)

    return AppConfig(
        database=_build_database_config(raw.get("database") or {}),
        billing=_build_billing_config(raw.get("billing") or {}),
        notifications=NotificationsConfig(**(raw.get("notifications") or {})),
        reports=ReportsConfig(**(raw.get("reports") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )


def _validate_required_keys(raw: dict[str, Any]) -> None:
    """Valida que las secciones requeridas existan en el YAML."""
    required = {"database"}
    missing = required - set(raw.keys())
    if missing:
        msg = f"Secciones requeridas faltantes en YAML: {sorted(missing)}"
        raise ValueError(msg)


def _build_database_config(data: dict[str, Any]) -> DatabaseConfig:
    if "path" not in data:
        msg = "database.path es requerido"
        raise ValueError(msg)
    return DatabaseConfig(**data)


def _build_billing_config(data: dict[str, Any]) -> BillingConfig:
    """Construye BillingConfig, convirtiendo la tolerancia a Decimal."""
    data = dict(data)  # shallow copy
    if "due_days" in data:
        due_days = int(data["due_days"])
        if due_days < 0:
            msg = f"billing.due_days no puede ser negativo: {due_days}"
            raise ValueError(msg)
        data["due_days"] = due_days
    if "payment_tolerance" in data:
        tolerance = round_money(data["payment_tolerance"])
        if tolerance < 0:
            msg = f"billing.payment_tolerance no puede ser negativo: {tolerance}"
            raise ValueError(msg)
        data["payment_tolerance"] = tolerance
    return BillingConfig(**data)
