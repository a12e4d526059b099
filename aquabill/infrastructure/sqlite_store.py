"""Almacenamiento de facturación basado en SQLite con transacciones explícitas."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

import structlog

from aquabill.application.dtos import InvoiceView, PaymentView, UnbilledReading
from aquabill.domain.entities import (
    Customer,
    Invoice,
    InvoiceStatus,
    Meter,
    Payment,
    PaymentMethod,
    Reading,
    Route,
    Tariff,
    TariffBand,
)
from aquabill.domain.exceptions import (
    DuplicateInvoiceError,
    DuplicateReadingError,
    OverlappingBandsError,
    StorageError,
)
from aquabill.domain.value_objects import round_money, to_decimal

logger = structlog.get_logger()

# Montos y consumos se guardan como TEXT para conservar el Decimal exacto.
_SCHEMA = """
CREATE TABLE IF NOT EXISTS tarifas (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    nombre              TEXT NOT NULL,
    descripcion         TEXT NOT NULL DEFAULT '',
    fecha_inicio        TEXT NOT NULL,
    fecha_fin           TEXT,
    modificado_por      INTEGER,
    created_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS rangos_tarifas (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    tarifa_id           INTEGER NOT NULL REFERENCES tarifas(id),
    consumo_min         INTEGER NOT NULL,
    consumo_max         INTEGER,
    precio_por_m3       TEXT NOT NULL,
    UNIQUE (tarifa_id, consumo_min)
);

CREATE TABLE IF NOT EXISTS clientes (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    nombre              TEXT NOT NULL,
    direccion           TEXT NOT NULL DEFAULT '',
    telefono            TEXT NOT NULL DEFAULT '',
    ciudad              TEXT NOT NULL DEFAULT '',
    email               TEXT,
    tarifa_id           INTEGER REFERENCES tarifas(id)
);

CREATE TABLE IF NOT EXISTS medidores (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    numero_serie        TEXT NOT NULL UNIQUE,
    cliente_id          INTEGER REFERENCES clientes(id),
    ubicacion           TEXT NOT NULL DEFAULT '',
    estado              TEXT NOT NULL DEFAULT 'Activo'
);

CREATE TABLE IF NOT EXISTS rutas (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    nombre              TEXT NOT NULL,
    descripcion         TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS lecturas (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    medidor_id          INTEGER NOT NULL REFERENCES medidores(id),
    ruta_id             INTEGER REFERENCES rutas(id),
    consumo_m3          TEXT NOT NULL,
    fecha_lectura       TEXT NOT NULL,
    periodo             TEXT NOT NULL,
    modificado_por      INTEGER,
    created_at          TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (medidor_id, periodo)
);

CREATE TABLE IF NOT EXISTS facturas (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    lectura_id          INTEGER NOT NULL REFERENCES lecturas(id),
    cliente_id          INTEGER NOT NULL REFERENCES clientes(id),
    tarifa_id           INTEGER NOT NULL REFERENCES tarifas(id),
    fecha_emision       TEXT NOT NULL,
    fecha_vencimiento   TEXT NOT NULL,
    total               TEXT NOT NULL,
    saldo_pendiente     TEXT NOT NULL,
    estado              TEXT NOT NULL,
    modificado_por      INTEGER,
    updated_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS pagos (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    factura_id          INTEGER NOT NULL REFERENCES facturas(id),
    fecha_pago          TEXT NOT NULL,
    monto               TEXT NOT NULL,
    cantidad_entregada  TEXT NOT NULL,
    cambio              TEXT NOT NULL,
    metodo_pago         TEXT NOT NULL,
    comentario          TEXT,
    modificado_por      INTEGER,
    updated_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_facturas_lectura ON facturas(lectura_id);
CREATE INDEX IF NOT EXISTS idx_rangos_tarifa ON rangos_tarifas(tarifa_id);
CREATE INDEX IF NOT EXISTS idx_lecturas_periodo ON lecturas(periodo);
CREATE INDEX IF NOT EXISTS idx_facturas_estado ON facturas(estado);
CREATE INDEX IF NOT EXISTS idx_pagos_factura ON pagos(factura_id);
"""

_INVOICE_VIEW_SQL = """
SELECT f.*, c.nombre AS cliente_nombre, t.nombre AS tarifa_nombre,
       l.periodo AS periodo, l.consumo_m3 AS consumo_m3,
       m.numero_serie AS medidor_numero
FROM facturas f
JOIN clientes c ON c.id = f.cliente_id
JOIN tarifas t ON t.id = f.tarifa_id
JOIN lecturas l ON l.id = f.lectura_id
JOIN medidores m ON m.id = l.medidor_id
"""


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class SqliteBillingStore:
    """Persistencia de tarifas, lecturas, facturas y pagos en un archivo SQLite.

    La conexión opera en autocommit; ``transaction()`` abre un bloque
    ``BEGIN IMMEDIATE`` que toma el lock de escritura al inicio, de modo que
    dos procesos no pueden facturar la misma lectura en paralelo. Los bloques
    anidados se suman al externo.
    """

    def __init__(self, db_path: str) -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path), isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute("PRAGMA busy_timeout=5000")
        self._conn.executescript(_SCHEMA)
        self._depth = 0
        logger.info("sqlite_store_initialized", db_path=db_path)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._execute("BEGIN IMMEDIATE")
        self._depth = 1
        try:
            yield
            self._execute("COMMIT")
        except BaseException as e:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            logger.debug("transaction_rolled_back", error=str(e))
            raise
        finally:
            self._depth = 0

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        """Ejecuta SQL; los errores que no son de integridad se reportan como StorageError."""
        try:
            return self._conn.execute(sql, params)
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            logger.error("sqlite_error", error=str(e))
            raise StorageError(f"Error de base de datos: {e}") from e

    def _insert(self, sql: str, params: tuple[Any, ...]) -> int:
        try:
            cursor = self._execute(sql, params)
        except sqlite3.IntegrityError as e:
            logger.error("sqlite_integrity_error", error=str(e))
            raise StorageError(f"Violación de integridad: {e}") from e
        row_id = cursor.lastrowid
        assert row_id is not None
        return row_id

    def _fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        return self._execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        return self._execute(sql, params).fetchall()

    # === Tarifas ===

    def add_tariff(
        self,
        name: str,
        description: str,
        start_date: date,
        end_date: date | None,
        modified_by: int | None,
    ) -> Tariff:
        tariff = Tariff(
            id=0,
            name=name,
            description=description,
            start_date=start_date,
            end_date=end_date,
            modified_by=modified_by,
        )
        tariff_id = self._insert(
            """INSERT INTO tarifas (nombre, descripcion, fecha_inicio, fecha_fin, modificado_por)
               VALUES (?, ?, ?, ?, ?)""",
            (name, description, _iso(start_date), _iso(end_date), modified_by),
        )
        return replace(tariff, id=tariff_id)

    def get_tariff(self, tariff_id: int) -> Tariff | None:
        row = self._fetchone("SELECT * FROM tarifas WHERE id=?", (tariff_id,))
        return self._to_tariff(row) if row else None

    def list_tariffs(self) -> list[Tariff]:
        return [self._to_tariff(r) for r in self._fetchall("SELECT * FROM tarifas ORDER BY id")]

    def list_bands(self, tariff_id: int) -> list[TariffBand]:
        rows = self._fetchall(
            "SELECT * FROM rangos_tarifas WHERE tarifa_id=? ORDER BY consumo_min",
            (tariff_id,),
        )
        return [self._to_band(r) for r in rows]

    def insert_bands(self, tariff_id: int, bands: list[TariffBand]) -> list[TariffBand]:
        created: list[TariffBand] = []
        for band in bands:
            try:
                cursor = self._execute(
                    """INSERT INTO rangos_tarifas
                       (tarifa_id, consumo_min, consumo_max, precio_por_m3)
                       VALUES (?, ?, ?, ?)""",
                    (
                        tariff_id,
                        band.consumption_min,
                        band.consumption_max,
                        str(band.unit_price),
                    ),
                )
            except sqlite3.IntegrityError as e:
                if "rangos_tarifas.consumo_min" in str(e):
                    raise OverlappingBandsError(
                        f"El rango {band.label()} ya existe para la tarifa {tariff_id}",
                        {"tarifa_id": tariff_id, "consumo_min": band.consumption_min},
                    ) from e
                raise StorageError(f"Violación de integridad: {e}") from e
            assert cursor.lastrowid is not None
            created.append(
                TariffBand(
                    id=cursor.lastrowid,
                    tariff_id=tariff_id,
                    consumption_min=band.consumption_min,
                    consumption_max=band.consumption_max,
                    unit_price=band.unit_price,
                )
            )
        return created

    def delete_bands(self, tariff_id: int) -> int:
        cursor = self._execute("DELETE FROM rangos_tarifas WHERE tarifa_id=?", (tariff_id,))
        return cursor.rowcount

    # === Clientes, medidores, rutas ===

    def add_customer(
        self,
        name: str,
        address: str = "",
        phone: str = "",
        city: str = "",
        email: str | None = None,
        tariff_id: int | None = None,
    ) -> Customer:
        customer_id = self._insert(
            """INSERT INTO clientes (nombre, direccion, telefono, ciudad, email, tarifa_id)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (name, address, phone, city, email, tariff_id),
        )
        return Customer(
            id=customer_id,
            name=name,
            address=address,
            phone=phone,
            city=city,
            email=email,
            tariff_id=tariff_id,
        )

    def get_customer(self, customer_id: int) -> Customer | None:
        row = self._fetchone("SELECT * FROM clientes WHERE id=?", (customer_id,))
        if not row:
            return None
        return Customer(
            id=int(row["id"]),
            name=row["nombre"],
            address=row["direccion"],
            phone=row["telefono"],
            city=row["ciudad"],
            email=row["email"],
            tariff_id=row["tarifa_id"],
        )

    def assign_tariff(self, customer_id: int, tariff_id: int | None) -> None:
        self._execute("UPDATE clientes SET tarifa_id=? WHERE id=?", (tariff_id, customer_id))

    def add_meter(
        self,
        serial_number: str,
        customer_id: int | None = None,
        location: str = "",
        status: str = "Activo",
    ) -> Meter:
        meter_id = self._insert(
            """INSERT INTO medidores (numero_serie, cliente_id, ubicacion, estado)
               VALUES (?, ?, ?, ?)""",
            (serial_number, customer_id, location, status),
        )
        return Meter(
            id=meter_id,
            serial_number=serial_number,
            customer_id=customer_id,
            location=location,
            status=status,
        )

    def get_meter(self, meter_id: int) -> Meter | None:
        row = self._fetchone("SELECT * FROM medidores WHERE id=?", (meter_id,))
        if not row:
            return None
        return Meter(
            id=int(row["id"]),
            serial_number=row["numero_serie"],
            customer_id=row["cliente_id"],
            location=row["ubicacion"],
            status=row["estado"],
        )

    def add_route(self, name: str, description: str = "") -> Route:
        route_id = self._insert(
            "INSERT INTO rutas (nombre, descripcion) VALUES (?, ?)", (name, description)
        )
        return Route(id=route_id, name=name, description=description)

    def get_route(self, route_id: int) -> Route | None:
        row = self._fetchone("SELECT * FROM rutas WHERE id=?", (route_id,))
        if not row:
            return None
        return Route(id=int(row["id"]), name=row["nombre"], description=row["descripcion"])

    # === Lecturas ===

    def add_reading(
        self,
        meter_id: int,
        route_id: int | None,
        consumption_m3: Decimal,
        reading_date: date,
        period: str,
        modified_by: int | None,
    ) -> Reading:
        try:
            cursor = self._execute(
                """INSERT INTO lecturas
                   (medidor_id, ruta_id, consumo_m3, fecha_lectura, periodo, modificado_por)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (meter_id, route_id, str(consumption_m3), _iso(reading_date), period, modified_by),
            )
        except sqlite3.IntegrityError as e:
            if "lecturas.medidor_id" in str(e):
                raise DuplicateReadingError(meter_id, period) from e
            raise StorageError(f"Violación de integridad: {e}") from e
        assert cursor.lastrowid is not None
        return Reading(
            id=cursor.lastrowid,
            meter_id=meter_id,
            route_id=route_id,
            consumption_m3=consumption_m3,
            reading_date=reading_date,
            period=period,
            modified_by=modified_by,
        )

    def get_reading(self, reading_id: int) -> Reading | None:
        row = self._fetchone("SELECT * FROM lecturas WHERE id=?", (reading_id,))
        return self._to_reading(row) if row else None

    def find_reading(self, meter_id: int, period: str) -> Reading | None:
        row = self._fetchone(
            "SELECT * FROM lecturas WHERE medidor_id=? AND periodo=?", (meter_id, period)
        )
        return self._to_reading(row) if row else None

    def list_unbilled_readings(self, period: str) -> list[UnbilledReading]:
        rows = self._fetchall(
            """SELECT l.*, m.numero_serie AS medidor_numero,
                      c.id AS c_id, c.nombre AS cliente_nombre, c.tarifa_id AS c_tarifa_id
               FROM lecturas l
               JOIN medidores m ON m.id = l.medidor_id
               LEFT JOIN clientes c ON c.id = m.cliente_id
               LEFT JOIN facturas f ON f.lectura_id = l.id
               WHERE l.periodo = ? AND f.id IS NULL
               ORDER BY l.id""",
            (period,),
        )
        return [
            UnbilledReading(
                reading=self._to_reading(r),
                meter_number=r["medidor_numero"],
                customer_id=r["c_id"],
                customer_name=r["cliente_nombre"],
                tariff_id=r["c_tarifa_id"],
            )
            for r in rows
        ]

    # === Facturas ===

    def add_invoice(
        self,
        reading_id: int,
        customer_id: int,
        tariff_id: int,
        issue_date: date,
        due_date: date,
        total: Decimal,
        modified_by: int | None,
    ) -> Invoice:
        amount = round_money(total)
        # una factura en 0.00 nace pagada
        status = InvoiceStatus.for_balance(amount)
        try:
            cursor = self._execute(
                """INSERT INTO facturas
                   (lectura_id, cliente_id, tarifa_id, fecha_emision, fecha_vencimiento,
                    total, saldo_pendiente, estado, modificado_por)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    reading_id,
                    customer_id,
                    tariff_id,
                    _iso(issue_date),
                    _iso(due_date),
                    str(amount),
                    str(amount),
                    status.value,
                    modified_by,
                ),
            )
        except sqlite3.IntegrityError as e:
            if "facturas.lectura_id" in str(e):
                raise DuplicateInvoiceError(reading_id) from e
            raise StorageError(f"Violación de integridad: {e}") from e
        assert cursor.lastrowid is not None
        return Invoice(
            id=cursor.lastrowid,
            reading_id=reading_id,
            customer_id=customer_id,
            tariff_id=tariff_id,
            issue_date=issue_date,
            due_date=due_date,
            total=amount,
            outstanding_balance=amount,
            status=status,
            modified_by=modified_by,
        )

    def get_invoice(self, invoice_id: int) -> Invoice | None:
        row = self._fetchone("SELECT * FROM facturas WHERE id=?", (invoice_id,))
        return self._to_invoice(row) if row else None

    def get_invoice_by_reading(self, reading_id: int) -> Invoice | None:
        row = self._fetchone("SELECT * FROM facturas WHERE lectura_id=?", (reading_id,))
        return self._to_invoice(row) if row else None

    def update_invoice_balance(
        self, invoice_id: int, balance: Decimal, status: InvoiceStatus
    ) -> None:
        self._execute(
            """UPDATE facturas SET saldo_pendiente=?, estado=?, updated_at=?
               WHERE id=?""",
            (str(round_money(balance)), status.value, datetime.now(UTC).isoformat(), invoice_id),
        )

    def get_invoice_view(self, invoice_id: int) -> InvoiceView | None:
        row = self._fetchone(_INVOICE_VIEW_SQL + " WHERE f.id=?", (invoice_id,))
        return self._to_invoice_view(row) if row else None

    def list_invoice_views(self, period: str | None = None) -> list[InvoiceView]:
        if period is None:
            rows = self._fetchall(_INVOICE_VIEW_SQL + " ORDER BY f.id")
        else:
            rows = self._fetchall(
                _INVOICE_VIEW_SQL + " WHERE l.periodo=? ORDER BY f.id", (period,)
            )
        return [self._to_invoice_view(r) for r in rows]

    # === Pagos ===

    def add_payment(
        self,
        invoice_id: int,
        payment_date: date,
        amount: Decimal,
        amount_tendered: Decimal,
        change: Decimal,
        method: PaymentMethod,
        comment: str | None,
        modified_by: int | None,
    ) -> Payment:
        payment = Payment(
            id=0,
            invoice_id=invoice_id,
            payment_date=payment_date,
            amount=amount,
            amount_tendered=amount_tendered,
            change=change,
            method=method,
            comment=comment,
            modified_by=modified_by,
        )
        payment_id = self._insert(
            """INSERT INTO pagos
               (factura_id, fecha_pago, monto, cantidad_entregada, cambio,
                metodo_pago, comentario, modificado_por)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                invoice_id,
                _iso(payment_date),
                str(payment.amount),
                str(payment.amount_tendered),
                str(payment.change),
                method.value,
                comment,
                modified_by,
            ),
        )
        return replace(payment, id=payment_id)

    def get_payment(self, payment_id: int) -> Payment | None:
        row = self._fetchone("SELECT * FROM pagos WHERE id=?", (payment_id,))
        return self._to_payment(row) if row else None

    def update_payment_details(
        self,
        payment_id: int,
        payment_date: date,
        method: PaymentMethod,
        comment: str | None,
        modified_by: int | None,
    ) -> bool:
        cursor = self._execute(
            """UPDATE pagos
               SET fecha_pago=?, metodo_pago=?, comentario=?, modificado_por=?, updated_at=?
               WHERE id=?""",
            (
                _iso(payment_date),
                method.value,
                comment,
                modified_by,
                datetime.now(UTC).isoformat(),
                payment_id,
            ),
        )
        return cursor.rowcount > 0

    def list_payment_views(self, period: str | None = None) -> list[PaymentView]:
        sql = """SELECT p.*, c.nombre AS cliente_nombre, l.periodo AS periodo
                 FROM pagos p
                 JOIN facturas f ON f.id = p.factura_id
                 JOIN clientes c ON c.id = f.cliente_id
                 LEFT JOIN lecturas l ON l.id = f.lectura_id"""
        if period is None:
            rows = self._fetchall(sql + " ORDER BY p.id")
        else:
            rows = self._fetchall(sql + " WHERE l.periodo=? ORDER BY p.id", (period,))
        return [
            PaymentView(
                payment=self._to_payment(r),
                customer_name=r["cliente_nombre"],
                period=r["periodo"],
            )
            for r in rows
        ]

    # === Mapeo de filas ===

    @staticmethod
    def _to_tariff(row: sqlite3.Row) -> Tariff:
        start = _date(row["fecha_inicio"])
        assert start is not None
        return Tariff(
            id=int(row["id"]),
            name=row["nombre"],
            description=row["descripcion"],
            start_date=start,
            end_date=_date(row["fecha_fin"]),
            modified_by=row["modificado_por"],
        )

    @staticmethod
    def _to_band(row: sqlite3.Row) -> TariffBand:
        raw_max = row["consumo_max"]
        return TariffBand(
            id=int(row["id"]),
            tariff_id=int(row["tarifa_id"]),
            consumption_min=int(row["consumo_min"]),
            consumption_max=None if raw_max is None else int(raw_max),
            unit_price=to_decimal(row["precio_por_m3"]),
        )

    @staticmethod
    def _to_reading(row: sqlite3.Row) -> Reading:
        read_on = _date(row["fecha_lectura"])
        assert read_on is not None
        return Reading(
            id=int(row["id"]),
            meter_id=int(row["medidor_id"]),
            route_id=row["ruta_id"],
            consumption_m3=to_decimal(row["consumo_m3"]),
            reading_date=read_on,
            period=row["periodo"],
            modified_by=row["modificado_por"],
        )

    @staticmethod
    def _to_invoice(row: sqlite3.Row) -> Invoice:
        issued = _date(row["fecha_emision"])
        due = _date(row["fecha_vencimiento"])
        assert issued is not None and due is not None
        return Invoice(
            id=int(row["id"]),
            reading_id=int(row["lectura_id"]),
            customer_id=int(row["cliente_id"]),
            tariff_id=int(row["tarifa_id"]),
            issue_date=issued,
            due_date=due,
            total=to_decimal(row["total"]),
            outstanding_balance=to_decimal(row["saldo_pendiente"]),
            status=InvoiceStatus(row["estado"]),
            modified_by=row["modificado_por"],
        )

    def _to_invoice_view(self, row: sqlite3.Row) -> InvoiceView:
        return InvoiceView(
            invoice=self._to_invoice(row),
            customer_name=row["cliente_nombre"],
            tariff_name=row["tarifa_nombre"],
            period=row["periodo"],
            consumption_m3=to_decimal(row["consumo_m3"]),
            meter_number=row["medidor_numero"],
        )

    @staticmethod
    def _to_payment(row: sqlite3.Row) -> Payment:
        paid_on = _date(row["fecha_pago"])
        assert paid_on is not None
        return Payment(
            id=int(row["id"]),
            invoice_id=int(row["factura_id"]),
            payment_date=paid_on,
            amount=to_decimal(row["monto"]),
            amount_tendered=to_decimal(row["cantidad_entregada"]),
            change=to_decimal(row["cambio"]),
            method=PaymentMethod.parse(row["metodo_pago"]),
            comment=row["comentario"],
            modified_by=row["modificado_por"],
        )

    def close(self) -> None:
        """Cierra la conexión a la base de datos."""
        self._conn.close()
