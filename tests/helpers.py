"""
Funciones helper compartidas para todos los tests.

Proporciona:
- Carga dinámica de migradores basándose en config.py
- Dobles en memoria de MongoDB (FakeSource) y PostgreSQL (FakeDestination)
- Fábricas de documentos de ejemplo por colección
"""

import sys
import os
import importlib

from bson import ObjectId
from pymongo.errors import ExecutionTimeout

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
from errors import BatchWriteError
from identity_mapper import IdentityMapping, build_identity_mapping

NOW = "2024-01-01T00:00:00.000Z"


# =============================================================================
# MIGRADORES
# =============================================================================


def get_migrator_class_for_collection(collection_name):
    """
    Carga dinámicamente la clase migrador para una colección.

    Sigue la convención de nombres:
    - hourbankrecords → HourBankRecordsMigrator (en migrators/hour_bank_records.py)
    - users → UsersMigrator (en migrators/users.py)

    Raises:
        ImportError: Si no existe el módulo
        AttributeError: Si no existe la clase
    """
    table = config.get_table_for_collection(collection_name)
    module = importlib.import_module(f"migrators.{table}")
    return getattr(module, config.get_migrator_name(collection_name))


def get_all_migrator_classes():
    """
    Retorna lista de tuplas (nombre_clase, clase) para todos los migradores
    de config.MIGRATION_ORDER.
    """
    return [
        (get_migrator_class_for_collection(name).__name__, get_migrator_class_for_collection(name))
        for name in config.MIGRATION_ORDER
    ]


def get_all_migrator_instances():
    """Retorna lista de tuplas (nombre_clase, instancia) con la tabla de config."""
    instances = []
    for collection_name in config.MIGRATION_ORDER:
        migrator_class = get_migrator_class_for_collection(collection_name)
        table = config.get_table_for_collection(collection_name)
        instances.append((migrator_class.__name__, migrator_class(table)))
    return instances


# =============================================================================
# DOCUMENTOS DE EJEMPLO
# =============================================================================


def make_user(email="ana@example.com", **fields):
    doc = {
        "_id": ObjectId(),
        "email": email,
        "password": "$2b$10$hash",
        "role": "employee",
        "name": "Ana",
        "department": "Ventas",
        "createdAt": "2023-05-01T10:00:00.000Z",
        "updatedAt": "2023-05-02T10:00:00.000Z",
    }
    doc.update(fields)
    return doc


def make_overtime(employee_id, **fields):
    doc = {
        "_id": ObjectId(),
        "employeeId": employee_id,
        "date": "2023-06-15",
        "startTime": "18:00",
        "endTime": "20:30",
        "hours": 2.5,
        "reason": "Cierre de mes",
        "status": "pending",
        "createdAt": "2023-06-15T21:00:00.000Z",
        "updatedAt": "2023-06-15T21:00:00.000Z",
    }
    doc.update(fields)
    return doc


def make_hour_bank_record(employee_id, created_by, **fields):
    doc = {
        "_id": ObjectId(),
        "employeeId": employee_id,
        "date": "2023-06-16",
        "type": "credit",
        "hours": 2.5,
        "reason": "Horas extra aprobadas",
        "status": "approved",
        "createdBy": created_by,
        "createdAt": "2023-06-16T09:00:00.000Z",
        "updatedAt": "2023-06-16T09:00:00.000Z",
    }
    doc.update(fields)
    return doc


def make_audit_log(user_id, **fields):
    doc = {
        "_id": ObjectId(),
        "action": "employee_created",
        "entityType": "employee",
        "entityId": str(user_id),
        "userId": user_id,
        "description": "Alta de empleado",
        "metadata": {"browser": "firefox"},
        "createdAt": "2023-06-16T08:00:00.000Z",
        "updatedAt": "2023-06-16T08:00:00.000Z",
    }
    doc.update(fields)
    return doc


def make_company_settings(**fields):
    doc = {
        "_id": ObjectId(),
        "name": "Acme",
        "reportHeader": "Acme S.A.",
        "reportFooter": "Confidencial",
        "managerEmail": "rrhh@example.com",
        "defaultOvertimeLimit": 40,
        "createdAt": "2023-01-01T00:00:00.000Z",
        "updatedAt": "2023-01-01T00:00:00.000Z",
    }
    doc.update(fields)
    return doc


def mapping_for(documents_by_collection):
    """IdentityMapping de solo lectura para un conjunto de documentos."""
    return IdentityMapping(build_identity_mapping(documents_by_collection).mapping)


# =============================================================================
# DOBLES DE LAS BASES
# =============================================================================


class FakeSource:
    """
    MongoDB en memoria: { coleccion: [doc, ...] }.

    fail_collections: colecciones cuya lectura falla con timeout de servidor.
    """

    def __init__(self, documents_by_collection=None, fail_collections=()):
        self.documents = {k: list(v) for k, v in (documents_by_collection or {}).items()}
        self.fail_collections = set(fail_collections)

    def read_all(self, collection):
        if collection in self.fail_collections:
            raise ExecutionTimeout("operation exceeded time limit")
        return [dict(doc) for doc in self.documents.get(collection, [])]

    def count(self, collection):
        return len(self.documents.get(collection, []))


class FakeDestination:
    """
    PostgreSQL en memoria: { tabla: { id: fila } }.

    Emula la semántica transaccional de write_batch: el lote se aplica sobre
    una copia y solo se confirma si termina completo. Respeta PK y UNIQUE
    declarados en config.

    Attributes:
        fail_batches: set de (tabla, número_de_lote) que deben fallar
        writes: cantidad de lotes confirmados
    """

    def __init__(self, fail_batches=()):
        self.tables = {cfg["postgres_table"]: {} for cfg in config.COLLECTIONS.values()}
        self.fail_batches = set(fail_batches)
        self.batch_calls = {}
        self.writes = 0

    def write_batch(self, migrator, records, upsert=True):
        table = migrator.table
        number = self.batch_calls.get(table, 0)
        self.batch_calls[table] = number + 1
        if (table, number) in self.fail_batches:
            raise BatchWriteError(f"canceling statement due to statement timeout ({table})")

        staged = dict(self.tables[table])
        for record in records:
            prepared = migrator.prepare_record(record)
            row = {column: prepared.get(column) for column in migrator.columns}
            existing = staged.get(row["id"])
            if existing is not None:
                if not upsert:
                    raise BatchWriteError(
                        f'duplicate key value violates unique constraint "{table}_pkey"'
                    )
                for column in migrator.immutable_columns:
                    row[column] = existing[column]
            staged[row["id"]] = row

        self._check_unique(table, staged)
        self.tables[table] = staged
        self.writes += 1
        return len(records)

    def _check_unique(self, table, rows):
        for cfg in config.COLLECTIONS.values():
            if cfg["postgres_table"] != table:
                continue
            for field in cfg["unique_fields"]:
                seen = set()
                for row in rows.values():
                    value = row.get(field)
                    if value is None:
                        continue
                    if value in seen:
                        raise BatchWriteError(
                            f'duplicate key value violates unique constraint "{table}_{field}_key"'
                        )
                    seen.add(value)

    def rows(self, table):
        return list(self.tables[table].values())

    def count(self, table):
        return len(self.tables[table])

    def count_dangling_references(self, table, field, ref_table):
        ids = set(self.tables[ref_table])
        return sum(
            1 for row in self.tables[table].values() if row.get(field) is not None and row[field] not in ids
        )

    def find_duplicates(self, table, field):
        counts = {}
        for row in self.tables[table].values():
            value = row.get(field)
            if value is not None:
                counts[value] = counts.get(value, 0) + 1
        return [(value, count) for value, count in counts.items() if count > 1]

    def count_where(self, table, field, rule):
        rows = self.tables[table].values()
        if rule == "empty":
            return sum(1 for row in rows if row.get(field) in (None, ""))
        if rule == "non_positive":
            return sum(1 for row in rows if row.get(field) is not None and row[field] <= 0)
        raise ValueError(f"Regla desconocida: {rule}")
