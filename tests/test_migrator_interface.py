"""
Tests de interfaz para migradores.

Valida que todos los migradores implementan correctamente la interfaz
BaseMigrator y tienen la estructura esperada.
"""

import sys
import os
from unittest import mock

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

import config
from migrators import load_migrator_for_collection
from migrators.base import BaseMigrator
from tests.helpers import get_all_migrator_classes, get_all_migrator_instances


def test_migrator_inheritance():
    """Verifica que migradores heredan de BaseMigrator."""
    print("\n🔍 Test 1: Herencia de BaseMigrator")

    for name, migrator_class in get_all_migrator_classes():
        assert issubclass(migrator_class, BaseMigrator), f"{name} no hereda de BaseMigrator"
        assert migrator_class.extract_data.__qualname__.startswith(name)
        print(f"   ✅ {name} implementa extract_data()")


def test_collection_matches_config():
    print("\n🔍 Test 2: collection / table coherentes con config")

    for collection_name in config.MIGRATION_ORDER:
        migrator = load_migrator_for_collection(collection_name)
        assert migrator.collection == collection_name
        assert migrator.table == config.get_table_for_collection(collection_name)
        print(f"   ✅ {collection_name} → {type(migrator).__name__}('{migrator.table}')")


def test_columns_structure():
    print("\n🔍 Test 3: Estructura de columnas")

    for name, migrator in get_all_migrator_instances():
        columns = migrator.columns
        assert columns[0] == "id", f"{name}: la PK debe ser la primera columna"
        assert "createdAt" in columns and "updatedAt" in columns
        assert len(columns) == len(set(columns)), f"{name}: columnas duplicadas"
        assert set(migrator.jsonb_columns) <= set(columns)
        assert set(migrator.binary_columns) <= set(columns)

        # Toda FK declarada en config es una columna del migrador
        cfg = config.get_collection_config(migrator.collection)
        for fk in cfg["foreign_keys"]:
            assert fk["field"] in columns, f"{name}: falta columna FK {fk['field']}"
        print(f"   ✅ {name}: {len(columns)} columnas")


def test_build_insert_sql_upsert():
    migrator = load_migrator_for_collection("overtimes")
    query = migrator.build_insert_sql(upsert=True)

    assert query.startswith('INSERT INTO "overtimes" ("id", "employeeId"')
    assert query.count("%s") == 1
    assert 'ON CONFLICT ("id") DO UPDATE SET' in query
    assert '"updatedAt" = EXCLUDED."updatedAt"' in query
    # id y createdAt nunca se pisan
    assert '"id" = EXCLUDED' not in query
    assert '"createdAt" = EXCLUDED' not in query


def test_build_insert_sql_insert_only():
    migrator = load_migrator_for_collection("auditlogs")
    query = migrator.build_insert_sql(upsert=False)

    assert query.startswith('INSERT INTO "audit_logs"')
    assert "ON CONFLICT" not in query


def test_to_row_order_and_adapters():
    from psycopg2.extras import Json

    migrator = load_migrator_for_collection("users")
    record = {column: None for column in migrator.columns}
    record.update({"id": "u-1", "email": "a@b.co", "workSchedule": {"monday": "09:00"}})

    row = migrator.to_row(record)

    assert len(row) == len(migrator.columns)
    assert row[0] == "u-1"
    assert row[migrator.columns.index("email")] == "a@b.co"
    assert isinstance(row[migrator.columns.index("workSchedule")], Json)
    assert row[migrator.columns.index("overtimeExceptions")] is None


def test_insert_batch_collapses_duplicate_ids():
    migrator = load_migrator_for_collection("companysettings")
    base = {column: None for column in migrator.columns}
    records = [dict(base, id="s-1", name="Viejo"), dict(base, id="s-1", name="Nuevo")]
    cursor = object()

    with mock.patch("migrators.base.execute_values") as execute_values:
        written = migrator.insert_batch(records, cursor, upsert=True)

    assert written == 1
    args = execute_values.call_args[0]
    assert args[0] is cursor
    assert "ON CONFLICT" in args[1]
    # Gana el último registro con el mismo id
    assert args[2][0][migrator.columns.index("name")] == "Nuevo"


def test_insert_batch_insert_only_keeps_duplicates():
    migrator = load_migrator_for_collection("auditlogs")
    base = {column: None for column in migrator.columns}
    records = [dict(base, id="a-1"), dict(base, id="a-1")]

    with mock.patch("migrators.base.execute_values") as execute_values:
        written = migrator.insert_batch(records, object(), upsert=False)

    # En insert-only la colisión la resuelve la base (error del lote)
    assert written == 2
    assert "ON CONFLICT" not in execute_values.call_args[0][1]


def test_insert_batch_empty_is_noop():
    migrator = load_migrator_for_collection("users")
    with mock.patch("migrators.base.execute_values") as execute_values:
        assert migrator.insert_batch([], object()) == 0
    execute_values.assert_not_called()


def test_unknown_collection_raises():
    with pytest.raises(KeyError):
        load_migrator_for_collection("coleccion_inexistente")
