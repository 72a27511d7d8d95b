"""
Tests de carga por lotes (batch_loader.py) contra FakeDestination.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from batch_loader import BatchLoader
from transformer import transform_collection
from tests.helpers import (
    FakeDestination,
    NOW,
    make_audit_log,
    make_company_settings,
    make_user,
    mapping_for,
)


def build_user_records(count, now=NOW):
    users = [make_user(f"user{i}@example.com") for i in range(count)]
    mapping = mapping_for({"users": users})
    return users, mapping, transform_collection("users", users, mapping, now).transformed


def test_reload_same_batch_is_idempotent():
    """Cargar dos veces los mismos 100 registros deja 100 filas, no 200."""
    users, mapping, first = build_user_records(100)
    destination = FakeDestination()
    loader = BatchLoader(destination)

    loader.load_collection("users", first)

    # Segunda corrida: mismos ids, updatedAt nuevo
    for doc in users:
        doc["updatedAt"] = "2024-02-01T00:00:00.000Z"
    second = transform_collection("users", users, mapping, NOW).transformed
    result = loader.load_collection("users", second)

    assert result.ok
    assert result.succeeded == 100
    assert destination.count("users") == 100
    rows = destination.rows("users")
    assert all(row["updatedAt"] == "2024-02-01T00:00:00.000Z" for row in rows)
    # createdAt nunca se pisa en un upsert
    assert all(row["createdAt"] == "2023-05-01T10:00:00.000Z" for row in rows)


def test_dry_run_writes_nothing():
    """Dry-run con 500 registros: attempted=500, succeeded=500, 0 filas."""
    _, _, records = build_user_records(500)
    destination = FakeDestination()

    dry = BatchLoader(destination, dry_run=True).load_collection("users", records)

    assert dry.attempted == 500
    assert dry.succeeded == 500
    assert dry.dry_run is True
    assert destination.count("users") == 0
    assert destination.writes == 0

    real = BatchLoader(destination).load_collection("users", records)

    assert real.succeeded == 500
    assert destination.count("users") == 500
    assert destination.writes == 5  # lotes de 100


def test_failed_batch_is_recorded_and_loading_continues():
    _, _, records = build_user_records(250)
    destination = FakeDestination(fail_batches={("users", 1)})

    result = BatchLoader(destination).load_collection("users", records)

    assert result.attempted == 250
    assert result.succeeded == 150
    assert result.failed == 100
    assert len(result.failed_batches) == 1
    failed = result.failed_batches[0]
    assert failed["offset"] == 100
    assert failed["size"] == 100
    assert "statement timeout" in failed["error"]
    # El lote fallido no deja filas parciales
    assert destination.count("users") == 150


def test_insert_only_collision_fails_the_batch():
    user = make_user()
    logs = [make_audit_log(user["_id"]) for _ in range(3)]
    mapping = mapping_for({"users": [user], "auditlogs": logs})
    records = transform_collection("auditlogs", logs, mapping, NOW).transformed
    destination = FakeDestination()
    loader = BatchLoader(destination)

    assert loader.load_collection("auditlogs", records).ok
    again = loader.load_collection("auditlogs", records)

    assert not again.ok
    assert again.succeeded == 0
    assert "duplicate key" in again.failed_batches[0]["error"]
    assert destination.count("audit_logs") == 3


def test_empty_input_is_noop():
    destination = FakeDestination()
    result = BatchLoader(destination).load_collection("overtimes", [])

    assert result.ok
    assert result.attempted == 0
    assert destination.writes == 0


def test_load_all_follows_order_and_isolates_collection_failures():
    _, _, records = build_user_records(3)
    destination = FakeDestination()
    loader = BatchLoader(destination)

    results = loader.load_all({"users": records, "coleccion_inexistente": [{"id": "x"}]},
                              order=["users", "coleccion_inexistente"])

    assert results["users"].succeeded == 3
    assert "coleccion_inexistente" in loader.failed_collections
    assert "coleccion_inexistente" not in results


def test_corrupt_record_fails_only_its_batch():
    """15 settings en lotes de 10: un logo corrupto en el 2do lote no borra el 1ro."""
    docs = [make_company_settings(name=f"Empresa {i}") for i in range(15)]
    mapping = mapping_for({"companysettings": docs})
    records = transform_collection("companysettings", docs, mapping, NOW).transformed
    records[12]["logo"] = 12345
    destination = FakeDestination()
    loader = BatchLoader(destination)

    results = loader.load_all({"companysettings": records})

    assert loader.failed_collections == {}
    result = results["companysettings"]
    assert result.attempted == 15
    assert result.succeeded == 10
    assert [(b["offset"], b["size"]) for b in result.failed_batches] == [(10, 5)]
    assert "bytes-like" in result.failed_batches[0]["error"]
    assert destination.count("company_settings") == 10
