"""
Tests de los adaptadores de conexión (connections.py) con drivers simulados.
"""

import sys
import os
from unittest import mock

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import psycopg2
import pytest

import connections
from errors import BatchWriteError, FatalMigrationError
from migrators import load_migrator_for_collection


def make_destination():
    conn = mock.MagicMock()
    cursor = conn.cursor.return_value
    return connections.PostgresDestination(conn, timeout_ms=1500), conn, cursor


def test_transaction_sets_timeout_and_commits():
    destination, conn, cursor = make_destination()
    cursor.fetchone.return_value = (7,)

    assert destination.count("users") == 7

    first_call = cursor.execute.call_args_list[0]
    assert first_call == mock.call("SET LOCAL statement_timeout = %s", (1500,))
    assert cursor.execute.call_args_list[1] == mock.call('SELECT COUNT(*) FROM "users"')
    conn.commit.assert_called_once()
    conn.rollback.assert_not_called()
    cursor.close.assert_called_once()


def test_write_batch_rolls_back_and_wraps_driver_errors():
    destination, conn, _ = make_destination()
    migrator = mock.Mock()
    migrator.insert_batch.side_effect = psycopg2.IntegrityError("duplicate key value")

    with pytest.raises(BatchWriteError, match="duplicate key value"):
        destination.write_batch(migrator, [{"id": "x"}], upsert=False)

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()


def test_write_batch_passes_upsert_flag():
    destination, conn, cursor = make_destination()
    migrator = load_migrator_for_collection("users")

    with mock.patch.object(migrator, "insert_batch", return_value=2) as insert_batch:
        assert destination.write_batch(migrator, [{}, {}], upsert=True) == 2

    insert_batch.assert_called_once_with([{}, {}], cursor, upsert=True)
    conn.commit.assert_called_once()


def test_count_where_rules():
    destination, _, cursor = make_destination()
    cursor.fetchone.return_value = (0,)

    destination.count_where("overtimes", "hours", "non_positive")
    assert cursor.execute.call_args[0][0] == 'SELECT COUNT(*) FROM "overtimes" WHERE "hours" <= 0'

    with pytest.raises(ValueError):
        destination.count_where("overtimes", "hours", "negativo")


def test_mongo_source_uses_max_time_ms():
    db = mock.MagicMock()
    db.__getitem__.return_value.find.return_value = iter([{"_id": 1}])
    db.__getitem__.return_value.count_documents.return_value = 1
    source = connections.MongoSource(db, timeout_ms=2500)

    assert source.read_all("users") == [{"_id": 1}]
    assert source.count("users") == 1

    db.__getitem__.return_value.find.assert_called_once_with({}, max_time_ms=2500)
    db.__getitem__.return_value.count_documents.assert_called_once_with({}, maxTimeMS=2500)


def test_connect_to_postgres_failure_is_fatal():
    with mock.patch.object(connections.psycopg2, "connect", side_effect=psycopg2.OperationalError("refused")):
        with pytest.raises(FatalMigrationError, match="PostgreSQL"):
            connections.connect_to_postgres()


def test_write_batch_wraps_record_preparation_errors():
    destination, conn, _ = make_destination()
    migrator = load_migrator_for_collection("companysettings")

    with pytest.raises(BatchWriteError, match="TypeError"):
        destination.write_batch(migrator, [{"id": "x", "logo": 12345}], upsert=True)

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
