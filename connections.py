"""
Conexiones a MongoDB (origen) y PostgreSQL (destino).

Los adaptadores MongoSource y PostgresDestination son la única frontera
con las bases: el resto del pipeline trabaja con ellos (o con dobles en
memoria en los tests). Toda interacción lleva el timeout configurado
(config.DB_TIMEOUT_MS): maxTimeMS en MongoDB, statement_timeout en PostgreSQL.
"""

from contextlib import contextmanager

import psycopg2
from psycopg2 import OperationalError
from pymongo import MongoClient
from pymongo.errors import ConfigurationError, ConnectionFailure

import config
from errors import BatchWriteError, FatalMigrationError


def connect_to_mongo():
    """
    Establece conexión a MongoDB usando credenciales de config.py.

    Returns:
        tuple: (client, database) de pymongo

    Raises:
        FatalMigrationError: Si no puede conectar
    """
    print("🔌 Conectando a MongoDB...")
    try:
        client = MongoClient(config.MONGO_URI, serverSelectionTimeoutMS=config.DB_TIMEOUT_MS)
    except (ConfigurationError, ValueError) as e:
        raise FatalMigrationError(f"URI de MongoDB inválida: {e}") from e
    try:
        client.admin.command("ping")
    except ConnectionFailure as e:
        client.close()
        raise FatalMigrationError(f"Error de conexión a MongoDB: {e}") from e
    db = client[config.MONGO_DATABASE_NAME]
    print("✅ Conexión a MongoDB exitosa")
    return client, db


def connect_to_postgres():
    """
    Establece conexión a PostgreSQL usando credenciales de config.py.

    Returns:
        connection de psycopg2

    Raises:
        FatalMigrationError: Si no puede conectar
    """
    print("🔌 Conectando a PostgreSQL...")
    try:
        conn = psycopg2.connect(
            connect_timeout=max(1, config.DB_TIMEOUT_MS // 1000), **config.POSTGRES_CONFIG
        )
    except OperationalError as e:
        raise FatalMigrationError(f"Error de conexión a PostgreSQL: {e}") from e
    print("✅ Conexión a PostgreSQL exitosa")
    return conn


class MongoSource:
    """Lectura de colecciones MongoDB con maxTimeMS."""

    def __init__(self, db, timeout_ms=None):
        self.db = db
        self.timeout_ms = timeout_ms or config.DB_TIMEOUT_MS

    def read_all(self, collection):
        """
        Lee todos los documentos de una colección.

        Raises:
            PyMongoError: Timeout o error de servidor (falla solo esa colección)
        """
        cursor = self.db[collection].find({}, max_time_ms=self.timeout_ms)
        return list(cursor)

    def count(self, collection):
        return self.db[collection].count_documents({}, maxTimeMS=self.timeout_ms)


class PostgresDestination:
    """
    Escritura y consultas de validación en PostgreSQL.

    Una sola conexión, usada por un lote a la vez. Cada operación corre en
    su propia transacción con statement_timeout local.
    """

    def __init__(self, conn, timeout_ms=None):
        self.conn = conn
        self.timeout_ms = timeout_ms or config.DB_TIMEOUT_MS

    @contextmanager
    def transaction(self):
        """
        Transacción con timeout: commit si el bloque termina, rollback si falla.

        Yields:
            cursor de psycopg2
        """
        cursor = self.conn.cursor()
        try:
            cursor.execute("SET LOCAL statement_timeout = %s", (self.timeout_ms,))
            yield cursor
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        finally:
            cursor.close()

    def write_batch(self, migrator, records, upsert=True):
        """
        Escribe un lote en una transacción.

        Raises:
            BatchWriteError: El lote se revirtió completo (error del driver o
                             registro que no se pudo preparar)
        """
        try:
            with self.transaction() as cursor:
                return migrator.insert_batch(records, cursor, upsert=upsert)
        except psycopg2.Error as e:
            raise BatchWriteError(str(e).strip()) from e
        except Exception as e:
            raise BatchWriteError(f"{type(e).__name__}: {e}") from e

    def count(self, table):
        return self._scalar(f'SELECT COUNT(*) FROM "{table}"')

    def count_dangling_references(self, table, field, ref_table):
        """Filas con FK no nula que no apunta a ninguna fila de ref_table."""
        return self._scalar(
            f'SELECT COUNT(*) FROM "{table}" c '
            f'LEFT JOIN "{ref_table}" p ON c."{field}" = p."id" '
            f'WHERE c."{field}" IS NOT NULL AND p."id" IS NULL'
        )

    def find_duplicates(self, table, field):
        """
        Returns:
            list: [(valor, cantidad), ...] de valores no nulos repetidos
        """
        with self.transaction() as cursor:
            cursor.execute(
                f'SELECT "{field}", COUNT(*) FROM "{table}" '
                f'WHERE "{field}" IS NOT NULL '
                f'GROUP BY "{field}" HAVING COUNT(*) > 1 ORDER BY COUNT(*) DESC'
            )
            return [(value, count) for value, count in cursor.fetchall()]

    def count_where(self, table, field, rule):
        """
        Cuenta filas que violan una regla de datos críticos.

        Reglas:
            empty: NULL o string vacío
            non_positive: <= 0
        """
        if rule == "empty":
            condition = f'"{field}" IS NULL OR "{field}"::text = \'\''
        elif rule == "non_positive":
            condition = f'"{field}" <= 0'
        else:
            raise ValueError(f"Regla desconocida: {rule}")
        return self._scalar(f'SELECT COUNT(*) FROM "{table}" WHERE {condition}')

    def close(self):
        self.conn.close()

    def _scalar(self, query):
        with self.transaction() as cursor:
            cursor.execute(query)
            return cursor.fetchone()[0]
