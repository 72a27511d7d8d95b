"""
Migradores para transformar colecciones MongoDB a tablas PostgreSQL.

Cada migrador implementa la interfaz BaseMigrator y se carga dinámicamente
en runtime según la colección.

Estructura:
    base.py: BaseMigrator, TransformContext y helpers de normalización
    users.py: Migrador para users
    company_settings.py: Migrador para companysettings
    overtimes.py: Migrador para overtimes
    hour_bank_records.py: Migrador para hourbankrecords
    audit_logs.py: Migrador para auditlogs

Convención de nombres (tabla destino → módulo → clase):
    hour_bank_records → migrators.hour_bank_records → HourBankRecordsMigrator

Interfaz requerida (ver BaseMigrator):
    - extract_data(doc, context)
    - insert_batch(records, cursor, upsert)
    - get_primary_key_from_doc(doc)
"""

import importlib

import config
from .base import BaseMigrator

_instances = {}


def load_migrator_for_collection(collection_name):
    """
    Carga dinámicamente el migrador correspondiente a una colección.

    El sistema:
    1. Obtiene la tabla destino de config (hourbankrecords → hour_bank_records)
    2. Construye nombre de clase en PascalCase (HourBankRecordsMigrator)
    3. Importa módulo dinámicamente
    4. Instancia la clase con la tabla de config

    Los migradores no tienen estado por documento, así que se reutiliza
    una instancia por colección.

    Args:
        collection_name: Nombre de la colección en MongoDB

    Returns:
        BaseMigrator: Instancia del migrador específico

    Raises:
        KeyError: Si la colección no está configurada
        ImportError: Si no existe el módulo o la clase

    Example:
        >>> type(load_migrator_for_collection('overtimes')).__name__
        'OvertimesMigrator'
    """
    if collection_name in _instances:
        return _instances[collection_name]

    table = config.get_table_for_collection(collection_name)
    class_name = config.get_migrator_name(collection_name)

    module = importlib.import_module(f"migrators.{table}")
    migrator_class = getattr(module, class_name, None)

    # Verificar que hereda de BaseMigrator (type safety en runtime)
    if migrator_class is None or not issubclass(migrator_class, BaseMigrator):
        raise ImportError(
            f"El módulo migrators.{table} no tiene la clase '{class_name}' (BaseMigrator)"
        )

    migrator = migrator_class(table=table)
    _instances[collection_name] = migrator
    return migrator
