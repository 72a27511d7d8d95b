"""
Configuración centralizada para la migración MongoDB → PostgreSQL.

ARQUITECTURA:
Cada colección MongoDB corresponde a una tabla PostgreSQL con PK UUID:
- users: Fuente de verdad de cuentas (referenciada por todas las demás)
- companysettings: Configuración de la organización (logo binario)
- overtimes, hourbankrecords: Solicitudes de horas extra y banco de horas
- auditlogs: Registro de auditoría (append-only, nunca se actualiza)

FLUJO DE MIGRACIÓN:
1. Exportar colecciones a data/<coleccion>.json
2. Mapear ObjectId → UUID (id-mapping.json)
3. Transformar documentos a transformed/<coleccion>.json
4. Cargar en PostgreSQL en el orden de MIGRATION_ORDER
5. Validar conteos, FKs y unicidad

USO DE LAS FUNCIONES HELPER:
    cfg = get_collection_config('overtimes')
    table = cfg['postgres_table']  # 'overtimes'

    deps = validate_migration_order('hourbankrecords')
    # ['users', 'overtimes']

    if is_append_only('auditlogs'):
        # INSERT sin ON CONFLICT
        pass
"""

import os
from dotenv import load_dotenv

# Carga las variables del archivo .env en las variables de entorno del sistema
load_dotenv(override=True)

# --- Configuración de MongoDB (Origen) ---
MONGO_URI = os.getenv("MONGODB_URI") or (
    f"mongodb://{os.getenv('MONGO_USER')}:{os.getenv('MONGO_PASSWORD')}"
    f"@{os.getenv('MONGO_HOST')}:{os.getenv('MONGO_PORT')}/"
    f"?authSource={os.getenv('MONGO_AUTH_SOURCE')}&readPreference=primary"
    f"&directConnection=true&ssl=false"
)
MONGO_DATABASE_NAME = os.getenv("MONGO_DATABASE") or "timesheet"

# --- Configuración de PostgreSQL (Destino) ---
POSTGRES_CONFIG = {
    "dbname": os.getenv("POSTGRES_DB") or "",
    "user": os.getenv("POSTGRES_USER") or "",
    "password": os.getenv("POSTGRES_PASSWORD") or "",
    "host": os.getenv("POSTGRES_HOST") or "localhost",
    "port": os.getenv("POSTGRES_PORT") or "5432",
}

# --- Configuración de Migración ---
# Timeout por interacción con cada base (maxTimeMS / statement_timeout)
DB_TIMEOUT_MS = int(os.getenv("MIGRATION_DB_TIMEOUT_MS") or 30000)

# Directorio de artefactos intermedios (data/, transformed/, id-mapping.json)
MIGRATION_DATA_DIR = os.getenv("MIGRATION_DATA_DIR") or os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "migration_data"
)

DEFAULT_BATCH_SIZE = 100

# --- Configuración Multi-Colección ---
# Cada colección MongoDB define:
# - postgres_table: Tabla destino en PostgreSQL
# - primary_key: Columna PK (UUID generado por el mapeo)
# - load_mode: 'upsert' (create-or-update) o 'insert' (append-only)
# - batch_size: Registros por transacción
# - depends_on: Colecciones que DEBEN cargarse antes (por FKs)
# - foreign_keys: FKs declaradas en destino (field, references, required)
# - unique_fields: Columnas con índice UNIQUE en destino
# - description: Descripción de negocio de la colección

COLLECTIONS = {
    # === FUENTE DE VERDAD (sin dependencias) ===
    "users": {
        "postgres_table": "users",
        "primary_key": "id",
        "load_mode": "upsert",
        "batch_size": 100,
        "depends_on": [],
        "foreign_keys": [],
        "unique_fields": ["email", "externalId"],
        "description": "Cuentas de usuario (empleados, gestores, administradores)",
    },
    "companysettings": {
        "postgres_table": "company_settings",
        "primary_key": "id",
        "load_mode": "upsert",
        "batch_size": 10,  # Logo binario por registro, lotes chicos
        "depends_on": [],
        "foreign_keys": [],
        "unique_fields": [],
        "description": "Configuración de la organización (logo, encabezados de reportes, límites)",
    },
    # === COLECCIONES CONSUMIDORAS (referencian users) ===
    "overtimes": {
        "postgres_table": "overtimes",
        "primary_key": "id",
        "load_mode": "upsert",
        "batch_size": 100,
        "depends_on": ["users"],
        "foreign_keys": [
            {"field": "employeeId", "references": "users", "required": True},
            {"field": "createdBy", "references": "users", "required": False},
            {"field": "approvedBy", "references": "users", "required": False},
            {"field": "rejectedBy", "references": "users", "required": False},
        ],
        "unique_fields": [],
        "description": "Solicitudes de horas extra",
    },
    "hourbankrecords": {
        "postgres_table": "hour_bank_records",
        "primary_key": "id",
        "load_mode": "upsert",
        "batch_size": 100,
        "depends_on": ["users", "overtimes"],
        "foreign_keys": [
            {"field": "employeeId", "references": "users", "required": True},
            {"field": "overtimeRecordId", "references": "overtimes", "required": False},
            {"field": "createdBy", "references": "users", "required": True},
            {"field": "approvedBy", "references": "users", "required": False},
            {"field": "rejectedBy", "references": "users", "required": False},
        ],
        "unique_fields": [],
        "description": "Movimientos del banco de horas (créditos y débitos)",
    },
    "auditlogs": {
        "postgres_table": "audit_logs",
        "primary_key": "id",
        "load_mode": "insert",
        "batch_size": 500,  # Append-only, muchos registros livianos
        "depends_on": ["users"],
        "foreign_keys": [
            {"field": "userId", "references": "users", "required": True},
            {"field": "targetUserId", "references": "users", "required": False},
        ],
        "unique_fields": [],
        "description": "Registro de auditoría de acciones (inmutable)",
    },
}

# --- Orden de Migración ---
# Derivado de las dependencias declaradas en COLLECTIONS.
# Cargar en este orden garantiza que las FKs sean válidas.
MIGRATION_ORDER = [
    "users",  # Sin dependencias
    "companysettings",  # Sin dependencias
    "overtimes",  # Depende de users
    "hourbankrecords",  # Depende de users, overtimes
    "auditlogs",  # Depende de users
]


# --- Funciones Helper ---


def get_collection_config(collection_name: str) -> dict:
    """
    Obtiene la configuración de una colección por nombre.

    Args:
        collection_name: Nombre de la colección MongoDB (ej: 'overtimes')

    Returns:
        dict: Configuración con keys postgres_table, primary_key, load_mode,
              batch_size, depends_on, foreign_keys, unique_fields, description

    Raises:
        KeyError: Si la colección no está configurada

    Ejemplo:
        >>> get_collection_config('users')['postgres_table']
        'users'
    """
    if collection_name not in COLLECTIONS:
        available = ", ".join(COLLECTIONS.keys())
        raise KeyError(
            f"Colección '{collection_name}' no está configurada.\n"
            f"Colecciones disponibles: {available}"
        )
    return COLLECTIONS[collection_name]


def validate_migration_order(collection_name: str) -> list:
    """
    Retorna las colecciones que deben cargarse antes que collection_name.

    Ejemplo:
        >>> validate_migration_order('hourbankrecords')
        ['users', 'overtimes']
        >>> validate_migration_order('users')
        []
    """
    config = get_collection_config(collection_name)
    return config.get("depends_on", [])


def is_append_only(collection_name: str) -> bool:
    """
    Verifica si una colección se carga con INSERT puro (sin upsert).

    Las colecciones append-only (auditoría) son inmutables: un id repetido
    en destino es un error del lote, no una actualización.
    """
    config = get_collection_config(collection_name)
    return config.get("load_mode") == "insert"


def get_table_for_collection(collection_name: str) -> str:
    """
    Obtiene el nombre de la tabla PostgreSQL para una colección.

    Ejemplo:
        >>> get_table_for_collection('auditlogs')
        'audit_logs'
    """
    config = get_collection_config(collection_name)
    return config["postgres_table"]


def get_batch_size(collection_name: str) -> int:
    """Tamaño de lote configurado para la colección."""
    config = get_collection_config(collection_name)
    return config.get("batch_size") or DEFAULT_BATCH_SIZE


def get_migrator_name(collection_name: str) -> str:
    """
    Nombre de la clase migrador según la convención de nombres.

    Convención:
        hourbankrecords → hour_bank_records → HourBankRecordsMigrator
    """
    table = get_table_for_collection(collection_name)
    return "".join(word.capitalize() for word in table.split("_")) + "Migrator"
