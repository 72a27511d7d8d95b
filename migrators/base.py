"""
Módulo base para migradores de colecciones MongoDB → PostgreSQL.

Define la interfaz común (contrato) que todos los migradores específicos
deben implementar. Esto permite que transformer.py y batch_loader.py
funcionen con cualquier colección sin conocer sus detalles internos.

Patrón de diseño: Strategy Pattern
- transformer.py / batch_loader.py = Contexto
- BaseMigrator = Estrategia abstracta
- UsersMigrator, OvertimesMigrator, ... = Estrategias concretas

Flujo de uso:
1. transformer.py crea un TransformContext con el mapeo de ids
2. Llama a extract_data(doc, context) por documento → registro destino
3. El registro se persiste en transformed/<coleccion>.json (JSON puro)
4. batch_loader.py llama a insert_batch(records, cursor) por lote

Ejemplo de implementación:
    class MiMigrador(BaseMigrator):
        collection = 'micoleccion'
        columns = ('id', 'name', 'createdAt', 'updatedAt')

        def extract_data(self, doc, context):
            return {'id': self.resolve_own_id(doc, context), ...}
"""

import base64
import json
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

import psycopg2
from bson import Binary, ObjectId, json_util
from bson.decimal128 import Decimal128
from psycopg2.extras import Json, execute_values

from errors import TransformError
from identity_mapper import canonical_id


def to_iso_timestamp(value):
    """
    Normaliza cualquier fecha de MongoDB a ISO-8601 UTC con milisegundos.

    Formatos soportados:
    - datetime nativo de pymongo (naive = UTC)
    - ISO8601 con 'Z' o timezone: '2021-03-22T07:49:18.242Z'
    - Extended JSON: {'$date': '...'} / {'$date': {'$numberLong': '...'}}
    - Epoch en milisegundos (int)

    Returns:
        str|None: '2021-03-22T07:49:18.242Z' o None si no se puede parsear
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, dict):
        if "$date" not in value:
            return None
        value = value["$date"]
        if isinstance(value, dict):
            value = value.get("$numberLong")
            try:
                value = int(value)
            except (TypeError, ValueError):
                return None

    try:
        if isinstance(value, datetime):
            dt = value
        elif isinstance(value, date):
            dt = datetime(value.year, value.month, value.day)
        elif isinstance(value, (int, float)):
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            dt = datetime.fromisoformat(text)
        else:
            return None
    except (ValueError, OverflowError, OSError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def utc_now_iso():
    return to_iso_timestamp(datetime.now(timezone.utc))


def encode_binary(value):
    """
    Convierte un payload binario de MongoDB a base64 (texto transportable).

    Formatos soportados:
    - bson.Binary / bytes
    - Buffer serializado por Node: {'type': 'Buffer', 'data': [137, 80, ...]}
    - Extended JSON: {'$binary': {'base64': '...', 'subType': '00'}}

    Returns:
        str|None: Base64 o None si no hay payload reconocible
    """
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, Binary)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, dict):
        if isinstance(value.get("data"), list):
            try:
                return base64.b64encode(bytes(value["data"])).decode("ascii")
            except (TypeError, ValueError):
                return None
        binary = value.get("$binary")
        if isinstance(binary, dict):
            return binary.get("base64")
        if isinstance(binary, str):
            return binary
    return None


def decode_binary(value):
    """Base64 → bytes, justo antes de escribir en PostgreSQL."""
    if not value:
        return None
    return base64.b64decode(value)


def to_json_safe(value):
    """Convierte tipos BSON anidados a JSON puro (para columnas JSONB)."""
    if isinstance(value, dict):
        if "$oid" in value:
            return canonical_id(value)
        if "$date" in value:
            return to_iso_timestamp(value)
        return {str(k): to_json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return to_iso_timestamp(value)
    if isinstance(value, (bytes, bytearray)):
        return encode_binary(value)
    if isinstance(value, Decimal128):
        return float(value.to_decimal())
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    # Timestamp, Regex, Code, DBRef, MinKey...: su forma Extended JSON
    try:
        return json.loads(json_util.dumps(value))
    except (TypeError, ValueError) as e:
        raise TransformError(f"Valor no serializable a JSON ({type(value).__name__}): {e}") from e


class TransformContext:
    """
    Contexto de transformación de un documento.

    Da acceso de solo lectura al mapeo de ids y acumula las advertencias
    (correcciones suaves) del documento.

    Attributes:
        mapping (IdentityMapping): Mapeo ObjectId → UUID
        now (str): Momento de ejecución (fallback de timestamps inválidos)
        warnings (list): Advertencias acumuladas
    """

    def __init__(self, mapping, now=None):
        self.mapping = mapping
        self.now = now or utc_now_iso()
        self.warnings = []

    def warn(self, message):
        self.warnings.append(message)

    def resolve(self, collection, value):
        return self.mapping.resolve(collection, value)

    def require(self, collection, value, field):
        """FK obligatoria: si no resuelve, el documento se rechaza."""
        resolved = self.resolve(collection, value)
        if not resolved:
            raise TransformError(f"{field} inválido (no mapeado en {collection}): {canonical_id(value)}")
        return resolved

    def optional(self, collection, value, field):
        """FK opcional: si no resuelve, queda NULL con advertencia."""
        if canonical_id(value) is None:
            return None
        resolved = self.resolve(collection, value)
        if not resolved:
            self.warn(f"{field} no mapeado en {collection} ({canonical_id(value)}), se usa NULL")
        return resolved


class BaseMigrator(ABC):
    """
    Clase abstracta que define la interfaz para migradores de colecciones.

    Cada colección (users, overtimes, etc.) tiene un migrador que hereda
    de esta clase e implementa extract_data().

    Attributes:
        table (str): Tabla PostgreSQL destino
        collection (str): Colección MongoDB origen (clave del mapeo)
        columns (tuple): Columnas destino, en orden de INSERT
        jsonb_columns (tuple): Columnas JSONB (se adaptan con Json)
        binary_columns (tuple): Columnas BYTEA (viajan en base64 entre fases)
        immutable_columns (tuple): Columnas que un upsert nunca pisa
    """

    collection = None
    columns = ()
    jsonb_columns = ()
    binary_columns = ()
    immutable_columns = ("id", "createdAt")

    def __init__(self, table: str):
        """
        Constructor base que almacena la tabla destino.

        Args:
            table: Nombre de la tabla en PostgreSQL (ej: 'overtimes')
        """
        self.table = table

    # =========================================================================
    # INTERFAZ REQUERIDA
    # =========================================================================

    @abstractmethod
    def extract_data(self, doc: dict, context: TransformContext) -> dict:
        """
        Convierte un documento MongoDB en un registro destino.

        El registro debe ser JSON puro (strings, números, bool, dict, list):
        se persiste en transformed/<coleccion>.json entre fases.

        Args:
            doc: Documento de MongoDB
            context: TransformContext con el mapeo de ids

        Returns:
            dict: Registro con una key por cada columna de `columns`

        Raises:
            TransformError: Validación dura fallida o FK obligatoria sin mapear
        """

    def get_primary_key_from_doc(self, doc: dict) -> str:
        """
        Extrae el ObjectId del documento en forma canónica (string).

        Nota: Es el VALOR de origen, no el UUID destino.
        """
        return canonical_id(doc.get("_id"))

    def resolve_own_id(self, doc, context):
        """UUID del propio documento. Sin mapeo el documento se rechaza."""
        object_id = self.get_primary_key_from_doc(doc)
        uuid = context.resolve(self.collection, object_id)
        if not uuid:
            raise TransformError(
                f"No se pudo mapear ObjectId para {type(self).__name__}: {object_id}"
            )
        return uuid

    # =========================================================================
    # HELPERS DE NORMALIZACIÓN
    # =========================================================================

    def _timestamp(self, doc, field, context):
        """Timestamp obligatorio: si es inválido se usa el momento de ejecución."""
        value = doc.get(field)
        parsed = to_iso_timestamp(value)
        if parsed is None:
            if value not in (None, ""):
                context.warn(f"{field} no parseable ({value!r}), se usa fecha de ejecución")
            return context.now
        return parsed

    def _optional_timestamp(self, doc, field, context):
        value = doc.get(field)
        parsed = to_iso_timestamp(value)
        if parsed is None and value not in (None, ""):
            context.warn(f"{field} no parseable ({value!r}), se usa NULL")
        return parsed

    def _text(self, value, default=""):
        if value is None:
            return default
        return value if isinstance(value, str) else str(value)

    def _number(self, value, default, field, context):
        """
        Normaliza números (int/float, Extended JSON, Decimal128, strings).

        Valores presentes pero no numéricos usan el default con advertencia.
        """
        if value is None or value == "":
            return default
        if isinstance(value, dict):
            for key in ("$numberDouble", "$numberInt", "$numberLong", "$numberDecimal"):
                if key in value:
                    value = value[key]
                    break
        if isinstance(value, Decimal128):
            value = value.to_decimal()
        if isinstance(value, bool):
            context.warn(f"{field} no numérico ({value!r}), se usa {default!r}")
            return default
        if isinstance(value, (int, float)):
            return value
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            context.warn(f"{field} no numérico ({value!r}), se usa {default!r}")
            return default
        if not number.is_finite():
            context.warn(f"{field} no numérico ({value!r}), se usa {default!r}")
            return default
        return int(number) if number == number.to_integral_value() else float(number)

    def _flag(self, value, default, field, context):
        """
        Booleanos guardados como string o número ("false", 0, "1"...).

        Se interpretan con advertencia; lo irreconocible usa el default.
        """
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("true", "1", "yes", "si", "sí"):
            flag = True
        elif text in ("false", "0", "no", ""):
            flag = False
        else:
            context.warn(f"{field} no booleano ({value!r}), se usa {default!r}")
            return default
        context.warn(f"{field} no booleano ({value!r}), se interpreta como {flag!r}")
        return flag

    def _enum(self, value, valid, default, field, context):
        """Enum inválido: se corrige al default con advertencia (no es error)."""
        if value is None or value == "":
            return default
        if value not in valid:
            context.warn(f"{field} inválido ({value!r}), se usa '{default}'")
            return default
        return value

    # =========================================================================
    # CARGA EN POSTGRESQL
    # =========================================================================

    def prepare_record(self, record):
        """
        Prepara un registro transformado para escritura.

        Decodifica columnas binarias (base64 → bytes). Es el último paso
        antes del INSERT.
        """
        prepared = dict(record)
        for column in self.binary_columns:
            prepared[column] = decode_binary(prepared.get(column))
        return prepared

    def to_row(self, record):
        """
        Registro transformado → tupla en el orden de `columns`.

        IMPORTANTE: El orden debe coincidir EXACTAMENTE con build_insert_sql().
        """
        prepared = self.prepare_record(record)
        row = []
        for column in self.columns:
            value = prepared.get(column)
            if column in self.jsonb_columns and value is not None:
                value = Json(value)
            elif column in self.binary_columns and value is not None:
                value = psycopg2.Binary(value)
            row.append(value)
        return tuple(row)

    def build_insert_sql(self, upsert=True):
        """
        Construye el INSERT para execute_values.

        upsert=True: ON CONFLICT (id) DO UPDATE de todas las columnas mutables
        upsert=False: INSERT puro (una colisión de id es error del lote)
        """
        column_list = ", ".join(f'"{c}"' for c in self.columns)
        query = f'INSERT INTO "{self.table}" ({column_list}) VALUES %s'
        if upsert:
            assignments = ", ".join(
                f'"{c}" = EXCLUDED."{c}"' for c in self.columns if c not in self.immutable_columns
            )
            query += f' ON CONFLICT ("id") DO UPDATE SET {assignments}'
        return query

    def insert_batch(self, records, cursor, upsert=True):
        """
        Inserta un lote de registros transformados usando execute_values.

        Los ids repetidos dentro del lote se colapsan (gana el último):
        PostgreSQL no permite que un mismo ON CONFLICT afecte dos veces
        la misma fila en un solo statement.

        Args:
            records: Lista de registros transformados (dict)
            cursor: Cursor de psycopg2 dentro de una transacción abierta
            upsert: Create-or-update (True) o insert-only (False)

        Returns:
            int: Filas enviadas
        """
        if upsert:
            records = list({record["id"]: record for record in records}.values())
        rows = [self.to_row(record) for record in records]
        if not rows:
            return 0
        execute_values(cursor, self.build_insert_sql(upsert), rows, page_size=1000)
        return len(rows)

