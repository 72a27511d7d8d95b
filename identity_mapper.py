"""
Mapeo de identificadores MongoDB (ObjectId) → PostgreSQL (UUID).

El mapeo es una tabla de dos niveles:

    { coleccion: { object_id_str: uuid_str } }

Se genera una sola vez por par (coleccion, ObjectId), se persiste en
id-mapping.json y las fases siguientes lo cargan en modo solo lectura
(IdentityMapping). Todo el pipeline trabaja con ids en forma de string:
canonical_id() es el ÚNICO punto de conversión desde tipos de MongoDB.

DECISIÓN DE DISEÑO (idempotencia entre corridas):
Por defecto se reutilizan los UUIDs ya persistidos y solo se generan para
ObjectIds nuevos. Regenerar todo (reuse_existing=False) cambia los UUIDs de
registros ya cargados y rompe sus FKs, por eso es opt-in (--regenerate-mapping).
"""

import sys
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List

from bson import ObjectId

import config
from errors import FatalMigrationError, MissingArtifactError
from validators import is_valid_object_id


def canonical_id(value):
    """
    Convierte cualquier representación de id de MongoDB a su string canónico.

    Formatos soportados:
    - ObjectId nativo de pymongo/bson
    - Extended JSON: {'$oid': '...'}
    - str / int (ids legacy o importados)

    Returns:
        str|None: Id canónico o None si no hay valor
    """
    if value is None:
        return None
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        if "$oid" in value:
            return canonical_id(value["$oid"])
        return None
    if isinstance(value, bool):
        return None
    value = str(value).strip()
    return value or None


class IdentityMapping:
    """
    Vista de solo lectura del mapeo de ids.

    Transform y load leen el mapeo pero nunca lo modifican: los
    sub-mapeos se exponen como MappingProxyType.
    """

    def __init__(self, mapping):
        self._mapping = MappingProxyType(
            {name: MappingProxyType(dict(ids)) for name, ids in (mapping or {}).items()}
        )

    def resolve(self, collection, source_id):
        """
        Obtiene el UUID de un id de origen en la colección indicada.

        Returns:
            str|None: UUID o None si el id no fue exportado/mapeado
        """
        key = canonical_id(source_id)
        if key is None:
            return None
        ids = self._mapping.get(collection)
        if ids is None:
            return None
        return ids.get(key)

    def contains(self, collection, source_id):
        return self.resolve(collection, source_id) is not None

    def collections(self):
        return list(self._mapping.keys())

    def count(self, collection):
        return len(self._mapping.get(collection, {}))

    def to_dict(self):
        return {name: dict(ids) for name, ids in self._mapping.items()}


@dataclass
class MappingResult:
    """Resultado de la fase de mapeo."""

    mapping: Dict[str, Dict[str, str]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    generated: Dict[str, int] = field(default_factory=dict)
    reused: Dict[str, int] = field(default_factory=dict)
    failed_collections: Dict[str, str] = field(default_factory=dict)

    @property
    def counts(self):
        return {name: len(ids) for name, ids in self.mapping.items()}


def build_identity_mapping(documents_by_collection, existing=None, reuse_existing=True, id_factory=None):
    """
    Construye el mapeo ObjectId → UUID en una sola pasada sobre los documentos.

    Args:
        documents_by_collection: { coleccion: [doc, ...] } (None = no se pudo leer)
        existing: Mapeo persistido de una corrida anterior (o None)
        reuse_existing: Reutilizar UUIDs de `existing` para ids ya vistos
        id_factory: Generador de ids destino (default: uuid4)

    Returns:
        MappingResult: Mapeo completo (incluye colecciones de `existing` no
        procesadas en esta corrida) + warnings de ids con sintaxis inesperada
    """
    new_id = id_factory or (lambda: str(uuid.uuid4()))
    existing = existing or {}
    result = MappingResult()

    # Colecciones fuera de esta corrida (ej: --collection) conservan su mapeo
    for name, ids in existing.items():
        result.mapping[name] = dict(ids)

    for name, documents in documents_by_collection.items():
        previous = existing.get(name, {}) if reuse_existing else {}

        # Colección ilegible: mapeo vacío (o el persistido), el resto sigue
        if documents is None:
            result.failed_collections.setdefault(name, "documentos no disponibles")
            result.mapping[name] = dict(previous)
            continue

        ids = {}
        generated = reused = skipped = 0

        for doc in documents:
            object_id = canonical_id(doc.get("_id")) if isinstance(doc, dict) else None
            if object_id is None:
                skipped += 1
                continue

            # Nunca sobrescribir: el primer UUID asignado es definitivo
            if object_id in ids:
                continue

            if object_id in previous:
                ids[object_id] = previous[object_id]
                reused += 1
            else:
                ids[object_id] = new_id()
                generated += 1

            if not is_valid_object_id(object_id):
                result.warnings.append(f"ObjectId inválido mapeado: {object_id} ({name})")

        if skipped:
            result.warnings.append(f"{skipped} documento(s) sin _id ignorados en {name}")

        # Ids persistidos que ya no aparecen en origen se conservan estables
        for object_id, dest_id in previous.items():
            ids.setdefault(object_id, dest_id)

        result.mapping[name] = ids
        result.generated[name] = generated
        result.reused[name] = reused

    return result


def create_id_mapping(store, collections=None, reuse_existing=True):
    """
    Fase de mapeo: lee los artefactos crudos, genera el mapeo y lo persiste.

    Un error leyendo una colección se registra y esa colección queda con
    mapeo vacío (o con el persistido); el resto continúa.

    Args:
        store: ArtifactStore
        collections: Colecciones a mapear (default: config.MIGRATION_ORDER)
        reuse_existing: Reutilizar id-mapping.json si existe

    Returns:
        MappingResult
    """
    if collections is None:
        collections = config.MIGRATION_ORDER
    print("\n🔄 Creando mapeo de ObjectIds → UUIDs...")

    existing = {}
    if store.has_mapping():
        existing = store.load_mapping()
        if reuse_existing:
            print(f"   ♻️  Reutilizando mapeo existente ({sum(len(v) for v in existing.values()):,} ids)")
        else:
            print("   ⚠️  Regenerando mapeo: los UUIDs previos serán reemplazados")

    documents_by_collection = {}
    failed = {}
    for name in collections:
        try:
            documents_by_collection[name] = store.load_raw(name)
            print(f"   📦 {name}: {len(documents_by_collection[name]):,} documentos")
        except (MissingArtifactError, ValueError, OSError) as e:
            documents_by_collection[name] = None
            failed[name] = str(e)
            print(f"   ❌ {name}: no se pudo leer ({e})", file=sys.stderr)

    result = build_identity_mapping(documents_by_collection, existing, reuse_existing)
    result.failed_collections.update(failed)

    for warning in result.warnings:
        print(f"   ⚠️  {warning}")

    try:
        store.save_mapping(result.mapping)
    except OSError as e:
        raise FatalMigrationError(f"No se pudo persistir el mapeo de ids: {e}") from e

    total = sum(result.counts.values())
    print(f"   ✅ Mapeo guardado en {store.mapping_file} ({total:,} ids)")
    return result


def load_id_mapping(store):
    """
    Carga el mapeo persistido en modo solo lectura.

    Raises:
        MissingArtifactError: Si la fase de mapeo nunca se ejecutó (fatal)
    """
    return IdentityMapping(store.load_mapping())
