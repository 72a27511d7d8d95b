"""
Fase de transformación: documentos MongoDB → registros PostgreSQL.

Cada documento se transforma con el migrador de su colección (carga
dinámica, ver migrators/__init__.py). El resultado por documento es un
TransformOutcome explícito: un documento inválido NUNCA corta la colección,
queda registrado con su contenido original y el motivo.

Artefactos producidos por colección:
    transformed/<coleccion>.json          Registros válidos
    transformed/<coleccion>.errors.json   Documentos rechazados ([] si no hay)
"""

import json
import sys

import config
from errors import TransformError
from identity_mapper import IdentityMapping
from migrators import load_migrator_for_collection
from migrators.base import TransformContext, utc_now_iso
from results import TransformOutcome, TransformResult


def transform_document(collection, doc, mapping, now=None):
    """
    Transforma un documento.

    Args:
        collection: Colección MongoDB de origen
        doc: Documento crudo
        mapping: IdentityMapping (o dict equivalente)
        now: Timestamp de ejecución ISO (fallback de fechas inválidas)

    Returns:
        TransformOutcome: record + warnings, o error + warnings
    """
    if not isinstance(mapping, IdentityMapping):
        mapping = IdentityMapping(mapping)
    migrator = load_migrator_for_collection(collection)
    context = TransformContext(mapping, now)

    if not isinstance(doc, dict):
        return TransformOutcome(error=f"Documento con formato inesperado: {type(doc).__name__}")

    try:
        record = migrator.extract_data(doc, context)
    except TransformError as e:
        return TransformOutcome(error=str(e), warnings=context.warnings)

    # transformed/<coleccion>.json es JSON puro
    try:
        json.dumps(record)
    except (TypeError, ValueError) as e:
        return TransformOutcome(error=f"Registro no serializable: {e}", warnings=context.warnings)

    return TransformOutcome(record=record, warnings=context.warnings)


def transform_collection(collection, documents, mapping, now=None):
    """
    Transforma todos los documentos de una colección.

    Todos los documentos de la corrida comparten el mismo `now`, así los
    timestamps de fallback son consistentes entre sí.

    Returns:
        TransformResult
    """
    if not isinstance(mapping, IdentityMapping):
        mapping = IdentityMapping(mapping)
    now = now or utc_now_iso()
    result = TransformResult(collection=collection)
    total = len(documents)

    for index, doc in enumerate(documents):
        outcome = transform_document(collection, doc, mapping, now)

        for warning in outcome.warnings:
            result.warnings.append({"index": index, "warning": warning})

        if outcome.ok:
            result.transformed.append(outcome.record)
        else:
            result.errors.append({"index": index, "error": outcome.error, "doc": doc})

        count = index + 1
        if count % 100 == 0 or count == total:
            print(
                f"\r\033[K   ⏳ {collection}: {count:,}/{total:,} ({count * 100 // total}%)",
                end="",
                flush=True,
            )

    if total:
        print()
    return result


def transform_data(store, mapping, collections=None):
    """
    Fase de transformación completa: lee data/, escribe transformed/.

    Un fallo a nivel colección (artefacto crudo ilegible, migrador
    inexistente, error al escribir) marca SOLO esa colección como fallida.

    Args:
        store: ArtifactStore
        mapping: IdentityMapping cargado de id-mapping.json
        collections: Colecciones a transformar (default: config.MIGRATION_ORDER)

    Returns:
        tuple: ({coleccion: TransformResult}, {coleccion: error})
    """
    if collections is None:
        collections = config.MIGRATION_ORDER
    now = utc_now_iso()
    results = {}
    failed = {}

    print("\n🔄 Transformando documentos...")

    for name in collections:
        try:
            documents = store.load_raw(name)
            result = transform_collection(name, documents, mapping, now)
            store.save_transformed(name, result.transformed)
            # Siempre se reescribe: no quedan rechazos de una corrida anterior
            store.save_transform_errors(name, result.errors)
        except Exception as e:
            failed[name] = str(e)
            print(f"   ❌ {name}: transformación fallida ({e})", file=sys.stderr)
            continue

        results[name] = result
        print(
            f"   ✅ {name}: {len(result.transformed):,} válidos, "
            f"{len(result.errors):,} errores, {len(result.warnings):,} advertencias"
        )
        for error in result.errors[:5]:
            print(f"      ❌ [{error['index']}] {error['error']}", file=sys.stderr)
        if len(result.errors) > 5:
            print(
                f"      ... {len(result.errors) - 5} más en {store.errors_path(name)}",
                file=sys.stderr,
            )

    return results, failed
