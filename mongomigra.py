r"""
Script principal de migración MongoDB → PostgreSQL (dataset timesheet).

Arquitectura con carga dinámica de migradores:
- mongomigra.py: Orquestación de fases, CLI y resumen final
- migrators/*.py: Lógica específica por colección (implementan BaseMigrator)
- config.py: Configuración centralizada de colecciones
- artifacts.py: Artefactos intermedios entre fases (re-ejecutables)

Fases (estrictamente secuenciales):
1. Export: MongoDB → data/<coleccion>.json
2. Mapping: ObjectId → UUID (id-mapping.json, reutiliza el mapeo previo)
3. Transform: data/ → transformed/ (errores por documento, no aborta)
4. Load: transformed/ → PostgreSQL en lotes transaccionales (upsert)
5. Validate: conteos, FKs, unicidad, datos críticos

Prerrequisitos:
- Estructura de tablas creada por las migraciones de la aplicación
- Variables de conexión en .env (ver config.py)

Uso:
    python mongomigra.py                         # Pipeline completo
    python mongomigra.py --dry-run               # Sin escribir en PostgreSQL
    python mongomigra.py --skip-export           # Reutiliza data/ existente
    python mongomigra.py --collection overtimes  # Solo una colección

Exit Codes:
    0: Completado sin problemas
    1: Completado con problemas reportados
    2: Abortado por error fatal
"""

from pathlib import Path
import argparse
import io
import sys
import time

from pymongo.errors import PyMongoError

# Asegurar que el directorio raíz esté en sys.path para imports dinámicos
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import config
from artifacts import ArtifactStore
from batch_loader import BatchLoader
from connections import MongoSource, PostgresDestination, connect_to_mongo, connect_to_postgres
from errors import FatalMigrationError, MissingArtifactError
from identity_mapper import create_id_mapping, load_id_mapping
from migration_validator import validate_migration
from results import MigrationSummary
from transformer import transform_data

EXIT_OK = 0
EXIT_ISSUES = 1
EXIT_FATAL = 2


def export_collections(source, store, collections, summary=None):
    """
    Exporta colecciones MongoDB a data/<coleccion>.json (Extended JSON).

    Un fallo de lectura o escritura marca SOLO esa colección como fallida.

    Returns:
        dict: { coleccion: documentos exportados }
    """
    summary = summary or MigrationSummary()
    print("\n📥 Exportando colecciones de MongoDB...")

    for name in collections:
        try:
            documents = source.read_all(name)
            path = store.save_raw(name, documents)
        except (PyMongoError, OSError) as e:
            summary.failed_collections[name] = f"export: {e}"
            print(f"   ❌ {name}: exportación fallida ({e})", file=sys.stderr)
            continue

        summary.exported[name] = len(documents)
        if documents:
            print(f"   ✅ {name}: {len(documents):,} documentos → {path}")
        else:
            print(f"   ⚠️  {name}: colección vacía o inexistente")

    return summary.exported


def run_mapping_phase(store, collections, summary, regenerate=False):
    """
    Genera/actualiza id-mapping.json y lo carga en modo solo lectura.

    Raises:
        MissingArtifactError: Si el mapeo no quedó persistido (fatal)
    """
    result = create_id_mapping(store, collections, reuse_existing=not regenerate)

    for name, error in result.failed_collections.items():
        summary.failed_collections.setdefault(name, f"mapping: {error}")
    summary.mapping_counts = result.counts
    summary.mapping_warnings = result.warnings

    return load_id_mapping(store)


def run_transform_phase(store, mapping, collections, summary):
    results, failed = transform_data(store, mapping, collections)
    summary.transform.update(results)
    for name, error in failed.items():
        summary.failed_collections[name] = f"transform: {error}"
    return results


def run_load_phase(destination, store, collections, summary, dry_run=False):
    """
    Carga transformed/<coleccion>.json en orden de dependencias.

    Lee los registros del artefacto (no de memoria): la fase es
    re-ejecutable a partir de una transformación previa.
    """
    print(f"\n💾 Cargando en PostgreSQL{' (dry-run)' if dry_run else ''}...")

    records_by_collection = {}
    for name in collections:
        try:
            records_by_collection[name] = store.load_transformed(name)
        except (MissingArtifactError, ValueError) as e:
            summary.failed_collections[name] = f"load: {e}"
            print(f"   ❌ {name}: {e}", file=sys.stderr)

    loader = BatchLoader(destination, dry_run=dry_run)
    order = [name for name in config.MIGRATION_ORDER if name in records_by_collection]
    results = loader.load_all(records_by_collection, order)

    summary.load.update(results)
    for name, error in loader.failed_collections.items():
        summary.failed_collections[name] = f"load: {error}"
    return results


def run_validation_phase(source, destination, collections, summary):
    summary.validation = validate_migration(source, destination, collections)
    return summary.validation


def run_pipeline(options, source, destination, store):
    """
    Ejecuta las fases del pipeline según las opciones.

    Las colecciones que fallan en una fase no participan de las siguientes;
    el resto continúa. Solo un error fatal corta la corrida, y aun así los
    resultados parciales quedan en el resumen.

    Args:
        options: argparse.Namespace (dry_run, skip_export, skip_validation,
                 collection, regenerate_mapping)
        source: MongoSource (o doble); puede ser None si no se usa
        destination: PostgresDestination (o doble); puede ser None en dry-run
        store: ArtifactStore

    Returns:
        MigrationSummary
    """
    summary = MigrationSummary(dry_run=options.dry_run)
    collections = [options.collection] if options.collection else list(config.MIGRATION_ORDER)
    started = time.monotonic()

    def pending():
        return [name for name in collections if name not in summary.failed_collections]

    try:
        if options.skip_export:
            if not any(store.has_raw(name) for name in collections):
                raise MissingArtifactError("data/", store.data_dir)
            print("\n⏭️  Export omitido: se reutilizan los artefactos de data/")
        else:
            if source is None:
                raise FatalMigrationError("Export requiere conexión a MongoDB")
            export_collections(source, store, collections, summary)

        mapping = run_mapping_phase(store, pending(), summary, options.regenerate_mapping)
        run_transform_phase(store, mapping, pending(), summary)

        if destination is None and not options.dry_run:
            raise FatalMigrationError("La carga requiere conexión a PostgreSQL")
        run_load_phase(destination, store, pending(), summary, options.dry_run)

        if options.dry_run:
            print("\n⏭️  Validación omitida (dry-run: no se escribió nada)")
        elif options.skip_validation:
            print("\n⏭️  Validación omitida por opción")
        else:
            if source is None:
                raise FatalMigrationError("La validación requiere conexión a MongoDB")
            run_validation_phase(source, destination, collections, summary)

    except FatalMigrationError as e:
        summary.fatal_error = str(e)
        print(f"\n❌ Error fatal: {e}", file=sys.stderr)

    summary.duration_seconds = time.monotonic() - started
    return summary


def exit_code_for(summary):
    if summary.fatal_error:
        return EXIT_FATAL
    if summary.has_issues:
        return EXIT_ISSUES
    return EXIT_OK


def print_summary(summary):
    """
    Imprime el resumen final: por colección attempted/succeeded/failed y la
    lista completa de errores estructurados.
    """
    print("\n" + "=" * 70)
    print(f"📋 RESUMEN DE MIGRACIÓN{' (DRY-RUN)' if summary.dry_run else ''}")
    print("=" * 70)

    for name in config.MIGRATION_ORDER:
        transform = summary.transform.get(name)
        load = summary.load.get(name)
        failure = summary.failed_collections.get(name)
        if not (transform or load or failure or name in summary.exported):
            continue

        print(f"\n📦 {name}")
        if name in summary.exported:
            print(f"   └─ Exportados: {summary.exported[name]:,}")
        if transform:
            print(
                f"   └─ Transformados: {len(transform.transformed):,}/{transform.total:,}"
                f" | Errores: {len(transform.errors):,} | Advertencias: {len(transform.warnings):,}"
            )
            for error in transform.errors:
                print(f"      ❌ doc[{error['index']}]: {error['error']}")
        if load:
            print(
                f"   └─ Carga: attempted={load.attempted:,} succeeded={load.succeeded:,}"
                f" failed={load.failed:,}"
            )
            for batch in load.failed_batches:
                print(f"      ❌ lote offset={batch['offset']} size={batch['size']}: {batch['error']}")
        if failure:
            print(f"   └─ ❌ Colección fallida: {failure}")

    if summary.mapping_warnings:
        print(f"\n⚠️  Advertencias de mapeo: {len(summary.mapping_warnings):,}")
        for warning in summary.mapping_warnings:
            print(f"   - {warning}")

    if summary.validation is not None:
        issues = summary.validation.issues
        print(f"\n🔍 Validación: {'✅ OK' if summary.validation.valid else f'❌ {len(issues)} problema(s)'}")
        for issue in issues:
            detail = ", ".join(f"{k}={v}" for k, v in issue.items() if k != "type")
            print(f"   ❌ [{issue['type']}] {detail}")

    print(f"\n⏱️  Duración: {summary.duration_seconds:.1f}s")
    print("=" * 70)
    if summary.fatal_error:
        print(f"❌ MIGRACIÓN ABORTADA: {summary.fatal_error}")
    elif summary.has_issues:
        print("⚠️  MIGRACIÓN COMPLETADA CON PROBLEMAS")
    else:
        print("✅ MIGRACIÓN COMPLETADA EXITOSAMENTE")
    print("=" * 70)


def build_parser():
    parser = argparse.ArgumentParser(description="Migración MongoDB → PostgreSQL (timesheet)")
    parser.add_argument("--dry-run", action="store_true", help="No escribir en PostgreSQL")
    parser.add_argument("--skip-export", action="store_true", help="Reutilizar data/ existente")
    parser.add_argument("--skip-validation", action="store_true", help="Omitir validación post-carga")
    parser.add_argument(
        "--collection", choices=config.MIGRATION_ORDER, help="Migrar solo esta colección"
    )
    parser.add_argument(
        "--regenerate-mapping",
        action="store_true",
        help="Generar UUIDs nuevos aunque exista id-mapping.json (rompe FKs ya cargadas)",
    )
    parser.add_argument("--data-dir", help=f"Directorio de artefactos (default: {config.MIGRATION_DATA_DIR})")
    return parser


def main(argv=None):
    """
    Función principal: parsea opciones, conecta, ejecuta y cierra conexiones.

    Returns:
        int: Exit code (0 / 1 / 2)
    """
    options = build_parser().parse_args(argv)
    store = ArtifactStore(options.data_dir)

    print("=" * 70)
    print("🚀 SISTEMA DE MIGRACIÓN MONGODB → POSTGRESQL")
    print("=" * 70)
    print(f"📍 MongoDB: {config.MONGO_DATABASE_NAME}")
    print(f"📍 PostgreSQL: {config.POSTGRES_CONFIG['dbname']}")
    print(f"📁 Artefactos: {store.base_dir}")

    needs_source = not options.skip_export or not (options.dry_run or options.skip_validation)
    needs_destination = not options.dry_run

    mongo_client = pg_conn = None
    source = destination = None
    try:
        if needs_source:
            mongo_client, mongo_db = connect_to_mongo()
            source = MongoSource(mongo_db)
        if needs_destination:
            pg_conn = connect_to_postgres()
            destination = PostgresDestination(pg_conn)
    except FatalMigrationError as e:
        print(f"❌ {e}", file=sys.stderr)
        if mongo_client is not None:
            mongo_client.close()
        return EXIT_FATAL

    try:
        summary = run_pipeline(options, source, destination, store)
        print_summary(summary)
        return exit_code_for(summary)
    finally:
        print("\n🔒 Cerrando conexiones...")
        if pg_conn is not None:
            pg_conn.close()
        if mongo_client is not None:
            mongo_client.close()
        print("✅ Conexiones cerradas correctamente")


if __name__ == "__main__":
    # Forzar UTF-8 en stdout/stderr para emojis en Windows
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8")
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding="utf-8")
    sys.exit(main())
