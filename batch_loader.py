"""
Fase de carga: registros transformados → PostgreSQL.

Cada colección se carga en lotes de config.get_batch_size(); cada lote es
UNA transacción en destino: se confirma completo o se revierte completo.
Un lote fallido (error de escritura o registro imposible de preparar) se
registra ({offset, size, error}) y la carga sigue con el siguiente.

Modos de escritura (config.load_mode):
- upsert: INSERT ... ON CONFLICT ("id") DO UPDATE (re-ejecutable)
- insert: INSERT puro para colecciones append-only (auditlogs)

En dry-run no se toca el destino: attempted == succeeded == len(records).
"""

import sys

import config
from migrators import load_migrator_for_collection
from results import LoadResult


class BatchLoader:
    """
    Carga registros por lotes transaccionales.

    Attributes:
        destination: Objeto con write_batch(migrator, records, upsert)
                     (PostgresDestination o doble de test)
        dry_run (bool): Simular sin escribir
        failed_collections (dict): Colecciones que fallaron antes de cargar
    """

    def __init__(self, destination, dry_run=False):
        self.destination = destination
        self.dry_run = dry_run
        self.failed_collections = {}

    def load_collection(self, collection, records):
        """
        Carga todos los registros de una colección.

        Args:
            collection: Colección MongoDB de origen
            records: Registros transformados

        Returns:
            LoadResult
        """
        result = LoadResult(collection=collection, attempted=len(records), dry_run=self.dry_run)

        if not records:
            print(f"   ⚠️  {collection}: sin registros para cargar")
            return result

        if self.dry_run:
            result.succeeded = len(records)
            print(f"   🧪 {collection}: {len(records):,} registros (dry-run, sin escribir)")
            return result

        migrator = load_migrator_for_collection(collection)
        upsert = not config.is_append_only(collection)
        batch_size = config.get_batch_size(collection)
        total = len(records)

        for offset in range(0, total, batch_size):
            batch = records[offset : offset + batch_size]
            try:
                self.destination.write_batch(migrator, batch, upsert=upsert)
                result.succeeded += len(batch)
            except Exception as e:
                result.failed_batches.append({"offset": offset, "size": len(batch), "error": str(e)})
                print(
                    f"\n   ❌ {collection}: lote {offset}-{offset + len(batch) - 1} revertido ({e})",
                    file=sys.stderr,
                )

            done = min(offset + batch_size, total)
            print(
                f"\r\033[K   ⏳ {collection}: {done:,}/{total:,} ({done * 100 // total}%)",
                end="",
                flush=True,
            )

        print()
        status = "✅" if result.ok else "⚠️ "
        print(
            f"   {status} {collection}: {result.succeeded:,}/{result.attempted:,} cargados"
            f" ({'upsert' if upsert else 'insert'}, lotes de {batch_size})"
        )
        return result

    def load_all(self, records_by_collection, order=None):
        """
        Carga varias colecciones en orden de dependencias.

        Un error de una colección que no es de lote (migrador inexistente,
        configuración inválida) la marca como fallida en failed_collections
        y la carga continúa con la siguiente.

        Args:
            records_by_collection: { coleccion: [registro, ...] }
            order: Orden de carga (default: config.MIGRATION_ORDER)

        Returns:
            dict: { coleccion: LoadResult }
        """
        if order is None:
            order = config.MIGRATION_ORDER
        results = {}

        for collection in order:
            if collection not in records_by_collection:
                continue
            try:
                results[collection] = self.load_collection(
                    collection, records_by_collection[collection]
                )
            except Exception as e:
                self.failed_collections[collection] = str(e)
                print(f"   ❌ {collection}: carga fallida ({e})", file=sys.stderr)

        return results
