"""
Jerarquía de errores de la migración.

Taxonomía:
- FatalMigrationError: Aborta la corrida (conexión caída, artefacto faltante)
- TransformError: Error a nivel documento, se convierte en TransformOutcome
  fallido y nunca sale del paso de transformación
- BatchWriteError: Error a nivel lote, se registra en LoadResult.failed_batches
  y la carga continúa con el lote siguiente
"""


class MigrationError(Exception):
    """Error base del pipeline de migración."""


class FatalMigrationError(MigrationError):
    """Error irrecuperable: la corrida se aborta."""


class MissingArtifactError(FatalMigrationError):
    """Un artefacto intermedio requerido no existe en disco."""

    def __init__(self, artifact, path):
        self.artifact = artifact
        self.path = path
        super().__init__(f"Artefacto '{artifact}' no encontrado: {path}")


class TransformError(MigrationError):
    """Un documento no puede transformarse (validación dura o FK requerida)."""


class BatchWriteError(MigrationError):
    """Un lote no pudo confirmarse en destino (la transacción se revirtió)."""
