"""
Resultados estructurados de cada fase del pipeline.

Ningún error de documento, lote o colección se pierde: todo queda en estos
objetos y se imprime en el resumen final.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class TransformOutcome:
    """Resultado de transformar UN documento (éxito con registro o fallo con motivo)."""

    record: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class TransformResult:
    """Resultado de transformar todos los documentos de una colección."""

    collection: str
    transformed: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)  # {index, error, doc}
    warnings: List[Dict[str, Any]] = field(default_factory=list)  # {index, warning}

    @property
    def total(self) -> int:
        return len(self.transformed) + len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "total": self.total,
            "transformed": len(self.transformed),
            "errors": [{"index": e["index"], "error": e["error"]} for e in self.errors],
            "warnings": self.warnings,
        }


@dataclass
class LoadResult:
    """Resultado de cargar una colección en PostgreSQL."""

    collection: str
    attempted: int = 0
    succeeded: int = 0
    failed_batches: List[Dict[str, Any]] = field(default_factory=list)  # {offset, size, error}
    dry_run: bool = False

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def ok(self) -> bool:
        return not self.failed_batches

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failed_batches": self.failed_batches,
            "dry_run": self.dry_run,
        }


@dataclass
class ValidationReport:
    """Reporte de la validación post-carga."""

    counts: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    referential_integrity: List[Dict[str, Any]] = field(default_factory=list)
    uniqueness: List[Dict[str, Any]] = field(default_factory=list)
    critical_data: List[Dict[str, Any]] = field(default_factory=list)
    check_errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def count_mismatches(self) -> List[Dict[str, Any]]:
        return [
            {
                "type": "count_mismatch",
                "collection": name,
                "source": c["source"],
                "destination": c["destination"],
                "difference": c["difference"],
            }
            for name, c in self.counts.items()
            if not c["match"]
        ]

    @property
    def issues(self) -> List[Dict[str, Any]]:
        return (
            self.count_mismatches
            + self.referential_integrity
            + self.uniqueness
            + self.critical_data
            + self.check_errors
        )

    @property
    def valid(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "counts": self.counts,
            "issues": self.issues,
        }


@dataclass
class MigrationSummary:
    """Resumen agregado de una corrida completa."""

    dry_run: bool = False
    exported: Dict[str, int] = field(default_factory=dict)
    mapping_counts: Dict[str, int] = field(default_factory=dict)
    mapping_warnings: List[str] = field(default_factory=list)
    transform: Dict[str, TransformResult] = field(default_factory=dict)
    load: Dict[str, LoadResult] = field(default_factory=dict)
    validation: Optional[ValidationReport] = None
    failed_collections: Dict[str, str] = field(default_factory=dict)  # coleccion → fase: error
    fatal_error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def transform_error_count(self) -> int:
        return sum(len(r.errors) for r in self.transform.values())

    @property
    def failed_batch_count(self) -> int:
        return sum(len(r.failed_batches) for r in self.load.values())

    @property
    def has_issues(self) -> bool:
        return bool(
            self.fatal_error
            or self.failed_collections
            or self.transform_error_count
            or self.failed_batch_count
            or (self.validation is not None and not self.validation.valid)
        )
