"""
Artefactos intermedios de la migración (archivos JSON en disco).

Cada fase lee y escribe artefactos independientes, de modo que cualquier
fase puede re-ejecutarse sin repetir las anteriores:

    <MIGRATION_DATA_DIR>/
        data/<coleccion>.json                 Documentos crudos (Extended JSON)
        id-mapping.json                       { coleccion: { ObjectId: UUID } }
        transformed/<coleccion>.json          Registros listos para cargar
        transformed/<coleccion>.errors.json   Documentos rechazados + motivo

Los documentos crudos se serializan con bson.json_util para conservar los
tipos de MongoDB (ObjectId, Date, Binary) entre fases.
"""

import json
import os
from pathlib import Path

from bson import json_util

import config
from errors import MissingArtifactError


class ArtifactStore:
    """
    Acceso a los artefactos de una corrida.

    Attributes:
        base_dir (Path): Directorio raíz de artefactos
    """

    def __init__(self, base_dir=None):
        self.base_dir = Path(base_dir or config.MIGRATION_DATA_DIR)
        self.data_dir = self.base_dir / "data"
        self.transformed_dir = self.base_dir / "transformed"
        self.mapping_file = self.base_dir / "id-mapping.json"

    # =========================================================================
    # RUTAS
    # =========================================================================

    def raw_path(self, collection):
        return self.data_dir / f"{collection}.json"

    def transformed_path(self, collection):
        return self.transformed_dir / f"{collection}.json"

    def errors_path(self, collection):
        return self.transformed_dir / f"{collection}.errors.json"

    def has_raw(self, collection):
        return self.raw_path(collection).exists()

    def has_mapping(self):
        return self.mapping_file.exists()

    def has_transformed(self, collection):
        return self.transformed_path(collection).exists()

    # =========================================================================
    # DOCUMENTOS CRUDOS (fase export)
    # =========================================================================

    def save_raw(self, collection, documents):
        """Guarda documentos MongoDB preservando tipos BSON."""
        return self._write(self.raw_path(collection), json_util.dumps(documents, indent=2))

    def load_raw(self, collection):
        """
        Carga documentos crudos exportados.

        Raises:
            MissingArtifactError: Si la colección nunca fue exportada
        """
        path = self.raw_path(collection)
        return json_util.loads(self._read(path, f"raw:{collection}"))

    # =========================================================================
    # MAPEO DE IDS (fase mapping)
    # =========================================================================

    def save_mapping(self, mapping):
        return self._write(self.mapping_file, json.dumps(mapping, indent=2, sort_keys=True))

    def load_mapping(self):
        return json.loads(self._read(self.mapping_file, "id-mapping"))

    # =========================================================================
    # REGISTROS TRANSFORMADOS (fase transform)
    # =========================================================================

    def save_transformed(self, collection, records):
        return self._write(
            self.transformed_path(collection), json.dumps(records, indent=2, ensure_ascii=False)
        )

    def load_transformed(self, collection):
        path = self.transformed_path(collection)
        return json.loads(self._read(path, f"transformed:{collection}"))

    def save_transform_errors(self, collection, errors):
        """Documentos rechazados con su contenido original para inspección posterior."""
        return self._write(
            self.errors_path(collection), json_util.dumps(errors, indent=2, ensure_ascii=False)
        )

    # =========================================================================
    # I/O
    # =========================================================================

    def _read(self, path, artifact):
        if not path.exists():
            raise MissingArtifactError(artifact, path)
        return path.read_text(encoding="utf-8")

    def _write(self, path, content):
        # Escritura atómica: un artefacto a medio escribir nunca reemplaza al anterior
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, path)
        return path
