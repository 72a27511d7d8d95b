"""
Migrador para la colección auditlogs.

RESPONSABILIDAD:
Registro de auditoría. Append-only: se carga con INSERT puro
(config.load_mode='insert'), nunca con upsert.

DECISIONES DE DISEÑO:
- action / entityType fuera del enum: error duro (no hay default razonable)
- userId obligatorio, targetUserId opcional
- entityId es polimórfico (no es FK declarada): se resuelve contra la
  colección que indica entityType; si no resuelve se conserva el id original
"""

from .base import BaseMigrator, to_json_safe
from errors import TransformError
from identity_mapper import canonical_id
from validators import is_valid_audit_action, is_valid_entity_type

# entityType → colección origen del entityId
ENTITY_COLLECTIONS = {
    "employee": "users",
    "overtime": "overtimes",
    "hourbank": "hourbankrecords",
    "settings": "companysettings",
}


class AuditLogsMigrator(BaseMigrator):
    """
    Migrador específico para auditlogs.

    Tabla destino: audit_logs (FK userId → users.id)
    """

    collection = "auditlogs"
    columns = (
        "id",
        "action",
        "entityType",
        "entityId",
        "userId",
        "targetUserId",
        "description",
        "metadata",
        "ipAddress",
        "userAgent",
        "createdAt",
        "updatedAt",
    )
    jsonb_columns = ("metadata",)

    def __init__(self, table="audit_logs"):
        super().__init__(table)

    def extract_data(self, doc, context):
        log_id = self.resolve_own_id(doc, context)

        action = doc.get("action")
        if not is_valid_audit_action(action):
            raise TransformError(f"Action inválido para AuditLog: {action}")

        entity_type = doc.get("entityType")
        if not is_valid_entity_type(entity_type):
            raise TransformError(f"EntityType inválido para AuditLog: {entity_type}")

        user_id = context.require("users", doc.get("userId"), "userId")
        metadata = doc.get("metadata")
        if metadata is None:
            metadata = {}
        elif not isinstance(metadata, dict):
            context.warn(f"metadata no es un objeto ({type(metadata).__name__}), se usa {{}}")
            metadata = {}

        return {
            "id": log_id,
            "action": action,
            "entityType": entity_type,
            "entityId": self._extract_entity_id(doc, entity_type, context),
            "userId": user_id,
            "targetUserId": context.optional("users", doc.get("targetUserId"), "targetUserId"),
            "description": self._text(doc.get("description")),
            "metadata": to_json_safe(metadata),
            "ipAddress": doc.get("ipAddress") or None,
            "userAgent": doc.get("userAgent") or None,
            "createdAt": self._timestamp(doc, "createdAt", context),
            "updatedAt": self._timestamp(doc, "updatedAt", context),
        }

    def _extract_entity_id(self, doc, entity_type, context):
        """
        Resuelve entityId contra la colección implícita en entityType.

        Returns:
            str: UUID si resuelve, id original si no, '' si no hay valor
        """
        raw = canonical_id(doc.get("entityId"))
        if raw is None:
            return ""

        collection = ENTITY_COLLECTIONS.get(entity_type)
        if collection is None:
            return raw

        resolved = context.resolve(collection, raw)
        if resolved:
            return resolved

        context.warn(f"entityId no mapeado en {collection} ({raw}), se conserva el id original")
        return raw
