"""
Migrador para la colección hourbankrecords.

RESPONSABILIDAD:
Movimientos del banco de horas. Consumidor de users y overtimes.

DECISIONES DE DISEÑO:
- type sin default razonable: inválido es error duro
- createdBy es NOT NULL en destino: se trata como FK obligatoria
- overtimeRecordId opcional: si no resuelve queda NULL con advertencia
"""

from .base import BaseMigrator
from errors import TransformError
from validators import HOUR_BANK_STATUSES, is_valid_date_format, is_valid_hour_bank_type


class HourBankRecordsMigrator(BaseMigrator):
    """
    Migrador específico para hourbankrecords.

    Tabla destino: hour_bank_records
    """

    collection = "hourbankrecords"
    columns = (
        "id",
        "employeeId",
        "date",
        "type",
        "hours",
        "reason",
        "overtimeRecordId",
        "status",
        "createdBy",
        "approvedBy",
        "rejectedBy",
        "approvedAt",
        "rejectedAt",
        "createdAt",
        "updatedAt",
    )

    def __init__(self, table="hour_bank_records"):
        super().__init__(table)

    def extract_data(self, doc, context):
        record_id = self.resolve_own_id(doc, context)
        employee_id = context.require("users", doc.get("employeeId"), "employeeId")

        if not is_valid_hour_bank_type(doc.get("type")):
            raise TransformError(f"Type inválido para HourBankRecord: {doc.get('type')}")

        if not is_valid_date_format(doc.get("date")):
            raise TransformError(f"Data inválida para HourBankRecord: {doc.get('date')}")

        created_by = context.require("users", doc.get("createdBy"), "createdBy")

        return {
            "id": record_id,
            "employeeId": employee_id,
            "date": doc["date"],
            "type": doc["type"],
            "hours": self._number(doc.get("hours"), 0, "hours", context),
            "reason": self._text(doc.get("reason")),
            "overtimeRecordId": context.optional(
                "overtimes", doc.get("overtimeRecordId"), "overtimeRecordId"
            ),
            "status": self._enum(doc.get("status"), HOUR_BANK_STATUSES, "pending", "status", context),
            "createdBy": created_by,
            "approvedBy": context.optional("users", doc.get("approvedBy"), "approvedBy"),
            "rejectedBy": context.optional("users", doc.get("rejectedBy"), "rejectedBy"),
            "approvedAt": self._optional_timestamp(doc, "approvedAt", context),
            "rejectedAt": self._optional_timestamp(doc, "rejectedAt", context),
            "createdAt": self._timestamp(doc, "createdAt", context),
            "updatedAt": self._timestamp(doc, "updatedAt", context),
        }
