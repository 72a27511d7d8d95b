"""
Migrador para la colección overtimes.

RESPONSABILIDAD:
Solicitudes de horas extra. Consumidor de users (employeeId obligatorio,
createdBy/approvedBy/rejectedBy opcionales).

DECISIONES DE DISEÑO:
- date debe ser 'YYYY-MM-DD' real: si no, error duro
- startTime/endTime 'HH:MM': inválido es error duro, faltante es '00:00'
- status inválido: se corrige a 'pending' con advertencia
"""

from .base import BaseMigrator
from errors import TransformError
from validators import OVERTIME_STATUSES, is_valid_date_format, is_valid_time_format


class OvertimesMigrator(BaseMigrator):
    """
    Migrador específico para overtimes.

    Tabla destino: overtimes (FK employeeId → users.id)
    """

    collection = "overtimes"
    columns = (
        "id",
        "employeeId",
        "date",
        "startTime",
        "endTime",
        "hours",
        "reason",
        "status",
        "createdBy",
        "approvedBy",
        "rejectedBy",
        "approvedAt",
        "rejectedAt",
        "createdAt",
        "updatedAt",
    )

    def __init__(self, table="overtimes"):
        super().__init__(table)

    def extract_data(self, doc, context):
        overtime_id = self.resolve_own_id(doc, context)
        employee_id = context.require("users", doc.get("employeeId"), "employeeId")

        if not is_valid_date_format(doc.get("date")):
            raise TransformError(f"Data inválida para Overtime: {doc.get('date')}")

        start_time = self._time(doc, "startTime")
        end_time = self._time(doc, "endTime")

        return {
            "id": overtime_id,
            "employeeId": employee_id,
            "date": doc["date"],
            "startTime": start_time,
            "endTime": end_time,
            "hours": self._number(doc.get("hours"), 0, "hours", context),
            "reason": self._text(doc.get("reason")),
            "status": self._enum(doc.get("status"), OVERTIME_STATUSES, "pending", "status", context),
            "createdBy": context.optional("users", doc.get("createdBy"), "createdBy"),
            "approvedBy": context.optional("users", doc.get("approvedBy"), "approvedBy"),
            "rejectedBy": context.optional("users", doc.get("rejectedBy"), "rejectedBy"),
            "approvedAt": self._optional_timestamp(doc, "approvedAt", context),
            "rejectedAt": self._optional_timestamp(doc, "rejectedAt", context),
            "createdAt": self._timestamp(doc, "createdAt", context),
            "updatedAt": self._timestamp(doc, "updatedAt", context),
        }

    def _time(self, doc, field):
        value = doc.get(field)
        if value in (None, ""):
            return "00:00"
        if not is_valid_time_format(value):
            raise TransformError(f"{field} inválido para Overtime: {value}")
        return value
