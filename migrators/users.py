"""
Migrador para la colección users.

RESPONSABILIDAD:
Fuente de verdad de cuentas. Todas las demás colecciones referencian
users.id vía FK, por eso se carga primero.

DECISIONES DE DISEÑO:
- Email inválido: error duro (la columna es NOT NULL + UNIQUE en destino)
- Role inválido: se corrige a 'employee' con advertencia
- Campos de texto faltantes (name, department): '' (NOT NULL en destino)
- Campos agregados por migraciones posteriores del schema (requiresTimeClock,
  lastLoginAt, workSchedule, lunchBreakHours, lateTolerance) se migran si
  existen en el documento
"""

from .base import BaseMigrator, to_json_safe
from errors import TransformError
from validators import USER_ROLES, is_valid_email


class UsersMigrator(BaseMigrator):
    """
    Migrador específico para users.

    Tabla destino: users (PK id UUID, UNIQUE email, UNIQUE externalId)
    """

    collection = "users"
    columns = (
        "id",
        "email",
        "password",
        "role",
        "name",
        "department",
        "externalId",
        "externalAuth",
        "overtimeLimit",
        "overtimeExceptions",
        "requiresTimeClock",
        "lastLoginAt",
        "workSchedule",
        "lunchBreakHours",
        "lateTolerance",
        "createdAt",
        "updatedAt",
    )
    jsonb_columns = ("overtimeExceptions", "workSchedule")

    def __init__(self, table="users"):
        super().__init__(table)

    def extract_data(self, doc, context):
        """
        Transforma un documento de usuario.

        Raises:
            TransformError: Sin mapeo de id o email inválido
        """
        user_id = self.resolve_own_id(doc, context)

        email = doc.get("email")
        if isinstance(email, str):
            email = email.strip()
        if not is_valid_email(email):
            raise TransformError(f"Email inválido para User: {email}")

        role = self._enum(doc.get("role"), USER_ROLES, "employee", "role", context)

        external_id = doc.get("externalId")
        exceptions = doc.get("overtimeExceptions")
        work_schedule = doc.get("workSchedule")

        return {
            "id": user_id,
            "email": email,
            "password": doc.get("password") or None,
            "role": role,
            "name": self._text(doc.get("name")),
            "department": self._text(doc.get("department")),
            "externalId": str(external_id) if external_id not in (None, "") else None,
            "externalAuth": self._flag(doc.get("externalAuth"), False, "externalAuth", context),
            "overtimeLimit": self._number(doc.get("overtimeLimit"), None, "overtimeLimit", context),
            "overtimeExceptions": to_json_safe(exceptions) if exceptions is not None else None,
            "requiresTimeClock": self._flag(doc.get("requiresTimeClock"), False, "requiresTimeClock", context),
            "lastLoginAt": self._optional_timestamp(doc, "lastLoginAt", context),
            "workSchedule": to_json_safe(work_schedule) if work_schedule is not None else None,
            "lunchBreakHours": self._number(doc.get("lunchBreakHours"), None, "lunchBreakHours", context),
            "lateTolerance": self._number(doc.get("lateTolerance"), 10, "lateTolerance", context),
            "createdAt": self._timestamp(doc, "createdAt", context),
            "updatedAt": self._timestamp(doc, "updatedAt", context),
        }
