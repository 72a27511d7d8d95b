"""
Migrador para la colección companysettings.

RESPONSABILIDAD:
Configuración de la organización. Sin FKs.

DECISIONES DE DISEÑO:
- Logo: Mongoose lo guarda como { data: Buffer, contentType: String }.
  Entre fases viaja en base64 (transformed/*.json es texto) y se decodifica
  a bytes en prepare_record(), justo antes del INSERT en la columna BYTEA
- Límites faltantes: defaults del schema (40 / 0 / 0)
- Lotes chicos (config.batch_size=10) por el peso del logo
"""

from .base import BaseMigrator, encode_binary


class CompanySettingsMigrator(BaseMigrator):
    """
    Migrador específico para companysettings.

    Tabla destino: company_settings
    """

    collection = "companysettings"
    columns = (
        "id",
        "name",
        "logo",
        "logoContentType",
        "reportHeader",
        "reportFooter",
        "managerEmail",
        "defaultOvertimeLimit",
        "defaultAccumulationLimit",
        "defaultUsageLimit",
        "createdAt",
        "updatedAt",
    )
    binary_columns = ("logo",)

    def __init__(self, table="company_settings"):
        super().__init__(table)

    def extract_data(self, doc, context):
        settings_id = self.resolve_own_id(doc, context)
        logo, content_type = self._extract_logo(doc, context)

        return {
            "id": settings_id,
            "name": self._text(doc.get("name")),
            "logo": logo,
            "logoContentType": content_type,
            "reportHeader": self._text(doc.get("reportHeader")),
            "reportFooter": self._text(doc.get("reportFooter")),
            "managerEmail": doc.get("managerEmail") or None,
            "defaultOvertimeLimit": self._number(
                doc.get("defaultOvertimeLimit"), 40, "defaultOvertimeLimit", context
            ),
            "defaultAccumulationLimit": self._number(
                doc.get("defaultAccumulationLimit"), 0, "defaultAccumulationLimit", context
            ),
            "defaultUsageLimit": self._number(
                doc.get("defaultUsageLimit"), 0, "defaultUsageLimit", context
            ),
            "createdAt": self._timestamp(doc, "createdAt", context),
            "updatedAt": self._timestamp(doc, "updatedAt", context),
        }

    def _extract_logo(self, doc, context):
        """
        Extrae (logo_base64, content_type) del documento.

        Formatos soportados:
        - {'data': Binary, 'contentType': 'image/png'} (schema Mongoose)
        - Binary directo en doc.logo + doc.logoContentType
        - Buffer serializado {'type': 'Buffer', 'data': [...]}

        Returns:
            tuple: (str|None, str|None)
        """
        logo = doc.get("logo")
        if logo is None:
            return None, None

        content_type = doc.get("logoContentType")
        payload = logo
        if isinstance(logo, dict) and "contentType" in logo:
            content_type = logo.get("contentType") or content_type
            payload = logo.get("data")
        elif isinstance(logo, dict) and "data" in logo and not isinstance(logo.get("data"), list):
            payload = logo.get("data")

        encoded = encode_binary(payload)
        if encoded is None:
            if payload is not None:
                context.warn("logo con formato no reconocido, se migra como NULL")
            return None, None
        return encoded, content_type or None
