"""
Validaciones de dominio para datos migrados.

Funciones puras: nunca lanzan excepciones, retornan False ante cualquier
valor inesperado (None, tipos distintos de str, etc.).
"""

import re
from datetime import date

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")

# --- Enums del schema destino ---
USER_ROLES = ("admin", "employee", "manager")
OVERTIME_STATUSES = ("pending", "approved", "rejected")
HOUR_BANK_TYPES = ("credit", "debit")
HOUR_BANK_STATUSES = ("pending", "approved", "rejected")
AUDIT_ACTIONS = (
    "overtime_created",
    "overtime_approved",
    "overtime_rejected",
    "overtime_updated",
    "hourbank_credit_created",
    "hourbank_debit_created",
    "hourbank_approved",
    "hourbank_rejected",
    "employee_created",
    "employee_deleted",
    "employee_role_changed",
    "employee_limit_changed",
    "employee_exception_added",
    "employee_exception_removed",
    "settings_updated",
    "settings_logo_updated",
    # Agregados por migraciones posteriores del schema (reloj de fichaje)
    "timeclock_entry",
    "timeclock_lunch_exit",
    "timeclock_lunch_return",
    "timeclock_exit",
    "timeclock_entry_with_justification",
    "timeclock_exit_with_justification",
)
ENTITY_TYPES = ("overtime", "hourbank", "employee", "settings", "timeclock")


def is_valid_object_id(value):
    """24 caracteres hexadecimales (ObjectId de MongoDB)."""
    if not value:
        return False
    return bool(OBJECT_ID_PATTERN.fullmatch(str(value)))


def is_valid_uuid(value):
    """UUID canónico 8-4-4-4-12."""
    if not value:
        return False
    return bool(UUID_PATTERN.fullmatch(str(value)))


def is_valid_email(value):
    if not value or not isinstance(value, str):
        return False
    return bool(EMAIL_PATTERN.fullmatch(value))


def is_valid_date_format(value):
    """
    Valida formato YYYY-MM-DD y que sea una fecha de calendario real.

    Ejemplo:
        >>> is_valid_date_format('2024-02-29')
        True
        >>> is_valid_date_format('2023-02-30')
        False
    """
    if not value or not isinstance(value, str):
        return False
    if not DATE_PATTERN.fullmatch(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_time_format(value):
    """Valida hora HH:MM (00:00 a 23:59)."""
    if not value or not isinstance(value, str):
        return False
    return bool(TIME_PATTERN.fullmatch(value))


def is_valid_user_role(value):
    return value in USER_ROLES


def is_valid_overtime_status(value):
    return value in OVERTIME_STATUSES


def is_valid_hour_bank_type(value):
    return value in HOUR_BANK_TYPES


def is_valid_hour_bank_status(value):
    return value in HOUR_BANK_STATUSES


def is_valid_audit_action(value):
    return value in AUDIT_ACTIONS


def is_valid_entity_type(value):
    return value in ENTITY_TYPES
