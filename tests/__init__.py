"""
Suite de tests para sistema de migración MongoDB → PostgreSQL.

Los tests NO se conectan a bases reales: usan dobles en memoria
(tests/helpers.py) para validar:
- Sintaxis de código Python e interfaz de migradores
- Mapeo de ids, transformación, carga por lotes y validación
- El pipeline completo y sus exit codes
"""
