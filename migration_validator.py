"""
Validación post-carga de la migración.

Verificaciones:
1. Conteos: documentos en origen vs filas en destino (por colección)
2. Integridad referencial: FKs no nulas que no apuntan a ninguna fila
3. Unicidad: valores duplicados en columnas declaradas UNIQUE
4. Datos críticos: emails vacíos, horas no positivas, overtimes sin empleado

Una verificación que falla por sí misma (timeout, tabla inexistente) no
corta las demás: queda registrada como issue de tipo 'error'.
"""

import sys

import config
from results import ValidationReport

# (colección, campo, regla, descripción)
# Reglas soportadas por destination.count_where(): 'empty', 'non_positive'
CRITICAL_CHECKS = [
    ("users", "email", "empty", "Usuarios sin email"),
    ("overtimes", "hours", "non_positive", "Overtimes con horas <= 0"),
    ("overtimes", "employeeId", "empty", "Overtimes sin empleado"),
]


def validate_counts(source, destination, collections, report):
    print("\n📊 Validando conteos...")
    for name in collections:
        table = config.get_table_for_collection(name)
        try:
            source_count = source.count(name)
            destination_count = destination.count(table)
        except Exception as e:
            _check_error(report, "count", name, e)
            continue

        match = source_count == destination_count
        report.counts[name] = {
            "source": source_count,
            "destination": destination_count,
            "match": match,
            "difference": destination_count - source_count,
        }
        icon = "✅" if match else "❌"
        print(f"   {icon} {name}: MongoDB={source_count:,} PostgreSQL={destination_count:,}")


def validate_referential_integrity(destination, collections, report):
    print("\n🔗 Validando integridad referencial...")
    for name in collections:
        table = config.get_table_for_collection(name)
        for fk in config.get_collection_config(name)["foreign_keys"]:
            ref_table = config.get_table_for_collection(fk["references"])
            try:
                dangling = destination.count_dangling_references(table, fk["field"], ref_table)
            except Exception as e:
                _check_error(report, "foreign_key", f"{table}.{fk['field']}", e)
                continue

            if dangling:
                report.referential_integrity.append(
                    {
                        "type": "foreign_key",
                        "table": table,
                        "field": fk["field"],
                        "references": ref_table,
                        "count": dangling,
                    }
                )
                print(f"   ❌ {table}.{fk['field']} → {ref_table}: {dangling:,} referencias huérfanas")
            else:
                print(f"   ✅ {table}.{fk['field']} → {ref_table}")


def validate_uniqueness(destination, collections, report):
    print("\n🔑 Validando unicidad...")
    for name in collections:
        table = config.get_table_for_collection(name)
        for field in config.get_collection_config(name)["unique_fields"]:
            try:
                duplicates = destination.find_duplicates(table, field)
            except Exception as e:
                _check_error(report, "uniqueness", f"{table}.{field}", e)
                continue

            if duplicates:
                report.uniqueness.append(
                    {
                        "type": "uniqueness",
                        "table": table,
                        "field": field,
                        "duplicates": [{"value": v, "count": c} for v, c in duplicates],
                    }
                )
                print(f"   ❌ {table}.{field}: {len(duplicates):,} valores duplicados")
            else:
                print(f"   ✅ {table}.{field}")


def validate_critical_data(destination, collections, report):
    print("\n🩺 Validando datos críticos...")
    for name, field, rule, description in CRITICAL_CHECKS:
        if name not in collections:
            continue
        table = config.get_table_for_collection(name)
        try:
            count = destination.count_where(table, field, rule)
        except Exception as e:
            _check_error(report, "critical", f"{table}.{field}", e)
            continue

        if count:
            report.critical_data.append(
                {
                    "type": "critical",
                    "table": table,
                    "field": field,
                    "rule": rule,
                    "description": description,
                    "count": count,
                }
            )
            print(f"   ❌ {description}: {count:,}")
        else:
            print(f"   ✅ {description}: 0")


def validate_migration(source, destination, collections=None):
    """
    Ejecuta todas las verificaciones post-carga.

    Args:
        source: Objeto con count(coleccion) (MongoSource o doble de test)
        destination: Objeto con count, count_dangling_references,
                     find_duplicates y count_where
        collections: Colecciones a validar (default: config.MIGRATION_ORDER)

    Returns:
        ValidationReport: valid == True solo si TODAS las verificaciones pasan
    """
    if collections is None:
        collections = config.MIGRATION_ORDER
    report = ValidationReport()

    validate_counts(source, destination, collections, report)
    validate_referential_integrity(destination, collections, report)
    validate_uniqueness(destination, collections, report)
    validate_critical_data(destination, collections, report)

    if report.valid:
        print("\n✅ Validación exitosa: sin problemas detectados")
    else:
        print(f"\n⚠️  Validación con {len(report.issues):,} problema(s)")
    return report


def _check_error(report, check, target, error):
    report.check_errors.append({"type": "error", "check": check, "target": target, "error": str(error)})
    print(f"   ❌ {check} {target}: no se pudo verificar ({error})", file=sys.stderr)
