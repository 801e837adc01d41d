"""
Servicios de aplicacion.

Logica pura del motor de mapeo: conversion de valores, similitud,
asociacion de campos, metadatos y construccion de registros.
"""
from bitable_importer.application.services.value_coercer import coerce, coerce_with_report
from bitable_importer.application.services.similarity import similarity, levenshtein_distance
from bitable_importer.application.services.field_matcher import (
    MATCH_THRESHOLD,
    match_columns,
    match_field,
)
from bitable_importer.application.services.metadata_mapper import map_metadata_fields
from bitable_importer.application.services.record_builder import (
    RecordBuildResult,
    build_records,
    format_file_size,
)

__all__ = [
    # Conversion de valores
    "coerce",
    "coerce_with_report",
    # Similitud y asociacion
    "similarity",
    "levenshtein_distance",
    "MATCH_THRESHOLD",
    "match_field",
    "match_columns",
    # Metadatos
    "map_metadata_fields",
    # Registros
    "RecordBuildResult",
    "build_records",
    "format_file_size",
]
