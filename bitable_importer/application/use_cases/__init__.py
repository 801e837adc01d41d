"""
Casos de uso de la aplicacion.
"""
from bitable_importer.application.use_cases.sync_use_cases import (
    MatchPreview,
    SpreadsheetSyncUseCases,
    TableSyncOutcome,
    validate_field_name,
)

__all__ = [
    "MatchPreview",
    "SpreadsheetSyncUseCases",
    "TableSyncOutcome",
    "validate_field_name",
]
