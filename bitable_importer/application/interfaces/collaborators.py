"""
Contratos de los colaboradores externos del motor de sincronizacion.

Este contrato existe para:
- Que los casos de uso no dependan de pandas ni de un proveedor de
  almacenamiento concreto.
- Facilitar tests unitarios con fakes.
"""

from __future__ import annotations

from typing import Optional, Protocol

from bitable_importer.domain.entities import SheetData


class RowReader(Protocol):
    """
    Lee un archivo de origen y entrega columnas ordenadas + filas.

    Implementaciones:
    - `infrastructure.readers.spreadsheet_reader.read_rows` (CSV / Excel).
    - Fake para tests.
    """

    def __call__(self, content: bytes, filename: str, sheet_name: Optional[str] = None) -> SheetData:
        ...


class ObjectStorageUploader(Protocol):
    """
    Sube el archivo original a un almacenamiento de objetos.

    Solo se usa para completar el rol "enlace del archivo" de los metadatos.
    """

    def upload(self, content: bytes, filename: str) -> str:
        """Sube el archivo y retorna una URL durable."""
        ...
