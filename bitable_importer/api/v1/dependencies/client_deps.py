"""
Dependencias para inyeccion del cliente de Feishu y los casos de uso.
"""
from functools import lru_cache

from fastapi import Depends

from bitable_importer.application.use_cases.sync_use_cases import SpreadsheetSyncUseCases
from bitable_importer.infrastructure.external.feishu import FeishuClient


@lru_cache(maxsize=1)
def get_feishu_client() -> FeishuClient:
    """
    Cliente de Feishu compartido por el proceso.

    No lleva credenciales propias: cada request envia las suyas. Compartirlo
    permite reutilizar la sesion HTTP y las caches de tablas y campos.
    """
    return FeishuClient()


def get_sync_use_cases(
    client: FeishuClient = Depends(get_feishu_client)
) -> SpreadsheetSyncUseCases:
    """
    Dependencia para obtener los casos de uso de sincronizacion.

    Args:
        client: Cliente de Feishu compartido

    Returns:
        SpreadsheetSyncUseCases: Instancia de casos de uso
    """
    return SpreadsheetSyncUseCases(client)
