"""
Envio de registros a Feishu en lotes secuenciales.

Los lotes de una misma tabla nunca viajan en paralelo: asi el conteo de
fallos parciales y el orden de escritura son predecibles. Un fallo de la
llamada completa (o una cancelacion) aborta la corrida; los lotes ya
confirmados permanecen en Feishu.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Sequence

from loguru import logger

from bitable_importer.core.config import settings
from bitable_importer.domain.entities import SyncRunResult
from bitable_importer.shared.exceptions import FeishuError, ParamInvalidError, SyncAbortedError

from .client import MAX_BATCH_RECORDS, FeishuClient
from .types import CancellationToken, FeishuCredentials


def iter_chunks(records: Sequence[Dict[str, Any]], chunk_size: int) -> Iterator[List[Dict[str, Any]]]:
    """Lotes consecutivos de como maximo `chunk_size` registros."""
    for start in range(0, len(records), chunk_size):
        yield list(records[start:start + chunk_size])


def _completed_message(result: SyncRunResult) -> str:
    return (
        f"{result.synced_row_count} fila(s) sincronizada(s), "
        f"{result.failed_row_count} fila(s) fallida(s)"
    )


def _aborted_message(result: SyncRunResult, cause: FeishuError) -> str:
    return (
        f"Ejecucion abortada tras {result.chunks_completed} de {result.chunk_count} lote(s): "
        f"{cause.message} ({result.synced_row_count} fila(s) sincronizada(s) antes del fallo, "
        f"{result.remaining_row_count} fila(s) sin intentar)"
    )


class BatchSubmitter:
    """
    Controlador de envio por lotes para una tabla destino.

    Uso:
        submitter = BatchSubmitter(client)
        result = submitter.submit(app_token, table_id, records, credentials=creds)
    """

    def __init__(self, client: FeishuClient) -> None:
        self._client = client

    def submit(
        self,
        app_token: str,
        table_id: str,
        records: Sequence[Dict[str, Any]],
        chunk_size: Optional[int] = None,
        *,
        credentials: Optional[FeishuCredentials] = None,
        cancel: Optional[CancellationToken] = None,
        result: Optional[SyncRunResult] = None,
    ) -> SyncRunResult:
        """
        Envia `records` en lotes secuenciales.

        Args:
            app_token: Token de la app Bitable
            table_id: Tabla destino
            records: Registros ya construidos (campo -> valor)
            chunk_size: Tamano de lote (1..500, por defecto SYNC_BATCH_SIZE)
            credentials: Credenciales de Feishu (o las del cliente)
            cancel: Senal de cancelacion / deadline del llamador
            result: Resultado a completar (para conservar contadores previos)

        Returns:
            SyncRunResult con llamadas, filas sincronizadas y fallidas.

        Raises:
            SyncAbortedError: si un lote falla por completo o se cancela;
                contiene el resultado parcial.
        """
        size = chunk_size if chunk_size is not None else settings.SYNC_BATCH_SIZE
        if size < 1 or size > MAX_BATCH_RECORDS:
            raise ParamInvalidError(
                f"chunk_size debe estar entre 1 y {MAX_BATCH_RECORDS} (recibido {size})"
            )

        run = result or SyncRunResult()
        run.table_id = table_id
        run.chunk_count = (len(records) + size - 1) // size

        if not records:
            run.message = "Sin registros para sincronizar"
            logger.info(f"[{table_id}] {run.message}")
            return run

        for index, chunk in enumerate(iter_chunks(records, size), start=1):
            logger.info(f"[{table_id}] Enviando lote {index}/{run.chunk_count} ({len(chunk)} registros)")
            try:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                run.api_call_count += 1
                outcome = self._client.batch_create_records(
                    app_token, table_id, chunk, credentials=credentials, cancel=cancel
                )
            except FeishuError as e:
                run.failed_row_count += len(chunk)
                run.remaining_row_count = max(len(records) - index * size, 0)
                run.aborted = True
                run.errors.append(f"Lote {index}: {e.message}")
                run.message = _aborted_message(run, e)
                logger.error(f"[{table_id}] {run.message}")
                raise SyncAbortedError(run, e) from e

            run.synced_row_count += outcome.succeeded
            run.failed_row_count += outcome.failed
            run.errors.extend(f"Lote {index}: {error}" for error in outcome.errors)
            run.chunks_completed += 1

            if outcome.failed:
                logger.warning(f"[{table_id}] Lote {index}: {outcome.failed} registro(s) rechazado(s)")

        run.message = _completed_message(run)
        logger.success(f"[{table_id}] Sincronizacion completada: {run.message} ({run.api_call_count} llamada(s))")
        return run
