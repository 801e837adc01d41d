"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from typing import Callable
from fastapi import FastAPI
from loguru import logger

from bitable_importer.core.config import settings
from bitable_importer.api.v1.dependencies.client_deps import get_feishu_client
from bitable_importer.infrastructure.external.feishu import token_cache
from bitable_importer.shared.utils.date_utils import get_timezone


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        try:
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            _validate_config()

            # Configurar logging adicional
            logger.add(
                settings.LOG_FILE,
                rotation="500 MB",
                retention="10 days",
                level=settings.LOG_LEVEL
            )

            logger.success("Aplicacion iniciada correctamente")

            _print_available_urls()

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """Valida la configuracion de sincronizacion; falla si es inutilizable."""
    warnings = []

    # Lanza ZoneInfoNotFoundError si la zona no existe
    get_timezone(settings.SYNC_TIMEZONE)

    if not 1 <= settings.SYNC_BATCH_SIZE <= 500:
        warnings.append(
            f"SYNC_BATCH_SIZE={settings.SYNC_BATCH_SIZE} fuera de rango (1-500); "
            "las sincronizaciones sin chunk_size explicito fallaran"
        )
    if settings.FEISHU_MAX_ATTEMPTS < 1:
        warnings.append("FEISHU_MAX_ATTEMPTS < 1 - se usara 1 intento")

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def _print_available_urls() -> None:
    """Imprime las URLs disponibles de la aplicacion."""
    if settings.HOST == "0.0.0.0":
        access_host = "localhost"
    else:
        access_host = settings.HOST

    base_url = f"http://{access_host}:{settings.PORT}"

    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info("<bold><green>URLS DISPONIBLES:</green></bold>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info(f"<cyan>  Swagger UI:  {base_url}/docs</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Health:      {base_url}/health</cyan>")
    logger.opt(colors=True).info(f"<cyan>  API v1:      {base_url}/api/v1</cyan>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")

        # Tokens y caches de esquema solo viven en memoria
        cached_tokens = len(token_cache)
        token_cache.clear()
        get_feishu_client().clear_cache()
        logger.info(f"Caches de Feishu liberadas (tokens: {cached_tokens})")

        logger.success("Aplicacion cerrada correctamente")

    return shutdown
