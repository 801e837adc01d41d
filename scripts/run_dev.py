"""
Script para ejecutar el servidor de importacion en modo desarrollo.

Uso:
  python scripts/run_dev.py
"""
import uvicorn
from loguru import logger

from bitable_importer.core.config import settings


if __name__ == "__main__":
    logger.info(f"Levantando {settings.APP_NAME} en {settings.HOST}:{settings.PORT} (reload activo)")
    uvicorn.run(
        "bitable_importer.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
