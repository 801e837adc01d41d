"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.

Las credenciales de Feishu (App ID / App Secret) NO forman parte de esta
configuracion: siempre se reciben explicitamente por request o por instancia
de cliente.
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    Grupos:
    - Aplicacion / servidor (APP_*, HOST, PORT, CORS_ORIGINS)
    - Logging (LOG_LEVEL, LOG_FILE)
    - Cliente Feishu (FEISHU_*): timeouts, reintentos, cache
    - Sincronizacion (SYNC_*): tamano de lote, paralelismo, zona horaria
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Bitable Importer")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    # Cliente Feishu Open Platform
    FEISHU_BASE_URL: str = Field(default="https://open.feishu.cn/open-apis")
    FEISHU_TIMEOUT_S: float = Field(default=30.0)
    # Numero maximo de intentos por llamada (incluye el primero)
    FEISHU_MAX_ATTEMPTS: int = Field(default=3)
    # Backoff lineal: FEISHU_RETRY_DELAY_S * numero_de_intento
    FEISHU_RETRY_DELAY_S: float = Field(default=1.0)
    FEISHU_CACHE_TTL_S: float = Field(default=300.0)
    FEISHU_TOKEN_REFRESH_MARGIN_S: float = Field(default=60.0)

    # Sincronizacion
    SYNC_BATCH_SIZE: int = Field(default=500)
    SYNC_MAX_PARALLEL_TABLES: int = Field(default=4)
    SYNC_TIMEZONE: str = Field(default="Asia/Shanghai")

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuracion
settings = Settings()
