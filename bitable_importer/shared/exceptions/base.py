"""
Excepcion base de la aplicacion.

Toda excepcion propia viaja hasta la API (o el CLI) con un codigo HTTP, un
codigo de error estable y detalles serializables.
"""
from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Excepcion base de la aplicacion.
    Todas las excepciones personalizadas deben heredar de esta clase.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Args:
            message: Mensaje legible para el llamador
            status_code: Codigo de estado HTTP de la respuesta
            error_code: Codigo estable (ej: FEISHU_RATE_LIMITED)
            details: Datos adicionales serializables a JSON
        """
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Cuerpo JSON de error: {error, message, details}."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }
