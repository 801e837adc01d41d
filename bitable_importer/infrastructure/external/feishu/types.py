"""
Tipos del cliente Feishu: credenciales, cancelacion y resultado de lote.

Se mantienen libres de I/O para poder testearlos facilmente.
"""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional

from bitable_importer.shared.exceptions import OperationCancelledError


@dataclass(frozen=True)
class FeishuCredentials:
    """
    Credenciales de una app de Feishu.

    Siempre se reciben explicitamente (por request o por instancia de
    cliente); nunca se leen de la configuracion del proceso.
    """

    app_id: str
    app_secret: str = field(repr=False)

    @property
    def is_complete(self) -> bool:
        return bool(self.app_id and self.app_secret)

    @property
    def cache_key(self) -> str:
        """Clave de cache del token: app_id + huella del secreto."""
        digest = hashlib.sha256(self.app_secret.encode("utf-8")).hexdigest()[:16]
        return f"{self.app_id}:{digest}"

    @property
    def masked_app_id(self) -> str:
        return f"{self.app_id[:8]}..." if self.app_id else "<vacio>"

    def __repr__(self) -> str:
        return f"FeishuCredentials(app_id='{self.masked_app_id}', app_secret='***')"


class CancellationToken:
    """
    Senal de cancelacion del llamador con deadline opcional.

    - `cancel()` marca la operacion como cancelada
    - `deadline_s` es un tiempo maximo relativo al momento de creacion
    - `wait()` duerme de forma cancelable (backoff entre reintentos)
    """

    def __init__(self, deadline_s: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline: Optional[float] = (
            time.monotonic() + deadline_s if deadline_s is not None else None
        )

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Segundos restantes hasta el deadline (None si no hay deadline)."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("Operacion cancelada por el llamador")
        if self.expired:
            raise OperationCancelledError("Se excedio el tiempo limite de la operacion")

    def wait(self, seconds: float) -> None:
        """
        Espera `seconds` o hasta que se cancele / venza el deadline.

        Raises:
            OperationCancelledError: si la espera se interrumpe
        """
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        if self._event.wait(timeout=max(0.0, timeout)):
            self.raise_if_cancelled()
        if remaining is not None and remaining < seconds:
            raise OperationCancelledError("Se excedio el tiempo limite de la operacion")


@dataclass
class BatchCreateOutcome:
    """Resultado por registro de una llamada batch_create."""

    succeeded: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)
