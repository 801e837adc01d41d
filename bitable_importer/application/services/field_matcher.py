"""
Asociacion difusa entre columnas de la hoja de calculo y campos de Bitable.

No se persiste ninguna configuracion de mapeo: la correspondencia se
recalcula cada vez a partir de los nombres.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple, Union

from loguru import logger

from bitable_importer.application.services.similarity import similarity
from bitable_importer.domain.entities import FieldMatch, TargetField


# Umbral fijo: solo similitudes estrictamente mayores se aceptan
MATCH_THRESHOLD = 0.6

Candidate = Union[str, TargetField]


def _candidate_name(candidate: Candidate) -> str:
    return candidate.name if isinstance(candidate, TargetField) else str(candidate)


def _candidate_id(candidate: Candidate) -> Optional[str]:
    return candidate.id if isinstance(candidate, TargetField) else None


def _best_candidate(
    source_column: str,
    candidates: Sequence[Candidate],
) -> Tuple[Optional[Candidate], float]:
    """
    Mejor candidato y su similitud.

    La coincidencia exacta gana sin calcular distancias. En empates gana el
    primer candidato en el orden recibido.
    """
    for candidate in candidates:
        if _candidate_name(candidate) == source_column:
            return candidate, 1.0

    best: Optional[Candidate] = None
    best_score = 0.0
    for candidate in candidates:
        score = similarity(source_column, _candidate_name(candidate))
        if best is None or score > best_score:
            best, best_score = candidate, score
    return best, best_score


def match_field(source_column: str, candidates: Iterable[Candidate]) -> Optional[FieldMatch]:
    """
    Busca el campo destino para `source_column`.

    Retorna None si ningun candidato supera MATCH_THRESHOLD.
    """
    candidate_list = list(candidates)
    best, score = _best_candidate(source_column, candidate_list)
    if best is None or score <= MATCH_THRESHOLD:
        return None
    return FieldMatch(
        source_column=source_column,
        target_field=_candidate_name(best),
        matched=True,
        similarity=score,
        target_field_id=_candidate_id(best),
    )


def match_columns(columns: Iterable[str], candidates: Iterable[Candidate]) -> List[FieldMatch]:
    """
    Calcula un FieldMatch por cada columna, en el orden recibido.

    Las columnas sin coincidencia se incluyen con `target_field=None`,
    `matched=False` y la mejor similitud encontrada (util para la UI).
    """
    candidate_list = list(candidates)
    matches: List[FieldMatch] = []

    for column in columns:
        best, score = _best_candidate(column, candidate_list)
        if best is not None and score > MATCH_THRESHOLD:
            matches.append(FieldMatch(
                source_column=column,
                target_field=_candidate_name(best),
                matched=True,
                similarity=score,
                target_field_id=_candidate_id(best),
            ))
            logger.debug(f"Columna '{column}' -> campo '{_candidate_name(best)}' ({score:.2f})")
        else:
            matches.append(FieldMatch(
                source_column=column,
                target_field=None,
                matched=False,
                similarity=score,
            ))
            logger.debug(f"Columna '{column}' sin coincidencia (mejor similitud {score:.2f})")

    matched_count = sum(1 for m in matches if m.matched)
    logger.info(f"Coincidencias de campos: {matched_count}/{len(matches)} columnas asociadas")
    return matches
