"""
Similitud lexica entre nombres de columnas y campos.
"""
from __future__ import annotations


# Puntaje cuando un nombre contiene al otro. Menor a 1.0 para que una
# coincidencia exacta siempre gane.
CONTAINMENT_SCORE = 0.8


def levenshtein_distance(a: str, b: str) -> int:
    """Distancia de edicion clasica (insercion, borrado, sustitucion)."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,         # borrado
                current[j - 1] + 1,      # insercion
                previous[j - 1] + cost,  # sustitucion
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Similitud en [0, 1] sin distinguir mayusculas.

    - Iguales: 1.0
    - Uno contiene al otro: 0.8
    - Resto: 1 - levenshtein / max(len)
    """
    left = (a or "").lower()
    right = (b or "").lower()

    if left == right:
        return 1.0
    if not left or not right:
        return 0.0
    if left in right or right in left:
        return CONTAINMENT_SCORE

    distance = levenshtein_distance(left, right)
    return 1.0 - distance / max(len(left), len(right))
