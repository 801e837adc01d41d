"""
Utilidades y excepciones compartidas por todas las capas.
"""
