"""
Capa de dominio: entidades sin dependencias de infraestructura.
"""
