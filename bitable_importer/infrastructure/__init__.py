"""
Capa de infraestructura: integraciones externas y lectores de archivos.
"""
