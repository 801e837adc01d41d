"""
Capa de aplicacion: servicios, casos de uso, DTOs e interfaces.
"""
