"""
Bitable Importer: importacion de hojas de calculo hacia tablas Bitable de Feishu.
"""
