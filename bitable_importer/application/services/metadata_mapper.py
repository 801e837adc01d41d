"""
Asignacion heuristica de los metadatos del archivo subido a campos de Bitable.

Los metadatos (nombre, tamano, tipo, enlace y hora de subida) no son columnas
de la hoja, por lo que no pasan por la similitud difusa: se busca por
palabras clave (ingles + chino) contenidas en el nombre del campo.
"""
from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

from loguru import logger

from bitable_importer.domain.entities import MetadataFieldMap


FILE_NAME_KEYWORDS: Tuple[str, ...] = (
    "文件名", "文件名称", "文件", "名", "名称", "标题", "title", "name", "filename",
    "商品名称", "产品名称", "物品名称", "item_name", "product_name",
)

FILE_SIZE_KEYWORDS: Tuple[str, ...] = (
    "文件大小", "文件尺寸", "大小", "尺寸", "size", "filesize",
    "商品大小", "产品大小", "容量", "容量大小",
)

FILE_TYPE_KEYWORDS: Tuple[str, ...] = (
    "文件类型", "文件格式", "类型", "格式", "type", "format", "后缀", "ext",
    "商品类型", "产品类型", "分类", "category",
)

FILE_URL_KEYWORDS: Tuple[str, ...] = (
    "文件链接", "链接地址", "链接", "url", "link", "地址", "网址",
    "图片链接", "图片地址", "图片url", "image_url", "image_link",
    "商品链接", "产品链接", "商品地址", "product_url",
)

UPLOAD_TIME_KEYWORDS: Tuple[str, ...] = (
    "上传时间", "时间", "日期", "date", "time", "时间戳", "timestamp",
    "创建时间", "创建日期", "created_time", "created_date",
    "更新时间", "更新日期", "updated_time", "updated_date",
)

# Orden fijo de evaluacion de roles
ROLE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "file_name": FILE_NAME_KEYWORDS,
    "file_size": FILE_SIZE_KEYWORDS,
    "file_type": FILE_TYPE_KEYWORDS,
    "file_url": FILE_URL_KEYWORDS,
    "upload_time": UPLOAD_TIME_KEYWORDS,
}


def _matches_role(field_name: str, keywords: Tuple[str, ...]) -> bool:
    lowered = field_name.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def map_metadata_fields(target_field_names: Iterable[str]) -> MetadataFieldMap:
    """
    Asigna a cada rol el primer campo (en el orden del esquema) cuyo nombre
    contiene alguna palabra clave del rol.

    Un rol asignado no se reasigna. Un mismo campo puede cubrir varios roles
    (ej: "文件名称" contiene "文件" y "名称").
    """
    assigned: Dict[str, Optional[str]] = {role: None for role in ROLE_KEYWORDS}

    for field_name in target_field_names:
        for role, keywords in ROLE_KEYWORDS.items():
            if assigned[role] is None and _matches_role(field_name, keywords):
                assigned[role] = field_name

    result = MetadataFieldMap(**assigned)
    logger.debug(f"Mapeo de metadatos: {result.to_dict()}")
    return result
