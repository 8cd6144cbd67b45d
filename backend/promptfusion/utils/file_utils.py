"""
文件工具模块
提供上传文件到源图片的转换，以及批量下载的命名规则
"""

import io
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from promptfusion.models.work_item import SourceImage

VALID_IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp'}


def get_file_extension(file_path: Union[str, Path]) -> str:
    """
    获取文件扩展名（小写）

    Args:
        file_path: 文件路径

    Returns:
        str: 文件扩展名（如：.jpg, .png）
    """
    return Path(file_path).suffix.lower()


def is_valid_image_extension(extension: str) -> bool:
    """检查是否为有效的图片文件扩展名"""
    return extension.lower() in VALID_IMAGE_EXTENSIONS


def detect_image_content_type(data: bytes) -> Optional[str]:
    """
    使用PIL识别图片格式

    Args:
        data: 图片字节数据

    Returns:
        Optional[str]: MIME类型（如 image/png），无法识别时返回None
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return None
    if not fmt:
        return None
    return Image.MIME.get(fmt.upper(), f"image/{fmt.lower()}")


def build_source_image(file_name: str, data: bytes) -> SourceImage:
    """
    将上传的文件转换为源图片

    内容类型以PIL识别的格式为准，不信任客户端声明。

    Raises:
        ValueError: 文件为空或不是图片
    """
    if not data:
        raise ValueError(f"文件为空: {file_name}")

    detected = detect_image_content_type(data)
    if detected is None:
        raise ValueError(f"不是有效的图片文件: {file_name}")

    return SourceImage(
        file_name=file_name or "image",
        content_type=detected,
        data=data
    )


def build_download_name(index: int, stem: str) -> str:
    """批量下载文件名：batch-{序号}-{原文件名}.png，序号从1开始"""
    return f"batch-{index}-{stem}.png"
