"""
ID生成工具模块
"""

import uuid


def generate_uuid() -> str:
    """生成标准UUID字符串"""
    return str(uuid.uuid4())
