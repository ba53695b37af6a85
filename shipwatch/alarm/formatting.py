"""
阈值范围描述的展示格式化

告警记录只保存原始上下限数值，"上限: 650V, 下限: 580V" 这样的描述
在展示层（API响应、导出）按需生成。
"""
from __future__ import annotations

from typing import Optional


def format_limit(value: float) -> str:
    """按 DECIMAL(10,2) 精度输出数值并去掉多余的零：693.0 -> "693"，702.90 -> "702.9" """
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def format_threshold_range(upper_limit: Optional[float], lower_limit: Optional[float], unit: Optional[str] = "") -> str:
    """
    生成阈值范围描述

    顺序固定为先上限后下限，与实际越过的是哪一侧无关；未设置的一侧不输出。
    两侧都未设置时返回空字符串。

    Example:
        >>> format_threshold_range(650, 580, "V")
        '上限: 650V, 下限: 580V'
    """
    unit = unit or ""
    parts = []
    if upper_limit is not None:
        parts.append(f"上限: {format_limit(upper_limit)}{unit}")
    if lower_limit is not None:
        parts.append(f"下限: {format_limit(lower_limit)}{unit}")
    return ", ".join(parts)
