"""
编辑器模块 - 交互画布与裁剪工具

子模块：
- canvas: 编辑器画布（快照/恢复守卫）
- crop: 裁剪状态机
"""

from .canvas import EditorCanvas
from .crop import CropMarquee, CropState, CropTool

__all__ = [
    "EditorCanvas",
    "CropMarquee",
    "CropState",
    "CropTool",
]
