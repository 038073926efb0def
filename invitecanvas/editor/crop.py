"""
裁剪工具 - 有界的交互状态机

状态机：INACTIVE -> SELECTING -> {APPLIED | CANCELLED}

职责：
1. 进入时克隆所有对象（用于失败恢复），放置选框（画布 10% 偏移、80% 大小）
2. 选择期间其它对象不可选中
3. 应用：所有对象按选框左上角平移，画布缩小到选框大小
4. 取消：移除选框，对象保持不变

测试要点：
- test_begin_marquee_defaults: 默认选框
- test_apply_shifts_objects: 应用后对象平移、画布尺寸变化
- test_cancel_leaves_objects: 取消不改变对象
- test_invalid_transition: 非法状态转换
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel

from ..interfaces import CropStateError
from ..models import GraphicObject
from .canvas import EditorCanvas

logger = logging.getLogger(__name__)


class CropState(str, Enum):
    """裁剪状态"""
    INACTIVE = "inactive"
    SELECTING = "selecting"
    APPLIED = "applied"
    CANCELLED = "cancelled"


class CropMarquee(BaseModel):
    """裁剪选框（只允许平移/缩放，不允许旋转）"""
    left: float
    top: float
    width: float
    height: float
    scale_x: float = 1
    scale_y: float = 1

    @property
    def actual_width(self) -> float:
        return self.width * self.scale_x

    @property
    def actual_height(self) -> float:
        return self.height * self.scale_y


class CropTool:
    """裁剪工具实现"""

    MARGIN_RATIO = 0.1
    SIZE_RATIO = 0.8

    def __init__(self, canvas: EditorCanvas):
        self.canvas = canvas
        self.state = CropState.INACTIVE
        self.marquee: CropMarquee | None = None
        self._original_objects: list[GraphicObject] = []
        self._original_size: tuple[int, int] | None = None
        self._original_background: str | None = None
        self._interaction: list[tuple[bool, bool]] = []

    def begin(self) -> CropMarquee:
        """进入选择状态"""
        if self.state == CropState.SELECTING:
            raise CropStateError("裁剪已在进行中")

        width, height = self.canvas.width, self.canvas.height
        self._original_size = (width, height)
        self._original_background = self.canvas.document.background or "#ffffff"
        self._original_objects = [obj.model_copy(deep=True) for obj in self.canvas.objects]
        self._interaction = [(obj.selectable, obj.evented) for obj in self.canvas.objects]

        self.marquee = CropMarquee(
            left=width * self.MARGIN_RATIO,
            top=height * self.MARGIN_RATIO,
            width=width * self.SIZE_RATIO,
            height=height * self.SIZE_RATIO,
        )
        self._lock_objects()
        self.state = CropState.SELECTING
        logger.info(f"裁剪开始: 画布 {width}x{height}")
        return self.marquee

    def move(self, left: float, top: float) -> CropMarquee:
        marquee = self._require_selecting()
        marquee.left, marquee.top = left, top
        return marquee

    def resize(
        self,
        width: float | None = None,
        height: float | None = None,
        scale_x: float | None = None,
        scale_y: float | None = None,
    ) -> CropMarquee:
        marquee = self._require_selecting()
        if width is not None:
            marquee.width = width
        if height is not None:
            marquee.height = height
        if scale_x is not None:
            marquee.scale_x = scale_x
        if scale_y is not None:
            marquee.scale_y = scale_y
        return marquee

    def apply(self) -> tuple[int, int]:
        """应用裁剪，返回新画布尺寸"""
        marquee = self._require_selecting()
        try:
            new_width = round(marquee.actual_width)
            new_height = round(marquee.actual_height)
            if new_width <= 0 or new_height <= 0:
                raise ValueError(f"选框尺寸非法: {new_width}x{new_height}")

            for obj in self.canvas.objects:
                obj.left -= marquee.left
                obj.top -= marquee.top
            self.canvas.set_dimensions(new_width, new_height)
            self.canvas.document.background = self._original_background
        except Exception:
            logger.exception("裁剪失败，恢复原始对象")
            self._restore_original()
            self._finish(CropState.CANCELLED)
            raise

        logger.info(f"裁剪完成: {new_width}x{new_height}")
        self._finish(CropState.APPLIED)
        return new_width, new_height

    def cancel(self) -> None:
        """取消裁剪（对象保持不变）"""
        self._require_selecting()
        self._finish(CropState.CANCELLED)
        logger.info("裁剪已取消")

    def _require_selecting(self) -> CropMarquee:
        if self.state != CropState.SELECTING or self.marquee is None:
            raise CropStateError(f"当前状态不允许该操作: {self.state.value}")
        return self.marquee

    def _restore_original(self) -> None:
        document = self.canvas.document
        document.objects = [obj.model_copy(deep=True) for obj in self._original_objects]
        if self._original_size:
            document.width, document.height = self._original_size

    def _lock_objects(self) -> None:
        for obj in self.canvas.objects:
            obj.selectable = False
            obj.evented = False

    def _unlock_objects(self) -> None:
        # 恢复进入裁剪前各对象自身的可选/可交互状态
        for obj, (selectable, evented) in zip(self.canvas.objects, self._interaction):
            obj.selectable = selectable
            obj.evented = evented

    def _finish(self, state: CropState) -> None:
        self._unlock_objects()
        self._interaction = []
        self.marquee = None
        self._original_objects = []
        self.state = state
