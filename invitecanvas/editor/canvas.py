"""
编辑器画布 - 交互式编辑会话持有的唯一可变文档

职责：
1. 持有当前文档，并提供快照（深拷贝）与恢复
2. 导出会话守卫：开始时记录快照与指纹，结束时无条件恢复并校验
3. 画布尺寸与对象增删（裁剪工具使用）

约束：
- 批量导出/预览从不在此文档上绘制，只在开始时读快照、结束时恢复

测试要点：
- test_snapshot_is_copy: 快照与当前文档互不影响
- test_export_session_restores: 会话结束后指纹一致
- test_snapshot_without_document: 无文档时抛 DocumentError
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from ..config import RuntimeConfig, get_config
from ..interfaces import DocumentError
from ..models import DocumentSnapshot, GraphicObject

logger = logging.getLogger(__name__)


class EditorCanvas:
    """编辑器画布"""

    def __init__(self, document: DocumentSnapshot | None = None):
        self._document = document

    @classmethod
    def blank(cls, config: RuntimeConfig | None = None) -> EditorCanvas:
        """按配置的默认尺寸与背景新建空白画布"""
        canvas_config = (config or get_config()).canvas
        return cls(
            DocumentSnapshot(
                width=canvas_config.default_width,
                height=canvas_config.default_height,
                background=canvas_config.background,
            )
        )

    @classmethod
    def from_json(cls, data: str | bytes | dict[str, Any]) -> EditorCanvas:
        return cls(DocumentSnapshot.from_json(data))

    @property
    def document(self) -> DocumentSnapshot:
        if self._document is None:
            raise DocumentError("编辑器中没有文档")
        return self._document

    @property
    def has_document(self) -> bool:
        return self._document is not None

    @property
    def objects(self) -> list[GraphicObject]:
        return self.document.objects

    @property
    def width(self) -> int:
        return self.document.width

    @property
    def height(self) -> int:
        return self.document.height

    def load(self, document: DocumentSnapshot | str | bytes | dict[str, Any]) -> None:
        """加载文档（替换当前文档）"""
        if not isinstance(document, DocumentSnapshot):
            document = DocumentSnapshot.from_json(document)
        self._document = document

    def snapshot(self) -> DocumentSnapshot:
        """按值捕获当前文档"""
        return self.document.clone()

    def restore(self, snapshot: DocumentSnapshot) -> None:
        """恢复到给定快照（存入副本，快照本身仍可复用）"""
        self._document = snapshot.clone()

    def fingerprint(self) -> str:
        return self.document.fingerprint()

    def set_dimensions(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"画布尺寸非法: {width}x{height}")
        self.document.width = width
        self.document.height = height

    def add_object(self, obj: GraphicObject, index: int | None = None) -> None:
        if index is None:
            self.document.objects.append(obj)
        else:
            self.document.objects.insert(index, obj)

    def remove_object(self, index: int) -> GraphicObject:
        return self.document.objects.pop(index)

    @contextmanager
    def export_session(self) -> Iterator[DocumentSnapshot]:
        """
        导出会话守卫

        进入时捕获快照；退出时（无论成功/失败/取消）恢复编辑器并校验指纹。
        """
        snapshot = self.snapshot()
        expected = snapshot.fingerprint()
        try:
            yield snapshot
        finally:
            self.restore(snapshot)
            actual = self.fingerprint()
            if actual != expected:
                logger.error(f"编辑器恢复校验失败: expected={expected} actual={actual}")
                raise DocumentError("编辑器状态未能恢复到导出前")
            logger.debug(f"编辑器已恢复: fingerprint={expected[:12]}")
