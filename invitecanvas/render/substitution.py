"""
占位符替换引擎 - 为单个嘉宾改写文档副本

职责：
1. 深拷贝快照，原文档永不修改
2. 文本对象：全局替换 {guest_name}
3. 动态二维码对象：计算个性化payload并标记待重建（模板原样保留）
4. 形状对象：原样通过

不变量：
- 输出与输入对象数量、顺序一致
- 几何属性（位置/缩放/旋转）从不改变

测试要点：
- test_replace_all_occurrences: 全部占位符被替换
- test_preserves_order_and_geometry: 数量/顺序/几何不变
- test_qr_template_preserved: 二维码模板保留
- test_original_not_mutated: 原快照不被修改
"""

from __future__ import annotations

from ..models import (
    PLACEHOLDER,
    DocumentSnapshot,
    Guest,
    ImageObject,
    PendingDocument,
    ShapeObject,
    TextObject,
)


class PlaceholderSubstitutor:
    """占位符替换实现"""

    def __init__(self, placeholder: str = PLACEHOLDER):
        self.placeholder = placeholder

    def substitute(self, snapshot: DocumentSnapshot, guest: Guest) -> PendingDocument:
        """生成待解析文档（文本已替换，二维码待重建）"""
        document = snapshot.clone()
        qr_indices: list[int] = []

        for index, obj in enumerate(document.objects):
            if isinstance(obj, TextObject):
                if self.placeholder in obj.text:
                    obj.text = self.fill(obj.text, guest)

            elif isinstance(obj, ImageObject):
                if obj.is_dynamic_qr(self.placeholder):
                    obj.qr_payload = self.fill(obj.qr_template, guest)
                    qr_indices.append(index)

            elif isinstance(obj, ShapeObject):
                continue

            else:
                raise TypeError(f"未知图形对象类型: {type(obj).__name__}")

        return PendingDocument(document=document, guest=guest, qr_indices=qr_indices)

    def fill(self, template: str, guest: Guest) -> str:
        """简单全局字符串替换，不转义嘉宾名"""
        return template.replace(self.placeholder, guest.name)
