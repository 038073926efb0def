"""
画布文档模型 - 图形对象树与序列化格式

对应编辑器画布JSON（camelCase键：scaleX/fontFamily/qrTemplate/backgroundImage...）。
图形对象是封闭的判别联合：文本 / 形状 / 图片，按 type 字段区分。
"""

from __future__ import annotations

import hashlib
import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..interfaces import DocumentError

PLACEHOLDER = "{guest_name}"


class CanvasObject(BaseModel):
    """图形对象公共属性（几何 + 显示）"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    left: float = 0
    top: float = 0
    width: float = 0
    height: float = 0
    scale_x: float = 1
    scale_y: float = 1
    angle: float = 0
    opacity: float = 1
    visible: bool = True

    # 编辑器交互属性（裁剪时临时关闭）
    selectable: bool = True
    evented: bool = True

    @property
    def geometry(self) -> tuple[float, float, float, float, float]:
        """几何五元组 (left, top, scaleX, scaleY, angle)"""
        return (self.left, self.top, self.scale_x, self.scale_y, self.angle)


class TextObject(CanvasObject):
    """文本对象"""

    type: Literal["text", "i-text", "textbox"] = "text"
    text: str = ""
    font_family: str = "Times New Roman"
    font_size: float = 40
    font_weight: str | int = "normal"
    font_style: str = "normal"
    underline: bool = False
    text_align: str = "left"
    line_height: float = 1.16
    fill: str | None = "#000000"

    @property
    def bold(self) -> bool:
        if isinstance(self.font_weight, int):
            return self.font_weight >= 600
        return self.font_weight in ("bold", "bolder") or (
            self.font_weight.isdigit() and int(self.font_weight) >= 600
        )

    @property
    def italic(self) -> bool:
        return self.font_style in ("italic", "oblique")

    def has_placeholder(self, placeholder: str = PLACEHOLDER) -> bool:
        return placeholder in self.text


class ShapeObject(CanvasObject):
    """形状对象（静态，从不个性化）"""

    type: Literal["rect", "circle", "ellipse", "triangle", "line"] = "rect"
    fill: str | None = "#000000"
    stroke: str | None = None
    stroke_width: float = 1
    radius: float = 0
    rx: float = 0
    ry: float = 0
    x1: float = 0
    y1: float = 0
    x2: float = 0
    y2: float = 0


class ImageObject(CanvasObject):
    """
    图片对象

    qr_template 非空且含占位符时为动态二维码对象：每位嘉宾重新生成图片，
    模板本身原样保留，便于对下一位嘉宾重复执行。
    """

    type: Literal["image"] = "image"
    src: str | None = None
    qr_template: str | None = None
    cross_origin: str | None = None

    # 运行期字段（不参与序列化）
    image_data: bytes | None = Field(default=None, exclude=True, repr=False)
    qr_payload: str | None = Field(default=None, exclude=True)

    def is_dynamic_qr(self, placeholder: str = PLACEHOLDER) -> bool:
        return bool(self.qr_template) and placeholder in self.qr_template


GraphicObject = Annotated[
    Union[TextObject, ShapeObject, ImageObject],
    Field(discriminator="type"),
]


class BackgroundImage(BaseModel):
    """画布背景图"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    src: str
    scale_x: float = 1
    scale_y: float = 1
    origin_x: str = "left"
    origin_y: str = "top"
    left: float = 0
    top: float = 0
    opacity: float = 1

    image_data: bytes | None = Field(default=None, exclude=True, repr=False)


class DocumentSnapshot(BaseModel):
    """
    文档快照 - 背景设置 + 有序图形对象列表（列表顺序即z序）

    个性化前总是先 clone()，原快照永远不被修改。
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    version: str = "5.3.0"
    width: int = 600
    height: int = 400
    background: str | None = "#ffffff"
    background_image: BackgroundImage | None = None
    objects: list[GraphicObject] = Field(default_factory=list)

    @classmethod
    def from_json(cls, data: str | bytes | dict[str, Any]) -> DocumentSnapshot:
        """从编辑器画布JSON解析"""
        try:
            if isinstance(data, (str, bytes)):
                data = json.loads(data)
            if not isinstance(data, dict):
                raise DocumentError(f"画布数据必须是对象: {type(data).__name__}")
            return cls.model_validate(data)
        except (ValidationError, json.JSONDecodeError) as e:
            raise DocumentError(f"画布数据格式错误: {e}") from e

    def to_json(self) -> dict[str, Any]:
        """导出为编辑器画布JSON（camelCase）"""
        return self.model_dump(mode="json", by_alias=True)

    def clone(self) -> DocumentSnapshot:
        """深拷贝（包括运行期图片数据）"""
        return self.model_copy(deep=True)

    def fingerprint(self) -> str:
        """规范化JSON的SHA-256，用于证明编辑器状态已恢复"""
        canonical = json.dumps(self.to_json(), sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def dynamic_qr_indices(self, placeholder: str = PLACEHOLDER) -> list[int]:
        return [
            i for i, obj in enumerate(self.objects)
            if isinstance(obj, ImageObject) and obj.is_dynamic_qr(placeholder)
        ]
