"""
离屏渲染器 - 将已解析文档光栅化为固定尺寸PNG

职责：
1. 每次渲染独立创建绘制表面（不触碰编辑器画布），结束即释放
2. 显式"所有图片已加载"屏障：绘制前等待全部图片字节就绪
3. 绘制顺序：背景色 → 背景图 → 对象（列表顺序即z序）→ 输出PNG

依赖：
- Pillow: 绘制与编码

测试要点：
- test_output_dimensions: 输出尺寸与画布一致
- test_background_and_z_order: 背景色与z序
- test_image_barrier: 静态图片在绘制前加载
- test_surface_disposed: 绘制表面被释放
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from io import BytesIO

from PIL import Image, ImageColor, ImageDraw

from ..config import RuntimeConfig, get_config
from ..interfaces import AssetResolutionError
from ..models import (
    Bitmap,
    CanvasObject,
    DocumentSnapshot,
    ImageObject,
    ResolvedDocument,
    ShapeObject,
    TextObject,
)
from .assets import ImageLoader
from .fonts import FontResolver

logger = logging.getLogger(__name__)

RGBA = tuple[int, int, int, int]

_RGBA_FUNC = re.compile(
    r"rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+%?)\s*)?\)",
    re.IGNORECASE,
)


def parse_color(value: str | None) -> RGBA | None:
    """解析CSS颜色；透明/无法识别时返回 None（不绘制）"""
    if not value or value.strip().lower() in ("transparent", "none"):
        return None
    text = value.strip()
    m = _RGBA_FUNC.fullmatch(text)
    if m:
        r, g, b = (max(0, min(255, round(float(c)))) for c in m.groups()[:3])
        alpha = m.group(4)
        if alpha is None:
            a = 255
        elif alpha.endswith("%"):
            a = round(float(alpha[:-1]) * 2.55)
        else:
            a = round(float(alpha) * 255) if float(alpha) <= 1 else round(float(alpha))
        return (r, g, b, max(0, min(255, a)))
    try:
        return ImageColor.getcolor(text, "RGBA")
    except ValueError:
        logger.debug(f"无法识别的颜色: {value}")
        return None


class RenderSurface:
    """离屏绘制表面（作用域资源，用完即释放）"""

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"画布尺寸非法: {width}x{height}")
        self.width = width
        self.height = height
        self.image: Image.Image | None = Image.new("RGBA", (width, height), (0, 0, 0, 0))

    @property
    def disposed(self) -> bool:
        return self.image is None

    def fill(self, color: RGBA) -> None:
        self.composite(Image.new("RGBA", (self.width, self.height), color), 0, 0)

    def composite(self, layer: Image.Image, x: int, y: int) -> None:
        """按 (x, y) 合成图层，超出边界的部分被裁掉"""
        if self.image is None:
            raise RuntimeError("绘制表面已释放")
        src_x, src_y = max(0, -x), max(0, -y)
        dst_x, dst_y = max(0, x), max(0, y)
        right = min(layer.width, src_x + self.width - dst_x)
        bottom = min(layer.height, src_y + self.height - dst_y)
        if right <= src_x or bottom <= src_y:
            return
        if layer.mode != "RGBA":
            layer = layer.convert("RGBA")
        self.image.alpha_composite(layer.crop((src_x, src_y, right, bottom)), dest=(dst_x, dst_y))

    def flush(self, compress_level: int = 6) -> bytes:
        if self.image is None:
            raise RuntimeError("绘制表面已释放")
        out = BytesIO()
        self.image.save(out, format="PNG", compress_level=compress_level)
        return out.getvalue()

    def dispose(self) -> None:
        if self.image is not None:
            self.image.close()
            self.image = None

    def __enter__(self) -> RenderSurface:
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()


def _wrap_line(line: str, font, max_width: float) -> list[str]:
    """按宽度贪心折行；单个超宽单词独占一行（文本框随之变宽）"""
    words = line.split(" ")
    wrapped: list[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if current and font.getlength(candidate) > max_width:
            wrapped.append(current)
            current = word
        else:
            current = candidate
    wrapped.append(current)
    return wrapped


class OffscreenRenderer:
    """离屏渲染器实现"""

    def __init__(
        self,
        loader: ImageLoader | None = None,
        config: RuntimeConfig | None = None,
        fonts: FontResolver | None = None,
    ):
        self.config = config or get_config()
        self.loader = loader
        self.fonts = fonts or FontResolver(
            self.config.render.font_dirs, self.config.render.default_font
        )
        self.compress_level = self.config.render.png_compress_level
        self.timeout = self.config.timeouts.asset_fetch_sec

    async def render(
        self,
        resolved: ResolvedDocument | DocumentSnapshot,
        width: int | None = None,
        height: int | None = None,
    ) -> Bitmap:
        """渲染为PNG位图（尺寸默认取文档尺寸）"""
        document = resolved.document if isinstance(resolved, ResolvedDocument) else resolved
        width = width or document.width
        height = height or document.height

        flags = await self.settle_images(document)
        data = await asyncio.to_thread(self._rasterize, document, width, height)
        return Bitmap(data=data, width=width, height=height, flags=flags)

    async def settle_images(self, document: DocumentSnapshot) -> list[str]:
        """图片加载屏障：所有缺少字节的图片并发加载，全部结束后返回"""
        pending: list[tuple[str, object]] = []
        if document.background_image and document.background_image.image_data is None:
            pending.append(("background", document.background_image))
        for index, obj in enumerate(document.objects):
            if isinstance(obj, ImageObject) and obj.image_data is None and obj.src:
                pending.append((f"image:{index}", obj))

        if not pending:
            return []
        if self.loader is None:
            return [f"{label}_unavailable" for label, _ in pending]

        results = await asyncio.gather(
            *(self._load_into(target) for _, target in pending),
            return_exceptions=True,
        )
        flags = []
        for (label, _), result in zip(pending, results):
            if isinstance(result, (AssetResolutionError, asyncio.TimeoutError)):
                logger.warning(f"图片未能加载，跳过绘制: {label}: {result}")
                flags.append(f"{label}_unavailable")
            elif isinstance(result, BaseException):
                raise result
        return flags

    async def _load_into(self, target) -> None:
        target.image_data = await asyncio.wait_for(self.loader.fetch(target.src), self.timeout)

    # ------------------------------------------------------------------
    # 同步光栅化（在工作线程中执行）
    # ------------------------------------------------------------------

    def _rasterize(self, document: DocumentSnapshot, width: int, height: int) -> bytes:
        with RenderSurface(width, height) as surface:
            background = parse_color(document.background)
            if background:
                surface.fill(background)

            bg_image = document.background_image
            if bg_image and bg_image.image_data:
                layer = self._decode(bg_image.image_data)
                layer = self._scale(layer, bg_image.scale_x, bg_image.scale_y)
                layer = self._apply_opacity(layer, bg_image.opacity)
                surface.composite(layer, round(bg_image.left), round(bg_image.top))

            for obj in document.objects:
                if not obj.visible or obj.opacity <= 0:
                    continue
                layer = self._draw_object(obj)
                if layer is not None:
                    self._place(surface, layer, obj)

            return surface.flush(self.compress_level)

    def _draw_object(self, obj: CanvasObject) -> Image.Image | None:
        if isinstance(obj, TextObject):
            return self._draw_text(obj)
        if isinstance(obj, ShapeObject):
            return self._draw_shape(obj)
        if isinstance(obj, ImageObject):
            return self._decode(obj.image_data) if obj.image_data else None
        raise TypeError(f"未知图形对象类型: {type(obj).__name__}")

    def _draw_text(self, obj: TextObject) -> Image.Image | None:
        color = parse_color(obj.fill)
        if color is None or not obj.text:
            return None

        font = self.fonts.get(obj.font_family, round(obj.font_size), obj.bold, obj.italic)
        lines = obj.text.split("\n")
        if obj.type == "textbox" and obj.width > 0:
            lines = [wrapped for line in lines for wrapped in _wrap_line(line, font, obj.width)]
        line_px = obj.font_size * obj.line_height
        widths = [font.getlength(line) for line in lines]
        box_w = max(widths + [obj.width if obj.type == "textbox" else 0])
        layer_w = max(1, math.ceil(box_w))
        layer_h = max(1, math.ceil(line_px * len(lines)))

        layer = Image.new("RGBA", (layer_w, layer_h), (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        for i, (line, line_w) in enumerate(zip(lines, widths)):
            if obj.text_align == "center":
                x = (box_w - line_w) / 2
            elif obj.text_align == "right":
                x = box_w - line_w
            else:
                x = 0
            y = i * line_px
            draw.text((x, y), line, font=font, fill=color)
            if obj.underline and line:
                underline_y = y + obj.font_size * 1.05
                thickness = max(1, round(obj.font_size / 15))
                draw.line([(x, underline_y), (x + line_w, underline_y)], fill=color, width=thickness)
        return layer

    def _draw_shape(self, obj: ShapeObject) -> Image.Image | None:
        fill = parse_color(obj.fill)
        stroke = parse_color(obj.stroke)
        stroke_w = max(0, round(obj.stroke_width)) if stroke else 0

        if obj.type == "circle":
            w = h = obj.radius * 2
        elif obj.type == "ellipse":
            w, h = obj.rx * 2, obj.ry * 2
        elif obj.type == "line":
            w, h = abs(obj.x2 - obj.x1), abs(obj.y2 - obj.y1)
        else:
            w, h = obj.width, obj.height

        layer_w = max(1, math.ceil(w) + stroke_w)
        layer_h = max(1, math.ceil(h) + stroke_w)
        layer = Image.new("RGBA", (layer_w, layer_h), (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        half = stroke_w / 2
        box = [half, half, half + w - 1, half + h - 1]
        if box[2] < box[0] or box[3] < box[1]:
            return None

        if obj.type == "rect":
            radius = max(obj.rx, obj.ry)
            if radius > 0:
                draw.rounded_rectangle(box, radius=radius, fill=fill, outline=stroke, width=stroke_w)
            else:
                draw.rectangle(box, fill=fill, outline=stroke, width=stroke_w)
        elif obj.type in ("circle", "ellipse"):
            draw.ellipse(box, fill=fill, outline=stroke, width=stroke_w)
        elif obj.type == "triangle":
            points = [(half + w / 2, half), (half + w, half + h), (half, half + h)]
            draw.polygon(points, fill=fill, outline=stroke, width=max(1, stroke_w))
        elif obj.type == "line":
            start = (half + (0 if obj.x2 >= obj.x1 else w), half + (0 if obj.y2 >= obj.y1 else h))
            end = (half + (w if obj.x2 >= obj.x1 else 0), half + (h if obj.y2 >= obj.y1 else 0))
            draw.line([start, end], fill=stroke or fill, width=max(1, stroke_w))
        return layer

    def _place(self, surface: RenderSurface, layer: Image.Image, obj: CanvasObject) -> None:
        """缩放 → 绕左上角旋转 → 透明度 → 合成"""
        layer = self._scale(layer, obj.scale_x, obj.scale_y)
        x, y = float(obj.left), float(obj.top)

        if obj.angle % 360:
            w, h = layer.size
            theta = math.radians(obj.angle)
            cos_t, sin_t = math.cos(theta), math.sin(theta)
            corners = [(0, 0), (w, 0), (0, h), (w, h)]
            x += min(cx * cos_t - cy * sin_t for cx, cy in corners)
            y += min(cx * sin_t + cy * cos_t for cx, cy in corners)
            layer = layer.rotate(-obj.angle, resample=Image.BICUBIC, expand=True)

        layer = self._apply_opacity(layer, obj.opacity)
        surface.composite(layer, round(x), round(y))

    @staticmethod
    def _decode(data: bytes) -> Image.Image:
        with Image.open(BytesIO(data)) as im:
            return im.convert("RGBA")

    @staticmethod
    def _scale(layer: Image.Image, scale_x: float, scale_y: float) -> Image.Image:
        w = max(1, round(layer.width * abs(scale_x)))
        h = max(1, round(layer.height * abs(scale_y)))
        if (w, h) == layer.size:
            return layer
        return layer.resize((w, h), Image.LANCZOS)

    @staticmethod
    def _apply_opacity(layer: Image.Image, opacity: float) -> Image.Image:
        if opacity >= 1:
            return layer
        alpha = layer.getchannel("A").point(lambda a: round(a * max(0.0, opacity)))
        layer = layer.copy()
        layer.putalpha(alpha)
        return layer
