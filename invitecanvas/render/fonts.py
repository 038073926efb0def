"""
字体查找 - 按字体族 + 粗体/斜体选择字体文件
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from PIL import ImageFont

logger = logging.getLogger(__name__)

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


def _style_suffixes(bold: bool, italic: bool) -> list[str]:
    if bold and italic:
        return ["-BoldItalic", " Bold Italic", "bi", "z"]
    if bold:
        return ["-Bold", " Bold", "bd", "b"]
    if italic:
        return ["-Italic", "-Oblique", " Italic", "i"]
    return ["-Regular", "", " Regular"]


class FontResolver:
    """字体解析器（结果按参数缓存）"""

    def __init__(self, font_dirs: list[str] | None = None, default_font: str = "DejaVuSans.ttf"):
        self.font_dirs = [Path(d) for d in (font_dirs or [])]
        self.default_font = default_font
        self.get = lru_cache(maxsize=128)(self._load)

    def _candidates(self, family: str, bold: bool, italic: bool) -> list[str]:
        names = []
        stem = family.strip().replace(" ", "")
        for base in dict.fromkeys([family.strip(), stem]):
            for suffix in _style_suffixes(bold, italic):
                names.append(f"{base}{suffix}.ttf")
                names.append(f"{base}{suffix}.otf")
        return names

    def _load(self, family: str, size: int, bold: bool = False, italic: bool = False) -> FontType:
        size = max(1, int(size))
        for name in self._candidates(family, bold, italic):
            for font_dir in self.font_dirs:
                path = font_dir / name
                if path.exists():
                    try:
                        return ImageFont.truetype(str(path), size)
                    except OSError:
                        continue
            # Pillow 自身也会在系统字体目录中查找
            try:
                return ImageFont.truetype(name, size)
            except OSError:
                continue

        try:
            return ImageFont.truetype(self.default_font, size)
        except OSError:
            logger.debug(f"字体未找到，使用内置字体: family={family}")
            return ImageFont.load_default(size=size)
