"""
渲染模块 - 占位符替换 / 资源解析 / 离屏光栅化

子模块：
- substitution: 为单个嘉宾改写文档副本
- assets: 图片加载与动态二维码并发重建
- qr: 远程/本地二维码服务
- fonts: 字体查找
- renderer: 离屏渲染器
"""

from .assets import AssetResolver, ImageLoader, decode_data_url, encode_data_url, probe_image
from .fonts import FontResolver
from .qr import LocalQRService, RemoteQRService, build_qr_service
from .renderer import OffscreenRenderer, RenderSurface, parse_color
from .substitution import PlaceholderSubstitutor

__all__ = [
    "AssetResolver",
    "ImageLoader",
    "decode_data_url",
    "encode_data_url",
    "probe_image",
    "FontResolver",
    "LocalQRService",
    "RemoteQRService",
    "build_qr_service",
    "OffscreenRenderer",
    "RenderSurface",
    "parse_color",
    "PlaceholderSubstitutor",
]
