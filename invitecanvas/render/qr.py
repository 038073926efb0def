"""
二维码服务 - 远程HTTP服务 / 本地qrcode生成

职责：
1. RemoteQRService: GET <base_url>?data=<urlencoded>&size=NxN
2. LocalQRService: 离线用 qrcode + Pillow 生成同尺寸PNG
3. build_qr_service: 按 qr_service.provider 选择实现

测试要点：
- test_remote_url_encoding: payload URL编码
- test_local_qr_size: 本地生成尺寸
- test_remote_failure_raises_asset_error: 失败转换为 AssetResolutionError
"""

from __future__ import annotations

import asyncio
from io import BytesIO
from urllib.parse import quote

import qrcode
from PIL import Image
from qrcode.constants import (
    ERROR_CORRECT_H,
    ERROR_CORRECT_L,
    ERROR_CORRECT_M,
    ERROR_CORRECT_Q,
)

from ..config import RuntimeConfig, get_config
from ..interfaces import AssetResolutionError, IQRService
from ..models import QRImage
from .assets import ImageLoader, encode_data_url

_ERROR_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}


class RemoteQRService(IQRService):
    """外部二维码服务（无鉴权）"""

    def __init__(self, loader: ImageLoader, config: RuntimeConfig | None = None):
        self.config = config or get_config()
        self.loader = loader
        self.base_url = self.config.qr_service.base_url
        self.size = self.config.qr_service.size

    def build_url(self, payload: str) -> str:
        return f"{self.base_url}?data={quote(payload, safe='')}&size={self.size}x{self.size}"

    async def generate(self, payload: str) -> QRImage:
        if not payload:
            raise AssetResolutionError("二维码内容为空")
        url = self.build_url(payload)
        data = await self.loader.fetch(url, use_cache=False)
        return QRImage(src=url, data=data, payload=payload)


class LocalQRService(IQRService):
    """本地二维码生成"""

    def __init__(self, config: RuntimeConfig | None = None):
        self.config = config or get_config()
        qr_conf = self.config.qr_service
        self.size = qr_conf.size
        self.border = qr_conf.border
        self.error_correction = _ERROR_LEVELS.get(qr_conf.error_correction.upper(), ERROR_CORRECT_M)

    async def generate(self, payload: str) -> QRImage:
        if not payload:
            raise AssetResolutionError("二维码内容为空")
        data = await asyncio.to_thread(self.render_png, payload)
        return QRImage(src=encode_data_url(data), data=data, payload=payload)

    def render_png(self, payload: str) -> bytes:
        """生成 size x size 的PNG"""
        try:
            qr = qrcode.QRCode(
                version=None,
                error_correction=self.error_correction,
                box_size=10,
                border=self.border,
            )
            qr.add_data(payload)
            qr.make(fit=True)
            raw = BytesIO()
            qr.make_image(fill_color="black", back_color="white").save(raw)
        except Exception as e:
            raise AssetResolutionError(f"二维码生成失败: {e}") from e

        raw.seek(0)
        with Image.open(raw) as im:
            scaled = im.convert("RGB").resize((self.size, self.size), Image.NEAREST)
        out = BytesIO()
        scaled.save(out, format="PNG")
        return out.getvalue()


def build_qr_service(loader: ImageLoader, config: RuntimeConfig | None = None) -> IQRService:
    """按配置选择二维码服务"""
    config = config or get_config()
    provider = config.qr_service.provider.lower()
    if provider == "local":
        return LocalQRService(config)
    if provider == "remote":
        return RemoteQRService(loader, config)
    raise ValueError(f"未知二维码服务: {provider}")
