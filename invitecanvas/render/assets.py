"""
资源解析器 - 异步加载/重建网络图片（二维码、背景图）

职责：
1. ImageLoader: data URL / http(s) / 本地路径 三种来源，统一探测解码
2. AssetResolver: 单文档内所有二维码并发重建，等待全部结束后才返回
3. 单个资源失败时保留原图片并记录标记，不抛出

依赖：
- httpx: 异步HTTP
- Pillow: 解码探测

测试要点：
- test_qr_regeneration_concurrent: 并发重建
- test_qr_failure_keeps_previous_image: 失败回退
- test_background_resolved: 背景图在返回前加载完成
- test_loader_data_url / test_loader_http: 加载来源
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from collections import OrderedDict
from io import BytesIO
from pathlib import Path
from urllib.parse import unquote_to_bytes

import httpx
from PIL import Image

from ..config import RuntimeConfig, get_config
from ..interfaces import AssetResolutionError, IQRService
from ..models import ImageObject, PendingDocument, ResolvedDocument

logger = logging.getLogger(__name__)


def probe_image(data: bytes) -> tuple[int, int]:
    """完整解码一次，返回像素尺寸；无法解码时抛 AssetResolutionError"""
    try:
        with Image.open(BytesIO(data)) as im:
            im.load()
            return im.size
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise AssetResolutionError(f"图片无法解码: {e}") from e


def decode_data_url(src: str) -> bytes:
    """解析 data:[mime];base64,xxx"""
    header, _, payload = src.partition(",")
    if not payload:
        raise AssetResolutionError("data URL 缺少内容")
    try:
        if header.endswith(";base64"):
            return base64.b64decode(payload, validate=False)
        return unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as e:
        raise AssetResolutionError(f"data URL 解码失败: {e}") from e


def encode_data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64," + base64.b64encode(data).decode("ascii")


class ImageLoader:
    """
    图片加载器

    httpx.AsyncClient 可由调用方注入（测试用 MockTransport）；
    未注入时惰性创建并由 aclose() 释放。
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: RuntimeConfig | None = None,
    ):
        self.config = config or get_config()
        self._client = client
        self._owns_client = client is None
        self._cache: OrderedDict[str, bytes] = OrderedDict()
        self._cache_size = self.config.render.image_cache_size

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            http = self.config.http
            self._client = httpx.AsyncClient(
                timeout=http.timeout_sec,
                follow_redirects=True,
                headers={"User-Agent": http.user_agent},
                limits=httpx.Limits(max_connections=http.max_connections),
            )
        return self._client

    async def fetch(self, src: str, *, use_cache: bool = True) -> bytes:
        """加载图片字节并验证可解码"""
        if use_cache and src in self._cache:
            self._cache.move_to_end(src)
            return self._cache[src]

        data = await self._fetch_raw(src)
        await asyncio.to_thread(probe_image, data)

        if use_cache and self._cache_size > 0:
            self._cache[src] = data
            while len(self._cache) > self._cache_size:
                self._cache.popitem(last=False)
        return data

    async def _fetch_raw(self, src: str) -> bytes:
        if not src:
            raise AssetResolutionError("图片来源为空")

        if src.startswith("data:"):
            return decode_data_url(src)

        if src.startswith(("http://", "https://")):
            try:
                response = await self._get_client().get(src)
                response.raise_for_status()
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise AssetResolutionError(f"图片下载失败 {src}: {e}") from e
            return response.content

        path = Path(src[len("file://"):] if src.startswith("file://") else src)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except (OSError, ValueError) as e:
            raise AssetResolutionError(f"图片文件读取失败 {path}: {e}") from e

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._cache.clear()


class AssetResolver:
    """资源解析器实现"""

    def __init__(
        self,
        loader: ImageLoader,
        qr_service: IQRService,
        config: RuntimeConfig | None = None,
    ):
        self.config = config or get_config()
        self.loader = loader
        self.qr_service = qr_service
        self.timeout = self.config.timeouts.asset_fetch_sec

    async def resolve(self, pending: PendingDocument) -> ResolvedDocument:
        """并发重建所有动态二维码 + 背景图，全部结束后返回"""
        document = pending.document
        tasks = [self._regenerate_qr(pending, index) for index in pending.qr_indices]
        if document.background_image and document.background_image.image_data is None:
            tasks.append(self._load_background(pending))

        results = await asyncio.gather(*tasks, return_exceptions=True)

        flags: list[str] = []
        for result in results:
            if isinstance(result, BaseException):
                # 非资源类异常属于程序错误，等全部结束后再抛出
                raise result
            if result:
                flags.append(result)

        return ResolvedDocument(document=document, guest=pending.guest, flags=flags)

    async def _regenerate_qr(self, pending: PendingDocument, index: int) -> str | None:
        """重建单个二维码；失败返回回退标记"""
        document = pending.document
        obj = document.objects[index]
        if not isinstance(obj, ImageObject) or obj.qr_payload is None:
            raise TypeError(f"下标 {index} 不是待重建的二维码对象")

        payload = obj.qr_payload
        try:
            qr = await asyncio.wait_for(self.qr_service.generate(payload), self.timeout)
            width, height = await asyncio.to_thread(probe_image, qr.data)
        except (AssetResolutionError, asyncio.TimeoutError) as e:
            logger.warning(
                f"二维码重建失败，保留原图片: guest={pending.guest.name} index={index}: {e}"
            )
            obj.qr_payload = None
            return f"qr_fallback:{index}"

        # 原下标原位替换，几何属性与模板保持不变
        document.objects[index] = obj.model_copy(
            update={
                "src": qr.src,
                "image_data": qr.data,
                "width": width,
                "height": height,
            }
        )
        logger.debug(f"二维码已重建: guest={pending.guest.name} payload={payload}")
        return None

    async def _load_background(self, pending: PendingDocument) -> str | None:
        background = pending.document.background_image
        try:
            background.image_data = await asyncio.wait_for(
                self.loader.fetch(background.src), self.timeout
            )
        except (AssetResolutionError, asyncio.TimeoutError) as e:
            logger.warning(f"背景图加载失败: guest={pending.guest.name}: {e}")
            return "background_unavailable"
        return None
