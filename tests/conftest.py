"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(sample_document, ana):
        pending = PlaceholderSubstitutor().substitute(sample_document, ana)
"""

from __future__ import annotations

import asyncio
import tempfile
from io import BytesIO
from pathlib import Path
from typing import Callable, Generator

import httpx
import pytest
from PIL import Image

from invitecanvas.config import RuntimeConfig
from invitecanvas.config.runtime_config import (
    ExportConfig,
    QRServiceConfig,
    TimeoutConfig,
)
from invitecanvas.editor import EditorCanvas
from invitecanvas.interfaces import AssetResolutionError, IQRService
from invitecanvas.models import DocumentSnapshot, Guest, QRImage
from invitecanvas.pipeline import Personalizer
from invitecanvas.render import (
    AssetResolver,
    ImageLoader,
    OffscreenRenderer,
    PlaceholderSubstitutor,
    encode_data_url,
)


def make_png(width: int = 20, height: int = 20, color=(0, 128, 0)) -> bytes:
    """生成纯色PNG"""
    out = BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()


class FakeQRService(IQRService):
    """
    可控二维码服务

    - fail_for: 这些payload抛 AssetResolutionError
    - crash_for: 这些payload抛 RuntimeError（非资源类错误）
    - delays: payload -> 延迟秒数
    """

    def __init__(
        self,
        size: int = 40,
        fail_for: set[str] | None = None,
        crash_for: set[str] | None = None,
        delays: dict[str, float] | None = None,
    ):
        self.size = size
        self.fail_for = fail_for or set()
        self.crash_for = crash_for or set()
        self.delays = delays or {}
        self.payloads: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, payload: str) -> QRImage:
        self.payloads.append(payload)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(payload, 0))
            if payload in self.fail_for:
                raise AssetResolutionError(f"qr service down: {payload}")
            if payload in self.crash_for:
                raise RuntimeError(f"unexpected: {payload}")
            data = make_png(self.size, self.size, (0, 0, 0))
            return QRImage(src=f"https://qr.test/?data={payload}", data=data, payload=payload)
        finally:
            self.in_flight -= 1


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def runtime_config(temp_dir: Path) -> RuntimeConfig:
    """运行期配置（存储目录指向临时目录，二维码本地生成）"""
    return RuntimeConfig(
        storage_dir=temp_dir / "storage",
        qr_service=QRServiceConfig(provider="local", size=40),
        timeouts=TimeoutConfig(asset_fetch_sec=5, archive_finalize_sec=10),
        export=ExportConfig(progress_interval_sec=0),
    )


# ============================================================================
# 文档与嘉宾 Fixtures
# ============================================================================

@pytest.fixture
def static_png() -> bytes:
    return make_png(20, 20, (0, 128, 0))


@pytest.fixture
def sample_document(static_png: bytes) -> DocumentSnapshot:
    """一个文本 + 一个动态二维码 + 一个形状"""
    return DocumentSnapshot.from_json(
        {
            "version": "5.3.0",
            "width": 300,
            "height": 200,
            "background": "#ffffff",
            "objects": [
                {
                    "type": "textbox",
                    "left": 10,
                    "top": 10,
                    "width": 200,
                    "text": "Hello {guest_name}!",
                    "fontSize": 20,
                    "fill": "#333333",
                },
                {
                    "type": "image",
                    "left": 200,
                    "top": 100,
                    "width": 20,
                    "height": 20,
                    "scaleX": 1,
                    "scaleY": 1,
                    "angle": 0,
                    "src": encode_data_url(static_png),
                    "qrTemplate": "https://rsvp/{guest_name}",
                },
                {
                    "type": "rect",
                    "left": 0,
                    "top": 190,
                    "width": 300,
                    "height": 10,
                    "fill": "#ff0000",
                    "stroke": None,
                },
            ],
        }
    )


@pytest.fixture
def ana() -> Guest:
    return Guest(id="g1", name="Ana Silva", email="ana@example.com")


@pytest.fixture
def guests(ana: Guest) -> list[Guest]:
    return [
        ana,
        Guest(id="g2", name="Bob", email="bob@example.com"),
        Guest(id="g3", name="Chloé Martin", email="chloe@example.com"),
    ]


@pytest.fixture
def editor(sample_document: DocumentSnapshot) -> EditorCanvas:
    return EditorCanvas(sample_document.clone())


# ============================================================================
# 渲染链路 Fixtures
# ============================================================================

@pytest.fixture
def mock_transport_factory() -> Callable[..., httpx.AsyncClient]:
    """按 url -> (状态码, 内容) 构造带 MockTransport 的客户端"""

    def _factory(routes: dict[str, tuple[int, bytes]]) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            status, content = routes.get(str(request.url), (404, b"not found"))
            return httpx.Response(status, content=content)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _factory


@pytest.fixture
def loader(runtime_config: RuntimeConfig, mock_transport_factory) -> ImageLoader:
    return ImageLoader(mock_transport_factory({}), runtime_config)


@pytest.fixture
def fake_qr() -> FakeQRService:
    return FakeQRService()


@pytest.fixture
def make_personalizer(runtime_config: RuntimeConfig, loader: ImageLoader):
    def _make(qr_service: IQRService) -> Personalizer:
        return Personalizer(
            PlaceholderSubstitutor(),
            AssetResolver(loader, qr_service, runtime_config),
            OffscreenRenderer(loader, runtime_config),
        )

    return _make


@pytest.fixture
def personalizer(make_personalizer, fake_qr: FakeQRService) -> Personalizer:
    return make_personalizer(fake_qr)
