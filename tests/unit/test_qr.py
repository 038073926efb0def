"""
二维码服务单元测试
"""

import asyncio
from io import BytesIO

import pytest
from conftest import make_png
from PIL import Image

from invitecanvas.config.runtime_config import QRServiceConfig
from invitecanvas.interfaces import AssetResolutionError
from invitecanvas.render import (
    ImageLoader,
    LocalQRService,
    RemoteQRService,
    build_qr_service,
    decode_data_url,
)


class TestRemoteQRService:
    """远程二维码服务测试"""

    def test_remote_url_encoding(self, runtime_config, loader):
        """测试payload URL编码"""
        runtime_config.qr_service = QRServiceConfig(provider="remote", size=200)
        service = RemoteQRService(loader, runtime_config)
        assert service.build_url("https://rsvp/Ana Silva") == (
            "https://api.qrserver.com/v1/create-qr-code/"
            "?data=https%3A%2F%2Frsvp%2FAna%20Silva&size=200x200"
        )

    def test_generate(self, runtime_config, mock_transport_factory):
        png = make_png(200, 200, (0, 0, 0))
        runtime_config.qr_service = QRServiceConfig(provider="remote", size=200)
        url = "https://api.qrserver.com/v1/create-qr-code/?data=hello&size=200x200"
        loader = ImageLoader(mock_transport_factory({url: (200, png)}), runtime_config)
        qr = asyncio.run(RemoteQRService(loader, runtime_config).generate("hello"))
        assert qr.data == png
        assert qr.src == url
        assert qr.payload == "hello"

    def test_remote_failure_raises_asset_error(self, runtime_config, loader):
        """测试失败转换为 AssetResolutionError"""
        service = RemoteQRService(loader, runtime_config)
        with pytest.raises(AssetResolutionError):
            asyncio.run(service.generate("hello"))
        with pytest.raises(AssetResolutionError):
            asyncio.run(service.generate(""))


class TestLocalQRService:
    """本地二维码生成测试"""

    def test_local_qr_size(self, runtime_config):
        """测试本地生成尺寸"""
        qr = asyncio.run(LocalQRService(runtime_config).generate("https://rsvp/Ana Silva"))
        with Image.open(BytesIO(qr.data)) as im:
            assert im.size == (40, 40)
        assert decode_data_url(qr.src) == qr.data

    def test_deterministic(self, runtime_config):
        service = LocalQRService(runtime_config)
        assert service.render_png("abc") == service.render_png("abc")
        assert service.render_png("abc") != service.render_png("abd")


class TestBuildQRService:
    def test_select_provider(self, runtime_config, loader):
        assert isinstance(build_qr_service(loader, runtime_config), LocalQRService)
        runtime_config.qr_service.provider = "remote"
        assert isinstance(build_qr_service(loader, runtime_config), RemoteQRService)

    def test_unknown_provider(self, runtime_config, loader):
        runtime_config.qr_service.provider = "carrier-pigeon"
        with pytest.raises(ValueError):
            build_qr_service(loader, runtime_config)
