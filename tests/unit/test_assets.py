"""
资源加载与二维码重建单元测试
"""

import asyncio

import pytest
from conftest import FakeQRService, make_png

from invitecanvas.interfaces import AssetResolutionError
from invitecanvas.models import BackgroundImage, DocumentSnapshot, ImageObject, OutcomeStatus
from invitecanvas.pipeline import BatchExporter
from invitecanvas.render import (
    AssetResolver,
    ImageLoader,
    PlaceholderSubstitutor,
    decode_data_url,
    encode_data_url,
    probe_image,
)


class TestImageLoader:
    """图片加载器测试"""

    def test_data_url(self, loader: ImageLoader, static_png: bytes):
        data = asyncio.run(loader.fetch(encode_data_url(static_png)))
        assert data == static_png

    def test_http(self, runtime_config, mock_transport_factory, static_png: bytes):
        client = mock_transport_factory({"https://cdn.test/bg.png": (200, static_png)})
        loader = ImageLoader(client, runtime_config)
        assert asyncio.run(loader.fetch("https://cdn.test/bg.png")) == static_png

    def test_http_error(self, loader: ImageLoader):
        with pytest.raises(AssetResolutionError):
            asyncio.run(loader.fetch("https://cdn.test/missing.png"))

    def test_undecodable_bytes(self, runtime_config, mock_transport_factory):
        client = mock_transport_factory({"https://cdn.test/x.png": (200, b"not an image")})
        loader = ImageLoader(client, runtime_config)
        with pytest.raises(AssetResolutionError):
            asyncio.run(loader.fetch("https://cdn.test/x.png"))

    def test_local_file(self, loader: ImageLoader, temp_dir, static_png: bytes):
        path = temp_dir / "logo.png"
        path.write_bytes(static_png)
        assert asyncio.run(loader.fetch(str(path))) == static_png
        with pytest.raises(AssetResolutionError):
            asyncio.run(loader.fetch(str(temp_dir / "nope.png")))

    def test_cache(self, runtime_config, static_png: bytes):
        import httpx

        calls = []

        def handler(request):
            calls.append(str(request.url))
            return httpx.Response(200, content=static_png)

        loader = ImageLoader(httpx.AsyncClient(transport=httpx.MockTransport(handler)), runtime_config)

        async def run():
            await loader.fetch("https://cdn.test/a.png")
            await loader.fetch("https://cdn.test/a.png")
            await loader.fetch("https://cdn.test/a.png", use_cache=False)

        asyncio.run(run())
        assert len(calls) == 2

    def test_data_url_helpers(self, static_png: bytes):
        assert decode_data_url(encode_data_url(static_png)) == static_png
        assert probe_image(static_png) == (20, 20)
        with pytest.raises(AssetResolutionError):
            decode_data_url("data:image/png;base64,")


class TestAssetResolver:
    """资源解析器测试"""

    def _pending(self, document, guest):
        return PlaceholderSubstitutor().substitute(document, guest)

    def test_qr_regenerated_in_place(self, loader, runtime_config, sample_document, ana):
        """测试二维码原位替换，几何不变"""
        qr = FakeQRService(size=40)
        resolver = AssetResolver(loader, qr, runtime_config)
        resolved = asyncio.run(resolver.resolve(self._pending(sample_document, ana)))

        obj = resolved.document.objects[1]
        original = sample_document.objects[1]
        assert qr.payloads == ["https://rsvp/Ana Silva"]
        assert obj.src == "https://qr.test/?data=https://rsvp/Ana Silva"
        assert obj.image_data is not None
        assert (obj.width, obj.height) == (40, 40)
        assert obj.geometry == original.geometry
        assert obj.qr_template == original.qr_template
        assert resolved.flags == []

    def test_no_geometry_drift_across_guests(self, loader, runtime_config, sample_document, guests):
        """测试同一快照为不同嘉宾重复解析，几何与原始一致"""
        resolver = AssetResolver(loader, FakeQRService(), runtime_config)
        before = sample_document.fingerprint()
        for guest in (guests[0], guests[1], guests[0]):
            resolved = asyncio.run(resolver.resolve(self._pending(sample_document, guest)))
            for original, obj in zip(sample_document.objects, resolved.document.objects):
                assert obj.geometry == original.geometry
        assert sample_document.fingerprint() == before

    def test_qr_regeneration_concurrent(self, loader, runtime_config, ana):
        """测试同一文档内的二维码并发重建"""
        doc = DocumentSnapshot(
            objects=[
                ImageObject(src="a", qr_template="https://rsvp/{guest_name}?seat=1"),
                ImageObject(src="b", qr_template="https://rsvp/{guest_name}?seat=2"),
            ]
        )
        qr = FakeQRService(
            delays={
                "https://rsvp/Ana Silva?seat=1": 0.05,
                "https://rsvp/Ana Silva?seat=2": 0.05,
            }
        )
        resolver = AssetResolver(loader, qr, runtime_config)
        resolved = asyncio.run(resolver.resolve(self._pending(doc, ana)))
        assert qr.max_in_flight == 2
        assert [o.qr_payload for o in resolved.document.objects] == [
            "https://rsvp/Ana Silva?seat=1",
            "https://rsvp/Ana Silva?seat=2",
        ]

    def test_qr_failure_keeps_previous_image(self, loader, runtime_config, sample_document, ana):
        """测试失败回退：保留原图片并记录标记"""
        qr = FakeQRService(fail_for={"https://rsvp/Ana Silva"})
        resolver = AssetResolver(loader, qr, runtime_config)
        resolved = asyncio.run(resolver.resolve(self._pending(sample_document, ana)))

        obj = resolved.document.objects[1]
        assert obj.src == sample_document.objects[1].src
        assert obj.image_data is None
        assert resolved.flags == ["qr_fallback:1"]

    def test_one_failure_does_not_block_others(self, loader, runtime_config, ana):
        doc = DocumentSnapshot(
            objects=[
                ImageObject(src="a", qr_template="bad/{guest_name}"),
                ImageObject(src="b", qr_template="good/{guest_name}"),
            ]
        )
        qr = FakeQRService(fail_for={"bad/Ana Silva"}, delays={"bad/Ana Silva": 0.02})
        resolver = AssetResolver(loader, qr, runtime_config)
        resolved = asyncio.run(resolver.resolve(self._pending(doc, ana)))
        assert resolved.flags == ["qr_fallback:0"]
        assert resolved.document.objects[1].image_data is not None

    def test_non_asset_error_propagates(self, loader, runtime_config, sample_document, ana):
        qr = FakeQRService(crash_for={"https://rsvp/Ana Silva"})
        resolver = AssetResolver(loader, qr, runtime_config)
        with pytest.raises(RuntimeError):
            asyncio.run(resolver.resolve(self._pending(sample_document, ana)))

    def test_background_resolved(self, runtime_config, mock_transport_factory, ana):
        """测试背景图在返回前加载完成"""
        bg = make_png(30, 30, (10, 20, 30))
        client = mock_transport_factory({"https://cdn.test/bg.png": (200, bg)})
        resolver = AssetResolver(ImageLoader(client, runtime_config), FakeQRService(), runtime_config)
        doc = DocumentSnapshot(background_image=BackgroundImage(src="https://cdn.test/bg.png"))
        resolved = asyncio.run(resolver.resolve(self._pending(doc, ana)))
        assert resolved.document.background_image.image_data == bg
        assert resolved.flags == []

    def test_background_failure_flagged(self, loader, runtime_config, ana):
        resolver = AssetResolver(loader, FakeQRService(), runtime_config)
        doc = DocumentSnapshot(background_image=BackgroundImage(src="https://cdn.test/gone.png"))
        resolved = asyncio.run(resolver.resolve(self._pending(doc, ana)))
        assert resolved.flags == ["background_unavailable"]

    def test_malformed_background_path_flagged(self, loader, runtime_config, ana):
        """测试非法本地路径（含空字节）按背景不可用处理，不使嘉宾失败"""
        resolver = AssetResolver(loader, FakeQRService(), runtime_config)
        doc = DocumentSnapshot(background_image=BackgroundImage(src="images/bg\x00.png"))
        resolved = asyncio.run(resolver.resolve(self._pending(doc, ana)))
        assert resolved.flags == ["background_unavailable"]

    def test_malformed_path_export_completes(
        self, personalizer, runtime_config, sample_document, guests
    ):
        """测试背景路径非法时批量导出仍为每位嘉宾生成条目"""
        doc = sample_document.clone()
        doc.background_image = BackgroundImage(src="images/bg\x00.png")
        result = asyncio.run(BatchExporter(personalizer, runtime_config).export_all(doc, guests))
        assert result.summary.sent == 3
        assert all(o.status == OutcomeStatus.SUCCESS for o in result.outcomes)
        assert all("background_unavailable" in o.flags for o in result.outcomes)
