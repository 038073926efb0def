"""
编辑器画布与裁剪工具单元测试
"""

import pytest

from invitecanvas.editor import CropState, CropTool, EditorCanvas
from invitecanvas.interfaces import CropStateError, DocumentError
from invitecanvas.models import DocumentSnapshot, ShapeObject, TextObject


@pytest.fixture
def canvas() -> EditorCanvas:
    return EditorCanvas(
        DocumentSnapshot(
            width=600,
            height=400,
            background="#fafafa",
            objects=[
                TextObject(text="Hi", left=100, top=80),
                ShapeObject(type="rect", left=300, top=200, width=50, height=50),
            ],
        )
    )


class TestEditorCanvas:
    """编辑器画布测试"""

    def test_snapshot_is_copy(self, canvas: EditorCanvas):
        snapshot = canvas.snapshot()
        snapshot.objects[0].text = "changed"
        assert canvas.objects[0].text == "Hi"

    def test_snapshot_without_document(self):
        with pytest.raises(DocumentError):
            EditorCanvas().snapshot()

    def test_export_session_restores(self, canvas: EditorCanvas):
        before = canvas.fingerprint()
        with canvas.export_session() as snapshot:
            canvas.objects[0].text = "mutated during export"
            canvas.set_dimensions(10, 10)
            assert snapshot.objects[0].text == "Hi"
        assert canvas.fingerprint() == before

    def test_export_session_restores_on_error(self, canvas: EditorCanvas):
        before = canvas.fingerprint()
        with pytest.raises(RuntimeError):
            with canvas.export_session():
                canvas.remove_object(0)
                raise RuntimeError("boom")
        assert canvas.fingerprint() == before
        assert len(canvas.objects) == 2

    def test_load_json(self):
        canvas = EditorCanvas.from_json('{"width": 320, "height": 240, "objects": []}')
        assert (canvas.width, canvas.height) == (320, 240)
        canvas.load({"width": 100, "height": 50})
        assert canvas.width == 100

    def test_blank_uses_canvas_defaults(self, runtime_config):
        """测试新建空白画布取配置中的默认尺寸与背景"""
        runtime_config.canvas.default_width = 800
        runtime_config.canvas.default_height = 1120
        runtime_config.canvas.background = "#fdf6e3"
        canvas = EditorCanvas.blank(runtime_config)
        assert (canvas.width, canvas.height) == (800, 1120)
        assert canvas.document.background == "#fdf6e3"
        assert canvas.objects == []

    def test_invalid_dimensions(self, canvas: EditorCanvas):
        with pytest.raises(ValueError):
            canvas.set_dimensions(0, 100)


class TestCropTool:
    """裁剪工具测试"""

    def test_begin_marquee_defaults(self, canvas: EditorCanvas):
        """测试默认选框（10% 偏移、80% 大小）与对象锁定"""
        tool = CropTool(canvas)
        marquee = tool.begin()
        assert tool.state == CropState.SELECTING
        assert (marquee.left, marquee.top) == (60, 40)
        assert (marquee.width, marquee.height) == (480, 320)
        assert all(not o.selectable and not o.evented for o in canvas.objects)

    def test_apply_shifts_objects(self, canvas: EditorCanvas):
        """测试应用后对象平移、画布尺寸变化"""
        tool = CropTool(canvas)
        tool.begin()
        tool.move(50, 20)
        tool.resize(width=200, height=100, scale_x=2)

        assert tool.apply() == (400, 100)
        assert tool.state == CropState.APPLIED
        assert (canvas.width, canvas.height) == (400, 100)
        assert canvas.document.background == "#fafafa"
        text, rect = canvas.objects
        assert (text.left, text.top) == (50, 60)
        assert (rect.left, rect.top) == (250, 180)
        assert all(o.selectable and o.evented for o in canvas.objects)

    def test_cancel_leaves_objects(self, canvas: EditorCanvas):
        """测试取消不改变对象"""
        before = canvas.fingerprint()
        tool = CropTool(canvas)
        tool.begin()
        tool.move(5, 5)
        tool.cancel()
        assert tool.state == CropState.CANCELLED
        assert tool.marquee is None
        assert canvas.fingerprint() == before

    def test_locked_object_stays_locked(self, canvas: EditorCanvas):
        """测试用户锁定的对象在取消/应用后仍保持锁定"""
        canvas.objects[1].selectable = False
        canvas.objects[1].evented = False
        before = canvas.fingerprint()

        tool = CropTool(canvas)
        tool.begin()
        tool.cancel()
        assert canvas.objects[1].selectable is False
        assert canvas.objects[1].evented is False
        assert canvas.objects[0].selectable is True
        assert canvas.fingerprint() == before

        tool.begin()
        tool.apply()
        assert canvas.objects[1].selectable is False
        assert canvas.objects[0].evented is True

    def test_apply_failure_restores(self, canvas: EditorCanvas):
        before = canvas.fingerprint()
        tool = CropTool(canvas)
        tool.begin()
        tool.resize(width=0)
        with pytest.raises(ValueError):
            tool.apply()
        assert tool.state == CropState.CANCELLED
        assert canvas.fingerprint() == before

    def test_invalid_transition(self, canvas: EditorCanvas):
        """测试非法状态转换"""
        tool = CropTool(canvas)
        with pytest.raises(CropStateError):
            tool.apply()
        with pytest.raises(CropStateError):
            tool.cancel()
        tool.begin()
        with pytest.raises(CropStateError):
            tool.begin()
        tool.cancel()
        with pytest.raises(CropStateError):
            tool.move(1, 1)

    def test_restart_after_finish(self, canvas: EditorCanvas):
        tool = CropTool(canvas)
        tool.begin()
        tool.cancel()
        tool.begin()
        assert tool.state == CropState.SELECTING
