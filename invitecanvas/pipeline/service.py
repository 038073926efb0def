"""
流水线门面 - 暴露给编辑器界面的入口

入口：
- substitute_preview(guest) -> RenderOutcome
- render_for_send(guest) -> RenderOutcome（成功时 .bitmap 为PNG位图）
- export_all(guests, on_progress, cancel_token) -> ExportResult
- send_all(guests, ...) -> ExportResult
- open_preview(guests) -> PreviewController

预期内的失败（单个资源/单个嘉宾）以类型化结果返回；
只有编程错误（缺少源文档等）和打包失败会抛出。

使用方式：
    async with InvitationPipeline.for_template(template) as pipeline:
        result = await pipeline.export_all(guests)
"""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from ..config import RuntimeConfig, get_config
from ..editor import EditorCanvas
from ..interfaces import IEmailTransport, IQRService, IRecipientStore
from ..models import ExportResult, Guest, InvitationTemplate, RenderOutcome
from ..render import (
    AssetResolver,
    ImageLoader,
    OffscreenRenderer,
    PlaceholderSubstitutor,
    build_qr_service,
)
from .cancellation import CancelToken
from .executor import BatchExporter, ProgressCallback
from .job_manager import JobManager
from .personalize import Personalizer
from .preview import PreviewController
from .sender import InvitationSender

logger = logging.getLogger(__name__)


class InvitationPipeline:
    """个性化与导出流水线"""

    def __init__(
        self,
        canvas: EditorCanvas,
        template: InvitationTemplate | None = None,
        *,
        config: RuntimeConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        qr_service: IQRService | None = None,
        job_manager: JobManager | None = None,
        recipient_store: IRecipientStore | None = None,
    ):
        self.config = config or get_config()
        self.canvas = canvas
        self.template = template or InvitationTemplate(id="local")
        self.job_manager = job_manager
        self.recipient_store = recipient_store

        self.loader = ImageLoader(http_client, self.config)
        self.qr_service = qr_service or build_qr_service(self.loader, self.config)
        self.personalizer = Personalizer(
            PlaceholderSubstitutor(),
            AssetResolver(self.loader, self.qr_service, self.config),
            OffscreenRenderer(self.loader, self.config),
        )
        self.exporter = BatchExporter(self.personalizer, self.config, job_manager)
        self.preview = PreviewController(self.personalizer, canvas)

    @classmethod
    def for_template(cls, template: InvitationTemplate, **kwargs) -> InvitationPipeline:
        """以模板记录中的文档打开一个编辑器画布"""
        canvas = EditorCanvas(template.editor_data.clone())
        return cls(canvas, template, **kwargs)

    async def substitute_preview(self, guest: Guest) -> RenderOutcome:
        """单嘉宾预览（一次性，不经过预览控制器）"""
        return await self.personalizer.outcome(self.canvas.snapshot(), guest)

    async def render_for_send(self, guest: Guest) -> RenderOutcome:
        """为发送渲染单个嘉宾"""
        return await self.personalizer.outcome(self.canvas.snapshot(), guest)

    async def export_all(
        self,
        guests: Sequence[Guest],
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> ExportResult:
        return await self.exporter.export_all(
            self.canvas,
            guests,
            title=self.template.title,
            template_id=self.template.id,
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    async def send_all(
        self,
        guests: Sequence[Guest],
        transport: IEmailTransport,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> ExportResult:
        sender = InvitationSender(
            self.personalizer,
            transport,
            store=self.recipient_store,
            config=self.config,
            job_manager=self.job_manager,
        )
        return await sender.send_all(
            self.canvas,
            guests,
            self.template,
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    def open_preview(self, guests: Sequence[Guest], index: int = 0) -> PreviewController:
        self.preview.open(guests, index)
        return self.preview

    async def aclose(self) -> None:
        await self.preview.close()
        await self.loader.aclose()

    async def __aenter__(self) -> InvitationPipeline:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
