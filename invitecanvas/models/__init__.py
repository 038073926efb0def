"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- DocumentSnapshot: 画布文档快照（图形对象有序列表）
- Guest: 嘉宾（只读输入）
- ExportJob: 导出任务状态与生命周期
- ResolvedDocument / Bitmap / RenderOutcome: 渲染链路中间产物
"""

from .document import (
    PLACEHOLDER,
    BackgroundImage,
    CanvasObject,
    DocumentSnapshot,
    GraphicObject,
    ImageObject,
    ShapeObject,
    TextObject,
)
from .guest import Guest, RsvpStatus
from .job import (
    ExportJob,
    ExportResult,
    GuestOutcome,
    JobArtifacts,
    JobProgress,
    JobStatus,
    JobSummary,
    JobType,
    OutcomeStatus,
)
from .render import (
    Bitmap,
    EmailHandoff,
    PendingDocument,
    QRImage,
    RenderOutcome,
    ResolvedDocument,
)
from .template import InvitationTemplate

__all__ = [
    "PLACEHOLDER",
    "BackgroundImage",
    "CanvasObject",
    "DocumentSnapshot",
    "GraphicObject",
    "ImageObject",
    "ShapeObject",
    "TextObject",
    "Guest",
    "RsvpStatus",
    "InvitationTemplate",
    "ExportJob",
    "ExportResult",
    "GuestOutcome",
    "JobArtifacts",
    "JobProgress",
    "JobStatus",
    "JobSummary",
    "JobType",
    "OutcomeStatus",
    "Bitmap",
    "EmailHandoff",
    "PendingDocument",
    "QRImage",
    "RenderOutcome",
    "ResolvedDocument",
]
