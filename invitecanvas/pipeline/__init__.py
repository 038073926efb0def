"""
流水线模块 - 个性化任务编排与执行

子模块：
- stages: 阶段定义与进度区间
- cancellation: 协作式取消令牌
- personalize: 单嘉宾链路（替换 → 解析 → 渲染）
- executor: 批量导出执行器
- sender: 邀请函发送
- preview: 实时预览控制器
- job_manager: 任务管理
- packager: 压缩包与manifest
- service: 对外门面
"""

from .cancellation import CancelToken
from .executor import BatchExporter, JobRunner
from .job_manager import JobManager
from .packager import ArchivePackager, sanitize_name
from .personalize import Personalizer
from .preview import PreviewController, PreviewState, PreviewSurface
from .sender import InvitationSender, invitation_subject
from .service import InvitationPipeline
from .stages import EXPORT_STAGES, SEND_STAGES, PipelineStage, StageEnum

__all__ = [
    "CancelToken",
    "BatchExporter",
    "JobRunner",
    "JobManager",
    "ArchivePackager",
    "sanitize_name",
    "Personalizer",
    "PreviewController",
    "PreviewState",
    "PreviewSurface",
    "InvitationSender",
    "invitation_subject",
    "InvitationPipeline",
    "EXPORT_STAGES",
    "SEND_STAGES",
    "PipelineStage",
    "StageEnum",
]
