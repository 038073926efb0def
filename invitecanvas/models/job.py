"""
任务模型 - 导出任务状态与生命周期

状态机：idle -> running -> {completed | cancelled | failed}
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

# 资源回退标记：qr_fallback:<下标> / background_unavailable / image:<下标>_unavailable
ASSET_FLAG_PREFIX = "qr_fallback:"
ASSET_FLAG_SUFFIX = "_unavailable"


class JobStatus(str, Enum):
    """任务状态枚举"""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.CANCELLED, JobStatus.FAILED)


class JobType(str, Enum):
    """任务类型"""
    BULK_DOWNLOAD = "bulk_download"  # 批量下载压缩包
    SEND = "send"                    # 逐个渲染并交给邮件发送
    PREVIEW = "preview"              # 单嘉宾预览


class OutcomeStatus(str, Enum):
    """单个嘉宾的结果"""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class GuestOutcome(BaseModel):
    """单个嘉宾处理结果"""
    guest_id: str
    guest_name: str
    status: OutcomeStatus
    entry_name: str | None = None
    message_id: str | None = None
    error: str | None = None
    flags: list[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """成功但有资源回退（二维码/图片未能个性化）"""
        return any(f.startswith(ASSET_FLAG_PREFIX) or f.endswith(ASSET_FLAG_SUFFIX) for f in self.flags)


class JobArtifacts(BaseModel):
    """任务产物"""
    archive_name: str | None = None
    archive_path: Path | None = None
    entry_count: int = 0


class JobProgress(BaseModel):
    """任务进度"""
    stage: str = "INIT"
    fraction: float = 0.0
    percent: int = 0
    current_guest: str | None = None
    message: str = ""


class JobSummary(BaseModel):
    """对用户可见的汇总（即使部分失败也总是给出）"""
    total: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    degraded: int = 0  # sent 中带资源回退的嘉宾数


class ExportJob(BaseModel):
    """导出任务实体"""
    job_id: str = Field(..., description="UUID")
    job_type: JobType
    template_id: str | None = None
    title: str = "invitation"

    # 输入
    guest_ids: list[str] = Field(default_factory=list)

    # 状态
    status: JobStatus = JobStatus.IDLE
    progress: JobProgress = Field(default_factory=JobProgress)

    # 产物
    artifacts: JobArtifacts = Field(default_factory=JobArtifacts)

    # 结果
    outcomes: list[GuestOutcome] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list, description="告警标记")
    errors: list[str] = Field(default_factory=list, description="错误信息")

    # 时间戳
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    model_config = {"arbitrary_types_allowed": True}

    def mark_running(self, stage: str = "CAPTURE_SNAPSHOT") -> None:
        """标记为运行中"""
        self.status = JobStatus.RUNNING
        self.started_at = datetime.now()
        self.progress.stage = stage

    def mark_completed(self) -> None:
        """标记为完成（允许部分嘉宾失败）"""
        self.status = JobStatus.COMPLETED
        self.finished_at = datetime.now()
        self.progress.fraction = 1.0
        self.progress.percent = 100

    def mark_cancelled(self) -> None:
        """标记为已取消"""
        self.status = JobStatus.CANCELLED
        self.finished_at = datetime.now()

    def mark_failed(self, error: str) -> None:
        """标记为失败"""
        self.status = JobStatus.FAILED
        self.finished_at = datetime.now()
        self.errors.append(error)

    def add_flag(self, flag: str) -> None:
        """添加告警标记（不中断）"""
        if flag not in self.flags:
            self.flags.append(flag)

    def record_outcome(self, outcome: GuestOutcome) -> None:
        """记录单个嘉宾结果"""
        self.outcomes.append(outcome)
        for flag in outcome.flags:
            self.add_flag(f"{outcome.guest_name}:{flag}")

    def summary(self) -> JobSummary:
        """按结果统计 sent/failed/skipped"""
        counts = {status: 0 for status in OutcomeStatus}
        for outcome in self.outcomes:
            counts[outcome.status] += 1
        return JobSummary(
            total=len(self.guest_ids),
            sent=counts[OutcomeStatus.SUCCESS],
            failed=counts[OutcomeStatus.FAILED],
            skipped=counts[OutcomeStatus.SKIPPED],
            degraded=sum(
                1 for o in self.outcomes if o.status == OutcomeStatus.SUCCESS and o.degraded
            ),
        )


class ExportResult(BaseModel):
    """返回给界面的类型化结果"""
    job_id: str
    job_type: JobType
    status: JobStatus
    summary: JobSummary
    outcomes: list[GuestOutcome] = Field(default_factory=list)
    archive_name: str | None = None
    archive: bytes | None = Field(default=None, exclude=True, repr=False)

    @classmethod
    def from_job(
        cls,
        job: ExportJob,
        archive: bytes | None = None,
    ) -> ExportResult:
        return cls(
            job_id=job.job_id,
            job_type=job.job_type,
            status=job.status,
            summary=job.summary(),
            outcomes=list(job.outcomes),
            archive_name=job.artifacts.archive_name,
            archive=archive,
        )
