"""
批量导出执行器 - 按嘉宾顺序执行个性化并打包

状态机：idle -> running -> {completed | cancelled | failed}

职责：
1. 开始时捕获一次快照，结束时无条件恢复编辑器
2. 严格顺序处理嘉宾（上一位入包后下一位才开始）
3. 单个嘉宾失败只记录，不中断批量；打包失败则整个任务失败
4. 更新任务进度（(i+1)/total 单调递增），节流持久化
5. 每位嘉宾开始前检查取消令牌

测试要点：
- test_export_all_entries: N位嘉宾 -> N个条目
- test_guest_failure_isolation: 单个嘉宾失败不影响其它嘉宾
- test_cancel_stops_before_next_guest: 取消
- test_editor_restored: 编辑器恢复
- test_progress_monotonic: 进度单调
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Sequence

from ..config import RuntimeConfig, get_config
from ..editor import EditorCanvas
from ..interfaces import ArchiveError, CancellationError, GuestRenderError
from ..models import (
    DocumentSnapshot,
    ExportJob,
    ExportResult,
    Guest,
    GuestOutcome,
    JobType,
    OutcomeStatus,
)
from .cancellation import CancelToken
from .job_manager import JobManager
from .packager import ArchivePackager
from .personalize import Personalizer
from .stages import EXPORT_STAGES, PipelineStage, StageEnum

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class JobRunner:
    """顺序任务的公共部分：任务创建、阶段切换、进度、取消收尾"""

    stages: dict[str, PipelineStage] = EXPORT_STAGES

    def __init__(
        self,
        personalizer: Personalizer,
        config: RuntimeConfig | None = None,
        job_manager: JobManager | None = None,
    ):
        self.config = config or get_config()
        self.personalizer = personalizer
        self.job_manager = job_manager
        self._last_progress_write = 0.0
        self._progress_interval_sec = self.config.export.progress_interval_sec

    def _create_job(
        self,
        job_type: JobType,
        guests: Sequence[Guest],
        title: str,
        template_id: str | None,
    ) -> ExportJob:
        guest_ids = [g.id for g in guests]
        if self.job_manager:
            return self.job_manager.create_job(
                job_type.value, template_id=template_id, title=title, guest_ids=guest_ids
            )
        return ExportJob(
            job_id=str(uuid.uuid4()),
            job_type=job_type,
            template_id=template_id,
            title=title,
            guest_ids=guest_ids,
        )

    def _resolve_token(self, job: ExportJob, cancel_token: CancelToken | None) -> CancelToken:
        if cancel_token is not None:
            return cancel_token
        if self.job_manager:
            return self.job_manager.token_for(job.job_id)
        return CancelToken()

    @staticmethod
    def _as_canvas(source: EditorCanvas | DocumentSnapshot) -> EditorCanvas:
        if isinstance(source, EditorCanvas):
            return source
        return EditorCanvas(source.clone())

    def _enter_stage(self, job: ExportJob, stage: StageEnum) -> None:
        job.progress.stage = stage.value
        job.progress.percent = self.stages[stage.value].progress_start
        logger.info(f"[{job.job_id}] 开始阶段: {stage.value}")
        self._update_progress(job, message=f"开始阶段: {stage.value}", force=True)

    def _report(
        self,
        job: ExportJob,
        stage: StageEnum,
        done: int,
        total: int,
        on_progress: ProgressCallback | None,
    ) -> None:
        fraction = done / total if total else 1.0
        job.progress.fraction = fraction
        job.progress.percent = self.stages[stage.value].percent_at(fraction)
        self._update_progress(job, message=f"{stage.value} ({done}/{total})")
        if on_progress:
            on_progress(fraction)

    def _skip_remaining(self, job: ExportJob, guests: Sequence[Guest], reason: str) -> None:
        """取消后未处理的嘉宾计为 skipped"""
        for guest in guests[len(job.outcomes):]:
            job.record_outcome(
                GuestOutcome(
                    guest_id=guest.id,
                    guest_name=guest.name,
                    status=OutcomeStatus.SKIPPED,
                    error=reason,
                )
            )

    def _update_progress(
        self,
        job: ExportJob,
        *,
        message: str | None = None,
        current_guest: str | None = None,
        force: bool = False,
    ) -> None:
        if message is not None:
            job.progress.message = message
        if current_guest is not None:
            job.progress.current_guest = current_guest
        if self.job_manager is None:
            return
        now = time.time()
        if force or (now - self._last_progress_write) >= self._progress_interval_sec:
            self.job_manager.update_job(job)
            self._last_progress_write = now


class BatchExporter(JobRunner):
    """批量导出执行器"""

    stages = EXPORT_STAGES

    async def export_all(
        self,
        source: EditorCanvas | DocumentSnapshot,
        guests: Sequence[Guest],
        *,
        title: str = "invitation",
        template_id: str | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
        job: ExportJob | None = None,
    ) -> ExportResult:
        """
        为所有嘉宾生成邀请函并打包

        Returns:
            ExportResult（completed 时带压缩包字节）

        Raises:
            DocumentError: 编辑器中没有文档
            ArchiveError: 打包失败（任务标记为 failed，编辑器仍会恢复）
        """
        canvas = self._as_canvas(source)
        guests = list(guests)
        job = job or self._create_job(JobType.BULK_DOWNLOAD, guests, title, template_id)
        token = self._resolve_token(job, cancel_token)

        job.mark_running(StageEnum.CAPTURE_SNAPSHOT.value)
        self._update_progress(job, message="任务开始", force=True)

        packager = ArchivePackager(title, self.config)
        archive: bytes | None = None
        try:
            with canvas.export_session() as snapshot:
                self._enter_stage(job, StageEnum.PERSONALIZE)
                total = len(guests)
                for i, guest in enumerate(guests):
                    token.raise_if_cancelled()
                    self._update_progress(job, current_guest=guest.name)

                    outcome = await self._export_guest(job, snapshot, guest, packager)
                    job.record_outcome(outcome)
                    self._report(job, StageEnum.PERSONALIZE, i + 1, total, on_progress)

                self._enter_stage(job, StageEnum.PACKAGE_ARCHIVE)
                archive = await packager.finalize(job)
                self._enter_stage(job, StageEnum.RESTORE_EDITOR)

            job.mark_completed()
            summary = job.summary()
            logger.info(
                f"[{job.job_id}] 批量导出完成: 成功 {summary.sent} / 失败 {summary.failed} / 共 {summary.total}"
            )

        except CancellationError as e:
            packager.discard()
            self._skip_remaining(job, guests, "cancelled")
            job.mark_cancelled()
            logger.info(f"[{job.job_id}] 批量导出已取消: {e}")

        except ArchiveError as e:
            packager.discard()
            logger.exception(f"[{job.job_id}] 打包失败")
            job.mark_failed(str(e))
            self._update_progress(job, message=f"任务失败: {e}", force=True)
            raise

        except Exception as e:
            packager.discard()
            logger.exception(f"[{job.job_id}] 批量导出执行失败")
            job.mark_failed(str(e))
            self._update_progress(job, message=f"任务失败: {e}", force=True)
            raise

        self._update_progress(job, message=f"任务结束: {job.status.value}", force=True)
        return ExportResult.from_job(job, archive)

    async def _export_guest(
        self,
        job: ExportJob,
        snapshot: DocumentSnapshot,
        guest: Guest,
        packager: ArchivePackager,
    ) -> GuestOutcome:
        """单个嘉宾：渲染失败记录后返回；写包失败向上抛出"""
        try:
            bitmap = await self.personalizer.render_guest(snapshot, guest)
        except GuestRenderError as e:
            logger.warning(f"[{job.job_id}] 嘉宾渲染失败，跳过: {e}")
            return GuestOutcome(
                guest_id=guest.id,
                guest_name=guest.name,
                status=OutcomeStatus.FAILED,
                error=e.message,
            )

        entry = packager.add_entry(packager.entry_name_for(guest), bitmap.data)
        return GuestOutcome(
            guest_id=guest.id,
            guest_name=guest.name,
            status=OutcomeStatus.SUCCESS,
            entry_name=entry,
            flags=list(bitmap.flags),
        )
