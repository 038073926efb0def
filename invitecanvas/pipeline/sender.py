"""
邀请函发送 - 逐个嘉宾渲染并交给邮件发送方

职责：
1. 已发送过的嘉宾跳过
2. 其余嘉宾顺序渲染（与批量导出同一条个性化链路），生成 EmailHandoff 交给传输层
3. 发送成功后回写收件人状态为 sent；回写失败只记录，不撤销"已发送"
4. 汇总 {sent, failed, skipped, total}

测试要点：
- test_skip_already_sent: 跳过已发送
- test_transport_failure_counted: 传输失败计入 failed
- test_status_writeback_failure_not_fatal: 回写失败不影响 sent
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence

from ..config import RuntimeConfig
from ..editor import EditorCanvas
from ..interfaces import (
    CancellationError,
    GuestRenderError,
    IEmailTransport,
    IRecipientStore,
    StoreError,
)
from ..models import (
    DocumentSnapshot,
    EmailHandoff,
    ExportJob,
    ExportResult,
    Guest,
    GuestOutcome,
    InvitationTemplate,
    JobType,
    OutcomeStatus,
    RsvpStatus,
)
from .cancellation import CancelToken
from .executor import JobRunner, ProgressCallback
from .job_manager import JobManager
from .packager import sanitize_name
from .personalize import Personalizer
from .stages import SEND_STAGES, StageEnum

logger = logging.getLogger(__name__)


def invitation_subject(title: str) -> str:
    return f"{title} - You're Invited!"


class InvitationSender(JobRunner):
    """邀请函发送执行器"""

    stages = SEND_STAGES

    def __init__(
        self,
        personalizer: Personalizer,
        transport: IEmailTransport,
        store: IRecipientStore | None = None,
        config: RuntimeConfig | None = None,
        job_manager: JobManager | None = None,
    ):
        super().__init__(personalizer, config=config, job_manager=job_manager)
        self.transport = transport
        self.store = store

    async def send_all(
        self,
        source: EditorCanvas | DocumentSnapshot,
        guests: Sequence[Guest],
        template: InvitationTemplate,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
        job: ExportJob | None = None,
    ) -> ExportResult:
        """
        向所有未发送的嘉宾发送邀请函

        Raises:
            DocumentError: 编辑器中没有文档
        """
        canvas = self._as_canvas(source)
        guests = list(guests)
        job = job or self._create_job(JobType.SEND, guests, template.title, template.id)
        token = self._resolve_token(job, cancel_token)

        job.mark_running(StageEnum.CAPTURE_SNAPSHOT.value)
        self._update_progress(job, message="发送开始", force=True)

        try:
            with canvas.export_session() as snapshot:
                self._enter_stage(job, StageEnum.DELIVER)
                total = len(guests)
                for i, guest in enumerate(guests):
                    token.raise_if_cancelled()
                    self._update_progress(job, current_guest=guest.name)

                    outcome = await self._send_guest(job, snapshot, guest, template)
                    job.record_outcome(outcome)
                    self._report(job, StageEnum.DELIVER, i + 1, total, on_progress)

                self._enter_stage(job, StageEnum.RESTORE_EDITOR)

            job.mark_completed()
            summary = job.summary()
            logger.info(
                f"[{job.job_id}] 发送完成: 成功 {summary.sent} / 失败 {summary.failed} "
                f"/ 跳过 {summary.skipped} / 共 {summary.total}"
            )

        except CancellationError as e:
            self._skip_remaining(job, guests, "cancelled")
            job.mark_cancelled()
            logger.info(f"[{job.job_id}] 发送已取消: {e}")

        except Exception as e:
            logger.exception(f"[{job.job_id}] 发送任务失败")
            job.mark_failed(str(e))
            self._update_progress(job, message=f"任务失败: {e}", force=True)
            raise

        self._update_progress(job, message=f"任务结束: {job.status.value}", force=True)
        return ExportResult.from_job(job)

    async def _send_guest(
        self,
        job: ExportJob,
        snapshot: DocumentSnapshot,
        guest: Guest,
        template: InvitationTemplate,
    ) -> GuestOutcome:
        if guest.already_sent:
            logger.info(f"[{job.job_id}] 已发送过，跳过: {guest.name}")
            return GuestOutcome(
                guest_id=guest.id,
                guest_name=guest.name,
                status=OutcomeStatus.SKIPPED,
                error="already_sent",
            )

        if not guest.email:
            return GuestOutcome(
                guest_id=guest.id,
                guest_name=guest.name,
                status=OutcomeStatus.FAILED,
                error="嘉宾没有邮箱地址",
            )

        try:
            bitmap = await self.personalizer.render_guest(snapshot, guest)
        except GuestRenderError as e:
            logger.warning(f"[{job.job_id}] 嘉宾渲染失败: {e}")
            return GuestOutcome(
                guest_id=guest.id,
                guest_name=guest.name,
                status=OutcomeStatus.FAILED,
                error=e.message,
            )

        handoff = EmailHandoff(
            guest=guest,
            subject=invitation_subject(template.title),
            sender_name=template.sender_name,
            reply_to=template.reply_to_email,
            image=bitmap.data,
            attachment_name=f"{sanitize_name(guest.name, f'guest_{guest.id}')}"
            f"{self.config.export.entry_suffix}",
        )

        try:
            message_id = await self.transport.send(handoff)
        except Exception as e:
            logger.warning(f"[{job.job_id}] 邮件发送失败: {guest.name} <{guest.email}>: {e}")
            return GuestOutcome(
                guest_id=guest.id,
                guest_name=guest.name,
                status=OutcomeStatus.FAILED,
                error=str(e),
                flags=list(bitmap.flags),
            )

        flags = list(bitmap.flags)
        if self.store is not None and job.template_id:
            try:
                self.store.update_status(
                    job.template_id, guest.id, RsvpStatus.SENT, sent_at=datetime.now()
                )
            except StoreError as e:
                logger.warning(f"[{job.job_id}] 状态回写失败（邮件已发出）: {guest.name}: {e}")
                flags.append("status_writeback_failed")

        return GuestOutcome(
            guest_id=guest.id,
            guest_name=guest.name,
            status=OutcomeStatus.SUCCESS,
            message_id=message_id,
            flags=flags,
        )
