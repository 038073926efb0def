"""
任务管理器 - 任务创建/查询/更新/取消

职责：
1. 创建任务并分配ID，登记取消令牌
2. 任务状态持久化（storage_dir/jobs/<job_id>/job.json）
3. 任务查询

测试要点：
- test_create_job: 创建任务
- test_get_job_from_disk: 从磁盘加载
- test_update_job: 更新任务
- test_cancel_job: 取消任务
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from pydantic import ValidationError

from ..config import RuntimeConfig, get_config
from ..interfaces import IJobManager
from ..models import ExportJob, JobStatus, JobType
from .cancellation import CancelToken

logger = logging.getLogger(__name__)


class JobManager(IJobManager):
    """任务管理器实现"""

    def __init__(self, config: RuntimeConfig | None = None):
        self.config = config or get_config()
        self._jobs: dict[str, ExportJob] = {}  # 内存缓存
        self._tokens: dict[str, CancelToken] = {}

    def create_job(
        self,
        job_type: str,
        template_id: str | None = None,
        title: str = "invitation",
        guest_ids: list[str] | None = None,
        **kwargs: Any,
    ) -> ExportJob:
        """创建任务"""
        job = ExportJob(
            job_id=str(uuid.uuid4()),
            job_type=JobType(job_type),
            template_id=template_id,
            title=title,
            guest_ids=guest_ids or [],
            **kwargs,
        )

        self._jobs[job.job_id] = job
        self._tokens[job.job_id] = CancelToken()
        self._persist_job(job)
        return job

    def get_job(self, job_id: str) -> ExportJob | None:
        """获取任务"""
        if job_id in self._jobs:
            return self._jobs[job_id]

        job = self._load_job(job_id)
        if job:
            self._jobs[job_id] = job
        return job

    def update_job(self, job: ExportJob) -> None:
        """更新任务状态"""
        self._jobs[job.job_id] = job
        self._persist_job(job)

    def token_for(self, job_id: str) -> CancelToken:
        """任务的取消令牌"""
        return self._tokens.setdefault(job_id, CancelToken())

    def cancel_job(self, job_id: str) -> bool:
        """
        请求取消任务

        运行中的任务只设置令牌，由执行器在下一位嘉宾开始前停止；
        尚未开始的任务直接进入已取消。
        """
        job = self.get_job(job_id)
        if not job or job.status.is_terminal:
            return False

        self.token_for(job_id).cancel()
        if job.status == JobStatus.IDLE:
            job.mark_cancelled()
            self.update_job(job)
        logger.info(f"任务取消请求: {job_id}")
        return True

    def list_jobs(
        self,
        status: JobStatus | None = None,
        limit: int = 100,
    ) -> list[ExportJob]:
        """列出任务"""
        jobs = list(self._jobs.values())

        if status:
            jobs = [j for j in jobs if j.status == status]

        # 按创建时间降序
        jobs.sort(key=lambda j: j.created_at, reverse=True)

        return jobs[:limit]

    def _persist_job(self, job: ExportJob) -> None:
        """持久化任务"""
        if not self.config.export.persist_jobs:
            return
        job_dir = self.config.get_job_dir(job.job_id)
        job_dir.mkdir(parents=True, exist_ok=True)

        job_file = job_dir / "job.json"
        with open(job_file, "w", encoding="utf-8") as f:
            json.dump(job.model_dump(mode="json"), f, ensure_ascii=False, indent=2, default=str)

    def _load_job(self, job_id: str) -> ExportJob | None:
        """从磁盘加载任务"""
        job_file = self.config.get_job_dir(job_id) / "job.json"

        if not job_file.exists():
            return None

        try:
            with open(job_file, encoding="utf-8") as f:
                data = json.load(f)
            return ExportJob(**data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"任务文件读取失败: {job_file}: {e}")
            return None
