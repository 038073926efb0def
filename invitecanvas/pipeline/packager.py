"""
打包器 - 生成邀请函压缩包和manifest

职责：
1. 内存ZIP，所有条目放在 <标题>_invitations/ 目录下
2. 条目名由嘉宾名净化得到（非字母数字字符 -> _），重名追加 _2/_3
3. 可选 manifest.json（任务ID/统计/结果/时间戳）
4. 序列化在线程中执行，任何失败转换为 ArchiveError

测试要点：
- test_sanitize_name: 名称净化
- test_duplicate_names: 重名去重
- test_manifest_structure: manifest结构
- test_finalize_failure: 打包失败
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import zipfile
from io import BytesIO
from typing import TYPE_CHECKING

from ..config import RuntimeConfig, get_config
from ..interfaces import ArchiveError, IArchivePackager

if TYPE_CHECKING:
    from ..models import ExportJob, Guest

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")


def sanitize_name(name: str, fallback: str = "invitation") -> str:
    """非字母数字字符替换为下划线；全空时使用fallback"""
    cleaned = _UNSAFE_CHARS.sub("_", name or "")
    if not cleaned.strip("_"):
        return fallback
    return cleaned


class ArchivePackager(IArchivePackager):
    """打包器实现"""

    def __init__(self, title: str, config: RuntimeConfig | None = None):
        self.config = config or get_config()
        export = self.config.export
        base = sanitize_name(title)
        self.folder = f"{base}{export.folder_suffix}"
        self.archive_name = f"{base}{export.folder_suffix}.zip"
        self.entry_suffix = export.entry_suffix

        self._buffer: BytesIO | None = BytesIO()
        self._zip: zipfile.ZipFile | None = zipfile.ZipFile(
            self._buffer, "w", zipfile.ZIP_DEFLATED
        )
        self._names: set[str] = set()
        self.entries: list[str] = []

    def entry_name_for(self, guest: Guest) -> str:
        """嘉宾 -> 条目文件名（不含目录）"""
        return f"{sanitize_name(guest.name, f'guest_{guest.id}')}{self.entry_suffix}"

    def add_entry(self, name: str, data: bytes) -> str:
        """添加条目，返回实际归档路径"""
        if self._zip is None:
            raise ArchiveError("压缩包已关闭")

        path = self._unique_path(name)
        try:
            self._zip.writestr(path, data)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise ArchiveError(f"写入条目失败 {path}: {e}") from e

        self._names.add(path.lower())
        self.entries.append(path)
        return path

    def _unique_path(self, name: str) -> str:
        stem, dot, ext = name.rpartition(".")
        if not dot:
            stem, ext = name, ""
        suffix = f".{ext}" if dot else ""
        candidate = f"{self.folder}/{name}"
        n = 2
        while candidate.lower() in self._names:
            candidate = f"{self.folder}/{stem}_{n}{suffix}"
            n += 1
        return candidate

    async def finalize(self, job: ExportJob | None = None) -> bytes:
        """写入manifest并序列化为字节"""
        if self._zip is None:
            raise ArchiveError("压缩包已关闭")

        timeout = self.config.timeouts.archive_finalize_sec
        try:
            data = await asyncio.wait_for(asyncio.to_thread(self._close, job), timeout)
        except asyncio.TimeoutError as e:
            raise ArchiveError(f"打包超时（{timeout}s）") from e
        except ArchiveError:
            raise
        except Exception as e:
            raise ArchiveError(f"打包失败: {e}") from e

        if job is not None:
            job.artifacts.archive_name = self.archive_name
            job.artifacts.entry_count = len(self.entries)
            if self.config.export.save_archive:
                job.artifacts.archive_path = await asyncio.to_thread(self._save, job, data)

        logger.info(f"压缩包已生成: {self.archive_name} ({len(self.entries)} 个条目)")
        return data

    def _close(self, job: ExportJob | None) -> bytes:
        if job is not None and self.config.export.write_manifest:
            manifest = self.generate_manifest(job)
            self._zip.writestr(
                "manifest.json", json.dumps(manifest, ensure_ascii=False, indent=2)
            )
        self._zip.close()
        self._zip = None
        data = self._buffer.getvalue()
        self._buffer = None
        return data

    def _save(self, job: ExportJob, data: bytes):
        job_dir = self.config.get_job_dir(job.job_id)
        job_dir.mkdir(parents=True, exist_ok=True)
        path = job_dir / self.archive_name
        path.write_bytes(data)
        return path

    def discard(self) -> None:
        """丢弃未完成的压缩包"""
        if self._zip is not None:
            self._zip.close()
            self._zip = None
        self._buffer = None
        self.entries = []
        self._names.clear()

    def generate_manifest(self, job: ExportJob) -> dict:
        """生成manifest内容"""
        summary = job.summary()
        return {
            "schema_version": "1.0",
            "job_id": job.job_id,
            "job_type": job.job_type.value,
            "title": job.title,
            "template_id": job.template_id,
            "folder": self.folder,
            "summary": summary.model_dump(),
            "entries": list(self.entries),
            "outcomes": [o.model_dump(mode="json") for o in job.outcomes],
            "flags": job.flags,
            "errors": job.errors,
            "timestamps": {
                "created_at": job.created_at.isoformat() if job.created_at else None,
                "started_at": job.started_at.isoformat() if job.started_at else None,
                "finished_at": job.finished_at.isoformat() if job.finished_at else None,
            },
        }
