"""
流水线阶段定义

职责：
1. 定义导出/发送任务的阶段名称
2. 每个阶段占据的进度区间，用于把嘉宾进度折算为任务百分比

测试要点：
- test_stage_percent_mapping: 进度折算
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StageEnum(str, Enum):
    """流水线阶段枚举"""
    CAPTURE_SNAPSHOT = "CAPTURE_SNAPSHOT"
    PERSONALIZE = "PERSONALIZE"
    DELIVER = "DELIVER"
    PACKAGE_ARCHIVE = "PACKAGE_ARCHIVE"
    RESTORE_EDITOR = "RESTORE_EDITOR"


@dataclass
class PipelineStage:
    """流水线阶段"""
    name: str
    progress_start: int  # 进度起点（0-100）
    progress_end: int    # 进度终点

    def percent_at(self, fraction: float) -> int:
        """阶段内完成比例 -> 任务总百分比"""
        fraction = min(max(fraction, 0.0), 1.0)
        return self.progress_start + int((self.progress_end - self.progress_start) * fraction)


# 批量下载：逐个嘉宾渲染入包
EXPORT_STAGES: dict[str, PipelineStage] = {
    StageEnum.CAPTURE_SNAPSHOT.value: PipelineStage(StageEnum.CAPTURE_SNAPSHOT.value, 0, 2),
    StageEnum.PERSONALIZE.value: PipelineStage(StageEnum.PERSONALIZE.value, 2, 95),
    StageEnum.PACKAGE_ARCHIVE.value: PipelineStage(StageEnum.PACKAGE_ARCHIVE.value, 95, 99),
    StageEnum.RESTORE_EDITOR.value: PipelineStage(StageEnum.RESTORE_EDITOR.value, 99, 100),
}

# 发送：逐个嘉宾渲染并交给邮件发送方
SEND_STAGES: dict[str, PipelineStage] = {
    StageEnum.CAPTURE_SNAPSHOT.value: PipelineStage(StageEnum.CAPTURE_SNAPSHOT.value, 0, 2),
    StageEnum.DELIVER.value: PipelineStage(StageEnum.DELIVER.value, 2, 99),
    StageEnum.RESTORE_EDITOR.value: PipelineStage(StageEnum.RESTORE_EDITOR.value, 99, 100),
}
