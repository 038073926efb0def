"""
模块接口契约 - 定义外部协作方与各模块的抽象接口

设计原则：
1. 流水线只通过窄接口访问外部协作方（收件人存储/二维码服务/模板持久化/打包/邮件）
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from invitecanvas.interfaces import IQRService

    class MyQRService(IQRService):
        async def generate(self, payload: str) -> QRImage:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import (
        DocumentSnapshot,
        EmailHandoff,
        ExportJob,
        Guest,
        InvitationTemplate,
        QRImage,
        RsvpStatus,
    )


# ============================================================================
# 外部协作方接口
# ============================================================================

class IQRService(ABC):
    """二维码服务接口 - 由payload生成方形二维码位图"""

    @abstractmethod
    async def generate(self, payload: str) -> QRImage:
        """
        生成二维码

        Args:
            payload: 已替换占位符的二维码内容

        Returns:
            QRImage（图片来源 + PNG字节）

        Raises:
            AssetResolutionError: 网络错误或内容非法
        """
        ...


class IRecipientStore(ABC):
    """收件人存储接口 - 读取嘉宾列表，回写发送状态"""

    @abstractmethod
    def list_guests(self, template_id: str) -> list[Guest]:
        """读取模板对应的嘉宾列表"""
        ...

    @abstractmethod
    def update_status(
        self,
        template_id: str,
        guest_id: str,
        status: RsvpStatus,
        sent_at: datetime | None = None,
    ) -> None:
        """
        回写嘉宾状态

        Raises:
            StoreError: 嘉宾不存在或写入失败
        """
        ...


class ITemplateStore(ABC):
    """模板持久化接口 - 以不透明序列化树保存画布文档"""

    @abstractmethod
    def load_template(self, template_id: str) -> InvitationTemplate:
        """读取模板记录"""
        ...

    @abstractmethod
    def save_template(self, template: InvitationTemplate) -> None:
        """保存模板记录"""
        ...

    @abstractmethod
    def load_document(self, template_id: str) -> DocumentSnapshot:
        """读取模板的画布文档"""
        ...


class IEmailTransport(ABC):
    """邮件发送接口 - 仅负责交接，发送细节不在本系统范围内"""

    @abstractmethod
    async def send(self, handoff: EmailHandoff) -> str:
        """
        发送一封邀请邮件

        Returns:
            传输层消息ID

        Raises:
            任意异常均视为该嘉宾发送失败
        """
        ...


# ============================================================================
# 流水线与任务管理接口
# ============================================================================

class IJobManager(ABC):
    """任务管理器接口"""

    @abstractmethod
    def create_job(self, job_type: str, **kwargs: Any) -> ExportJob:
        """创建任务"""
        ...

    @abstractmethod
    def get_job(self, job_id: str) -> ExportJob | None:
        """获取任务"""
        ...

    @abstractmethod
    def update_job(self, job: ExportJob) -> None:
        """更新任务状态"""
        ...

    @abstractmethod
    def cancel_job(self, job_id: str) -> bool:
        """请求取消任务（协作式）"""
        ...


class IArchivePackager(ABC):
    """打包器接口"""

    @abstractmethod
    def add_entry(self, name: str, data: bytes) -> str:
        """
        添加一个命名条目

        Returns:
            实际写入的归档路径（重名时追加序号）
        """
        ...

    @abstractmethod
    async def finalize(self, job: ExportJob | None = None) -> bytes:
        """
        序列化归档

        Raises:
            ArchiveError: 打包失败
        """
        ...


# ============================================================================
# 异常定义
# ============================================================================

class InviteCanvasError(Exception):
    """基础异常"""
    pass


class DocumentError(InviteCanvasError):
    """源文档缺失或格式错误（调用方错误）"""
    pass


class AssetResolutionError(InviteCanvasError):
    """单个图片资源加载/重建失败（本地恢复，不影响嘉宾）"""
    pass


class GuestRenderError(InviteCanvasError):
    """单个嘉宾渲染失败（记录后跳过，批量继续）"""

    def __init__(self, guest_id: str, guest_name: str, message: str):
        super().__init__(f"{guest_name}({guest_id}): {message}")
        self.guest_id = guest_id
        self.guest_name = guest_name
        self.message = message


class ArchiveError(InviteCanvasError):
    """打包失败（整个任务失败）"""
    pass


class CancellationError(InviteCanvasError):
    """任务被取消（不是失败，独立终态）"""
    pass


class CropStateError(InviteCanvasError):
    """裁剪工具状态转换非法"""
    pass


class StoreError(InviteCanvasError):
    """存储读写错误"""
    pass
