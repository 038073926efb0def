"""
渲染链路中间产物 - 待解析文档 / 已解析文档 / 位图 / 单嘉宾结果
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from .document import DocumentSnapshot
from .guest import Guest
from .job import OutcomeStatus


class QRImage(BaseModel):
    """二维码服务返回值"""
    src: str
    data: bytes = Field(repr=False)
    payload: str


class PendingDocument(BaseModel):
    """占位符已替换、二维码待重建的文档副本"""
    document: DocumentSnapshot
    guest: Guest
    qr_indices: list[int] = Field(default_factory=list, description="需要重建的二维码对象下标")


class ResolvedDocument(BaseModel):
    """已解析文档（所有动态图片已重建或回退）"""
    document: DocumentSnapshot
    guest: Guest | None = None
    flags: list[str] = Field(default_factory=list, description="资源回退标记")


class Bitmap(BaseModel):
    """编码后的位图（PNG）"""
    data: bytes = Field(repr=False)
    width: int
    height: int
    format: str = "PNG"
    flags: list[str] = Field(default_factory=list)


class RenderOutcome(BaseModel):
    """单嘉宾渲染结果（预览/发送共用）"""
    guest_id: str
    guest_name: str
    status: OutcomeStatus
    bitmap: Bitmap | None = None
    error: str | None = None
    flags: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS


class EmailHandoff(BaseModel):
    """交给邮件发送方的数据（内嵌图 + 附件）"""
    guest: Guest
    subject: str
    sender_name: str = "Invitation Service"
    reply_to: str | None = None
    image: bytes = Field(repr=False)
    inline_cid: str = "invitation-image"
    attachment_name: str = "invitation.png"
