"""
邀请函模板记录 - 画布文档挂载在模板记录上
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from .document import DocumentSnapshot


class InvitationTemplate(BaseModel):
    """模板记录"""
    id: str
    title: str = "Invitation"
    editor_data: DocumentSnapshot = Field(default_factory=DocumentSnapshot)
    sender_name: str = "Invitation Service"
    reply_to_email: str | None = None
