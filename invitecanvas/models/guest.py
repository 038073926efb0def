"""
嘉宾模型 - 由外部收件人存储提供，流水线只读
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class RsvpStatus(str, Enum):
    """嘉宾投递/回复状态"""
    UNSET = "unset"
    SENT = "sent"
    ATTENDING = "attending"
    DECLINED = "declined"
    MAYBE = "maybe"


class Guest(BaseModel):
    """嘉宾"""
    id: str = Field(..., description="嘉宾ID")
    name: str = Field(..., description="显示名（替换 {guest_name}）")
    email: str = ""
    rsvp_status: RsvpStatus = RsvpStatus.UNSET
    sent_at: datetime | None = None

    @field_validator("rsvp_status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if value is None or value == "" or value == "pending":
            return RsvpStatus.UNSET
        if isinstance(value, str):
            return value.lower()
        return value

    @property
    def already_sent(self) -> bool:
        """是否已发送过邀请"""
        return self.sent_at is not None or self.rsvp_status == RsvpStatus.SENT
