"""
收件人存储 - 以JSON文件保存模板的嘉宾列表

文件位置：storage_dir/templates/<template_id>/guests.json

测试要点：
- test_list_guests_missing_file: 文件不存在时为空列表
- test_update_status: 回写发送状态
- test_update_unknown_guest: 未知嘉宾抛 StoreError
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from ..config import RuntimeConfig, get_config
from ..interfaces import IRecipientStore, StoreError
from ..models import Guest, RsvpStatus

logger = logging.getLogger(__name__)


class JsonRecipientStore(IRecipientStore):
    """JSON文件收件人存储"""

    FILENAME = "guests.json"

    def __init__(self, config: RuntimeConfig | None = None):
        self.config = config or get_config()

    def _path(self, template_id: str) -> Path:
        return self.config.get_template_dir(template_id) / self.FILENAME

    def list_guests(self, template_id: str) -> list[Guest]:
        """读取嘉宾列表（文件不存在视为空列表）"""
        path = self._path(template_id)
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return [Guest(**item) for item in data]
        except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
            raise StoreError(f"嘉宾列表读取失败 {path}: {e}") from e

    def save_guests(self, template_id: str, guests: list[Guest]) -> None:
        path = self._path(template_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(
                    [g.model_dump(mode="json") for g in guests],
                    f,
                    ensure_ascii=False,
                    indent=2,
                )
        except OSError as e:
            raise StoreError(f"嘉宾列表写入失败 {path}: {e}") from e

    def update_status(
        self,
        template_id: str,
        guest_id: str,
        status: RsvpStatus,
        sent_at: datetime | None = None,
    ) -> None:
        """回写嘉宾状态"""
        guests = self.list_guests(template_id)
        for guest in guests:
            if guest.id == guest_id:
                guest.rsvp_status = status
                if sent_at is not None:
                    guest.sent_at = sent_at
                break
        else:
            raise StoreError(f"嘉宾不存在: template={template_id} guest={guest_id}")

        self.save_guests(template_id, guests)
        logger.debug(f"嘉宾状态已更新: {guest_id} -> {status.value}")
