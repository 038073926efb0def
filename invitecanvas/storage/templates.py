"""
模板存储 - 以JSON文件保存模板记录，画布文档作为不透明序列化树挂在记录上

文件位置：storage_dir/templates/<template_id>/template.json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..config import RuntimeConfig, get_config
from ..interfaces import DocumentError, ITemplateStore, StoreError
from ..models import DocumentSnapshot, InvitationTemplate


class JsonTemplateStore(ITemplateStore):
    """JSON文件模板存储"""

    FILENAME = "template.json"

    def __init__(self, config: RuntimeConfig | None = None):
        self.config = config or get_config()

    def _path(self, template_id: str) -> Path:
        return self.config.get_template_dir(template_id) / self.FILENAME

    def _read(self, template_id: str) -> dict[str, Any]:
        path = self._path(template_id)
        if not path.exists():
            raise StoreError(f"模板不存在: {template_id}")
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"模板读取失败 {path}: {e}") from e

    def load_template(self, template_id: str) -> InvitationTemplate:
        raw = self._read(template_id)
        document = self._parse_document(template_id, raw)
        try:
            return InvitationTemplate.model_validate({**raw, "editor_data": document})
        except ValidationError as e:
            raise StoreError(f"模板记录格式错误 {template_id}: {e}") from e

    def load_document(self, template_id: str) -> DocumentSnapshot:
        return self._parse_document(template_id, self._read(template_id))

    def save_template(self, template: InvitationTemplate) -> None:
        path = self._path(template.id)
        data = template.model_dump(mode="json", exclude={"editor_data"})
        data["editor_data"] = template.editor_data.to_json()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StoreError(f"模板写入失败 {path}: {e}") from e

    @staticmethod
    def _parse_document(template_id: str, raw: dict[str, Any]) -> DocumentSnapshot:
        editor_data = raw.get("editor_data")
        if editor_data is None:
            raise DocumentError(f"模板没有画布文档: {template_id}")
        return DocumentSnapshot.from_json(editor_data)
