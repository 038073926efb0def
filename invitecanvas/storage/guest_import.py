"""
嘉宾导入 - 从CSV/JSON文件读取嘉宾列表

CSV列名不区分大小写：name（必需）、email、id、status；缺少id时按行号生成。
"""

from __future__ import annotations

import csv
import json
from pathlib import Path

from pydantic import ValidationError

from ..interfaces import StoreError
from ..models import Guest


def load_guests_csv(csv_path: str | Path) -> list[Guest]:
    path = Path(csv_path)
    guests: list[Guest] = []
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        low_map = {
            str(h).strip().lower(): h for h in (reader.fieldnames or []) if h is not None
        }
        name_key = low_map.get("name")
        if not name_key:
            raise StoreError(f"CSV 必须包含 name 列（不区分大小写）: {path}")
        id_key = low_map.get("id")
        email_key = low_map.get("email")
        status_key = low_map.get("status") or low_map.get("rsvp_status")

        for row_no, row in enumerate(reader, start=1):
            name = str(row.get(name_key) or "").strip()
            if not name:
                continue
            guest_id = str(row.get(id_key) or "").strip() if id_key else ""
            try:
                guests.append(
                    Guest(
                        id=guest_id or f"guest-{row_no:04d}",
                        name=name,
                        email=str(row.get(email_key) or "").strip() if email_key else "",
                        rsvp_status=row.get(status_key) if status_key else None,
                    )
                )
            except ValidationError as e:
                raise StoreError(f"CSV 第 {row_no} 行格式错误: {e}") from e
    return guests


def load_guests_json(json_path: str | Path) -> list[Guest]:
    path = Path(json_path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return [Guest(**item) for item in data]
    except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
        raise StoreError(f"嘉宾文件读取失败 {path}: {e}") from e


def load_guests(path: str | Path) -> list[Guest]:
    """按扩展名选择CSV或JSON"""
    path = Path(path)
    if path.suffix.lower() == ".json":
        return load_guests_json(path)
    return load_guests_csv(path)
