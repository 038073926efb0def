"""
存储层 - 收件人/模板的本地JSON实现与嘉宾导入

子模块：
- recipients: 收件人存储
- templates: 模板存储
- guest_import: CSV/JSON 嘉宾导入
"""

from .guest_import import load_guests, load_guests_csv, load_guests_json
from .recipients import JsonRecipientStore
from .templates import JsonTemplateStore

__all__ = [
    "JsonRecipientStore",
    "JsonTemplateStore",
    "load_guests",
    "load_guests_csv",
    "load_guests_json",
]
