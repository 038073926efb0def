"""
日志配置 - 控制台输出 + 可选滚动文件

使用方式：
    from invitecanvas.config import configure_logging, get_config

    configure_logging(get_config())
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler

from .runtime_config import RuntimeConfig

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_TAG = "_invitecanvas_handler"


def configure_logging(config: RuntimeConfig) -> logging.Logger:
    """按运行期配置安装根日志器的处理器（重复调用会替换旧处理器）"""
    root = logging.getLogger("invitecanvas")
    level = getattr(logging, config.logging.log_level.upper(), logging.INFO)
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    setattr(console, _HANDLER_TAG, True)
    root.addHandler(console)

    if config.logging.log_to_file:
        log_dir = config.storage_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / config.logging.log_file,
            maxBytes=config.logging.max_bytes,
            backupCount=config.logging.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_TAG, True)
        root.addHandler(file_handler)

    return root
