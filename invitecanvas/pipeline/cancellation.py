"""
协作式取消令牌

只在检查点生效（每位嘉宾开始前、预览代次边界），从不抢占正在进行的渲染。
"""

from __future__ import annotations

import threading

from ..interfaces import CancellationError


class CancelToken:
    """取消令牌（可跨线程设置）"""

    def __init__(self):
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "") -> None:
        self.reason = reason or "用户取消"
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError(self.reason)
