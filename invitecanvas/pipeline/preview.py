"""
实时预览控制器 - 单嘉宾、可导航、拒绝过期结果

状态机：CLOSED -> OPENING -> READY -> CLOSED；打开期间切换嘉宾 READY -> OPENING

职责：
1. 每次切换嘉宾递增代次；只有与当前代次一致的渲染结果才会被绘制
2. 预览拥有独立的绘制表面，打开时创建、关闭时释放，不跨会话复用
3. 协作式：切换嘉宾不抢占正在进行的渲染，旧结果完成后被丢弃

测试要点：
- test_stale_result_rejected: A未完成时切到B，最终显示B
- test_surface_recreated_on_reopen: 关闭后重新打开得到新表面
- test_navigation_wraps: next/previous 循环
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Sequence

from ..editor import EditorCanvas
from ..interfaces import InviteCanvasError
from ..models import DocumentSnapshot, Guest, RenderOutcome
from .personalize import Personalizer

logger = logging.getLogger(__name__)


class PreviewState(str, Enum):
    """预览状态"""
    CLOSED = "closed"
    OPENING = "opening"
    READY = "ready"


class PreviewSurface:
    """预览绘制表面（与编辑器、批量导出的表面互相独立）"""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.outcome: RenderOutcome | None = None
        self.paint_count = 0
        self.disposed = False

    def paint(self, outcome: RenderOutcome) -> None:
        if self.disposed:
            raise InviteCanvasError("预览表面已释放")
        self.outcome = outcome
        self.paint_count += 1

    def dispose(self) -> None:
        self.outcome = None
        self.disposed = True


class PreviewController:
    """预览控制器"""

    def __init__(self, personalizer: Personalizer, canvas: EditorCanvas):
        self.personalizer = personalizer
        self.canvas = canvas

        self.state = PreviewState.CLOSED
        self.generation = 0
        self.index = 0
        self.guests: list[Guest] = []
        self.surface: PreviewSurface | None = None
        self.discarded = 0

        self._snapshot: DocumentSnapshot | None = None
        self._tasks: dict[int, asyncio.Task] = {}

    @property
    def current_guest(self) -> Guest | None:
        if not self.guests:
            return None
        return self.guests[self.index]

    @property
    def current(self) -> RenderOutcome | None:
        """当前显示的结果"""
        return self.surface.outcome if self.surface else None

    def open(self, guests: Sequence[Guest], index: int = 0) -> int:
        """打开预览（需在事件循环中调用），返回本次代次"""
        if self.state != PreviewState.CLOSED:
            self.guests = list(guests)
            return self.select(index)
        if not guests:
            raise ValueError("没有可预览的嘉宾")

        self.guests = list(guests)
        self._snapshot = self.canvas.snapshot()
        self.surface = PreviewSurface(self._snapshot.width, self._snapshot.height)
        logger.debug(f"预览打开: {len(self.guests)} 位嘉宾")
        return self.select(index)

    def select(self, index: int) -> int:
        """切换到指定嘉宾，返回新代次"""
        if self.surface is None or self._snapshot is None:
            raise InviteCanvasError("预览未打开")
        if not 0 <= index < len(self.guests):
            raise IndexError(f"嘉宾下标越界: {index}")

        self.index = index
        self.generation += 1
        self.state = PreviewState.OPENING

        generation = self.generation
        guest = self.guests[index]
        task = asyncio.get_running_loop().create_task(
            self._run(generation, guest, self._snapshot, self.surface)
        )
        self._tasks[generation] = task
        task.add_done_callback(lambda _t, g=generation: self._tasks.pop(g, None))
        return generation

    def next(self) -> int:
        return self.select((self.index + 1) % len(self.guests))

    def previous(self) -> int:
        return self.select((self.index - 1) % len(self.guests))

    async def wait_ready(self) -> RenderOutcome | None:
        """等待当前代次完成，返回显示中的结果"""
        while self.state == PreviewState.OPENING:
            task = self._tasks.get(self.generation)
            if task is None:
                break
            await asyncio.wait({task})
        return self.current

    async def close(self) -> None:
        """关闭预览：丢弃所有在途结果并释放表面"""
        self.generation += 1
        pending = list(self._tasks.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()

        if self.surface is not None:
            self.surface.dispose()
        self.surface = None
        self._snapshot = None
        self.state = PreviewState.CLOSED
        logger.debug("预览关闭")

    async def _run(
        self,
        generation: int,
        guest: Guest,
        snapshot: DocumentSnapshot,
        surface: PreviewSurface,
    ) -> RenderOutcome:
        outcome = await self.personalizer.outcome(snapshot, guest)

        if generation != self.generation or surface.disposed:
            self.discarded += 1
            logger.debug(f"丢弃过期预览: guest={guest.name} generation={generation}")
            return outcome

        surface.paint(outcome)
        self.state = PreviewState.READY
        return outcome
