"""
单嘉宾个性化链路 - 替换 → 资源解析 → 离屏渲染

预览、发送、批量下载共用这一条链路，因此"部分资源回退"的计数口径只有一处：
资源回退不算失败，结果带上回退标记；只有渲染链路抛出的异常才算该嘉宾失败。
"""

from __future__ import annotations

import logging

from ..interfaces import GuestRenderError
from ..models import Bitmap, DocumentSnapshot, Guest, OutcomeStatus, RenderOutcome
from ..render import AssetResolver, OffscreenRenderer, PlaceholderSubstitutor

logger = logging.getLogger(__name__)


class Personalizer:
    """单嘉宾渲染器"""

    def __init__(
        self,
        substitutor: PlaceholderSubstitutor,
        resolver: AssetResolver,
        renderer: OffscreenRenderer,
    ):
        self.substitutor = substitutor
        self.resolver = resolver
        self.renderer = renderer

    async def render_guest(self, snapshot: DocumentSnapshot, guest: Guest) -> Bitmap:
        """
        为单个嘉宾生成位图

        Raises:
            GuestRenderError: 链路中任意一步失败
        """
        try:
            pending = self.substitutor.substitute(snapshot, guest)
            resolved = await self.resolver.resolve(pending)
            bitmap = await self.renderer.render(resolved, snapshot.width, snapshot.height)
        except GuestRenderError:
            raise
        except Exception as e:
            raise GuestRenderError(guest.id, guest.name, f"{type(e).__name__}: {e}") from e

        bitmap.flags = resolved.flags + [f for f in bitmap.flags if f not in resolved.flags]
        return bitmap

    async def outcome(self, snapshot: DocumentSnapshot, guest: Guest) -> RenderOutcome:
        """渲染并包装为类型化结果（预期失败不抛出）"""
        try:
            bitmap = await self.render_guest(snapshot, guest)
        except GuestRenderError as e:
            logger.warning(f"嘉宾渲染失败: {e}")
            return RenderOutcome(
                guest_id=guest.id,
                guest_name=guest.name,
                status=OutcomeStatus.FAILED,
                error=e.message,
            )
        return RenderOutcome(
            guest_id=guest.id,
            guest_name=guest.name,
            status=OutcomeStatus.SUCCESS,
            bitmap=bitmap,
            flags=list(bitmap.flags),
        )
