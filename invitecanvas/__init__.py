"""
InviteCanvas 邀请函个性化导出 - 核心模块

模块结构：
- config/     运行期配置与日志
- models/     数据模型定义
- render/     占位符替换/资源解析/离屏渲染
- editor/     编辑器画布（快照/恢复）与裁剪工具
- pipeline/   批量导出编排、发送、预览与任务管理
- storage/    收件人与模板存储
"""

__version__ = "0.1.0"
