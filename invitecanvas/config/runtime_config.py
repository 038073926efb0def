"""
运行期配置 - 读取 documents/runtime_options.yaml

职责：
- 加载画布默认值/二维码服务/超时/渲染/导出等运行参数
- 提供环境变量覆盖机制（前缀 INVITECANVAS_，嵌套分隔符 __）
- 类型安全的配置访问
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

DEFAULT_CONFIG_PATH = Path("documents/runtime_options.yaml")
FALLBACK_CONFIG_PATH = Path("config/runtime_options.yaml")


class CanvasConfig(BaseModel):
    """画布默认值（编辑器初始画布）"""

    default_width: int = 600
    default_height: int = 400
    background: str = "#ffffff"


class QRServiceConfig(BaseModel):
    """二维码服务配置"""

    provider: str = "remote"  # remote | local
    base_url: str = "https://api.qrserver.com/v1/create-qr-code/"
    size: int = 200
    border: int = 4
    error_correction: str = "M"


class HttpConfig(BaseModel):
    """HTTP客户端配置"""

    timeout_sec: float = 15.0
    max_connections: int = 10
    user_agent: str = "invitecanvas/0.1"


class TimeoutConfig(BaseModel):
    """超时配置"""

    asset_fetch_sec: float = 20.0
    archive_finalize_sec: float = 120.0


class RenderConfig(BaseModel):
    """渲染配置"""

    font_dirs: list[str] = Field(default_factory=list)
    default_font: str = "DejaVuSans.ttf"
    png_compress_level: int = 6
    image_cache_size: int = 64


class ExportConfig(BaseModel):
    """导出配置"""

    folder_suffix: str = "_invitations"
    entry_suffix: str = "_invitation.png"
    write_manifest: bool = True
    save_archive: bool = False
    persist_jobs: bool = True
    progress_interval_sec: float = 2.0


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False
    log_file: str = "invitecanvas.log"
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 3


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    # 基础路径
    base_dir: Path = Path(".")
    storage_dir: Path = Path("storage")

    # 各子配置
    canvas: CanvasConfig = Field(default_factory=CanvasConfig)
    qr_service: QRServiceConfig = Field(default_factory=QRServiceConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "INVITECANVAS_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})

        kwargs: dict[str, Any] = {
            "canvas": CanvasConfig(**cls._extract(runtime_opts, "canvas")),
            "qr_service": QRServiceConfig(**cls._extract(runtime_opts, "qr_service")),
            "http": HttpConfig(**cls._extract(runtime_opts, "http")),
            "timeouts": TimeoutConfig(**cls._extract(runtime_opts, "timeouts")),
            "render": RenderConfig(**cls._extract(runtime_opts, "render")),
            "export": ExportConfig(**cls._extract(runtime_opts, "export")),
            "logging": LoggingConfig(**cls._extract(runtime_opts, "logging")),
        }
        if "storage_dir" in runtime_opts:
            kwargs["storage_dir"] = Path(runtime_opts["storage_dir"])

        config = cls(**kwargs)
        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置（支持 {default: x} 形式的叶子节点）"""
        section = data.get(key) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）"""
        if not self.storage_dir.is_absolute():
            self.storage_dir = (base_dir / self.storage_dir).resolve()
        self.render.font_dirs = [
            str(Path(d) if Path(d).is_absolute() else (base_dir / d).resolve())
            for d in self.render.font_dirs
        ]

    def get_job_dir(self, job_id: str) -> Path:
        """获取任务工作目录"""
        return self.storage_dir / "jobs" / job_id

    def get_template_dir(self, template_id: str) -> Path:
        """获取模板数据目录"""
        return self.storage_dir / "templates" / template_id

    def ensure_dirs(self) -> None:
        """确保必要目录存在"""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        (self.storage_dir / "jobs").mkdir(exist_ok=True)
        (self.storage_dir / "templates").mkdir(exist_ok=True)


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        path = DEFAULT_CONFIG_PATH
        if not path.exists() and FALLBACK_CONFIG_PATH.exists():
            path = FALLBACK_CONFIG_PATH
        _config = RuntimeConfig.from_yaml(path)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    _config = RuntimeConfig.from_yaml(yaml_path or DEFAULT_CONFIG_PATH)
    return _config
