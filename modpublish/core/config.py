"""集中配置管理

支持从 YAML 文件加载 + 编程式覆盖（CLI 选项）。
未知键保留在 extra 中，便于扩展而不破坏旧配置文件。
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path

from modpublish.core.exceptions import ConfigError
from modpublish.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "configs/default.yml"
DEFAULT_EDIT_MARKER = "// Generated by modpublish"
TIDY_MODES = ("tidy", "none")


@dataclass
class Config:
    """全局配置"""

    # 制品库
    repo_url: str = ""
    target_repo: str = ""
    api_token: str = ""
    http_timeout: int = 60

    # 上游模块代理（制品库中不存在的依赖从这里下载）
    upstream_proxy: str = "https://proxy.golang.org"

    # 本地目录，留空时按 go 环境推导
    module_cache_dir: str = ""
    work_dir: str = ""
    ledger_file: str = "data/ledger.yml"

    # go 工具链
    go_binary: str = "go"
    command_timeout: int = 600

    # go.mod 生成标记；edit_message 留空时等于 edit_marker
    edit_marker: str = DEFAULT_EDIT_MARKER
    edit_message: str = ""

    # 执行
    tidy_mode: str = "tidy"
    max_workers: int = 4

    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def override(self, **values: object) -> Config:
        """用非空值覆盖字段（CLI 选项未指定时传 None）"""
        for k, v in values.items():
            if v is None:
                continue
            if k not in self.__dataclass_fields__:
                raise ConfigError(f"未知配置项: {k}")
            setattr(self, k, v)
        return self

    def validate(self) -> None:
        """发布前的必要检查"""
        errors: list[str] = []
        if not self.repo_url:
            errors.append("repo_url 未配置")
        if not self.target_repo:
            errors.append("target_repo 未配置")
        if self.tidy_mode not in TIDY_MODES:
            errors.append(f"tidy_mode 必须是 {TIDY_MODES} 之一: {self.tidy_mode}")
        if self.max_workers < 1:
            errors.append(f"max_workers 必须 >= 1: {self.max_workers}")
        if not self.resolved_edit_message().startswith(self.edit_marker):
            errors.append("edit_message 必须以 edit_marker 开头，否则无法识别已生成的 go.mod")
        if errors:
            raise ConfigError("配置无效: " + "; ".join(errors))

    def resolved_edit_message(self) -> str:
        return self.edit_message or self.edit_marker

    def resolved_module_cache_dir(self) -> Path:
        """本地模块缓存根目录: 显式配置 > $GOMODCACHE > $GOPATH/pkg/mod > ~/go/pkg/mod"""
        if self.module_cache_dir:
            return Path(self.module_cache_dir)
        modcache = os.environ.get("GOMODCACHE", "")
        if not modcache:
            gopath = os.environ.get("GOPATH", "").split(os.pathsep)[0]
            base = Path(gopath) if gopath else Path.home() / "go"
            modcache = str(base / "pkg" / "mod")
        return Path(modcache) / "cache" / "download"

    def resolved_work_dir(self) -> Path:
        if self.work_dir:
            return Path(self.work_dir)
        return Path(tempfile.gettempdir()) / "modpublish"

    def to_dict(self) -> dict:
        data = asdict(self)
        if data.get("api_token"):
            data["api_token"] = "***"
        return data


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
