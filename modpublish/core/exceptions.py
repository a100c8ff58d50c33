"""统一异常体系

所有业务异常继承 ModPublishError。核心引擎在分支边界捕获并记录日志，
只有 CLI 层会把它们转换为退出码和友好提示。
"""

from __future__ import annotations


class ModPublishError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(ModPublishError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(ModPublishError):
    """输入数据校验失败（模块路径、依赖边格式等）"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class DependencyError(ModPublishError):
    """依赖包定位、解压或落盘失败"""

    code = "DEPENDENCY_ERROR"


class ExecutionError(ModPublishError):
    """外部构建工具（go 命令）执行失败"""

    code = "EXECUTION_ERROR"


class RepositoryError(ModPublishError):
    """制品库或上游代理访问失败"""

    code = "REPOSITORY_ERROR"

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status in (404, 410)
