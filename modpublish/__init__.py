"""modpublish - Go 模块依赖递归解析与制品库发布工具"""

__version__ = "0.3.0"
